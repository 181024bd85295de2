"""
Tests for request cancellation and the time budget.
"""

import pytest

from dashquery.utils.budget import RequestBudget, clamp_timeout
from dashquery.utils.cancellation import CancellationToken
from dashquery.utils.errors import RequestCancelled


class TestCancellationToken:

    def test_callbacks_fire_once(self):
        """Test cancel callbacks fire only once"""
        token = CancellationToken()
        fired = []
        token.register(lambda: fired.append(1))
        token.cancel()
        token.cancel()
        assert fired == [1]
        assert token.cancelled

    def test_unregister(self):
        """Test unregistered callback not fired"""
        token = CancellationToken()
        fired = []
        unregister = token.register(lambda: fired.append(1))
        unregister()
        token.cancel()
        assert fired == []

    def test_register_after_cancel_fires_immediately(self):
        """Test late registration fires at once"""
        token = CancellationToken()
        token.cancel()
        fired = []
        token.register(lambda: fired.append(1))
        assert fired == [1]

    def test_failing_callback_does_not_stop_others(self):
        """Test failing callback does not block the rest"""
        token = CancellationToken()
        fired = []

        def boom():
            raise RuntimeError("driver gone")

        token.register(boom)
        token.register(lambda: fired.append(1))
        token.cancel()
        assert fired == [1]

    def test_raise_if_cancelled(self):
        """Test cancelled token raises RequestCancelled"""
        token = CancellationToken()
        token.raise_if_cancelled()
        token.cancel()
        with pytest.raises(RequestCancelled):
            token.raise_if_cancelled()


class TestRequestBudget:

    def test_clamp_to_step_limit(self):
        """Test timeout capped by the step limit"""
        budget = RequestBudget(60)
        assert budget.clamp(5) == 5
        assert not budget.exhausted()

    def test_clamp_to_remaining(self):
        """Test timeout capped by the remaining budget"""
        budget = RequestBudget(1)
        assert budget.clamp(30) <= 1

    def test_exhausted_budget_keeps_floor(self):
        """Test exhausted budget still gives the floor timeout"""
        budget = RequestBudget(0)
        assert budget.exhausted()
        assert budget.clamp(30) == pytest.approx(0.2)

    def test_clamp_timeout_without_budget(self):
        """Test step limit used without a budget"""
        assert clamp_timeout(None, 7) == 7.0
