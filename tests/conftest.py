"""
Shared fakes: an executor and an oracle that record their calls.
"""

import json
from typing import Any, Callable, Dict, List, Optional, Union

import pytest

from dashquery.agents.widget.context import WidgetContext
from dashquery.utils.errors import ExecutionError

Response = Union[List[Dict[str, Any]], Exception, Callable[[str], List[Dict[str, Any]]]]


class FakeExecutor:
    """
    Executor double. ``responses`` is consumed in order; each entry is a row
    list, an exception to raise, or a callable of the SQL. When exhausted the
    ``default`` response is used.
    """

    def __init__(self, responses: Optional[List[Response]] = None, default: Response = None):
        self.responses = list(responses or [])
        self.default = [] if default is None else default
        self.calls: List[str] = []
        self.timeouts: List[Optional[int]] = []
        self.disposed = False

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def execute(self, sql: str, timeout_ms: Optional[int] = None) -> List[Dict[str, Any]]:
        self.calls.append(sql)
        self.timeouts.append(timeout_ms)
        response = self.responses.pop(0) if self.responses else self.default
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(sql)
        return [dict(row) for row in response]

    def dispose(self) -> None:
        self.disposed = True


class FakeOracle:
    """Oracle double returning canned text (dicts are JSON-encoded)."""

    timeout_s = 5.0

    def __init__(self, responses: Optional[List[Union[str, Dict[str, Any], Exception]]] = None):
        self.responses = list(responses or [])
        self.calls: List[List[Dict[str, str]]] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def complete(self, messages: List[Dict[str, str]], timeout_s: Optional[float] = None) -> str:
        self.calls.append(messages)
        if not self.responses:
            raise AssertionError("Unexpected oracle call")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, dict):
            return json.dumps(response)
        return response


def rows(n: int, x: str = "label", y: str = "value") -> List[Dict[str, Any]]:
    return [{x: f"L{i}", y: i + 1} for i in range(n)]


@pytest.fixture
def make_context():
    def _make(executor=None, oracle=None, **kwargs) -> WidgetContext:
        return WidgetContext(
            executor=executor or FakeExecutor(),
            oracle=oracle or FakeOracle(),
            max_rows=kwargs.pop("max_rows", 1000),
            chart_max_rows=kwargs.pop("chart_max_rows", 50),
            statement_timeout_ms=kwargs.pop("statement_timeout_ms", 15000),
            **kwargs,
        )

    return _make


@pytest.fixture
def execution_error():
    return ExecutionError('relation "orders" does not exist')
