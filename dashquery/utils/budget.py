"""
End-to-end time budget for one dashboard request.
"""

import time
from typing import Optional


class RequestBudget:
    """
    Wall-clock budget shared by every step of a request.

    Step timeouts are clamped to what is left so that the last step cannot
    overrun the caller's deadline.
    """

    def __init__(self, seconds: float):
        self.seconds = float(seconds)
        self._start = time.perf_counter()

    def elapsed(self) -> float:
        return time.perf_counter() - self._start

    def remaining(self) -> float:
        return max(0.0, self.seconds - self.elapsed())

    def exhausted(self) -> bool:
        return self.remaining() <= 0.0

    def clamp(self, max_timeout_s: float, floor_s: float = 0.2) -> float:
        """Timeout for the next step: min(max_timeout_s, remaining), never below floor_s."""
        return max(floor_s, min(float(max_timeout_s), self.remaining()))

    def elapsed_ms(self) -> int:
        return int(self.elapsed() * 1000)


def clamp_timeout(budget: Optional[RequestBudget], max_timeout_s: float) -> float:
    return budget.clamp(max_timeout_s) if budget is not None else float(max_timeout_s)
