"""
Widget pipeline context - dependencies for workflow nodes
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from dashquery.charts.limiter import limit_chart_data
from dashquery.config.settings import settings
from dashquery.utils.budget import RequestBudget
from dashquery.utils.cancellation import CancellationToken
from dashquery.utils.errors import QueryTimeoutError

ChartLimiter = Callable[[List[Dict[str, Any]], Dict[str, Any]], List[Dict[str, Any]]]


@dataclass
class WidgetContext:
    """Context holding dependencies for widget workflow nodes"""

    executor: Any  # QueryExecutor, one per widget
    oracle: Any  # LLMOracle
    dialect: str = "postgresql"
    max_rows: int = field(default_factory=lambda: settings.sql_max_rows)
    chart_max_rows: int = field(default_factory=lambda: settings.chart_max_rows)
    statement_timeout_ms: int = field(default_factory=lambda: settings.sql_statement_timeout_ms)
    oracle_timeout_s: float = field(default_factory=lambda: settings.llm_timeout_s)
    chart_limiter: ChartLimiter = limit_chart_data
    budget: Optional[RequestBudget] = None
    cancel_token: Optional[CancellationToken] = None

    def check_cancelled(self) -> None:
        if self.cancel_token is not None:
            self.cancel_token.raise_if_cancelled()

    def execution_timeout_ms(self) -> int:
        """Statement timeout for the next execution, clamped to the request budget."""
        if self.budget is None:
            return int(self.statement_timeout_ms)
        if self.budget.exhausted():
            raise QueryTimeoutError("Request time budget exhausted before query execution.")
        return int(self.budget.clamp(self.statement_timeout_ms / 1000.0) * 1000)

    def repair_timeout_s(self) -> float:
        if self.budget is None:
            return float(self.oracle_timeout_s)
        return self.budget.clamp(self.oracle_timeout_s)
