"""
Dashboard chat agent - proposes widgets with the model and runs each through
the widget query pipeline
"""

import hashlib
import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from loguru import logger
from pydantic import ValidationError

from dashquery.agents.dashboard.prompts import build_dashboard_system_prompt
from dashquery.agents.widget.agent import WidgetQueryPipeline
from dashquery.agents.widget.context import WidgetContext
from dashquery.charts.limiter import limit_chart_data
from dashquery.config.settings import ConnectionConfig, settings
from dashquery.infra.database import QueryExecutor
from dashquery.llm.client import LLMOracle
from dashquery.llm.response_utils import parse_json_object
from dashquery.models.widget import ChartConfig, DashboardChatResult, WidgetIntent, WidgetResult
from dashquery.security.capability import Capability, assert_capability_scope
from dashquery.utils.budget import RequestBudget
from dashquery.utils.cancellation import CancellationToken
from dashquery.utils.errors import RequestCancelled

DEFAULT_SUMMARY = "Added new widgets."

ExecutorFactory = Callable[[ConnectionConfig, CancellationToken], Any]


def _default_executor_factory(config: ConnectionConfig, cancel_token: CancellationToken) -> QueryExecutor:
    return QueryExecutor(config, cancel_token=cancel_token)


def sql_hash(sql: str) -> str:
    return hashlib.sha256(sql.encode("utf-8")).hexdigest()


def _failed_result(widget: Dict[str, Any], message: str) -> WidgetResult:
    try:
        chart_config = ChartConfig.model_validate(widget.get("chartConfig") or {})
    except ValidationError:
        chart_config = ChartConfig()
    return WidgetResult(
        title=str(widget.get("title") or ""),
        sql=str(widget.get("sql") or ""),
        explanation=str(widget.get("explanation") or ""),
        chart_config=chart_config,
        sql_error=message,
    )


def _unexecuted_result(intent: WidgetIntent) -> WidgetResult:
    return WidgetResult(
        title=intent.title,
        sql=intent.sql,
        explanation=intent.explanation,
        chart_config=intent.chart_config,
    )


class DashboardChatAgent:
    """
    Turns a dashboard chat prompt into executed widgets.

    One model call proposes widgets; widgets then run concurrently (bounded by
    ``widget_max_workers``), each through its own pipeline and executor.
    Per-widget failures are isolated; cancellation aborts the whole request.
    """

    def __init__(
        self,
        oracle: Optional[LLMOracle] = None,
        executor_factory: Optional[ExecutorFactory] = None,
        chart_limiter: Callable = limit_chart_data,
        prompt_mapper: Optional[Callable[[str, str], str]] = None,
        semantic_hints: Optional[Callable[[str], Optional[str]]] = None,
        max_workers: Optional[int] = None,
        budget_s: Optional[float] = None,
    ):
        self.oracle = oracle or LLMOracle()
        self.executor_factory = executor_factory or _default_executor_factory
        self.chart_limiter = chart_limiter
        self.prompt_mapper = prompt_mapper
        self.semantic_hints = semantic_hints
        self.max_workers = max(1, int(max_workers or settings.widget_max_workers))
        self.budget_s = float(budget_s or settings.request_budget_s)

    def run(
        self,
        prompt: str,
        schema_context: str,
        connection: Optional[Union[ConnectionConfig, Dict[str, Any]]] = None,
        dashboard_items: Iterable[Dict[str, Any]] = (),
        capability: Optional[Capability] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> DashboardChatResult:
        """
        Generate and execute widgets for a dashboard prompt.

        Raises:
            ValueError: Missing prompt or schema
            CapabilityError: Connector or dataset outside the capability scope
            OracleError: The widget-generation call failed
            RequestCancelled: The request was cancelled
        """
        if not prompt or not isinstance(prompt, str) or not prompt.strip():
            raise ValueError("Prompt is required.")
        if not schema_context or not isinstance(schema_context, str) or not schema_context.strip():
            raise ValueError("Database schema is required.")

        if isinstance(connection, dict):
            connection = ConnectionConfig.from_dict(connection)

        assert_capability_scope(capability, connection.id if connection else None, schema_context)

        token = cancel_token or CancellationToken()
        budget = RequestBudget(self.budget_s)
        request_id = str(uuid.uuid4())
        logger.info(f"Dashboard chat request {request_id}: {prompt[:200]}")

        mapped_prompt = self.prompt_mapper(prompt, schema_context) if self.prompt_mapper else prompt
        hints = self.semantic_hints(schema_context) if self.semantic_hints else None

        token.raise_if_cancelled()
        messages = [
            {"role": "system", "content": build_dashboard_system_prompt(schema_context, hints, dashboard_items)},
            {"role": "user", "content": mapped_prompt},
        ]
        parsed = parse_json_object(
            self.oracle.complete(messages, timeout_s=budget.clamp(getattr(self.oracle, "timeout_s", settings.llm_timeout_s)))
        )

        summary = parsed.get("summary") or DEFAULT_SUMMARY
        widgets = [w for w in parsed.get("widgets") or [] if isinstance(w, dict)]
        hashes = [sql_hash(w["sql"]) for w in widgets if isinstance(w.get("sql"), str) and w["sql"]]
        logger.info(f"Model proposed {len(widgets)} widget(s) | sql_hashes={hashes}")

        if connection is None:
            results = [self._without_connection(w) for w in widgets]
        else:
            results = self._execute_widgets(widgets, connection, mapped_prompt, schema_context, budget, token, request_id)

        logger.info(
            f"Dashboard chat request {request_id} done in {budget.elapsed_ms()} ms | "
            f"failed={sum(1 for r in results if r.failed)}/{len(results)}"
        )
        return DashboardChatResult(summary=summary, widgets=results)

    def _without_connection(self, widget: Dict[str, Any]) -> WidgetResult:
        try:
            return _unexecuted_result(WidgetIntent.from_payload(widget))
        except ValidationError as e:
            return _failed_result(widget, f"Invalid widget: {e.errors()[0].get('msg', 'validation error')}")

    def _execute_widgets(
        self,
        widgets: List[Dict[str, Any]],
        connection: ConnectionConfig,
        user_prompt: str,
        schema_context: str,
        budget: RequestBudget,
        token: CancellationToken,
        request_id: str,
    ) -> List[WidgetResult]:
        if not widgets:
            return []

        pool = ThreadPoolExecutor(max_workers=min(self.max_workers, len(widgets)), thread_name_prefix="widget")
        futures = [
            pool.submit(
                self._run_widget, widget, connection, user_prompt, schema_context, budget, token,
                f"{request_id}:{index}",
            )
            for index, widget in enumerate(widgets)
        ]

        results = []
        try:
            for future in futures:
                results.append(future.result())
        except RequestCancelled:
            token.cancel()
            for future in futures:
                future.cancel()
            logger.warning(f"Dashboard chat request {request_id} cancelled")
            raise
        finally:
            pool.shutdown(wait=False)
        return results

    def _run_widget(
        self,
        widget: Dict[str, Any],
        connection: ConnectionConfig,
        user_prompt: str,
        schema_context: str,
        budget: RequestBudget,
        token: CancellationToken,
        trace_id: str,
    ) -> WidgetResult:
        token.raise_if_cancelled()
        executor = None
        try:
            intent = WidgetIntent.from_payload(widget)
            executor = self.executor_factory(connection, token)
            ctx = WidgetContext(
                executor=executor,
                oracle=self.oracle,
                dialect=connection.dialect,
                chart_limiter=self.chart_limiter,
                budget=budget,
                cancel_token=token,
            )
            return WidgetQueryPipeline(ctx).run(intent, user_prompt, schema_context, trace_id=trace_id)
        except RequestCancelled:
            raise
        except Exception as e:
            logger.exception(f"Widget {trace_id} failed unexpectedly: {e}")
            return _failed_result(widget, str(e))
        finally:
            if executor is not None and hasattr(executor, "dispose"):
                executor.dispose()
