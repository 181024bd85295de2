"""
Bounded model repair node - at most one LLM rewrite after the ladder is exhausted
"""

from typing import Any, Dict, Optional

from loguru import logger
from pydantic import ValidationError

from dashquery.agents.widget.context import WidgetContext
from dashquery.agents.widget.nodes.execute import run_statement
from dashquery.agents.widget.prompts import build_repair_messages
from dashquery.agents.widget.state import WidgetGraphState
from dashquery.agents.widget.utils import preview_sql, trace_step
from dashquery.config.constants import FallbackStage
from dashquery.llm.response_utils import parse_json_object
from dashquery.models.widget import WidgetIntent
from dashquery.sql.guard import guard_sql
from dashquery.utils.errors import OracleError, PipelineError, RequestCancelled


def _repaired_widget(parsed: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """The widget object in a repair response, flat or nested under ``widget``."""
    if parsed.get("sql"):
        return parsed
    nested = parsed.get("widget")
    if isinstance(nested, dict) and nested.get("sql"):
        return nested
    return None


def _adopt_repair(widget: Dict[str, Any], fixed: Dict[str, Any]) -> Dict[str, Any]:
    """Merge the repaired fields into the widget. Raises OracleError on a malformed widget."""
    merged = dict(widget)
    for key in ("title", "explanation"):
        if fixed.get(key):
            merged[key] = fixed[key]
    if isinstance(fixed.get("chartConfig"), dict):
        merged["chartConfig"] = fixed["chartConfig"]

    try:
        intent = WidgetIntent.from_payload(merged)
    except ValidationError as e:
        raise OracleError(f"Model repair returned an invalid widget: {e.errors()[0].get('msg')}") from e

    adopted = intent.model_dump(by_alias=True)
    adopted["chartConfig"] = intent.chart_config.to_dict()
    return adopted


@trace_step("model_repair")
def model_repair_node(state: WidgetGraphState, ctx: WidgetContext) -> WidgetGraphState:
    """
    Ask the model once for a broader widget and execute it once.

    A response without SQL keeps the empty result. Any other failure (oracle,
    JSON, invalid widget fields, guard, execution) fails the widget; nothing is retried.
    """
    state["model_repair_attempted"] = True
    widget = dict(state["widget"])

    try:
        if ctx.budget is not None and ctx.budget.exhausted():
            raise OracleError("Request time budget exhausted before model repair.")

        ctx.check_cancelled()
        messages = build_repair_messages(
            state["user_prompt"],
            widget,
            state["last_sql_tried"] or state["guarded_sql"] or "",
            state["schema_context"],
        )
        content = ctx.oracle.complete(messages, timeout_s=ctx.repair_timeout_s())
        fixed = _repaired_widget(parse_json_object(content))

        if fixed is None:
            logger.info("Model repair returned no SQL, keeping empty result")
            state["phase"] = "empty"
            return state

        widget = _adopt_repair(widget, fixed)
        fixed_sql = guard_sql(str(fixed["sql"]), max_rows=ctx.max_rows, dialect=ctx.dialect)
        logger.info(f"Model repair candidate: {preview_sql(fixed_sql)}")
        state["last_sql_tried"] = fixed_sql
        rows = run_statement(ctx, fixed_sql)
    except RequestCancelled:
        raise
    except PipelineError as e:
        logger.warning(f"Model repair failed: {e}")
        state["sql_error"] = str(e)
        state["phase"] = "failed"
        return state

    widget["sql"] = fixed_sql

    state["widget"] = widget
    state["rows"] = rows
    state["raw_row_count"] = len(rows)
    state["sql_used"] = fixed_sql
    state["fallback_stage"] = FallbackStage.LLM_REPAIR.value
    state["phase"] = "rows" if rows else "empty"
    logger.info(f"Model repair executed, {len(rows)} rows")
    return state
