"""
SQL execution node
"""

from typing import Any, Dict, List

from loguru import logger

from dashquery.agents.widget.context import WidgetContext
from dashquery.agents.widget.state import WidgetGraphState
from dashquery.agents.widget.utils import preview_sql, trace_step
from dashquery.utils.errors import ExecutionError


def run_statement(ctx: WidgetContext, sql: str) -> List[Dict[str, Any]]:
    """Run one guarded statement with a budget-clamped timeout."""
    ctx.check_cancelled()
    timeout_ms = ctx.execution_timeout_ms()
    rows = ctx.executor.execute(sql, timeout_ms=timeout_ms)
    rows = list(rows or [])
    logger.debug(f"Query returned {len(rows)} rows: {preview_sql(sql)}")
    return rows


@trace_step("execute_sql")
def execute_node(state: WidgetGraphState, ctx: WidgetContext) -> WidgetGraphState:
    """
    Execute the guarded SQL.

    An error here is terminal for the widget: only a successful, empty result
    enters the fallback ladder.
    """
    sql = state["guarded_sql"]
    state["last_sql_tried"] = sql

    try:
        rows = run_statement(ctx, sql)
    except ExecutionError as e:
        logger.warning(f"Widget SQL failed: {e}")
        state["sql_error"] = str(e)
        state["phase"] = "failed"
        return state

    state["sql_used"] = sql
    state["rows"] = rows
    state["raw_row_count"] = len(rows)
    state["phase"] = "rows" if rows else "empty"
    return state
