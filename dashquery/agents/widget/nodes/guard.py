"""
SQL guard node
"""

from loguru import logger

from dashquery.agents.widget.context import WidgetContext
from dashquery.agents.widget.state import WidgetGraphState
from dashquery.agents.widget.utils import preview_sql, trace_step
from dashquery.sql.guard import guard_sql
from dashquery.utils.errors import GuardViolation


@trace_step("guard_sql")
def guard_node(state: WidgetGraphState, ctx: WidgetContext) -> WidgetGraphState:
    """
    Guard the widget's SQL. A violation fails the widget without touching the database.

    A widget without SQL skips execution and carries no error.
    """
    sql = state["widget"].get("sql") or ""
    if not sql:
        logger.info("Widget has no SQL, returning it unexecuted")
        state["phase"] = "skipped"
        return state

    try:
        state["guarded_sql"] = guard_sql(sql, max_rows=ctx.max_rows, dialect=ctx.dialect)
    except GuardViolation as e:
        logger.warning(f"Guard rejected widget SQL ({e.kind.value}): {preview_sql(sql)}")
        state["sql_error"] = str(e)
        state["phase"] = "failed"
        return state

    state["phase"] = "guarded"
    return state
