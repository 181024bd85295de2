"""
Fallback ladder node - one deterministic rewrite pass per invocation
"""

from loguru import logger

from dashquery.agents.widget.context import WidgetContext
from dashquery.agents.widget.nodes.execute import run_statement
from dashquery.agents.widget.state import WidgetGraphState
from dashquery.agents.widget.utils import preview_sql, trace_step
from dashquery.config.constants import LADDER_STAGES
from dashquery.sql.fallbacks import rewrite
from dashquery.sql.guard import guard_sql
from dashquery.utils.errors import ExecutionError, GuardViolation, QueryTimeoutError


@trace_step("fallback_ladder")
def fallback_node(state: WidgetGraphState, ctx: WidgetContext) -> WidgetGraphState:
    """
    Try the next ladder pass against the original guarded SQL.

    Passes are cumulative (pass 2 includes pass 1's rewrite). A candidate that
    fails the guard or equals the last statement tried is skipped; a plain
    execution error moves on to the next pass, a timeout fails the widget.
    """
    pass_number = state["fallback_pass"] + 1
    state["fallback_pass"] = pass_number
    stage = LADDER_STAGES[pass_number]

    try:
        candidate = guard_sql(
            rewrite(state["guarded_sql"], pass_number),
            max_rows=ctx.max_rows,
            dialect=ctx.dialect,
        )
    except GuardViolation as e:
        logger.info(f"Fallback pass {pass_number} ({stage.value}) skipped, guard rejected candidate: {e}")
        state["phase"] = "empty"
        return state

    if candidate == state["last_sql_tried"]:
        logger.debug(f"Fallback pass {pass_number} ({stage.value}) made no change, skipping")
        state["phase"] = "empty"
        return state

    logger.info(f"Fallback pass {pass_number} ({stage.value}): {preview_sql(candidate)}")
    state["last_sql_tried"] = candidate

    try:
        rows = run_statement(ctx, candidate)
    except QueryTimeoutError as e:
        logger.warning(f"Fallback pass {pass_number} timed out: {e}")
        state["sql_error"] = str(e)
        state["phase"] = "failed"
        return state
    except ExecutionError as e:
        logger.info(f"Fallback pass {pass_number} failed, advancing: {e}")
        state["phase"] = "empty"
        return state

    if rows:
        logger.info(f"Fallback pass {pass_number} ({stage.value}) recovered {len(rows)} rows")
        state["rows"] = rows
        state["raw_row_count"] = len(rows)
        state["sql_used"] = candidate
        state["fallback_stage"] = stage.value
        state["phase"] = "rows"
    else:
        state["phase"] = "empty"
    return state
