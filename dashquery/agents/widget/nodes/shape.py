"""
Result shaping node
"""

from loguru import logger

from dashquery.agents.widget.context import WidgetContext
from dashquery.agents.widget.nodes.execute import run_statement
from dashquery.agents.widget.state import WidgetGraphState
from dashquery.agents.widget.utils import trace_step
from dashquery.charts.shaping import axes_exist, clamp_rows, coerce_numeric_strings
from dashquery.config.constants import BYPASS_LIMITER_SUFFIX
from dashquery.utils.errors import ExecutionError


@trace_step("shape_result")
def shape_node(state: WidgetGraphState, ctx: WidgetContext) -> WidgetGraphState:
    """
    Clamp, coerce and limit rows for charting.

    If the limiter empties a result that had rows, the last SQL used is
    re-fetched and returned clamped but unlimited.
    """
    chart_config = state["widget"].get("chartConfig") or {}
    chart_data = coerce_numeric_strings(clamp_rows(state["rows"], ctx.chart_max_rows), chart_config)

    if chart_data and axes_exist(chart_data, chart_config):
        chart_data = list(ctx.chart_limiter(chart_data, chart_config) or [])

    if not chart_data and state["raw_row_count"] > 0:
        logger.warning(
            f"Chart limiter emptied {state['raw_row_count']} rows for type={chart_config.get('type')}, bypassing"
        )
        try:
            refetched = run_statement(ctx, state["sql_used"])
        except ExecutionError as e:
            logger.warning(f"Re-fetch for limiter bypass failed, using rows already fetched: {e}")
            refetched = state["rows"]
        chart_data = coerce_numeric_strings(clamp_rows(refetched, ctx.chart_max_rows), chart_config)
        state["fallback_stage"] = state["fallback_stage"] + BYPASS_LIMITER_SUFFIX

    state["chart_data"] = chart_data
    state["post_limit_count"] = len(chart_data)
    state["phase"] = "shaped"
    return state
