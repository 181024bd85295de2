"""
Finalize node - build the widget result
"""

from loguru import logger

from dashquery.agents.widget.context import WidgetContext
from dashquery.agents.widget.state import WidgetGraphState
from dashquery.agents.widget.utils import trace_step
from dashquery.models.widget import ChartConfig, WidgetMeta, WidgetResult


def build_widget_result(state: WidgetGraphState) -> WidgetResult:
    """Widget result for a finished graph run. Failed widgets carry no chart data."""
    widget = state["widget"]
    failed = state.get("sql_error") is not None

    return WidgetResult(
        title=widget.get("title") or "",
        sql=state.get("sql_used") or widget.get("sql") or "",
        explanation=widget.get("explanation") or "",
        chart_config=ChartConfig.model_validate(widget.get("chartConfig") or {}),
        chart_data=[] if failed else list(state.get("chart_data") or []),
        sql_error=state.get("sql_error"),
        meta=WidgetMeta(
            raw_row_count=state.get("raw_row_count", 0),
            post_limit_count=0 if failed else state.get("post_limit_count", 0),
            fallback_stage=state.get("fallback_stage"),
        ),
    )


@trace_step("finalize")
def finalize_node(state: WidgetGraphState, ctx: WidgetContext) -> WidgetGraphState:
    if state.get("sql_error") is not None:
        state["chart_data"] = []
        state["post_limit_count"] = 0
        logger.info(f"Widget '{state['widget'].get('title')}' failed: {state['sql_error']}")
    else:
        logger.info(
            f"Widget '{state['widget'].get('title')}' done | raw={state['raw_row_count']} | "
            f"charted={state['post_limit_count']} | stage={state['fallback_stage']}"
        )
    state["phase"] = "done"
    return state
