"""
Widget query pipeline - guarded, self-healing execution of one widget
"""

import uuid
from typing import Any, Dict, Optional, Union

from loguru import logger

from dashquery.agents.widget.context import WidgetContext
from dashquery.agents.widget.nodes.finalize import build_widget_result
from dashquery.agents.widget.state import WidgetGraphState
from dashquery.agents.widget.workflow import build_widget_workflow
from dashquery.config.constants import FallbackStage
from dashquery.models.widget import WidgetIntent, WidgetResult


class WidgetQueryPipeline:
    """
    Runs one widget through guard, execution, the fallback ladder, the
    bounded model repair and result shaping.

    Steps within a widget are strictly sequential. A pipeline owns its
    context (and so its executor); do not share one across widgets.
    """

    def __init__(self, ctx: WidgetContext):
        self.ctx = ctx
        self.workflow = build_widget_workflow(ctx)

    def _initial_state(
        self,
        widget: Dict[str, Any],
        user_prompt: str,
        schema_context: str,
        trace_id: Optional[str] = None,
    ) -> WidgetGraphState:
        """Create initial workflow state."""
        return {
            "trace_id": trace_id or str(uuid.uuid4()),
            "user_prompt": user_prompt or "",
            "schema_context": schema_context or "",
            "widget": widget,
            "guarded_sql": None,
            "sql_used": None,
            "last_sql_tried": None,
            "rows": [],
            "raw_row_count": 0,
            "chart_data": [],
            "post_limit_count": 0,
            "fallback_pass": 0,
            "fallback_stage": FallbackStage.NONE.value,
            "model_repair_attempted": False,
            "sql_error": None,
            "phase": "start",
        }

    def run(
        self,
        widget: Union[WidgetIntent, Dict[str, Any]],
        user_prompt: str = "",
        schema_context: str = "",
        trace_id: Optional[str] = None,
    ) -> WidgetResult:
        """
        Execute one widget.

        Args:
            widget: Widget intent (model or ``{title, sql, explanation, chartConfig}``)
            user_prompt: The business prompt, used by the model repair
            schema_context: Schema text, injected verbatim into the repair prompt

        Returns:
            WidgetResult; failures are reported through ``sql_error``.

        Raises:
            RequestCancelled: The request was cancelled mid-pipeline
        """
        intent = widget if isinstance(widget, WidgetIntent) else WidgetIntent.from_payload(widget)
        payload = intent.model_dump(by_alias=True)
        payload["chartConfig"] = intent.chart_config.to_dict()

        state = self._initial_state(payload, user_prompt, schema_context, trace_id)
        logger.info(f"Running widget '{intent.title}' | trace_id={state['trace_id']}")
        final_state = self.workflow.invoke(state)
        return build_widget_result(final_state)
