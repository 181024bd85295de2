"""
Widget pipeline workflow - graph construction
"""

from langgraph.graph import StateGraph, END
from loguru import logger

from dashquery.agents.widget.state import WidgetGraphState
from dashquery.agents.widget.context import WidgetContext
from dashquery.agents.widget.nodes import (
    guard_node,
    execute_node,
    fallback_node,
    model_repair_node,
    shape_node,
    finalize_node,
)
from dashquery.config.constants import LADDER_STAGES

MAX_FALLBACK_PASS = max(LADDER_STAGES)


def _route_after_guard(state: WidgetGraphState) -> str:
    return "finalize" if state["phase"] in ("failed", "skipped") else "execute"


def _route_after_execute(state: WidgetGraphState) -> str:
    """Errors are terminal; only an empty success enters the ladder."""
    phase = state["phase"]
    if phase == "failed":
        return "finalize"
    if phase == "empty":
        logger.info("Query returned no rows, entering fallback ladder")
        return "fallback"
    return "shape"


def _route_after_fallback(state: WidgetGraphState) -> str:
    phase = state["phase"]
    if phase == "failed":
        return "finalize"
    if phase == "rows":
        return "shape"
    if state["fallback_pass"] < MAX_FALLBACK_PASS:
        return "fallback"
    logger.info("Fallback ladder exhausted, attempting model repair")
    return "model_repair"


def _route_after_model_repair(state: WidgetGraphState) -> str:
    return "finalize" if state["phase"] == "failed" else "shape"


def build_widget_workflow(ctx: WidgetContext):
    """
    Build the widget workflow graph with context bound to nodes.

    guard -> execute -> [fallback x3 -> model_repair] -> shape -> finalize
    """
    g = StateGraph(WidgetGraphState)

    g.add_node("guard", lambda s: guard_node(s, ctx))
    g.add_node("execute", lambda s: execute_node(s, ctx))
    g.add_node("fallback", lambda s: fallback_node(s, ctx))
    g.add_node("model_repair", lambda s: model_repair_node(s, ctx))
    g.add_node("shape", lambda s: shape_node(s, ctx))
    g.add_node("finalize", lambda s: finalize_node(s, ctx))

    g.set_entry_point("guard")

    g.add_conditional_edges(
        "guard",
        _route_after_guard,
        {"execute": "execute", "finalize": "finalize"},
    )
    g.add_conditional_edges(
        "execute",
        _route_after_execute,
        {"fallback": "fallback", "shape": "shape", "finalize": "finalize"},
    )
    g.add_conditional_edges(
        "fallback",
        _route_after_fallback,
        {
            "fallback": "fallback",
            "model_repair": "model_repair",
            "shape": "shape",
            "finalize": "finalize",
        },
    )
    g.add_conditional_edges(
        "model_repair",
        _route_after_model_repair,
        {"shape": "shape", "finalize": "finalize"},
    )

    g.add_edge("shape", "finalize")
    g.add_edge("finalize", END)
    return g.compile()
