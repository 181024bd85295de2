"""
Widget workflow nodes
"""

from dashquery.agents.widget.nodes.guard import guard_node
from dashquery.agents.widget.nodes.execute import execute_node, run_statement
from dashquery.agents.widget.nodes.fallback import fallback_node
from dashquery.agents.widget.nodes.model_repair import model_repair_node
from dashquery.agents.widget.nodes.shape import shape_node
from dashquery.agents.widget.nodes.finalize import build_widget_result, finalize_node

__all__ = [
    "guard_node",
    "execute_node",
    "run_statement",
    "fallback_node",
    "model_repair_node",
    "shape_node",
    "finalize_node",
    "build_widget_result",
]
