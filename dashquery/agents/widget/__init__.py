"""
Widget query pipeline
"""

from dashquery.agents.widget.agent import WidgetQueryPipeline
from dashquery.agents.widget.context import WidgetContext

__all__ = ["WidgetQueryPipeline", "WidgetContext"]
