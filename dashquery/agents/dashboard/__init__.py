"""
Dashboard chat agent
"""

from dashquery.agents.dashboard.agent import DashboardChatAgent

__all__ = ["DashboardChatAgent"]
