"""
dashquery - guarded, self-healing query execution for dashboard widgets.
"""

__version__ = "0.1.0"
