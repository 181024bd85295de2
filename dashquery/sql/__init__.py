"""
SQL safety and rewriting layer
"""

from dashquery.sql.guard import guard_sql, apply_execution_hint
from dashquery.sql.fallbacks import rewrite, FALLBACK_PASSES

__all__ = ["guard_sql", "apply_execution_hint", "rewrite", "FALLBACK_PASSES"]
