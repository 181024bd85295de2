"""
Application constants

Centralized constants used across the application.
"""

from enum import Enum
from typing import FrozenSet

# ============================================================================
# SQL Guard
# ============================================================================

# DDL/DML/administrative keywords rejected anywhere in a statement (whole word)
FORBIDDEN_KEYWORDS: FrozenSet[str] = frozenset({
    "insert", "update", "delete", "drop", "alter", "create", "truncate",
    "grant", "revoke", "commit", "rollback", "call", "exec", "merge",
    "replace", "vacuum", "analyze",
})

# First word a read-only statement may start with
READ_ONLY_LEADERS: FrozenSet[str] = frozenset({"select", "with", "show", "describe", "explain"})

SUPPORTED_DIALECTS: FrozenSet[str] = frozenset({"postgresql", "mysql"})

DEFAULT_PORTS = {"postgresql": 5432, "mysql": 3306}


# ============================================================================
# Charts
# ============================================================================

CATEGORICAL_CHART_TYPES: FrozenSet[str] = frozenset({"bar", "pie", "radar", "composed"})
SERIES_CHART_TYPES: FrozenSet[str] = frozenset({"line", "area"})


# ============================================================================
# Fallback ladder
# ============================================================================

class FallbackStage(str, Enum):
    """How a widget's data was ultimately obtained."""
    NONE = "none"
    WIDEN_DATE = "widen_date"
    STRIP_FILTERS = "strip_filters"
    RELAX_JOINS = "relax_joins"
    LLM_REPAIR = "llm_repair"


BYPASS_LIMITER_SUFFIX = "+bypass_limiter"

# Ladder pass number -> stage recorded when that pass produces rows
LADDER_STAGES = {
    1: FallbackStage.WIDEN_DATE,
    2: FallbackStage.STRIP_FILTERS,
    3: FallbackStage.RELAX_JOINS,
}
