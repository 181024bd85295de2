"""
Deterministic empty-result fallbacks.

Each transform is a pure function: SQL in, SQL out. No LLM, no parsing.
The ladder composes them cumulatively in a fixed order:

    pass 1: widen_date_filters
    pass 2: strip_status_filters(widen_date_filters(sql))
    pass 3: relax_inner_joins(strip_status_filters(widen_date_filters(sql)))

A rewritten candidate is not guaranteed to be guarded anymore and must go
through ``guard_sql`` again before execution.
"""

import re
from typing import Callable, List, Tuple

from dashquery.config.constants import FallbackStage

# Relative "last N days" windows -> fixed 12 month window, whatever N was
_RELATIVE_DATE_PATTERNS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"now\(\)\s*-\s*interval\s*'(\d+)\s*days?'", re.IGNORECASE), "now() - interval '12 months'"),
    (re.compile(r"current_date\s*-\s*interval\s*'(\d+)\s*days?'", re.IGNORECASE), "current_date - interval '12 months'"),
    # MySQL spelling: NOW() - INTERVAL 30 DAY
    (re.compile(r"\b(now\(\)|curdate\(\)|current_date)\s*-\s*interval\s+(\d+)\s+day\b", re.IGNORECASE), r"\1 - INTERVAL 12 MONTH"),
]

# Simple "AND col = literal" clauses on brittle status-like columns
_BRITTLE_FILTERS: List[re.Pattern] = [
    re.compile(r"""\s+AND\s+("?status"?)\s*=\s*'[^']*'""", re.IGNORECASE),
    re.compile(r"""\s+AND\s+("?state"?)\s*=\s*'[^']*'""", re.IGNORECASE),
    re.compile(r"""\s+AND\s+("?type"?)\s*=\s*'[^']*'""", re.IGNORECASE),
    re.compile(r"""\s+AND\s+("?is_active"?)\s*=\s*(true|false)\b""", re.IGNORECASE),
    re.compile(r"""\s+AND\s+("?active"?)\s*=\s*(true|false)\b""", re.IGNORECASE),
]

_INNER_JOIN = re.compile(r"\bINNER\s+JOIN\b", re.IGNORECASE)


def widen_date_filters(sql: str) -> str:
    """
    Rewrite relative day windows to a 12 month window.

    Example:
        >>> widen_date_filters("... WHERE created_at >= now() - interval '7 days'")
        "... WHERE created_at >= now() - interval '12 months'"
    """
    for pattern, replacement in _RELATIVE_DATE_PATTERNS:
        sql = pattern.sub(replacement, sql)
    return sql


def strip_status_filters(sql: str) -> str:
    """
    Remove ``AND status|state|type = '...'`` and ``AND is_active|active = true|false``.

    Conservative textual strip: only the exact shapes above are touched, so a
    filter written as the first WHERE predicate is left in place.
    """
    for pattern in _BRITTLE_FILTERS:
        sql = pattern.sub("", sql)
    return sql


def relax_inner_joins(sql: str) -> str:
    """Switch INNER JOIN to LEFT JOIN so joins stop eliminating rows."""
    return _INNER_JOIN.sub("LEFT JOIN", sql)


FALLBACK_PASSES: Tuple[Tuple[FallbackStage, Callable[[str], str]], ...] = (
    (FallbackStage.WIDEN_DATE, widen_date_filters),
    (FallbackStage.STRIP_FILTERS, strip_status_filters),
    (FallbackStage.RELAX_JOINS, relax_inner_joins),
)


def rewrite(sql: str, pass_number: int) -> str:
    """
    Apply the first ``pass_number`` transforms cumulatively.

    Args:
        sql: Guarded statement that returned zero rows
        pass_number: 1, 2 or 3

    Returns:
        Candidate SQL (unguarded)
    """
    if pass_number < 1 or pass_number > len(FALLBACK_PASSES):
        raise ValueError(f"Fallback pass must be between 1 and {len(FALLBACK_PASSES)}, got {pass_number}")
    for _, transform in FALLBACK_PASSES[:pass_number]:
        sql = transform(sql)
    return sql

