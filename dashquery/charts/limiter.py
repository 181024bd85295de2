"""
Chart-data limiter: keeps charts readable.

Categorical charts keep the top N categories by y value; time series are
down-sampled by fixed-stride skipping.
"""

import math
from typing import Any, Dict, List, Optional

from dashquery.config.constants import CATEGORICAL_CHART_TYPES, SERIES_CHART_TYPES
from dashquery.config.settings import settings


def to_number(value: Any) -> float:
    """Numeric value for sorting; anything non-numeric counts as 0."""
    if isinstance(value, bool):
        return float(value)
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def limit_chart_data(
    rows: List[Dict[str, Any]],
    chart_config: Optional[Dict[str, Any]],
    categorical_limit: Optional[int] = None,
    series_limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """
    Limit rows according to the chart type.

    Args:
        rows: Result rows
        chart_config: ``{type, xAxis, yAxis, ...}``
        categorical_limit: Top-N for bar/pie/radar/composed (default settings.chart_categorical_limit)
        series_limit: Max points for line/area (default settings.chart_series_limit)

    Returns:
        Limited rows. Ties in y value keep their original order.

    Example:
        >>> rows = [{"label": f"L{i}", "value": i + 1} for i in range(20)]
        >>> [r["value"] for r in limit_chart_data(rows, {"type": "bar", "yAxis": "value"})][:3]
        [20, 19, 18]
    """
    if not rows or not chart_config:
        return rows

    chart_type = chart_config.get("type")
    y_axis = chart_config.get("yAxis")
    top_n = int(categorical_limit or settings.chart_categorical_limit)
    max_points = int(series_limit or settings.chart_series_limit)

    if chart_type in CATEGORICAL_CHART_TYPES and len(rows) > top_n:
        ranked = sorted(rows, key=lambda row: to_number(row.get(y_axis)), reverse=True)
        return ranked[:top_n]

    if chart_type in SERIES_CHART_TYPES and len(rows) > max_points:
        step = math.ceil(len(rows) / max_points)
        return rows[::step]

    return rows
