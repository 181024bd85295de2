"""
Chart data shaping
"""

from dashquery.charts.limiter import limit_chart_data
from dashquery.charts.shaping import clamp_rows, coerce_numeric_strings, axes_exist

__all__ = ["limit_chart_data", "clamp_rows", "coerce_numeric_strings", "axes_exist"]
