"""
Result shaping helpers: clamp, axis checks, numeric coercion.
"""

import math
import re
from typing import Any, Dict, List, Optional

_INTEGER = re.compile(r"^[+-]?\d+$")


def clamp_rows(rows: Optional[List[Dict[str, Any]]], max_rows: int) -> List[Dict[str, Any]]:
    if not rows:
        return []
    return list(rows[:max_rows])


def row_columns(rows: List[Dict[str, Any]]) -> List[str]:
    if not rows:
        return []
    return list((rows[0] or {}).keys())


def axes_exist(rows: List[Dict[str, Any]], chart_config: Optional[Dict[str, Any]]) -> bool:
    """True when both configured axis columns are keys of the first row."""
    columns = row_columns(rows)
    if not columns or not chart_config:
        return False
    x_axis = chart_config.get("xAxis")
    y_axis = chart_config.get("yAxis")
    return bool(x_axis) and bool(y_axis) and x_axis in columns and y_axis in columns


def parse_numeric(value: str) -> Optional[float]:
    """Number for a numeric-looking string, else None. '12' -> 12, ' 3.5 ' -> 3.5."""
    text = value.strip()
    if not text:
        return None
    if _INTEGER.match(text):
        return int(text)
    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def coerce_numeric_strings(rows: List[Dict[str, Any]], chart_config: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Convert numeric-looking strings in the y-axis column to numbers.

    Drivers return NUMERIC/DECIMAL aggregates as text in some setups, which
    charts then render as empty.
    """
    y_axis = (chart_config or {}).get("yAxis")
    if not y_axis or not rows:
        return rows

    coerced = []
    for row in rows:
        value = row.get(y_axis)
        if isinstance(value, str):
            number = parse_numeric(value)
            if number is not None:
                row = {**row, y_axis: number}
        coerced.append(row)
    return coerced
