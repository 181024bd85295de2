"""
Dashboard chat prompts
"""

import json
from typing import Any, Dict, Iterable, List, Optional


def sanitize_dashboard_items(items: Optional[Iterable[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    """Keep only the fields of existing widgets the model needs as context."""
    sanitized = []
    for item in items or []:
        if not isinstance(item, dict):
            continue
        chart_config = item.get("chartConfig") or {}
        sanitized.append({
            "title": item.get("title"),
            "sql": item.get("sql"),
            "chartType": chart_config.get("type"),
            "xAxis": chart_config.get("xAxis"),
            "yAxis": chart_config.get("yAxis"),
        })
    return sanitized


def build_dashboard_system_prompt(
    schema_context: str,
    semantic_hints: Optional[str] = None,
    dashboard_items: Optional[Iterable[Dict[str, Any]]] = None,
) -> str:
    items = json.dumps(sanitize_dashboard_items(dashboard_items), indent=2, default=str)

    return f"""You are a data-first dashboard assistant.

DATABASE SCHEMA:
{schema_context}

SEMANTIC HINTS (optional; use only if consistent with schema):
{semantic_hints or 'None'}

CURRENT DASHBOARD WIDGETS (context; do not repeat unless requested):
{items}

TASK:
Generate 1-3 NEW widgets for a clean, general-purpose business dashboard.
IMPORTANT: Only propose widgets that can be computed directly from the schema. Do NOT assume budgets/targets/goals exist.

CRITICAL (to avoid empty/zero widgets):
1) Do NOT invent KPIs like "budget", "% of target", "goals" unless the schema clearly contains those fields/tables.
2) Prefer robust, data-backed KPIs:
   - COUNT(*), COUNT(DISTINCT id), SUM(amount/value), AVG(amount/value)
3) Avoid restrictive WHERE filters unless user asked.
   - If a time filter is needed, default to last 12 months (not 30 days).
4) Prefer LEFT JOIN for dimension tables; use INNER JOIN only when necessary.
5) Always ALIAS SELECT columns to EXACTLY match chartConfig.xAxis and chartConfig.yAxis.
   Example: SELECT DATE_TRUNC('month', created_at) AS month, SUM(total) AS total_sales ...

SQL RULES:
- Use only schema tables/columns exactly as named.
- Single read-only SELECT statement only (SELECT or WITH...SELECT). No DDL/DML. No semicolons.
- For categorical charts: TOP 10-12 categories (ORDER BY metric DESC + LIMIT).
- For time series: DATE_TRUNC day/week/month/quarter/year (default month).
- Use COALESCE for aggregations and NULLIF for division when needed.
- KPI widgets MUST return one row, one numeric value (with a clear alias).

CHART RULES:
- bar: categorical comparisons
- line/area: time series
- pie: only if <= 6-8 segments
- kpi: single numeric
Avoid gauge/percent-of-target unless schema explicitly supports it.

RESPONSE FORMAT (valid JSON only):
{{
  "summary": "Short summary",
  "widgets": [
    {{
      "title": "Widget Title",
      "sql": "SELECT ...",
      "explanation": "What this shows",
      "chartConfig": {{
        "type": "bar|line|pie|area|scatter|composed|heatmap|kpi",
        "xAxis": "column_name",
        "yAxis": "column_name",
        "title": "Chart Title",
        "colorScheme": "default|trust|growth|performance|categorical|warm|cool|alert"
      }}
    }}
  ]
}}"""
