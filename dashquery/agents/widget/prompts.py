"""
Prompts for the bounded model repair
"""

from typing import Any, Dict, List

REPAIR_SYSTEM_PROMPT = "You are a SQL expert. Return only JSON."


def build_empty_data_repair_prompt(
    user_prompt: str,
    widget: Dict[str, Any],
    last_sql_tried: str,
    schema_context: str,
) -> str:
    """User message asking for a broader widget after the ladder came back empty."""
    intent = widget.get("title") or ""
    explanation = widget.get("explanation") or ""
    if explanation:
        intent = f"{intent}\n{explanation}" if intent else explanation

    return f"""The widget SQL produced empty results (0 rows) even after broadening attempts.

DATABASE SCHEMA:
{schema_context}

User request:
{user_prompt}

Widget intent:
{intent}

SQL tried:
{last_sql_tried}

Fix by producing a broader query that is more likely to return data while keeping the intent.
Rules:
- Do NOT add restrictive filters (status/type) unless explicitly requested.
- If time filtering is needed, use last 12-24 months.
- Prefer LEFT JOIN if joining dimension tables.
- Use only schema columns.
- Single read-only SELECT statement. No semicolons.
- Alias SELECT columns to match chartConfig.xAxis/yAxis exactly.
Return ONLY the widget JSON: {{title, sql, explanation, chartConfig}}."""


def build_repair_messages(
    user_prompt: str,
    widget: Dict[str, Any],
    last_sql_tried: str,
    schema_context: str,
) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": REPAIR_SYSTEM_PROMPT},
        {
            "role": "user",
            "content": build_empty_data_repair_prompt(user_prompt, widget, last_sql_tried, schema_context),
        },
    ]
