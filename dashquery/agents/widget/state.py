"""
Widget pipeline workflow state
"""

from typing import Any, Dict, List, Optional, TypedDict


class WidgetGraphState(TypedDict):
    """State for one widget's guard -> execute -> repair -> shape run"""
    trace_id: str
    user_prompt: str
    schema_context: str
    widget: Dict[str, Any]  # {title, sql, explanation, chartConfig}; repair may overwrite
    guarded_sql: Optional[str]  # original SQL after the guard; base of every ladder rewrite
    sql_used: Optional[str]  # last statement that executed successfully
    last_sql_tried: Optional[str]
    rows: List[Dict[str, Any]]
    raw_row_count: int
    chart_data: List[Dict[str, Any]]
    post_limit_count: int
    fallback_pass: int  # last ladder pass attempted, 0..3
    fallback_stage: str
    model_repair_attempted: bool
    sql_error: Optional[str]
    phase: str  # routing signal: guarded | skipped | rows | empty | failed | shaped | done
