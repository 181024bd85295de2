"""
Widget pipeline utilities
"""

import functools
import time
import uuid
from typing import Optional

from loguru import logger


def preview_sql(sql: Optional[str], limit: int = 200) -> str:
    text = " ".join((sql or "").split())
    return text if len(text) <= limit else text[:limit] + "..."


def trace_step(step_name: str):
    """Decorator for tracing workflow step execution."""

    def decorator(func):
        @functools.wraps(func)
        def wrapper(state, ctx, *args, **kwargs):
            trace_id = state.get("trace_id") or str(uuid.uuid4())
            state = dict(state)
            state["trace_id"] = trace_id
            start = time.time()
            logger.info(f"[TRACE] step_start: {step_name} | trace_id={trace_id} | phase={state.get('phase')}")
            try:
                result = func(state, ctx, *args, **kwargs)
                duration = time.time() - start
                logger.info(
                    f"[TRACE] step_end: {step_name} | trace_id={trace_id} | "
                    f"duration_ms={int(duration * 1000)} | phase={result.get('phase')}"
                )
                return result
            except Exception as e:
                logger.error(f"[TRACE] step_error: {step_name} | trace_id={trace_id} | error={e}")
                raise

        return wrapper

    return decorator
