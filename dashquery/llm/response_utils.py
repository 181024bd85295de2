"""
LLM response utilities for handling multi-format model outputs.

Supports both:
- Simple string responses (gpt-4o-mini, gpt-4, etc.)
- Structured content blocks with reasoning (o1-style models)
"""

import json
import re
from typing import Any, Dict

from loguru import logger

from dashquery.utils.errors import OracleError

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def extract_text_from_response(response: Any) -> str:
    """
    Extract text content from LLM response (handles all formats).

    Args:
        response: LLM response (AIMessage, dict, str, or list)

    Returns:
        Extracted text content as string

    Example:
        response.content = [
            {'type': 'reasoning', 'text': '...'},
            {'type': 'text', 'text': '{"sql": "SELECT 1"}'}
        ]
        extract_text_from_response(response) -> '{"sql": "SELECT 1"}'
    """
    content = response.content if hasattr(response, "content") else response

    if not content:
        return ""

    if isinstance(content, str):
        return content

    if isinstance(content, list):
        text_parts = []
        for block in content:
            if isinstance(block, dict):
                if block.get("type") == "text" and "text" in block:
                    text_parts.append(block["text"])
                elif "text" in block and block.get("type") != "reasoning":
                    text_parts.append(block["text"])
            elif isinstance(block, str):
                text_parts.append(block)

        result = "".join(text_parts)
        if result:
            return result

        logger.warning(f"No text blocks found in structured response: {str(content)[:200]}")
        return ""

    return str(content)


def parse_json_object(text: str) -> Dict[str, Any]:
    """
    Parse the single JSON object a model was asked to return.

    Tolerates markdown fences and prose around the object.

    Raises:
        OracleError: No JSON object could be parsed
    """
    cleaned = _FENCE.sub("", (text or "").strip()).strip()
    if not cleaned:
        raise OracleError("LLM returned an empty response")

    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        start = cleaned.find("{")
        end = cleaned.rfind("}")
        if start == -1 or end <= start:
            raise OracleError(f"LLM response is not JSON: {cleaned[:200]}")
        try:
            parsed = json.loads(cleaned[start:end + 1])
        except json.JSONDecodeError as e:
            raise OracleError(f"LLM response is not valid JSON: {e}") from e

    if not isinstance(parsed, dict):
        raise OracleError("LLM response must be a JSON object")
    return parsed
