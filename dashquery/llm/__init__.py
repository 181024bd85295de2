"""
LLM integration
"""

from dashquery.llm.client import LLMOracle, create_llm
from dashquery.llm.response_utils import extract_text_from_response, parse_json_object

__all__ = ["LLMOracle", "create_llm", "extract_text_from_response", "parse_json_object"]
