"""
LLM client factory and the JSON oracle used by the pipeline.

The oracle is the only place that talks to a model. It takes chat messages
and returns raw text; callers parse the JSON themselves.
"""

from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Dict, List, Optional

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from loguru import logger

from dashquery.config.settings import settings
from dashquery.llm.response_utils import extract_text_from_response
from dashquery.utils.errors import OracleError


def _validate_ollama_model(model: str) -> None:
    """Fail fast when the Ollama server is unreachable or lacks the model."""
    import httpx

    try:
        response = httpx.get(f"{settings.ollama_base_url}/api/tags", timeout=3.0)
        response.raise_for_status()
        available = [m.get("name", "").split(":")[0] for m in response.json().get("models", [])]
    except httpx.HTTPError as e:
        raise ConnectionError(
            f"Could not connect to Ollama server at {settings.ollama_base_url}. "
            f"Make sure Ollama is running. Error: {e}"
        ) from e

    if model.split(":")[0] not in available:
        raise ValueError(
            f"Ollama model '{model}' is not available on the server. "
            f"Available models: {', '.join(available) if available else 'None'}. "
            f"To install: ollama pull {model}"
        )


def create_llm(
    temperature: Optional[float] = None,
    max_completion_tokens: Optional[int] = None,
    model: Optional[str] = None,
    json_mode: bool = True,
):
    """
    Factory function to create the chat model for the configured provider.

    Args:
        temperature: Generation temperature (defaults to settings.openai_temperature)
        max_completion_tokens: Max tokens for completion (defaults to settings.max_output_tokens)
        model: Model name (defaults to provider-specific model)
        json_mode: Ask the provider for a single JSON object

    Returns:
        LangChain runnable (ChatOpenAI or ChatOllama, possibly bound to JSON mode)
    """
    provider = settings.llm_provider.lower()
    max_tokens = max_completion_tokens or settings.max_output_tokens
    temperature = temperature if temperature is not None else settings.openai_temperature

    if provider == "openai":
        from langchain_openai import ChatOpenAI

        if not settings.openai_api_key:
            raise ValueError("OPENAI_API_KEY is required when LLM_PROVIDER=openai")

        llm = ChatOpenAI(
            model=model or settings.openai_model,
            api_key=settings.openai_api_key,
            temperature=temperature,
            max_completion_tokens=max_tokens,
            timeout=settings.llm_timeout_s,
            max_retries=0,
        )
        if json_mode:
            return llm.bind(response_format={"type": "json_object"})
        return llm

    if provider == "ollama":
        from langchain_community.chat_models import ChatOllama

        model_to_use = model or settings.ollama_model
        _validate_ollama_model(model_to_use)
        return ChatOllama(
            model=model_to_use,
            base_url=settings.ollama_base_url,
            temperature=temperature,
            num_predict=max_tokens,  # Ollama uses num_predict instead of max_completion_tokens
            format="json" if json_mode else None,
        )

    raise ValueError(f"Unsupported LLM provider: {provider}. Supported: 'openai', 'ollama'")


def to_langchain_messages(messages: List[Dict[str, str]]) -> List[BaseMessage]:
    """Convert ``[{role, content}]`` dicts to LangChain messages."""
    converted: List[BaseMessage] = []
    for message in messages:
        role = (message.get("role") or "user").lower()
        content = message.get("content") or ""
        if role == "system":
            converted.append(SystemMessage(content=content))
        elif role == "assistant":
            converted.append(AIMessage(content=content))
        else:
            converted.append(HumanMessage(content=content))
    return converted


class LLMOracle:
    """
    Text-completion oracle with a hard per-call timeout.

    Any provider failure, timeout or empty answer surfaces as OracleError.
    """

    def __init__(self, llm: Any = None, timeout_s: Optional[float] = None):
        self._llm = llm
        self.timeout_s = float(timeout_s or settings.llm_timeout_s)

    @property
    def llm(self):
        if self._llm is None:
            self._llm = create_llm(json_mode=True)
        return self._llm

    def complete(self, messages: List[Dict[str, str]], timeout_s: Optional[float] = None) -> str:
        timeout = float(timeout_s or self.timeout_s)
        try:
            llm = self.llm
        except (ValueError, ConnectionError, ImportError) as e:
            raise OracleError(f"LLM is not available: {e}") from e

        prompt = to_langchain_messages(messages)
        pool = ThreadPoolExecutor(max_workers=1)
        try:
            future = pool.submit(llm.invoke, prompt)
            response = future.result(timeout=timeout)
        except FutureTimeoutError as e:
            logger.warning(f"LLM call timed out after {timeout:.1f}s")
            raise OracleError(f"LLM call timed out after {timeout:.1f}s") from e
        except Exception as e:
            logger.error(f"LLM call failed: {e}")
            raise OracleError(f"LLM call failed: {e}") from e
        finally:
            pool.shutdown(wait=False)

        text = extract_text_from_response(response).strip()
        if not text:
            raise OracleError("LLM returned an empty response")
        return text
