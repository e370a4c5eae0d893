"""
Async chat client for the LLM used by intent expansion and re-ranking.

Two providers:
- "openai_compatible": POST {base}/chat/completions with a JSON-object response format
  (Groq by default).
- "ollama": POST {base}/api/chat with format=json.

Both return the assistant message content as text; parsing is the caller's job.
"""
import json
import logging
import re
from typing import Any, Dict, List, Optional

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """Raised when the LLM call fails or returns an unusable envelope."""
    pass


class LLMNotConfiguredError(LLMError):
    """Raised when a provider needing an API key has none."""
    pass


def validate_json_response(raw_output: str, expected_structure: str = "object") -> Optional[Any]:
    """
    Parse JSON from LLM output, tolerating prose or code fences around it.

    Args:
        raw_output: Raw LLM response text
        expected_structure: "object" for {}, "array" for []

    Returns:
        Parsed JSON object/array, or None if invalid
    """
    if not raw_output:
        return None
    try:
        return json.loads(raw_output)
    except (json.JSONDecodeError, TypeError):
        pass
    patterns = [r"\[.*\]", r"\{.*\}"] if expected_structure == "array" else [r"\{.*\}", r"\[.*\]"]
    last_error = None
    for pattern in patterns:
        match = re.search(pattern, raw_output, re.DOTALL)
        if not match:
            continue
        try:
            return json.loads(match.group(0))
        except json.JSONDecodeError as e:
            last_error = e
    if last_error is None:
        logger.warning(f"[JSON_VALIDATION] No JSON structure found in output (expected {expected_structure}): {raw_output[:300]}")
        return None
    logger.error(f"[JSON_VALIDATION] JSONDecodeError: {last_error}. Raw output: {raw_output[:500]}")
    return None


class LLMClient:
    """Async client for a chat-completion LLM endpoint."""

    def __init__(
        self,
        provider: Optional[str] = None,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.provider = provider or settings.ai_llm_provider
        self.base_url = (base_url or settings.ai_llm_api_base).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.ai_llm_api_key
        self.model = model or settings.ai_llm_model
        self.timeout = timeout or settings.ai_llm_timeout_seconds
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        if self.provider == "ollama":
            return True
        return bool(self.api_key)

    async def chat_json(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.3,
    ) -> str:
        """Send a chat request constrained to JSON output and return the message content.

        Args:
            messages: List of message dicts with "role" and "content"
            temperature: Sampling temperature

        Returns:
            The assistant message content (expected to be a JSON document)
        """
        if not self.is_configured:
            raise LLMNotConfiguredError(f"No API key configured for LLM provider {self.provider}")

        if self.provider == "ollama":
            url = f"{self.base_url}/api/chat"
            payload: Dict[str, Any] = {
                "model": self.model,
                "messages": messages,
                "format": "json",
                "options": {"temperature": temperature},
                "stream": False,
                "keep_alive": "24h",
            }
            headers: Dict[str, str] = {}
        else:
            url = f"{self.base_url}/chat/completions"
            payload = {
                "model": self.model,
                "messages": messages,
                "temperature": temperature,
                "response_format": {"type": "json_object"},
            }
            headers = {"Authorization": f"Bearer {self.api_key}"}

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.post(url, json=payload, headers=headers)
                response.raise_for_status()
                data = response.json()
            except httpx.TimeoutException as e:
                logger.error(f"LLM request timeout for model {self.model}: {e}")
                raise LLMError(f"LLM timeout: {e}") from e
            except httpx.HTTPError as e:
                logger.error(f"LLM HTTP error for model {self.model}: {e}")
                raise LLMError(f"LLM HTTP error: {e}") from e
            except ValueError as e:
                logger.error(f"LLM returned a non-JSON envelope for model {self.model}: {e}")
                raise LLMError(f"LLM envelope not JSON: {e}") from e

        try:
            if self.provider == "ollama":
                content = data["message"]["content"]
            else:
                content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise LLMError(f"Unexpected LLM response shape: {str(data)[:200]}") from e
        return content or ""


_llm_client: Optional[LLMClient] = None


def get_llm_client() -> LLMClient:
    """Get or create the process-wide LLM client."""
    global _llm_client
    if _llm_client is None:
        _llm_client = LLMClient()
    return _llm_client
