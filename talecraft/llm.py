"""LLM client — HTTP connection to a text-generation backend.

The story generator injects an LLM callable matching the protocol:

    async def __call__(self, stage: str, prompt: str) -> str: ...

`stage` identifies which generation layer is calling ("story_opening",
"story_branch", "story_ending"). Implementations use it for logging only.

HttpLLM is the real HTTP client. It supports KoboldCpp, OpenAI-compatible
completions and OpenAI-compatible chat completions, selected by
provider_format.

Tests use StubLLM (defined in the test helpers) instead.
"""

from __future__ import annotations

import logging
from typing import Literal, Protocol

import httpx
from pydantic import BaseModel

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol — every LLM implementation must match this signature
# ---------------------------------------------------------------------------

class LLM(Protocol):
    async def __call__(self, stage: str, prompt: str) -> str: ...


class TokenUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: TokenUsage) -> TokenUsage:
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )


# ---------------------------------------------------------------------------
# HttpLLM — connects to a real backend
# ---------------------------------------------------------------------------

ProviderFormat = Literal["koboldcpp", "openai", "openai-chat"]


class HttpLLM:
    """Async HTTP client for text-generation backends.

    Supported formats:
      "koboldcpp"    — POST /api/v1/generate       {"prompt": ...}
                       Response: {"results": [{"text": "..."}]}
      "openai"       — POST /v1/completions        {"model": ..., "prompt": ...}
                       Response: {"choices": [{"text": "..."}]}
      "openai-chat"  — POST /v1/chat/completions   {"model": ..., "messages": [...]}
                       Response: {"choices": [{"message": {"content": "..."}}]}
                       Requests a JSON object reply when json_mode is set.

    Token counts reported by the openai formats are kept in last_usage.

    Args:
        provider_url:    Base URL of the backend, e.g. "http://localhost:5001".
        api_key:         Bearer token, or empty string if not required.
        provider_format: Wire format to use. Defaults to "koboldcpp".
        model:           Model identifier, used only by the openai formats.
        timeout:         HTTP timeout in seconds. Defaults to 120.
        temperature:     Sampling temperature, or None for the backend default.
        max_tokens:      Completion length limit, or None for the backend default.
        json_mode:       Ask chat backends for a JSON object reply.
    """

    def __init__(
        self,
        provider_url: str,
        api_key: str = "",
        provider_format: ProviderFormat = "koboldcpp",
        model: str = "",
        timeout: float = 120.0,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> None:
        self._base_url = provider_url.rstrip("/")
        self._api_key = api_key
        self._format = provider_format
        self._model = model
        self._timeout = timeout
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._json_mode = json_mode
        self.last_usage = TokenUsage()

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _sampling(self, body: dict) -> dict:
        if self._temperature is not None:
            body["temperature"] = self._temperature
        if self._max_tokens is not None:
            key = "max_length" if self._format == "koboldcpp" else "max_tokens"
            body[key] = self._max_tokens
        return body

    def _build_request(self, prompt: str) -> tuple[str, dict]:
        """Return (url, body) for the configured format."""
        if self._format == "openai-chat":
            url = f"{self._base_url}/v1/chat/completions"
            body: dict = {"messages": [{"role": "user", "content": prompt}]}
            if self._model:
                body["model"] = self._model
            if self._json_mode:
                body["response_format"] = {"type": "json_object"}
            return url, self._sampling(body)

        if self._format == "openai":
            url = f"{self._base_url}/v1/completions"
            body = {"prompt": prompt}
            if self._model:
                body["model"] = self._model
            return url, self._sampling(body)

        # koboldcpp (default)
        url = f"{self._base_url}/api/v1/generate"
        return url, self._sampling({"prompt": prompt})

    def _parse_response(self, data: dict) -> str:
        """Extract the completion text from the response body."""
        if self._format in ("openai", "openai-chat"):
            usage = data.get("usage")
            self.last_usage = TokenUsage.model_validate(usage) if isinstance(usage, dict) else TokenUsage()

        if self._format == "openai-chat":
            choices = data.get("choices")
            content = (choices[0].get("message") or {}).get("content") if choices else None
            if not content:
                raise LLMError("Unexpected response format from OpenAI-compatible chat backend")
            return content

        if self._format == "openai":
            choices = data.get("choices")
            if not choices or "text" not in choices[0]:
                raise LLMError("Unexpected response format from OpenAI-compatible backend")
            return choices[0]["text"]

        # koboldcpp
        results = data.get("results")
        if not results or "text" not in results[0]:
            raise LLMError("Unexpected response format from KoboldCpp backend")
        return results[0]["text"]

    async def __call__(self, stage: str, prompt: str) -> str:
        url, body = self._build_request(prompt)
        logger.debug("llm call stage=%s url=%s prompt_len=%d", stage, url, len(prompt))

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise LLMError(f"Cannot connect to LLM backend at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise LLMError(
                f"LLM backend returned HTTP {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            raise LLMError(f"LLM backend timed out after {self._timeout}s") from e

        text = self._parse_response(resp.json())
        logger.debug(
            "llm response stage=%s len=%d tokens=%d",
            stage, len(text), self.last_usage.total_tokens,
        )
        return text


# ---------------------------------------------------------------------------
# LLMError — raised by HttpLLM for all connection and protocol failures
# ---------------------------------------------------------------------------

class LLMError(RuntimeError):
    """Raised when the LLM backend cannot be reached or returns an error."""
