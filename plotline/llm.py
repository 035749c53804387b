"""LLM client: HTTP connection to a text-completion backend.

The semantic matcher is handed an LLM callable matching the protocol:

    async def __call__(self, stage: str, prompt: str) -> str: ...

`stage` names the caller (the matcher passes "match"). It is used for
logging only.

Production code builds an HttpLLM from config (see
`plotline.config.build_semantic_matcher`). Tests use a stub coroutine.
"""

from __future__ import annotations

import logging
from typing import Literal, Protocol

import httpx

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------

class LLM(Protocol):
    async def __call__(self, stage: str, prompt: str) -> str: ...


# ---------------------------------------------------------------------------
# HttpLLM
# ---------------------------------------------------------------------------

ProviderFormat = Literal["koboldcpp", "openai"]


class HttpLLM:
    """Async HTTP client for text-completion backends.

    Supported formats:
      "koboldcpp"  POST /api/v1/generate  {"prompt": ..., "max_length": ...}
                   Response: {"results": [{"text": "..."}]}
      "openai"     POST /v1/completions   {"model": ..., "prompt": ..., "max_tokens": ...}
                   Response: {"choices": [{"text": "..."}]}

    Args:
        provider_url:    Base URL of the backend, e.g. "http://localhost:5001".
        api_key:         Bearer token, or empty string if not required.
        provider_format: Wire format to use. Defaults to "openai".
        model:           Model identifier, used only by the openai format.
        timeout:         HTTP timeout in seconds.
        max_tokens:      Completion length cap. Match answers are one short
                         JSON object.
    """

    def __init__(
        self,
        provider_url: str,
        api_key: str = "",
        provider_format: ProviderFormat = "openai",
        model: str = "",
        timeout: float = 30.0,
        max_tokens: int = 256,
    ) -> None:
        self._base_url = provider_url.rstrip("/")
        self._api_key = api_key
        self._format = provider_format
        self._model = model
        self._timeout = timeout
        self._max_tokens = max_tokens

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_request(self, prompt: str) -> tuple[str, dict]:
        """Return (url, body) for the configured format."""
        if self._format == "koboldcpp":
            url = f"{self._base_url}/api/v1/generate"
            return url, {"prompt": prompt, "max_length": self._max_tokens}

        url = f"{self._base_url}/v1/completions"
        body: dict = {"prompt": prompt, "max_tokens": self._max_tokens}
        if self._model:
            body["model"] = self._model
        return url, body

    def _parse_response(self, data: dict) -> str:
        """Extract the completion text from the response body."""
        if self._format == "koboldcpp":
            results = data.get("results")
            if not results or "text" not in results[0]:
                raise LLMError("Unexpected response format from KoboldCpp backend")
            return results[0]["text"]

        choices = data.get("choices")
        if not choices or "text" not in choices[0]:
            raise LLMError("Unexpected response format from OpenAI-compatible backend")
        return choices[0]["text"]

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

        try:
            data = resp.json()
        except ValueError as e:
            raise LLMError("LLM backend returned a non-JSON body") from e

        text = self._parse_response(data)
        logger.debug("llm response stage=%s len=%d", stage, len(text))
        return text


class LLMError(RuntimeError):
    """Raised when the LLM backend cannot be reached or returns an error."""
