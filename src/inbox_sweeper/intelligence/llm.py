"""LLM client abstractions and provider backends."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from ..core.config import LlmProvider, LlmSettings

LOGGER = logging.getLogger(__name__)

DEFAULT_BASE_URLS: dict[str, str] = {
    "openai": "https://api.openai.com/v1",
    "deepseek": "https://api.deepseek.com",
    "gemini": "https://generativelanguage.googleapis.com/v1beta",
    "ollama": "http://localhost:11434",
}

DEFAULT_MODELS: dict[str, str] = {
    "openai": "gpt-4o",
    "deepseek": "deepseek-chat",
    "gemini": "gemini-2.0-flash-lite",
    "ollama": "llama3.1",
}


class LLMError(RuntimeError):
    """Raised when the LLM provider fails to respond as expected."""


class LLMClient(Protocol):
    """Protocol describing the minimal LLM client behaviour."""

    @property
    def provider_id(self) -> str:
        """Identifier describing the backing model/provider."""
        raise NotImplementedError

    async def generate(self, prompt: str, max_tokens: int | None = None) -> str:
        """Return the raw text completion for ``prompt``."""
        raise NotImplementedError


@dataclass(slots=True)
class _HttpBackend:
    """Shared request plumbing for the HTTP backends."""

    settings: LlmSettings
    provider: LlmProvider
    transport: httpx.AsyncBaseTransport | None = field(default=None, repr=False)

    @property
    def base_url(self) -> str:
        return (self.settings.base_url or DEFAULT_BASE_URLS[self.provider]).rstrip("/")

    @property
    def model(self) -> str:
        return self.settings.model or DEFAULT_MODELS[self.provider]

    @property
    def provider_id(self) -> str:
        """Return a human readable identifier for the configured model."""
        return f"{self.provider}:{self.model}"

    async def _post(
        self,
        url: str,
        payload: dict[str, Any],
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.timeout_seconds, transport=self.transport
            ) as client:
                response = await client.post(url, json=payload, headers=headers, params=params)
        except httpx.HTTPError as exc:
            raise LLMError(f"{self.provider} request failed: {exc}") from exc

        if not response.is_success:
            raise LLMError(
                f"{self.provider} request failed with status "
                f"{response.status_code}: {response.text[:500]}"
            )
        try:
            data = response.json()
        except json.JSONDecodeError as exc:
            raise LLMError(f"{self.provider} returned invalid JSON") from exc
        if not isinstance(data, dict):
            raise LLMError(f"{self.provider} returned an unexpected payload")
        return data


@dataclass(slots=True)
class ChatCompletionsClient(_HttpBackend):
    """Client for OpenAI-compatible ``/chat/completions`` APIs (OpenAI, DeepSeek)."""

    async def generate(self, prompt: str, max_tokens: int | None = None) -> str:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
        }
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        headers = {"Authorization": f"Bearer {self.settings.api_key or ''}"}
        data = await self._post(f"{self.base_url}/chat/completions", payload, headers=headers)

        choices = data.get("choices")
        if not isinstance(choices, list) or not choices:
            raise LLMError(f"{self.provider} returned no choices")
        first = choices[0]
        if not isinstance(first, dict):
            raise LLMError(f"{self.provider} returned a malformed choice")
        message = first.get("message")
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str):
            raise LLMError(f"{self.provider} choice is missing message content")
        return content.strip()


@dataclass(slots=True)
class GeminiClient(_HttpBackend):
    """Client for the Gemini ``generateContent`` API."""

    async def generate(self, prompt: str, max_tokens: int | None = None) -> str:
        payload: dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        }
        if max_tokens is not None:
            payload["generationConfig"] = {"maxOutputTokens": max_tokens}
        url = f"{self.base_url}/models/{self.model}:generateContent"
        data = await self._post(url, payload, params={"key": self.settings.api_key or ""})

        candidates = data.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            raise LLMError("gemini returned no candidates")
        first = candidates[0]
        if not isinstance(first, dict):
            raise LLMError("gemini returned a malformed candidate")
        content = first.get("content")
        parts = (content.get("parts") if isinstance(content, dict) else None) or []
        text = parts[0].get("text") if parts and isinstance(parts[0], dict) else None
        if not isinstance(text, str):
            raise LLMError("gemini candidate has no content parts")
        return text.strip()


@dataclass(slots=True)
class OllamaClient(_HttpBackend):
    """Client for the Ollama ``/api/generate`` endpoint."""

    async def generate(self, prompt: str, max_tokens: int | None = None) -> str:
        payload: dict[str, Any] = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
        }
        if max_tokens is not None:
            payload["options"] = {"num_predict": max_tokens}
        data = await self._post(f"{self.base_url}/api/generate", payload)

        result = data.get("response")
        if not isinstance(result, str):
            raise LLMError("LLM response missing 'response' field")
        return result.strip()


def build_llm_client(
    settings: LlmSettings, *, transport: httpx.AsyncBaseTransport | None = None
) -> LLMClient:
    """Return the backend selected by ``settings.provider``."""
    provider = settings.provider
    if provider in ("openai", "deepseek"):
        client: LLMClient = ChatCompletionsClient(settings, provider, transport)
    elif provider == "gemini":
        client = GeminiClient(settings, provider, transport)
    elif provider == "ollama":
        client = OllamaClient(settings, provider, transport)
    else:
        raise ValueError(f"Unsupported LLM provider: {provider!r}")
    LOGGER.info("Using LLM backend %s", client.provider_id)
    return client


__all__ = [
    "ChatCompletionsClient",
    "DEFAULT_BASE_URLS",
    "DEFAULT_MODELS",
    "GeminiClient",
    "LLMClient",
    "LLMError",
    "OllamaClient",
    "build_llm_client",
]
