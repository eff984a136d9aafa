"""Inference service combining an LLM backend with category matching."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence

from bs4 import BeautifulSoup

from ..core.config import LlmSettings
from ..core.errors import EmptyCategorySetError, InferenceError
from ..core.interfaces import InferenceService
from ..core.models import Category
from .llm import LLMClient, LLMError
from .prompts import (
    build_classification_prompt,
    build_summary_prompt,
    build_unsubscribe_prompt,
)

LOGGER = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def match_category(response: str, categories: Sequence[Category]) -> Category:
    """Map a free-text model answer onto one of ``categories``.

    Exact case-insensitive name matches win, then substring containment in
    either direction, then the first category.
    """
    if not categories:
        raise EmptyCategorySetError()
    answer = response.strip().lower()
    for category in categories:
        if category.name.strip().lower() == answer:
            return category
    if answer:
        for category in categories:
            name = category.name.strip().lower()
            if name and (name in answer or answer in name):
                return category
    return categories[0]


def html_to_text(payload: str) -> str:
    """Return the visible text of an HTML fragment with collapsed whitespace."""
    if not payload:
        return ""
    soup = BeautifulSoup(payload, "html.parser")
    for element in soup(["script", "style", "head"]):
        element.decompose()
    return _WHITESPACE.sub(" ", soup.get_text(" ")).strip()


class LLMInferenceService(InferenceService):
    """Classify and summarize message bodies through an :class:`LLMClient`."""

    def __init__(self, llm_client: LLMClient, settings: LlmSettings) -> None:
        self._llm_client = llm_client
        self._settings = settings

    @property
    def provider_id(self) -> str:
        return self._llm_client.provider_id

    async def classify(self, body: str, categories: Sequence[Category]) -> str:
        """Return the name of the category that best fits ``body``."""
        if not categories:
            raise EmptyCategorySetError()
        prompt = build_classification_prompt(self._prepare(body), categories)
        raw = await self._generate(prompt, self._settings.classify_max_tokens, "classify")
        chosen = match_category(raw, categories)
        LOGGER.debug("Model answered %r, matched category %s", raw, chosen.name)
        return chosen.name

    async def summarize(self, body: str) -> str:
        """Return a two to three sentence summary of ``body``."""
        prompt = build_summary_prompt(self._prepare(body))
        return await self._generate(prompt, self._settings.summary_max_tokens, "summarize")

    async def suggest_unsubscribe_action(self, page_content: str, page_url: str) -> str:
        """Ask the model how to unsubscribe on a fetched page."""
        prompt = build_unsubscribe_prompt(page_content, page_url)
        return await self._generate(prompt, None, "suggest an unsubscribe action")

    def _prepare(self, body: str) -> str:
        return html_to_text(body)[: self._settings.max_body_chars]

    async def _generate(self, prompt: str, max_tokens: int | None, purpose: str) -> str:
        try:
            return await self._llm_client.generate(prompt, max_tokens=max_tokens)
        except LLMError as exc:
            LOGGER.warning("LLM %s call failed via %s: %s", purpose, self.provider_id, exc)
            raise InferenceError(f"Failed to {purpose}: {exc}") from exc


__all__ = ["LLMInferenceService", "html_to_text", "match_category"]
