"""LLM-powered classification, summaries and category management."""

from .categories import CategoryService
from .classifier import LLMInferenceService, html_to_text, match_category
from .llm import LLMClient, LLMError, build_llm_client

__all__ = [
    "CategoryService",
    "LLMClient",
    "LLMError",
    "LLMInferenceService",
    "build_llm_client",
    "html_to_text",
    "match_category",
]
