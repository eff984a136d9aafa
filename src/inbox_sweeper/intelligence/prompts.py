"""Prompt templates for classification, summaries and unsubscribe guidance."""

from __future__ import annotations

from collections.abc import Sequence
from textwrap import dedent

from ..core.models import Category


def build_classification_prompt(body_text: str, categories: Sequence[Category]) -> str:
    """Compose a prompt asking for the single best category name."""
    category_list = "\n\n".join(
        f"Category: {category.name}\nCategory Description: {category.description}"
        for category in categories
    )
    prompt = """
    Classify the following email into one of these categories:

    {categories}

    Email content:
    {body}

    Respond with only the exact category name that best fits the email.
    """
    return dedent(prompt).strip().format(categories=category_list, body=body_text)


def build_summary_prompt(body_text: str) -> str:
    """Compose a short summarisation prompt."""
    return f"Summarize the following email in 2-3 sentences:\n\n{body_text}"


def build_unsubscribe_prompt(page_content: str, page_url: str) -> str:
    """Compose a prompt asking how to unsubscribe on a fetched page."""
    prompt = """
    Analyze this unsubscribe page and provide the most likely way to unsubscribe.

    Page URL: {url}

    Page Content:
    {content}

    Respond with only the action to take in the format "CLICK:selector" or
    "FORM:submit_button_selector" where selector is a CSS selector that
    identifies the unsubscribe element. If the page already confirms the
    unsubscription, respond with "CONFIRMED".
    """
    return dedent(prompt).strip().format(url=page_url, content=page_content)


__all__ = [
    "build_classification_prompt",
    "build_summary_prompt",
    "build_unsubscribe_prompt",
]
