"""Application configuration models and loader utilities."""

from __future__ import annotations

import os
from collections.abc import Mapping
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, cast

from dotenv import dotenv_values
from pydantic import BaseModel, Field

LlmProvider = Literal["openai", "deepseek", "gemini", "ollama"]


class GmailSettings(BaseModel):
    """Settings controlling Gmail API access."""

    client_id: str | None = Field(default=None, description="OAuth client id")
    client_secret: str | None = Field(
        default=None, description="OAuth client secret"
    )
    token_uri: str = Field(
        default="https://oauth2.googleapis.com/token",
        description="Endpoint used to refresh expired access tokens",
    )
    max_fetch: int = Field(
        default=10, ge=1, le=500, description="Default page size for message listing"
    )


class LlmSettings(BaseModel):
    """Settings for the inference provider."""

    provider: LlmProvider = Field(default="openai", description="Backend tag")
    api_key: str | None = Field(default=None, description="Provider API key")
    base_url: str | None = Field(
        default=None, description="Override for the provider base URL"
    )
    model: str | None = Field(default=None, description="Override for the model id")
    timeout_seconds: float = Field(
        default=30.0, gt=0, description="Request timeout for LLM calls"
    )
    summary_max_tokens: int = Field(
        default=150, ge=16, description="Token cap for summaries"
    )
    classify_max_tokens: int = Field(
        default=20, ge=1, description="Token cap for classification answers"
    )
    max_body_chars: int = Field(
        default=8000, ge=200, description="Characters of body text sent in prompts"
    )


class StorageSettings(BaseModel):
    """Settings for local persistence."""

    backend: Literal["sqlite", "memory"] = Field(
        default="sqlite", description="Store implementation"
    )
    db_path: Path = Field(
        default=Path("./inbox_sweeper.db"), description="SQLite database path"
    )
    categories_file: Path | None = Field(
        default=None, description="JSON file with default categories to seed"
    )


class LoggingSettings(BaseModel):
    """Logging preferences."""

    level: str = Field(default="INFO", description="Root logging level")
    structured: bool = Field(
        default=False, description="Toggle JSON structured logging"
    )


class SyncSettings(BaseModel):
    """Settings controlling sync cadence and fan-out."""

    interval_seconds: float = Field(
        default=30.0, gt=0, description="Seconds between scheduler ticks"
    )
    max_results: int = Field(
        default=50, ge=1, description="Messages requested per scheduled sync"
    )
    concurrency: int = Field(
        default=5, ge=1, description="Messages classified concurrently per sync"
    )
    scheduler_enabled: bool = Field(
        default=True, description="Run the periodic scheduler inside the web app"
    )


class RealtimeSettings(BaseModel):
    """Settings for live subscriber delivery."""

    sink_capacity: int = Field(
        default=10, ge=1, description="Buffered events per subscriber"
    )
    delivery_timeout_seconds: float = Field(
        default=5.0, gt=0, description="Wait before a stalled sink is skipped"
    )


class UnsubscribeSettings(BaseModel):
    """Settings for unsubscribe page automation."""

    timeout_seconds: float = Field(default=30.0, gt=0)
    user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
        )
    )
    max_page_chars: int = Field(
        default=20000, ge=500, description="Page characters handed to the LLM"
    )


class AppSettings(BaseModel):
    """Aggregated application configuration."""

    gmail: GmailSettings = Field(default_factory=GmailSettings)
    llm: LlmSettings = Field(default_factory=LlmSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    realtime: RealtimeSettings = Field(default_factory=RealtimeSettings)
    unsubscribe: UnsubscribeSettings = Field(default_factory=UnsubscribeSettings)


ENV_PREFIX = "INBOX_SWEEPER_"
_NESTING = "__"
_BOOLEAN_WORDS = {"true": True, "false": False}


def _setting_path(raw_key: str) -> list[str]:
    """Map ``INBOX_SWEEPER_SYNC__MAX_RESULTS`` to ``["sync", "max_results"]``."""
    trimmed = raw_key.removeprefix(ENV_PREFIX)
    return [segment.lower() for segment in trimmed.split(_NESTING) if segment]


def _coerce(value: str | None) -> Any:
    """Treat empty strings as unset and spell out booleans; pydantic does the rest."""
    if value is None or value == "":
        return None
    return _BOOLEAN_WORDS.get(value.lower(), value)


def _assign(tree: dict[str, Any], path: list[str], value: Any) -> None:
    node = tree
    for segment in path[:-1]:
        node = cast(dict[str, Any], node.setdefault(segment, {}))
    node[path[-1]] = value


def _prefixed(items: Mapping[str, str | None]) -> dict[str, str | None]:
    return {key: value for key, value in items.items() if key and key.startswith(ENV_PREFIX)}


def _collect_env_values(
    env_file: Path | str | None, *, include_environment: bool = True
) -> dict[str, Any]:
    """Build a nested settings tree; process environment wins over the file."""
    raw: dict[str, str | None] = {}
    if env_file and Path(env_file).is_file():
        raw.update(_prefixed(dotenv_values(env_file)))
    if include_environment:
        raw.update(_prefixed(os.environ))

    tree: dict[str, Any] = {}
    for key, value in raw.items():
        path = _setting_path(key)
        if path:
            _assign(tree, path, _coerce(value))
    # Unset values fall back to model defaults.
    return _drop_unset(tree)


def _drop_unset(tree: dict[str, Any]) -> dict[str, Any]:
    cleaned: dict[str, Any] = {}
    for key, value in tree.items():
        if isinstance(value, dict):
            cleaned[key] = _drop_unset(value)
        elif value is not None:
            cleaned[key] = value
    return cleaned


@lru_cache(maxsize=1)
def load_app_settings(
    env_file: Path | str | None = None,
    *,
    include_environment: bool = True,
    **overrides: Any,
) -> AppSettings:
    """Load settings from an optional ``.env`` file and ``INBOX_SWEEPER_*`` variables.

    Keyword ``overrides`` replace whole top-level sections.
    """
    collected = _collect_env_values(env_file, include_environment=include_environment)
    collected.update(overrides)
    return AppSettings.model_validate(collected)


__all__ = [
    "AppSettings",
    "ENV_PREFIX",
    "GmailSettings",
    "LlmProvider",
    "LlmSettings",
    "LoggingSettings",
    "RealtimeSettings",
    "StorageSettings",
    "SyncSettings",
    "UnsubscribeSettings",
    "load_app_settings",
]
