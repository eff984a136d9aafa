"""Persistence backends for owners, categories and messages."""

from __future__ import annotations

from ..core.config import StorageSettings
from .memory import InMemoryStore
from .sqlite import SqliteDatabase


def build_store(settings: StorageSettings) -> SqliteDatabase | InMemoryStore:
    """Return the store selected by ``settings.backend``."""
    if settings.backend == "memory":
        return InMemoryStore()
    return SqliteDatabase(settings)


__all__ = ["InMemoryStore", "SqliteDatabase", "build_store"]
