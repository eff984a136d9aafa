"""Service container used to wire stores, clients and services."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, TypeVar

T = TypeVar("T")

LOGGER = logging.getLogger(__name__)


class ServiceContainer:
    """Dependency container with lazy singleton semantics and overrides."""

    def __init__(self) -> None:
        self._factories: dict[str, Callable[[ServiceContainer], Any]] = {}
        self._instances: dict[str, Any] = {}

    def register(self, key: str, factory: Callable[[ServiceContainer], T]) -> None:
        """Register a factory under ``key``, replacing any cached instance."""
        self._factories[key] = factory
        self._instances.pop(key, None)

    def register_instance(self, key: str, instance: Any) -> None:
        """Register an already-built service under ``key``."""
        self._factories[key] = lambda _container: instance
        self._instances[key] = instance

    def resolve(self, key: str) -> Any:
        """Resolve a dependency by key, invoking its factory once."""
        if key in self._instances:
            return self._instances[key]
        if key not in self._factories:
            msg = f"Service '{key}' is not registered"
            raise KeyError(msg)
        LOGGER.debug("Building service %s", key)
        instance = self._factories[key](self)
        self._instances[key] = instance
        return instance

    def built(self, key: str) -> Any | None:
        """Return the instance under ``key`` if it was already resolved."""
        return self._instances.get(key)


__all__ = ["ServiceContainer"]
