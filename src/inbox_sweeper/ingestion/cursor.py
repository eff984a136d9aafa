"""Cursor filtering over a provider listing page."""

from __future__ import annotations

import enum
from collections.abc import Callable, Iterable, Iterator
from typing import Generic, TypeVar

T = TypeVar("T")


class CursorState(enum.Enum):
    """Scan state of a :class:`CursorFilter`."""

    SEEKING = "seeking"
    COLLECTING = "collecting"


class CursorFilter(Generic[T]):
    """Drop every item up to and including the cursor id.

    The filter starts in ``SEEKING`` and switches to ``COLLECTING`` once the
    cursor id has been seen. When the cursor never appears nothing is
    collected. An empty cursor starts directly in ``COLLECTING``.
    """

    def __init__(self, cursor: str | None, key: Callable[[T], str]) -> None:
        self._cursor = cursor or None
        self._key = key
        self.state = CursorState.SEEKING if self._cursor else CursorState.COLLECTING

    def feed(self, item: T) -> bool:
        """Advance the state machine; return ``True`` when ``item`` is kept."""
        if self.state is CursorState.COLLECTING:
            return True
        if self._key(item) == self._cursor:
            self.state = CursorState.COLLECTING
        return False

    def apply(self, items: Iterable[T]) -> Iterator[T]:
        """Yield the items that follow the cursor."""
        for item in items:
            if self.feed(item):
                yield item

    @property
    def found(self) -> bool:
        """Return ``True`` once the cursor has been passed."""
        return self.state is CursorState.COLLECTING


def items_after(cursor: str | None, items: Iterable[T], key: Callable[[T], str]) -> list[T]:
    """Return the items of ``items`` that follow ``cursor``."""
    return list(CursorFilter(cursor, key).apply(items))


__all__ = ["CursorFilter", "CursorState", "items_after"]
