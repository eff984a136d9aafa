"""Per-owner fan-out of realtime events to connected subscribers."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Sequence
from typing import Any

from ..core.config import RealtimeSettings
from ..core.models import Message, new_id
from .locks import ReadWriteLock

LOGGER = logging.getLogger(__name__)

EVENT_CONNECTION = "connection"
EVENT_NEW_EMAIL = "new_email"
EVENT_EMAIL_SUMMARY = "email_summary"


def encode_event(event_type: str, data: Any) -> str:
    """Serialise the ``{"type", "data", "time"}`` envelope."""
    envelope = {"type": event_type, "data": data, "time": int(time.time())}
    return json.dumps(envelope, default=str)


class Sink:
    """Bounded delivery queue bound to one subscriber connection."""

    def __init__(self, owner_id: str, capacity: int) -> None:
        self.owner_id = owner_id
        self.id = new_id()
        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=capacity)
        self._closed = asyncio.Event()

    def __repr__(self) -> str:
        return f"Sink(owner_id={self.owner_id!r}, id={self.id!r})"

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def deliver(self, payload: str, timeout: float) -> bool:
        """Enqueue ``payload``, waiting at most ``timeout`` seconds for room."""
        if self.closed:
            return False
        try:
            await asyncio.wait_for(self._queue.put(payload), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def receive(self) -> str | None:
        """Return the next payload, or ``None`` once closed and drained."""
        if not self._queue.empty():
            return self._queue.get_nowait()
        if self.closed:
            return None
        getter = asyncio.ensure_future(self._queue.get())
        closer = asyncio.ensure_future(self._closed.wait())
        try:
            await asyncio.wait({getter, closer}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (getter, closer):
                if not task.done():
                    task.cancel()
        if getter.done() and not getter.cancelled():
            return getter.result()
        return None

    def close(self) -> None:
        self._closed.set()


class Broadcaster:
    """Registry of subscriber sinks keyed by owner id.

    Registration changes hold the lock exclusively; broadcasts hold it shared
    and deliver to every sink of the owner concurrently. A sink that stays
    full past the delivery timeout misses the event.
    """

    def __init__(self, settings: RealtimeSettings | None = None) -> None:
        self._settings = settings or RealtimeSettings()
        self._lock = ReadWriteLock()
        self._sinks: dict[str, set[Sink]] = {}

    async def register(self, owner_id: str) -> Sink:
        """Create and register a new sink for ``owner_id``."""
        sink = Sink(owner_id, self._settings.sink_capacity)
        async with self._lock.write():
            self._sinks.setdefault(owner_id, set()).add(sink)
            total = len(self._sinks[owner_id])
        LOGGER.info("Registered subscriber for owner %s (total %d)", owner_id, total)
        return sink

    async def unregister(self, owner_id: str, sink: Sink) -> None:
        """Remove and close ``sink``; drop the owner entry when it was the last."""
        async with self._lock.write():
            sinks = self._sinks.get(owner_id)
            if sinks is None or sink not in sinks:
                sink.close()
                return
            sinks.discard(sink)
            sink.close()
            remaining = len(sinks)
            if not sinks:
                del self._sinks[owner_id]
        LOGGER.info("Unregistered subscriber for owner %s (remaining %d)", owner_id, remaining)

    def has_subscribers(self, owner_id: str) -> bool:
        return bool(self._sinks.get(owner_id))

    def subscriber_count(self, owner_id: str) -> int:
        return len(self._sinks.get(owner_id, ()))

    async def broadcast(self, owner_id: str, event_type: str, data: Any) -> int:
        """Deliver an event to every sink of ``owner_id``; return the accepted count."""
        if not self._sinks.get(owner_id):
            return 0
        timeout = self._settings.delivery_timeout_seconds
        async with self._lock.read():
            sinks = tuple(self._sinks.get(owner_id, ()))
            if not sinks:
                return 0
            payload = encode_event(event_type, data)
            results = await asyncio.gather(*(sink.deliver(payload, timeout) for sink in sinks))
        delivered = sum(1 for accepted in results if accepted)
        if delivered < len(sinks):
            LOGGER.warning(
                "Dropped %s event for %d of %d subscribers of owner %s",
                event_type,
                len(sinks) - delivered,
                len(sinks),
                owner_id,
            )
        return delivered

    async def broadcast_message(self, owner_id: str, message: Message) -> int:
        """Announce a newly stored message."""
        return await self.broadcast(owner_id, EVENT_NEW_EMAIL, message.to_dict())

    async def announce(self, owner_id: str, messages: Sequence[Message]) -> None:
        """Send one ``new_email`` per message followed by an ``email_summary``."""
        if not messages:
            return
        for message in messages:
            await self.broadcast_message(owner_id, message)
        count = len(messages)
        await self.broadcast(
            owner_id,
            EVENT_EMAIL_SUMMARY,
            {"count": count, "message": f"{count} new emails received"},
        )

    async def close(self) -> None:
        """Close every sink and clear the registry."""
        async with self._lock.write():
            for sinks in self._sinks.values():
                for sink in sinks:
                    sink.close()
            self._sinks.clear()


__all__ = [
    "Broadcaster",
    "EVENT_CONNECTION",
    "EVENT_EMAIL_SUMMARY",
    "EVENT_NEW_EMAIL",
    "Sink",
    "encode_event",
]
