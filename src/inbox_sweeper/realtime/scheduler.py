"""Periodic sync of owners with live subscribers."""

from __future__ import annotations

import asyncio
import logging

from ..core.config import SyncSettings
from ..core.errors import InboxSweeperError, PartialSyncError
from ..core.interfaces import MessageRepository, OwnerRepository
from ..core.models import Owner
from ..ingestion.sync_engine import SyncEngine
from .broadcaster import Broadcaster

LOGGER = logging.getLogger(__name__)


class SyncScheduler:
    """Sync every owner that has a subscriber on a fixed interval.

    Each tick runs as its own task and each owner within a tick runs as its
    own task, so a slow or failing owner never delays the others.
    """

    def __init__(
        self,
        *,
        engine: SyncEngine,
        owners: OwnerRepository,
        messages: MessageRepository,
        broadcaster: Broadcaster,
        settings: SyncSettings | None = None,
    ) -> None:
        self._engine = engine
        self._owners = owners
        self._messages = messages
        self._broadcaster = broadcaster
        self._settings = settings or SyncSettings()
        self._loop_task: asyncio.Task[None] | None = None
        self._ticks: set[asyncio.Task[int]] = set()

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def start(self) -> None:
        """Start ticking; the first tick runs immediately."""
        if self.running:
            return
        LOGGER.info(
            "Starting sync scheduler with %.1fs interval", self._settings.interval_seconds
        )
        self._loop_task = asyncio.create_task(self._run_forever())

    async def stop(self) -> None:
        """Cancel the loop and any outstanding ticks."""
        tasks: list[asyncio.Task] = list(self._ticks)
        if self._loop_task is not None:
            tasks.append(self._loop_task)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._loop_task = None
        self._ticks.clear()
        LOGGER.info("Sync scheduler stopped")

    async def run_once(self) -> int:
        """Sync all owners with subscribers; return the number of new messages."""
        owners = [
            owner
            for owner in self._owners.find_all()
            if self._broadcaster.has_subscribers(owner.id)
        ]
        if not owners:
            LOGGER.debug("No owners with active subscribers; skipping tick")
            return 0
        counts = await asyncio.gather(*(self._sync_owner(owner) for owner in owners))
        return sum(counts)

    async def _run_forever(self) -> None:
        while True:
            tick = asyncio.create_task(self.run_once())
            self._ticks.add(tick)
            tick.add_done_callback(self._tick_done)
            await asyncio.sleep(self._settings.interval_seconds)

    def _tick_done(self, tick: asyncio.Task[int]) -> None:
        self._ticks.discard(tick)
        if tick.cancelled():
            return
        exc = tick.exception()
        if exc is not None:
            LOGGER.error("Scheduler tick failed: %s", exc, exc_info=exc)

    async def _sync_owner(self, owner: Owner) -> int:
        latest = self._messages.find_latest_for_owner(owner.id)
        cursor = latest.provider_id if latest is not None else None
        try:
            report = await self._engine.sync(owner.id, self._settings.max_results, cursor)
        except PartialSyncError as exc:
            LOGGER.warning("Partial sync for owner %s: %s", owner.id, exc)
            report = exc.report
        except InboxSweeperError as exc:
            LOGGER.error("Scheduled sync failed for owner %s: %s", owner.id, exc)
            return 0
        except Exception:  # pylint: disable=broad-except
            LOGGER.exception("Unexpected error syncing owner %s", owner.id)
            return 0
        await self._broadcaster.announce(owner.id, report.persisted)
        if report.persisted:
            LOGGER.info(
                "Announced %d new messages to owner %s", len(report.persisted), owner.id
            )
        return len(report.persisted)


__all__ = ["SyncScheduler"]
