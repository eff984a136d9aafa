"""Tests for the periodic sync scheduler."""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone

import pytest

from inbox_sweeper.core.config import SyncSettings
from inbox_sweeper.core.errors import MailboxError, PartialSyncError
from inbox_sweeper.core.models import Message, Owner, SyncFailure, SyncReport
from inbox_sweeper.realtime import Broadcaster, SyncScheduler
from inbox_sweeper.storage.memory import InMemoryStore


def _message(owner_id: str, provider_id: str, day: int = 1) -> Message:
    return Message(
        owner_id=owner_id,
        provider_id=provider_id,
        sender="news@example.com",
        subject=provider_id,
        body="<p>Hi</p>",
        received_at=datetime(2025, 1, day, tzinfo=timezone.utc),
    )


class StubEngine:
    """Returns canned outcomes per owner and records the cursor it was given."""

    def __init__(self, outcomes: dict[str, object]) -> None:
        self.outcomes = outcomes
        self.calls: list[tuple[str, int, str | None]] = []

    async def sync(self, owner_id: str, max_results: int, after_id: str | None = None):
        self.calls.append((owner_id, max_results, after_id))
        outcome = self.outcomes[owner_id]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _scheduler(store, engine, broadcaster, interval: float = 30.0) -> SyncScheduler:
    return SyncScheduler(
        engine=engine,
        owners=store.owners,
        messages=store.messages,
        broadcaster=broadcaster,
        settings=SyncSettings(interval_seconds=interval, max_results=7),
    )


async def test_only_owners_with_subscribers_are_synced() -> None:
    store = InMemoryStore()
    watched = store.owners.create(Owner(email="a@example.com", access_token="t"))
    store.owners.create(Owner(email="b@example.com", access_token="t"))
    fresh = _message(watched.id, "new")
    engine = StubEngine({watched.id: SyncReport(fetched=(), persisted=(fresh,))})
    broadcaster = Broadcaster()
    sink = await broadcaster.register(watched.id)

    count = await _scheduler(store, engine, broadcaster).run_once()

    assert count == 1
    assert [call[0] for call in engine.calls] == [watched.id]
    events = [json.loads(await sink.receive()) for _ in range(2)]
    assert [event["type"] for event in events] == ["new_email", "email_summary"]


async def test_cursor_is_latest_stored_message() -> None:
    store = InMemoryStore()
    owner = store.owners.create(Owner(email="a@example.com", access_token="t"))
    store.messages.create(_message(owner.id, "older", day=1))
    store.messages.create(_message(owner.id, "newest", day=3))
    store.messages.create(_message(owner.id, "middle", day=2))
    engine = StubEngine({owner.id: SyncReport(fetched=(), persisted=())})
    broadcaster = Broadcaster()
    await broadcaster.register(owner.id)

    await _scheduler(store, engine, broadcaster).run_once()

    assert engine.calls == [(owner.id, 7, "newest")]


async def test_failing_owner_does_not_block_others() -> None:
    store = InMemoryStore()
    broken = store.owners.create(Owner(email="a@example.com", access_token="t"))
    partial = store.owners.create(Owner(email="b@example.com", access_token="t"))
    report = SyncReport(
        fetched=(),
        persisted=(_message(partial.id, "ok"),),
        failures=(SyncFailure("bad", "model offline"),),
    )
    engine = StubEngine({broken.id: MailboxError("down"), partial.id: PartialSyncError(report)})
    broadcaster = Broadcaster()
    await broadcaster.register(broken.id)
    sink = await broadcaster.register(partial.id)

    count = await _scheduler(store, engine, broadcaster).run_once()

    assert count == 1
    assert json.loads(await sink.receive())["type"] == "new_email"


async def test_no_subscribers_means_no_sync() -> None:
    store = InMemoryStore()
    store.owners.create(Owner(email="a@example.com", access_token="t"))
    engine = StubEngine({})

    assert await _scheduler(store, engine, Broadcaster()).run_once() == 0
    assert engine.calls == []


async def test_start_ticks_until_stopped() -> None:
    store = InMemoryStore()
    owner = store.owners.create(Owner(email="a@example.com", access_token="t"))
    engine = StubEngine({owner.id: SyncReport(fetched=(), persisted=())})
    broadcaster = Broadcaster()
    await broadcaster.register(owner.id)
    scheduler = _scheduler(store, engine, broadcaster, interval=0.01)

    scheduler.start()
    assert scheduler.running
    await asyncio.sleep(0.05)
    await scheduler.stop()

    assert not scheduler.running
    assert len(engine.calls) >= 2


class BrokenOwners:
    def find_all(self):
        raise RuntimeError("owner store unavailable")


async def test_failed_tick_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    store = InMemoryStore()
    scheduler = SyncScheduler(
        engine=StubEngine({}),
        owners=BrokenOwners(),
        messages=store.messages,
        broadcaster=Broadcaster(),
        settings=SyncSettings(interval_seconds=0.01),
    )

    with caplog.at_level(logging.ERROR, logger="inbox_sweeper.realtime.scheduler"):
        scheduler.start()
        await asyncio.sleep(0.05)
        await scheduler.stop()

    assert "Scheduler tick failed: owner store unavailable" in caplog.text
