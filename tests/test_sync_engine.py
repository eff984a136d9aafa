"""Tests for the mailbox sync engine."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone

import pytest

from inbox_sweeper.core.config import SyncSettings
from inbox_sweeper.core.errors import (
    CategoryNotFoundError,
    EmptyCategorySetError,
    InferenceError,
    MailboxError,
    OwnerNotFoundError,
    PartialSyncError,
)
from inbox_sweeper.core.interfaces import InferenceService, MailboxClient
from inbox_sweeper.core.models import Category, Owner, RawMessage
from inbox_sweeper.ingestion import SyncEngine
from inbox_sweeper.ingestion.cursor import items_after
from inbox_sweeper.storage.memory import InMemoryStore

BASE_TIME = datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc)


def _raw(provider_id: str, offset: int = 0, body: str = "<p>Hello</p>") -> RawMessage:
    return RawMessage(
        provider_id=provider_id,
        sender="news@example.com",
        subject=f"Subject {provider_id}",
        body=body,
        received_at=BASE_TIME + timedelta(minutes=offset),
    )


class StubMailbox(MailboxClient):
    def __init__(self, messages: Sequence[RawMessage], *, fail_archive: bool = False) -> None:
        self.messages = list(messages)
        self.fail_archive = fail_archive
        self.archived: list[str] = []
        self.list_calls = 0

    async def list_and_fetch(self, owner, max_results, after_provider_id=None):
        self.list_calls += 1
        await asyncio.sleep(0)
        page = self.messages[:max_results]
        return items_after(after_provider_id, page, lambda raw: raw.provider_id)

    async def mutate_state(self, owner, provider_id, add_labels=(), remove_labels=()):
        raise AssertionError("not used")

    async def archive(self, owner, provider_id):
        if self.fail_archive:
            raise MailboxError("archive unavailable")
        self.archived.append(provider_id)

    async def mark_as_read(self, owner, provider_id):
        raise AssertionError("not used")

    async def delete(self, owner, provider_ids):
        raise AssertionError("not used")


class StubInference(InferenceService):
    def __init__(self, answer: str = "Newsletters", *, fail_on: str | None = None) -> None:
        self.answer = answer
        self.fail_on = fail_on
        self.classify_calls = 0

    async def classify(self, body, categories):
        self.classify_calls += 1
        await asyncio.sleep(0)
        if self.fail_on is not None and self.fail_on in body:
            raise InferenceError("model unavailable")
        return self.answer

    async def summarize(self, body):
        return "A short summary."

    async def suggest_unsubscribe_action(self, page_content, page_url):
        return "CONFIRMED"


@pytest.fixture()
def store() -> InMemoryStore:
    store = InMemoryStore()
    store.categories.create(Category(name="Newsletters", description="Digests"))
    store.categories.create(Category(name="Receipts", description="Orders"))
    return store


@pytest.fixture()
def owner(store: InMemoryStore) -> Owner:
    return store.owners.create(Owner(email="user@example.com", access_token="token"))


def _engine(store: InMemoryStore, mailbox, inference, concurrency: int = 5) -> SyncEngine:
    return SyncEngine(
        owners=store.owners,
        categories=store.categories,
        messages=store.messages,
        mailbox=mailbox,
        inference=inference,
        settings=SyncSettings(concurrency=concurrency),
    )


async def test_sync_persists_classifies_and_archives(store, owner) -> None:
    mailbox = StubMailbox([_raw("m1", 0), _raw("m2", 1)])
    engine = _engine(store, mailbox, StubInference())

    report = await engine.sync(owner.id, 10)

    assert report.ok
    assert [message.provider_id for message in report.persisted] == ["m1", "m2"]
    assert sorted(mailbox.archived) == ["m1", "m2"]
    stored = store.messages.find_by_owner(owner.id)
    newsletters = store.categories.find_all()[0]
    assert [message.provider_id for message in stored] == ["m1", "m2"]
    assert all(message.category_id == newsletters.id for message in stored)
    assert all(message.summary == "A short summary." for message in stored)
    assert all(message.archived for message in stored)


async def test_sync_is_idempotent(store, owner) -> None:
    mailbox = StubMailbox([_raw("m1"), _raw("m2", 1)])
    inference = StubInference()
    engine = _engine(store, mailbox, inference)

    await engine.sync(owner.id, 10)
    second = await engine.sync(owner.id, 10)

    assert second.persisted == ()
    assert second.skipped == 2
    assert inference.classify_calls == 2
    assert len(store.messages.find_by_owner(owner.id)) == 2


async def test_concurrent_syncs_store_each_message_once(store, owner) -> None:
    mailbox = StubMailbox([_raw(f"m{index}", index) for index in range(5)])
    engine = _engine(store, mailbox, StubInference())

    first, second = await asyncio.gather(engine.sync(owner.id, 10), engine.sync(owner.id, 10))

    assert len(first.persisted) + len(second.persisted) == 5
    assert first.skipped + second.skipped == 5
    assert len(store.messages.find_by_owner(owner.id)) == 5


async def test_cursor_limits_fetch_to_newer_messages(store, owner) -> None:
    mailbox = StubMailbox([_raw("m1"), _raw("m2", 1), _raw("m3", 2)])
    engine = _engine(store, mailbox, StubInference())

    report = await engine.sync(owner.id, 10, after_id="m1")

    assert [raw.provider_id for raw in report.fetched] == ["m2", "m3"]


async def test_classification_failure_raises_partial_sync(store, owner) -> None:
    mailbox = StubMailbox([_raw("good", 0), _raw("bad", 1, body="<p>explode</p>")])
    engine = _engine(store, mailbox, StubInference(fail_on="explode"))

    with pytest.raises(PartialSyncError) as excinfo:
        await engine.sync(owner.id, 10)

    report = excinfo.value.report
    assert [message.provider_id for message in report.persisted] == ["good"]
    assert [failure.provider_id for failure in report.failures] == ["bad"]
    assert store.messages.find_by_provider_id(owner.id, "bad") is None
    assert mailbox.archived == ["good"]


async def test_archive_failure_keeps_message_unarchived(store, owner) -> None:
    mailbox = StubMailbox([_raw("m1")], fail_archive=True)
    engine = _engine(store, mailbox, StubInference())

    report = await engine.sync(owner.id, 10)

    assert report.ok
    stored = store.messages.find_by_provider_id(owner.id, "m1")
    assert stored is not None
    assert stored.archived is False


async def test_unknown_category_answer_falls_back_to_first(store, owner) -> None:
    engine = _engine(store, StubMailbox([_raw("m1")]), StubInference(answer="Gibberish"))

    report = await engine.sync(owner.id, 10)

    assert report.persisted[0].category_id == store.categories.find_all()[0].id


async def test_sync_requires_known_owner(store) -> None:
    engine = _engine(store, StubMailbox([]), StubInference())
    with pytest.raises(OwnerNotFoundError):
        await engine.sync("missing", 10)


async def test_sync_requires_access_token(store) -> None:
    owner = store.owners.create(Owner(email="tokenless@example.com"))
    mailbox = StubMailbox([_raw("m1")])
    engine = _engine(store, mailbox, StubInference())

    with pytest.raises(MailboxError):
        await engine.sync(owner.id, 10)
    assert mailbox.list_calls == 0


async def test_sync_without_categories_fails_before_fetch(owner, store) -> None:
    for category in store.categories.find_all():
        store.categories.delete(category.id)
    mailbox = StubMailbox([_raw("m1")])
    engine = _engine(store, mailbox, StubInference())

    with pytest.raises(EmptyCategorySetError):
        await engine.sync(owner.id, 10)
    assert mailbox.list_calls == 0


async def test_classify_content_returns_matching_category(store) -> None:
    engine = _engine(store, StubMailbox([]), StubInference(answer="receipts"))

    category = await engine.classify_content("Your order has shipped")

    assert category.name == "Receipts"


async def test_list_by_category_filters_owner(store, owner) -> None:
    other = store.owners.create(Owner(email="other@example.com", access_token="t"))
    engine = _engine(store, StubMailbox([_raw("m1")]), StubInference())
    await engine.sync(owner.id, 10)
    await engine.sync(other.id, 10)
    newsletters = store.categories.find_all()[0]

    mine = engine.list_by_category(owner.id, newsletters.id)

    assert [message.owner_id for message in mine] == [owner.id]
    with pytest.raises(CategoryNotFoundError):
        engine.list_by_category(owner.id, "nope")
