"""Tests for the in-memory stores."""

from __future__ import annotations

import threading
from datetime import datetime, timezone

import pytest

from inbox_sweeper.core.errors import DuplicateMessageError
from inbox_sweeper.core.models import Category, Message, Owner
from inbox_sweeper.storage.memory import InMemoryStore


def _message(provider_id: str, category_id: str | None = None) -> Message:
    return Message(
        owner_id="owner-1",
        provider_id=provider_id,
        sender="a@example.com",
        subject="s",
        body="b",
        received_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
        category_id=category_id,
    )


def test_stored_objects_are_copies() -> None:
    store = InMemoryStore()
    message = store.messages.create(_message("p1"))
    message.subject = "changed locally"

    assert store.messages.find_by_id(message.id).subject == "s"


def test_concurrent_creates_store_one_copy() -> None:
    store = InMemoryStore()
    errors: list[Exception] = []

    def worker() -> None:
        try:
            store.messages.create(_message("same"))
        except DuplicateMessageError as exc:
            errors.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(store.messages.find_by_owner("owner-1")) == 1
    assert len(errors) == 7


def test_duplicate_owner_email_rejected() -> None:
    store = InMemoryStore()
    store.owners.create(Owner(email="a@example.com"))

    with pytest.raises(ValueError):
        store.owners.create(Owner(email="a@example.com"))


def test_category_delete_detaches_messages() -> None:
    store = InMemoryStore()
    category = store.categories.create(Category(name="Work"))
    message = store.messages.create(_message("p1", category.id))

    assert store.categories.delete(category.id) is True
    assert store.categories.delete(category.id) is False
    assert store.messages.find_by_id(message.id).category_id is None
