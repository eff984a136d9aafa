"""In-memory stores used for tests and ephemeral deployments."""

from __future__ import annotations

import logging
import threading
from dataclasses import replace

from ..core.errors import DuplicateMessageError
from ..core.interfaces import CategoryRepository, MessageRepository, OwnerRepository
from ..core.models import Category, Message, Owner, utcnow

LOGGER = logging.getLogger(__name__)


class InMemoryOwnerRepository(OwnerRepository):
    """Owners held in a dictionary keyed by id."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._owners: dict[str, Owner] = {}

    def create(self, owner: Owner) -> Owner:
        with self._lock:
            if any(existing.email == owner.email for existing in self._owners.values()):
                raise ValueError(f"Owner {owner.email} already exists")
            self._owners[owner.id] = replace(owner)
        return owner

    def find_by_id(self, owner_id: str) -> Owner | None:
        with self._lock:
            owner = self._owners.get(owner_id)
            return replace(owner) if owner is not None else None

    def find_by_email(self, email: str) -> Owner | None:
        with self._lock:
            for owner in self._owners.values():
                if owner.email == email:
                    return replace(owner)
        return None

    def find_all(self) -> list[Owner]:
        with self._lock:
            return [replace(owner) for owner in self._owners.values()]

    def update(self, owner: Owner) -> None:
        owner.updated_at = utcnow()
        with self._lock:
            if owner.id in self._owners:
                self._owners[owner.id] = replace(owner)


class InMemoryCategoryRepository(CategoryRepository):
    """Categories held in insertion order."""

    def __init__(self, messages: InMemoryMessageRepository | None = None) -> None:
        self._lock = threading.Lock()
        self._categories: dict[str, Category] = {}
        self._messages = messages

    def create(self, category: Category) -> Category:
        with self._lock:
            self._categories[category.id] = replace(category)
        return category

    def find_by_id(self, category_id: str) -> Category | None:
        with self._lock:
            category = self._categories.get(category_id)
            return replace(category) if category is not None else None

    def find_all(self) -> list[Category]:
        with self._lock:
            return [replace(category) for category in self._categories.values()]

    def update(self, category: Category) -> None:
        category.updated_at = utcnow()
        with self._lock:
            if category.id in self._categories:
                self._categories[category.id] = replace(category)

    def delete(self, category_id: str) -> bool:
        with self._lock:
            removed = self._categories.pop(category_id, None) is not None
        if removed and self._messages is not None:
            self._messages.clear_category(category_id)
        return removed


class InMemoryMessageRepository(MessageRepository):
    """Messages with an (owner, provider id) uniqueness index.

    The check and the insert happen under one lock so that two concurrent
    syncs of the same provider message cannot both persist it.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._messages: dict[str, Message] = {}
        self._by_provider: dict[tuple[str, str], str] = {}

    def create(self, message: Message) -> Message:
        key = (message.owner_id, message.provider_id)
        with self._lock:
            if key in self._by_provider:
                raise DuplicateMessageError(message.owner_id, message.provider_id)
            self._messages[message.id] = replace(message)
            self._by_provider[key] = message.id
        LOGGER.debug("Stored message %s for owner %s", message.provider_id, message.owner_id)
        return message

    def update(self, message: Message) -> None:
        message.touch()
        with self._lock:
            if message.id in self._messages:
                self._messages[message.id] = replace(message)

    def find_by_id(self, message_id: str) -> Message | None:
        with self._lock:
            message = self._messages.get(message_id)
            return replace(message) if message is not None else None

    def find_by_provider_id(self, owner_id: str, provider_id: str) -> Message | None:
        with self._lock:
            message_id = self._by_provider.get((owner_id, provider_id))
            if message_id is None:
                return None
            return replace(self._messages[message_id])

    def find_by_owner(self, owner_id: str) -> list[Message]:
        with self._lock:
            owned = [replace(m) for m in self._messages.values() if m.owner_id == owner_id]
        return sorted(owned, key=lambda message: message.received_at)

    def find_by_category(self, category_id: str) -> list[Message]:
        with self._lock:
            matched = [
                replace(m) for m in self._messages.values() if m.category_id == category_id
            ]
        return sorted(matched, key=lambda message: message.received_at)

    def find_latest_for_owner(self, owner_id: str) -> Message | None:
        owned = self.find_by_owner(owner_id)
        return owned[-1] if owned else None

    def delete(self, message_id: str) -> bool:
        with self._lock:
            message = self._messages.pop(message_id, None)
            if message is None:
                return False
            self._by_provider.pop((message.owner_id, message.provider_id), None)
        return True

    def clear_category(self, category_id: str) -> None:
        """Detach messages from a deleted category."""
        with self._lock:
            for message in self._messages.values():
                if message.category_id == category_id:
                    message.category_id = None


class InMemoryStore:
    """Bundle of in-memory repositories mirroring :class:`SqliteDatabase`."""

    def __init__(self) -> None:
        self.owners = InMemoryOwnerRepository()
        self.messages = InMemoryMessageRepository()
        self.categories = InMemoryCategoryRepository(self.messages)

    def close(self) -> None:
        """Nothing to release; present for interface parity."""


__all__ = [
    "InMemoryCategoryRepository",
    "InMemoryMessageRepository",
    "InMemoryOwnerRepository",
    "InMemoryStore",
]
