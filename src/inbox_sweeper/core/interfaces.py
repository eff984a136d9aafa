"""Protocol interfaces for decoupling components."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from .models import Category, Message, Owner, RawMessage


class OwnerRepository(Protocol):
    """Credential and owner store."""

    def create(self, owner: Owner) -> Owner:
        """Store a new owner."""
        raise NotImplementedError

    def find_by_id(self, owner_id: str) -> Owner | None:
        """Return the owner with ``owner_id`` if present."""
        raise NotImplementedError

    def find_by_email(self, email: str) -> Owner | None:
        """Return the owner registered with ``email`` if present."""
        raise NotImplementedError

    def find_all(self) -> list[Owner]:
        """Return every owner."""
        raise NotImplementedError

    def update(self, owner: Owner) -> None:
        """Persist changed owner fields such as refreshed tokens."""
        raise NotImplementedError


class CategoryRepository(Protocol):
    """Store for the shared category set."""

    def create(self, category: Category) -> Category:
        """Store a new category."""
        raise NotImplementedError

    def find_by_id(self, category_id: str) -> Category | None:
        """Return a category by id."""
        raise NotImplementedError

    def find_all(self) -> list[Category]:
        """Return all categories in creation order."""
        raise NotImplementedError

    def update(self, category: Category) -> None:
        """Persist changed category fields."""
        raise NotImplementedError

    def delete(self, category_id: str) -> bool:
        """Remove a category. Returns ``True`` if deleted."""
        raise NotImplementedError


class MessageRepository(Protocol):
    """Store for synced messages, unique on (owner, provider id)."""

    def create(self, message: Message) -> Message:
        """Insert ``message``; raise ``DuplicateMessageError`` on conflict."""
        raise NotImplementedError

    def update(self, message: Message) -> None:
        """Persist changed message fields."""
        raise NotImplementedError

    def find_by_id(self, message_id: str) -> Message | None:
        """Return a message by local id."""
        raise NotImplementedError

    def find_by_provider_id(self, owner_id: str, provider_id: str) -> Message | None:
        """Return the owner's message carrying ``provider_id``."""
        raise NotImplementedError

    def find_by_owner(self, owner_id: str) -> list[Message]:
        """Return the owner's messages ordered by receipt time."""
        raise NotImplementedError

    def find_by_category(self, category_id: str) -> list[Message]:
        """Return messages classified into ``category_id``."""
        raise NotImplementedError

    def find_latest_for_owner(self, owner_id: str) -> Message | None:
        """Return the owner's most recently received message."""
        raise NotImplementedError

    def delete(self, message_id: str) -> bool:
        """Remove a message. Returns ``True`` if deleted."""
        raise NotImplementedError


class MailboxClient(Protocol):
    """Abstraction over a remote mail provider."""

    async def list_and_fetch(
        self, owner: Owner, max_results: int, after_provider_id: str | None = None
    ) -> list[RawMessage]:
        """Return fetched messages after the cursor, in provider order."""
        raise NotImplementedError

    async def mutate_state(
        self,
        owner: Owner,
        provider_id: str,
        add_labels: Sequence[str] = (),
        remove_labels: Sequence[str] = (),
    ) -> None:
        """Add and remove provider labels on one message."""
        raise NotImplementedError

    async def archive(self, owner: Owner, provider_id: str) -> None:
        """Remove a message from the inbox and mark it read."""
        raise NotImplementedError

    async def mark_as_read(self, owner: Owner, provider_id: str) -> None:
        """Remove the unread label from a message."""
        raise NotImplementedError

    async def delete(self, owner: Owner, provider_ids: Sequence[str]) -> None:
        """Delete messages remotely as one batch."""
        raise NotImplementedError


class InferenceService(Protocol):
    """Classifies and summarizes message bodies."""

    async def classify(self, body: str, categories: Sequence[Category]) -> str:
        """Return the name of the best matching category."""
        raise NotImplementedError

    async def summarize(self, body: str) -> str:
        """Return a short summary of ``body``."""
        raise NotImplementedError

    async def suggest_unsubscribe_action(self, page_content: str, page_url: str) -> str:
        """Return a raw directive describing how to unsubscribe on a page."""
        raise NotImplementedError


__all__ = [
    "CategoryRepository",
    "InferenceService",
    "MailboxClient",
    "MessageRepository",
    "OwnerRepository",
]
