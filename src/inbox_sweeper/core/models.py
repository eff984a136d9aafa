"""Core domain models used across the application."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime

from .datetime_utils import serialize_datetime


def new_id() -> str:
    """Return a fresh local identifier."""
    return uuid.uuid4().hex


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(tz=UTC)


# pylint: disable=too-many-instance-attributes
@dataclass(slots=True)
class Owner:
    """Mailbox holder and the provider credentials used on their behalf."""

    email: str
    name: str = ""
    google_id: str | None = None
    access_token: str | None = None
    refresh_token: str | None = None
    token_expiry: datetime | None = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def has_credentials(self) -> bool:
        """Return ``True`` when an access token is available."""
        return bool(self.access_token and self.access_token.strip())


@dataclass(slots=True)
class Category:
    """Shared classification label."""

    name: str
    description: str = ""
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "created_at": serialize_datetime(self.created_at),
            "updated_at": serialize_datetime(self.updated_at),
        }


# pylint: disable=too-many-instance-attributes
@dataclass(slots=True)
class Message:
    """Stored email with its classification results."""

    owner_id: str
    provider_id: str
    sender: str
    subject: str
    body: str
    received_at: datetime
    summary: str | None = None
    category_id: str | None = None
    archived: bool = False
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def touch(self) -> None:
        """Refresh the modification timestamp."""
        self.updated_at = utcnow()

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-ready representation used by the API and events."""
        return {
            "id": self.id,
            "user_id": self.owner_id,
            "gmail_id": self.provider_id,
            "from": self.sender,
            "subject": self.subject,
            "body": self.body,
            "summary": self.summary,
            "category_id": self.category_id,
            "received_at": serialize_datetime(self.received_at),
            "archived": self.archived,
            "created_at": serialize_datetime(self.created_at),
            "updated_at": serialize_datetime(self.updated_at),
        }


@dataclass(slots=True, frozen=True)
class DecodedBody:
    """Canonical HTML body plus a marker for best-effort decoding."""

    html: str
    degraded: bool = False


@dataclass(slots=True, frozen=True)
class RawMessage:
    """Message as fetched from the provider, before classification."""

    provider_id: str
    sender: str
    subject: str
    body: str
    received_at: datetime
    body_degraded: bool = False

    def to_message(self, owner_id: str) -> Message:
        """Build an unclassified :class:`Message` owned by ``owner_id``."""
        return Message(
            owner_id=owner_id,
            provider_id=self.provider_id,
            sender=self.sender,
            subject=self.subject,
            body=self.body,
            received_at=self.received_at,
        )


@dataclass(slots=True, frozen=True)
class SyncFailure:
    """A message the sync engine could not process."""

    provider_id: str
    reason: str


@dataclass(slots=True)
class SyncReport:
    """Outcome of one sync invocation."""

    fetched: tuple[RawMessage, ...]
    persisted: tuple[Message, ...]
    skipped: int = 0
    failures: tuple[SyncFailure, ...] = ()

    @property
    def ok(self) -> bool:
        """Return ``True`` when every fetched message was handled."""
        return not self.failures


__all__ = [
    "Category",
    "DecodedBody",
    "Message",
    "Owner",
    "RawMessage",
    "SyncFailure",
    "SyncReport",
    "new_id",
    "utcnow",
]
