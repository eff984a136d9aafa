"""Exception hierarchy shared by the sync, action and delivery layers."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import SyncReport


class InboxSweeperError(Exception):
    """Base exception for all Inbox Sweeper errors."""


class NotFoundError(InboxSweeperError):
    """Raised when a requested record does not exist."""


class OwnerNotFoundError(NotFoundError):
    """Raised when an owner id or email is unknown."""


class MessageNotFoundError(NotFoundError):
    """Raised when a stored message is unknown."""


class CategoryNotFoundError(NotFoundError):
    """Raised when a category id is unknown."""


class DuplicateMessageError(InboxSweeperError):
    """Raised by stores when (owner, provider id) is already present."""

    def __init__(self, owner_id: str, provider_id: str) -> None:
        super().__init__(
            f"Message {provider_id} already stored for owner {owner_id}"
        )
        self.owner_id = owner_id
        self.provider_id = provider_id


class InvariantError(InboxSweeperError):
    """Raised for caller or configuration bugs that abort the whole call."""


class EmptyCategorySetError(InvariantError):
    """Raised when classification is requested without any categories."""

    def __init__(self) -> None:
        super().__init__("No categories are configured for classification")


class UnknownActionError(InvariantError, ValueError):
    """Raised for unsupported bulk action tags."""

    def __init__(self, action: str) -> None:
        super().__init__(f"Unsupported bulk action: {action!r}")
        self.action = action


class MailboxError(InboxSweeperError):
    """Raised when the mail provider cannot be reached or refuses a call."""


class InferenceError(InboxSweeperError):
    """Raised when the inference provider fails to classify or summarize."""


class UnsubscribeError(InboxSweeperError):
    """Raised when no unsubscribe strategy succeeded for a message."""

    def __init__(
        self, message_id: str, reason: str, attempts: Sequence[tuple[str, str]] = ()
    ) -> None:
        super().__init__(f"Unsubscribe failed for message {message_id}: {reason}")
        self.message_id = message_id
        self.reason = reason
        self.attempts = tuple(attempts)


class RemoteDeleteError(MailboxError):
    """Raised when remote deletion fails; nothing was deleted locally."""

    def __init__(self, message_ids: Sequence[str], cause: Exception) -> None:
        super().__init__(f"Remote deletion failed for {len(message_ids)} messages")
        self.message_ids = tuple(message_ids)
        self.__cause__ = cause


class DivergenceError(InboxSweeperError):
    """Raised when remote deletion succeeded but local deletion did not."""

    def __init__(self, message_ids: Sequence[str]) -> None:
        joined = ", ".join(message_ids)
        super().__init__(
            f"Messages deleted remotely but still stored locally: {joined}"
        )
        self.message_ids = tuple(message_ids)


class PartialSyncError(InboxSweeperError):
    """Raised when some fetched messages failed; the rest stay persisted."""

    def __init__(self, report: SyncReport) -> None:
        reasons = "; ".join(
            f"{failure.provider_id}: {failure.reason}" for failure in report.failures
        )
        super().__init__(
            f"Failed to sync {len(report.failures)} of {len(report.fetched)} "
            f"messages ({reasons})"
        )
        self.report = report


__all__ = [
    "CategoryNotFoundError",
    "DivergenceError",
    "DuplicateMessageError",
    "EmptyCategorySetError",
    "InboxSweeperError",
    "InferenceError",
    "InvariantError",
    "MailboxError",
    "MessageNotFoundError",
    "NotFoundError",
    "OwnerNotFoundError",
    "PartialSyncError",
    "RemoteDeleteError",
    "UnknownActionError",
    "UnsubscribeError",
]
