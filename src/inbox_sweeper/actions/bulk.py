"""Bulk operations over stored messages."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from ..core.errors import (
    DivergenceError,
    MailboxError,
    OwnerNotFoundError,
    RemoteDeleteError,
    UnknownActionError,
    UnsubscribeError,
)
from ..core.interfaces import MailboxClient, MessageRepository, OwnerRepository
from ..core.models import Message, Owner
from ..unsubscribe.service import UnsubscribeService

LOGGER = logging.getLogger(__name__)


class BulkAction(str, Enum):
    """Supported bulk action tags."""

    ARCHIVE = "archive"
    READ = "read"
    DELETE = "delete"
    UNSUBSCRIBE = "unsubscribe"

    @classmethod
    def parse(cls, value: str | BulkAction) -> BulkAction:
        """Return the action for ``value`` or raise :class:`UnknownActionError`."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value.strip().lower())
        except ValueError as exc:
            raise UnknownActionError(str(value)) from exc


@dataclass(slots=True)
class BulkActionReport:
    """Outcome of a bulk action; foreign or missing ids only count as skipped."""

    action: BulkAction
    processed: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    skipped: int = 0


class BulkActionService:
    """Apply archive, read, delete and unsubscribe actions to owned messages."""

    def __init__(
        self,
        *,
        owners: OwnerRepository,
        messages: MessageRepository,
        mailbox: MailboxClient,
        unsubscriber: UnsubscribeService | None = None,
    ) -> None:
        self._owners = owners
        self._messages = messages
        self._mailbox = mailbox
        self._unsubscriber = unsubscriber

    async def perform(
        self, message_ids: Sequence[str], action: str | BulkAction, owner_id: str
    ) -> BulkActionReport:
        """Apply ``action`` to each of the owner's ``message_ids``."""
        parsed = BulkAction.parse(action)
        owner = self._require_owner(owner_id)
        owned, skipped = self._load_owned(message_ids, owner_id)
        LOGGER.info(
            "Bulk %s on %d messages for owner %s (%d skipped)",
            parsed.value,
            len(owned),
            owner_id,
            skipped,
        )

        if parsed is BulkAction.DELETE:
            report = await self._delete(owner, owned)
            report.skipped += skipped
            return report

        report = BulkActionReport(action=parsed, skipped=skipped)
        for message in owned:
            try:
                await self._apply(parsed, owner, message)
            except (MailboxError, UnsubscribeError) as exc:
                LOGGER.error("Bulk %s failed for message %s: %s", parsed.value, message.id, exc)
                report.failed[message.id] = str(exc)
            else:
                report.processed.append(message.id)
        return report

    async def delete_messages(
        self, message_ids: Sequence[str], owner_id: str
    ) -> BulkActionReport:
        """Delete messages remotely as one batch, then locally.

        Nothing is deleted locally when the remote batch fails. Local failures
        after remote success raise :class:`DivergenceError` listing the ids.
        """
        owner = self._require_owner(owner_id)
        owned, skipped = self._load_owned(message_ids, owner_id)
        report = await self._delete(owner, owned)
        report.skipped += skipped
        return report

    # Internal helpers --------------------------------------------------------
    def _require_owner(self, owner_id: str) -> Owner:
        owner = self._owners.find_by_id(owner_id)
        if owner is None:
            raise OwnerNotFoundError(f"Owner {owner_id} not found")
        return owner

    def _load_owned(
        self, message_ids: Sequence[str], owner_id: str
    ) -> tuple[list[Message], int]:
        owned: list[Message] = []
        skipped = 0
        for message_id in dict.fromkeys(message_ids):
            message = self._messages.find_by_id(message_id)
            if message is None or message.owner_id != owner_id:
                skipped += 1
                continue
            owned.append(message)
        return owned, skipped

    async def _apply(self, action: BulkAction, owner: Owner, message: Message) -> None:
        if action is BulkAction.ARCHIVE:
            await self._mailbox.archive(owner, message.provider_id)
            message.archived = True
            self._messages.update(message)
        elif action is BulkAction.READ:
            await self._mailbox.mark_as_read(owner, message.provider_id)
        elif action is BulkAction.UNSUBSCRIBE:
            if self._unsubscriber is None:
                raise UnsubscribeError(message.id, "unsubscribe automation is not configured")
            await self._unsubscriber.unsubscribe_message(message, owner.email)

    async def _delete(self, owner: Owner, owned: list[Message]) -> BulkActionReport:
        report = BulkActionReport(action=BulkAction.DELETE)
        if not owned:
            LOGGER.warning("No deletable messages for owner %s", owner.id)
            return report

        try:
            await self._mailbox.delete(owner, [message.provider_id for message in owned])
        except MailboxError as exc:
            LOGGER.error("Remote deletion failed for owner %s: %s", owner.id, exc)
            raise RemoteDeleteError([message.id for message in owned], exc) from exc

        diverged: list[str] = []
        for message in owned:
            try:
                deleted = self._messages.delete(message.id)
            except Exception as exc:  # pylint: disable=broad-except
                LOGGER.error("Failed to delete message %s locally: %s", message.id, exc)
                deleted = False
            if deleted:
                report.processed.append(message.id)
            else:
                diverged.append(message.id)

        if diverged:
            raise DivergenceError(diverged)
        LOGGER.info("Deleted %d messages for owner %s", len(report.processed), owner.id)
        return report


__all__ = ["BulkAction", "BulkActionReport", "BulkActionService"]
