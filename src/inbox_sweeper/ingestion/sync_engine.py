"""Mailbox synchronisation: fetch, dedupe, classify, persist and archive."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum

from ..core.config import SyncSettings
from ..core.errors import (
    CategoryNotFoundError,
    DuplicateMessageError,
    EmptyCategorySetError,
    InferenceError,
    MailboxError,
    OwnerNotFoundError,
    PartialSyncError,
)
from ..core.interfaces import (
    CategoryRepository,
    InferenceService,
    MailboxClient,
    MessageRepository,
    OwnerRepository,
)
from ..core.models import (
    Category,
    Message,
    Owner,
    RawMessage,
    SyncFailure,
    SyncReport,
)
from ..intelligence.classifier import match_category

LOGGER = logging.getLogger(__name__)


class _Outcome(Enum):
    PERSISTED = "persisted"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(slots=True)
class _MessageResult:
    outcome: _Outcome
    message: Message | None = None
    failure: SyncFailure | None = None


class SyncEngine:
    """Pull new provider messages for an owner into the local store."""

    def __init__(
        self,
        *,
        owners: OwnerRepository,
        categories: CategoryRepository,
        messages: MessageRepository,
        mailbox: MailboxClient,
        inference: InferenceService,
        settings: SyncSettings | None = None,
    ) -> None:
        self._owners = owners
        self._categories = categories
        self._messages = messages
        self._mailbox = mailbox
        self._inference = inference
        self._settings = settings or SyncSettings()

    async def sync(
        self, owner_id: str, max_results: int, after_id: str | None = None
    ) -> SyncReport:
        """Synchronise up to ``max_results`` messages following ``after_id``.

        Already stored messages are skipped. Messages whose classification
        fails are reported and not persisted; a :class:`PartialSyncError`
        carrying the report is raised after every message was handled.
        """
        owner = self._require_owner(owner_id)
        if not owner.has_credentials:
            raise MailboxError(f"Owner {owner.email} has no access token")
        categories = self._categories.find_all()
        if not categories:
            raise EmptyCategorySetError()

        fetched = await self._mailbox.list_and_fetch(owner, max_results, after_id)
        LOGGER.info(
            "Syncing %d fetched messages for owner %s (cursor=%s)",
            len(fetched),
            owner.id,
            after_id or "-",
        )

        semaphore = asyncio.Semaphore(self._settings.concurrency)

        async def _bounded(raw: RawMessage) -> _MessageResult:
            async with semaphore:
                return await self._process(owner, raw, categories)

        results = await asyncio.gather(*(_bounded(raw) for raw in fetched))

        report = SyncReport(
            fetched=tuple(fetched),
            persisted=tuple(
                result.message
                for result in results
                if result.outcome is _Outcome.PERSISTED and result.message is not None
            ),
            skipped=sum(1 for result in results if result.outcome is _Outcome.SKIPPED),
            failures=tuple(
                result.failure for result in results if result.failure is not None
            ),
        )
        LOGGER.info(
            "Sync for owner %s: %d persisted, %d skipped, %d failed",
            owner.id,
            len(report.persisted),
            report.skipped,
            len(report.failures),
        )
        if report.failures:
            raise PartialSyncError(report)
        return report

    async def classify_content(self, body: str) -> Category:
        """Classify ad-hoc text against the shared categories."""
        categories = self._categories.find_all()
        if not categories:
            raise EmptyCategorySetError()
        name = await self._inference.classify(body, categories)
        return match_category(name, categories)

    def list_messages(self, owner_id: str) -> list[Message]:
        self._require_owner(owner_id)
        return self._messages.find_by_owner(owner_id)

    def list_by_category(self, owner_id: str, category_id: str) -> list[Message]:
        """Return the owner's messages classified into ``category_id``."""
        self._require_owner(owner_id)
        if self._categories.find_by_id(category_id) is None:
            raise CategoryNotFoundError(f"Category {category_id} not found")
        return [
            message
            for message in self._messages.find_by_category(category_id)
            if message.owner_id == owner_id
        ]

    # Internal helpers --------------------------------------------------------
    def _require_owner(self, owner_id: str) -> Owner:
        owner = self._owners.find_by_id(owner_id)
        if owner is None:
            raise OwnerNotFoundError(f"Owner {owner_id} not found")
        return owner

    async def _process(
        self, owner: Owner, raw: RawMessage, categories: list[Category]
    ) -> _MessageResult:
        if self._messages.find_by_provider_id(owner.id, raw.provider_id) is not None:
            LOGGER.debug("Message %s already stored, skipping", raw.provider_id)
            return _MessageResult(_Outcome.SKIPPED)

        message = raw.to_message(owner.id)
        try:
            category_name = await self._inference.classify(raw.body, categories)
            message.summary = await self._inference.summarize(raw.body)
        except InferenceError as exc:
            LOGGER.warning("Failed to classify message %s: %s", raw.provider_id, exc)
            return _MessageResult(
                _Outcome.FAILED, failure=SyncFailure(raw.provider_id, str(exc))
            )
        message.category_id = match_category(category_name, categories).id

        try:
            self._messages.create(message)
        except DuplicateMessageError:
            LOGGER.debug("Message %s stored by a concurrent sync", raw.provider_id)
            return _MessageResult(_Outcome.SKIPPED)

        try:
            await self._mailbox.archive(owner, raw.provider_id)
        except MailboxError as exc:
            LOGGER.error("Failed to archive message %s: %s", raw.provider_id, exc)
        else:
            message.archived = True
            self._messages.update(message)

        return _MessageResult(_Outcome.PERSISTED, message=message)


__all__ = ["SyncEngine"]
