"""Gmail API mailbox client."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from datetime import UTC
from typing import Any

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from ..core.config import GmailSettings
from ..core.errors import MailboxError
from ..core.interfaces import MailboxClient, OwnerRepository
from ..core.models import Owner, RawMessage
from ..ingestion.cursor import CursorFilter
from ..ingestion.parser import parse_gmail_message

LOGGER = logging.getLogger(__name__)

GMAIL_SCOPES = (
    "https://www.googleapis.com/auth/gmail.modify",
    "https://www.googleapis.com/auth/userinfo.email",
)
INBOX_LABEL = "INBOX"
UNREAD_LABEL = "UNREAD"

ServiceFactory = Callable[[Credentials], Any]

# Errors surfaced by googleapiclient and google-auth for provider calls.
_PROVIDER_ERRORS = (HttpError, GoogleAuthError, OSError)


def build_gmail_service(credentials: Credentials) -> Any:
    """Build a Gmail v1 service resource for ``credentials``."""
    return build("gmail", "v1", credentials=credentials, cache_discovery=False)


class GmailMailboxClient(MailboxClient):
    """Mailbox client backed by the Gmail REST API.

    A service resource is built per call from the owner's stored token.
    Blocking API calls run in a worker thread.
    """

    def __init__(
        self,
        settings: GmailSettings,
        owners: OwnerRepository | None = None,
        *,
        service_factory: ServiceFactory | None = None,
    ) -> None:
        self._settings = settings
        self._owners = owners
        self._service_factory = service_factory or build_gmail_service

    async def list_and_fetch(
        self, owner: Owner, max_results: int, after_provider_id: str | None = None
    ) -> list[RawMessage]:
        """List up to ``max_results`` messages and fetch the ones newer than the cursor.

        Gmail lists newest first; the page is put in chronological order before
        the cursor is applied, so the result holds the messages received after
        ``after_provider_id``, oldest first. A message whose ``get`` is rejected
        is logged and skipped.
        """
        service = await self._service(owner)
        try:
            listed = await asyncio.to_thread(self._list_blocking, service, max_results)
        except _PROVIDER_ERRORS as exc:
            raise MailboxError(f"Failed to list messages for {owner.email}: {exc}") from exc

        cursor = CursorFilter(after_provider_id, key=lambda item: str(item["id"]))
        selected = list(cursor.apply(reversed(listed)))
        if after_provider_id and not cursor.found:
            LOGGER.debug("Cursor %s not present in listing page", after_provider_id)

        messages: list[RawMessage] = []
        for item in selected:
            message_id = str(item["id"])
            request = service.users().messages().get(userId="me", id=message_id, format="full")
            try:
                resource = await asyncio.to_thread(request.execute)
            except HttpError as exc:
                LOGGER.warning("Skipping message %s: %s", message_id, exc)
                continue
            except (GoogleAuthError, OSError) as exc:
                raise MailboxError(
                    f"Failed to fetch message {message_id} for {owner.email}: {exc}"
                ) from exc
            messages.append(parse_gmail_message(resource))
        LOGGER.info("Fetched %d messages from Gmail for %s", len(messages), owner.email)
        return messages

    async def mutate_state(
        self,
        owner: Owner,
        provider_id: str,
        add_labels: Sequence[str] = (),
        remove_labels: Sequence[str] = (),
    ) -> None:
        """Apply a label change to one message."""
        service = await self._service(owner)
        body = {"addLabelIds": list(add_labels), "removeLabelIds": list(remove_labels)}
        request = service.users().messages().modify(userId="me", id=provider_id, body=body)
        try:
            await asyncio.to_thread(request.execute)
        except _PROVIDER_ERRORS as exc:
            raise MailboxError(f"Failed to modify message {provider_id}: {exc}") from exc
        LOGGER.debug(
            "Modified labels on %s (+%s -%s)", provider_id, list(add_labels), list(remove_labels)
        )

    async def archive(self, owner: Owner, provider_id: str) -> None:
        """Remove the message from the inbox and mark it read."""
        await self.mutate_state(owner, provider_id, remove_labels=(INBOX_LABEL, UNREAD_LABEL))
        LOGGER.info("Archived message %s", provider_id)

    async def mark_as_read(self, owner: Owner, provider_id: str) -> None:
        """Remove the unread label from a message."""
        await self.mutate_state(owner, provider_id, remove_labels=(UNREAD_LABEL,))
        LOGGER.info("Marked message %s as read", provider_id)

    async def delete(self, owner: Owner, provider_ids: Sequence[str]) -> None:
        """Delete ``provider_ids`` with a single batch request."""
        if not provider_ids:
            return
        service = await self._service(owner)
        request = service.users().messages().batchDelete(
            userId="me", body={"ids": list(provider_ids)}
        )
        try:
            await asyncio.to_thread(request.execute)
        except _PROVIDER_ERRORS as exc:
            raise MailboxError(f"Failed to delete {len(provider_ids)} messages: {exc}") from exc
        LOGGER.info("Deleted %d messages from Gmail", len(provider_ids))

    # Internal helpers --------------------------------------------------------
    async def _service(self, owner: Owner) -> Any:
        if not owner.has_credentials:
            raise MailboxError(f"Owner {owner.email} has no access token")
        credentials = self._credentials(owner)
        if credentials.expired and credentials.refresh_token:
            try:
                await asyncio.to_thread(credentials.refresh, Request())
            except _PROVIDER_ERRORS as exc:
                raise MailboxError(
                    f"Failed to refresh credentials for {owner.email}: {exc}"
                ) from exc
            self._store_refreshed(owner, credentials)
        try:
            return self._service_factory(credentials)
        except _PROVIDER_ERRORS as exc:
            raise MailboxError(f"Failed to create Gmail service: {exc}") from exc

    def _credentials(self, owner: Owner) -> Credentials:
        expiry = None
        if owner.token_expiry is not None:
            # google-auth compares expiry against naive UTC.
            expiry = owner.token_expiry.astimezone(UTC).replace(tzinfo=None)
        return Credentials(
            token=owner.access_token,
            refresh_token=owner.refresh_token,
            token_uri=self._settings.token_uri,
            client_id=self._settings.client_id,
            client_secret=self._settings.client_secret,
            scopes=list(GMAIL_SCOPES),
            expiry=expiry,
        )

    def _store_refreshed(self, owner: Owner, credentials: Credentials) -> None:
        owner.access_token = credentials.token
        if credentials.refresh_token:
            owner.refresh_token = credentials.refresh_token
        if credentials.expiry is not None:
            owner.token_expiry = credentials.expiry.replace(tzinfo=UTC)
        if self._owners is not None:
            self._owners.update(owner)
        LOGGER.info("Refreshed access token for %s", owner.email)

    @staticmethod
    def _list_blocking(service: Any, max_results: int) -> list[dict[str, Any]]:
        response = (
            service.users()
            .messages()
            .list(userId="me", maxResults=max_results)
            .execute()
        )
        return [item for item in response.get("messages", []) or [] if item.get("id")]


__all__ = [
    "GMAIL_SCOPES",
    "GmailMailboxClient",
    "INBOX_LABEL",
    "UNREAD_LABEL",
    "build_gmail_service",
]
