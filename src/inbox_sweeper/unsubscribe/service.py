"""Layered unsubscribe automation over arbitrary sender web pages."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from urllib.parse import urljoin

import httpx
import soupsieve
from bs4 import BeautifulSoup
from bs4.element import Tag

from ..core.config import UnsubscribeSettings
from ..core.errors import InferenceError, OwnerNotFoundError, UnsubscribeError
from ..core.interfaces import InferenceService, MessageRepository, OwnerRepository
from ..core.models import Message
from .directives import DirectiveError, DirectiveKind, parse_directive
from .forms import FormSubmission, prepare_submission
from .links import discover_unsubscribe_links

LOGGER = logging.getLogger(__name__)

CONTROL_SELECTORS: tuple[str, ...] = (
    "input[type='submit'][value*='unsub' i]",
    "input[type='submit'][value*='cancel' i]",
    "input[type='submit'][value*='opt' i]",
    "button[value*='unsub' i]",
    "button[value*='cancel' i]",
    "button[value*='opt' i]",
)
_CONTROL_TEXT = re.compile(r"unsub|opt[\s-]?out|cancel", re.IGNORECASE)

_ACCEPT_HEADER = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"


class _AttemptFailed(Exception):
    """One candidate URL could not be used; the next one is tried."""


@dataclass(slots=True)
class UnsubscribeReport:
    """Per-message outcome of an unsubscribe request."""

    succeeded: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    skipped: int = 0


def find_unsubscribe_control(soup: BeautifulSoup) -> Tag | None:
    """Return the first unsubscribe-labelled button, submit input or link."""
    for selector in CONTROL_SELECTORS:
        element = soup.select_one(selector)
        if element is not None:
            return element
    for element in soup.find_all(["button", "a"]):
        if _CONTROL_TEXT.search(element.get_text(" ")):
            return element
    return None


class UnsubscribeService:
    """Discover unsubscribe links in stored messages and act on them.

    Each candidate URL is fetched and handled by the first strategy that
    applies: submit the page's form, activate an unsubscribe control, or
    follow a model-suggested directive. The first candidate that succeeds
    ends the attempt.
    """

    def __init__(
        self,
        *,
        messages: MessageRepository,
        owners: OwnerRepository,
        inference: InferenceService,
        settings: UnsubscribeSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._messages = messages
        self._owners = owners
        self._inference = inference
        self._settings = settings or UnsubscribeSettings()
        self._transport = transport

    async def unsubscribe(
        self, message_ids: Sequence[str], owner_id: str
    ) -> UnsubscribeReport:
        """Unsubscribe from the senders of the owner's ``message_ids``."""
        owner = self._owners.find_by_id(owner_id)
        if owner is None:
            raise OwnerNotFoundError(f"Owner {owner_id} not found")

        report = UnsubscribeReport()
        for message_id in message_ids:
            message = self._messages.find_by_id(message_id)
            if message is None or message.owner_id != owner_id:
                report.skipped += 1
                continue
            try:
                await self.unsubscribe_message(message, owner.email)
            except UnsubscribeError as exc:
                report.failed[message.id] = exc.reason
            else:
                report.succeeded.append(message.id)
        return report

    async def unsubscribe_message(
        self, message: Message, owner_email: str | None = None
    ) -> str:
        """Unsubscribe using ``message``'s links; return the URL that worked."""
        links = discover_unsubscribe_links(message.body)
        if not links:
            LOGGER.warning("No unsubscribe links found in message %s", message.id)
            raise UnsubscribeError(message.id, "no unsubscribe links found")

        attempts: list[tuple[str, str]] = []
        async with self._client() as client:
            for url in links:
                LOGGER.info("Attempting to unsubscribe via %s", url)
                try:
                    await self._attempt(client, url, owner_email)
                except _AttemptFailed as exc:
                    LOGGER.info("Unsubscribe via %s failed: %s", url, exc)
                    attempts.append((url, str(exc)))
                    continue
                LOGGER.info("Unsubscribed message %s via %s", message.id, url)
                return url

        summary = "; ".join(f"{url}: {reason}" for url, reason in attempts)
        raise UnsubscribeError(
            message.id, f"all {len(attempts)} candidate links failed ({summary})", attempts
        )

    # Strategies --------------------------------------------------------------
    async def _attempt(
        self, client: httpx.AsyncClient, url: str, owner_email: str | None
    ) -> None:
        response = await self._request(client, "GET", url)
        page_url = str(response.url)
        soup = BeautifulSoup(response.text, "html.parser")

        form = soup.find("form")
        if isinstance(form, Tag):
            await self._submit(client, prepare_submission(form, page_url, owner_email))
            return

        control = find_unsubscribe_control(soup)
        if control is not None and _is_actionable(control):
            await self._activate(client, control, page_url, owner_email)
            return

        await self._follow_directive(client, response.text, page_url, owner_email)

    async def _follow_directive(
        self,
        client: httpx.AsyncClient,
        page_content: str,
        page_url: str,
        owner_email: str | None,
    ) -> None:
        try:
            raw = await self._inference.suggest_unsubscribe_action(
                page_content[: self._settings.max_page_chars], page_url
            )
            directive = parse_directive(raw)
        except (InferenceError, DirectiveError) as exc:
            raise _AttemptFailed(str(exc)) from exc

        if directive.kind is DirectiveKind.CONFIRMED:
            return

        response = await self._request(client, "GET", page_url)
        soup = BeautifulSoup(response.text, "html.parser")
        try:
            element = soup.select_one(directive.selector or "")
        except soupsieve.SelectorSyntaxError as exc:
            raise _AttemptFailed(f"invalid selector {directive.selector!r}") from exc
        if element is None:
            raise _AttemptFailed(f"element not found with selector {directive.selector!r}")

        if directive.kind is DirectiveKind.FORM:
            form = element if element.name == "form" else element.find_parent("form")
            if form is None:
                raise _AttemptFailed(f"no form around selector {directive.selector!r}")
            await self._submit(client, prepare_submission(form, str(response.url), owner_email))
            return
        await self._activate(client, element, str(response.url), owner_email)

    async def _activate(
        self,
        client: httpx.AsyncClient,
        element: Tag,
        page_url: str,
        owner_email: str | None,
    ) -> None:
        href = element.get("href") if element.name == "a" else None
        if href:
            await self._request(client, "GET", urljoin(page_url, str(href)))
            return
        form = element.find_parent("form")
        if form is not None:
            await self._submit(client, prepare_submission(form, page_url, owner_email))
            return
        raise _AttemptFailed(f"unable to act on <{element.name}> element")

    # HTTP helpers ------------------------------------------------------------
    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._settings.timeout_seconds,
            follow_redirects=True,
            headers={
                "User-Agent": self._settings.user_agent,
                "Accept": _ACCEPT_HEADER,
                "Accept-Language": "en-US,en;q=0.5",
            },
            transport=self._transport,
        )

    async def _submit(self, client: httpx.AsyncClient, submission: FormSubmission) -> None:
        LOGGER.debug("Submitting %s form to %s", submission.method, submission.url)
        if submission.method == "POST":
            await self._request(client, "POST", submission.url, data=_as_form(submission.data))
        else:
            await self._request(client, "GET", submission.url, params=list(submission.data))

    async def _request(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        *,
        data: dict[str, str | list[str]] | None = None,
        params: list[tuple[str, str]] | None = None,
    ) -> httpx.Response:
        try:
            response = await client.request(method, url, data=data, params=params or None)
        except httpx.HTTPError as exc:
            raise _AttemptFailed(f"{method} {url} failed: {exc}") from exc
        if not response.is_success:
            raise _AttemptFailed(f"{method} {url} returned status {response.status_code}")
        return response


def _is_actionable(element: Tag) -> bool:
    """Return ``True`` when ``element`` can be activated without running scripts."""
    if element.name == "a":
        return bool(element.get("href"))
    return element.find_parent("form") is not None


def _as_form(pairs: Sequence[tuple[str, str]]) -> dict[str, str | list[str]]:
    form: dict[str, str | list[str]] = {}
    for name, value in pairs:
        existing = form.get(name)
        if existing is None:
            form[name] = value
        elif isinstance(existing, list):
            existing.append(value)
        else:
            form[name] = [existing, value]
    return form


__all__ = ["UnsubscribeReport", "UnsubscribeService", "find_unsubscribe_control"]
