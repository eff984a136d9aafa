"""Utilities for turning Gmail message resources into canonical HTML bodies."""

from __future__ import annotations

import base64
import binascii
import html
import logging
from collections.abc import Callable, Iterator, Mapping
from typing import Any

from ..core.datetime_utils import from_epoch_millis
from ..core.models import DecodedBody, RawMessage

LOGGER = logging.getLogger(__name__)

Part = Mapping[str, Any]


def extract_body(payload: Part) -> DecodedBody:
    """Return the canonical HTML body for a Gmail ``payload``.

    Parts are searched depth first. The first ``text/html`` part wins over any
    ``text/plain`` part anywhere in the tree; plain text is converted with
    :func:`text_to_html`. Parts that fail to decode are skipped and mark the
    result degraded. With nothing decodable the body is empty and degraded.
    """
    degraded = False
    converters: tuple[tuple[str, Callable[[str], str]], ...] = (
        ("text/html", _identity),
        ("text/plain", text_to_html),
    )
    for mime_type, convert in converters:
        for part in _walk(payload):
            if part.get("mimeType") != mime_type:
                continue
            data = _part_data(part)
            if not data:
                continue
            decoded = _decode_data(data)
            if decoded is None:
                degraded = True
                continue
            return DecodedBody(html=convert(decoded), degraded=degraded)

    # Best effort: any remaining part carrying data.
    for part in _walk(payload):
        data = _part_data(part)
        if not data:
            continue
        decoded = _decode_data(data)
        if decoded is not None:
            return DecodedBody(html=decoded, degraded=True)

    return DecodedBody(html="", degraded=True)


def text_to_html(text: str) -> str:
    """Convert plain text into paragraph-wrapped HTML.

    Consecutive non-blank lines form one ``<p>`` joined with ``<br>``. Each
    blank line between two paragraphs becomes a ``<p>&nbsp;</p>`` spacer.
    """
    paragraphs: list[list[str]] = []
    spacers: list[int] = []
    blank_run = 0

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            blank_run += 1
            continue
        if not paragraphs or blank_run:
            if paragraphs:
                spacers.append(blank_run)
            paragraphs.append([])
        paragraphs[-1].append(html.escape(line))
        blank_run = 0

    chunks: list[str] = []
    for index, paragraph in enumerate(paragraphs):
        if index:
            chunks.extend("<p>&nbsp;</p>" for _ in range(spacers[index - 1]))
        chunks.append(_wrap(paragraph))
    return "".join(chunks)


def header_value(headers: list[Mapping[str, str]] | None, name: str) -> str:
    """Return the first header called ``name`` (case-insensitive) or ``""``."""
    wanted = name.lower()
    for header in headers or ():
        if str(header.get("name", "")).lower() == wanted:
            return str(header.get("value", ""))
    return ""


def parse_gmail_message(resource: Mapping[str, Any]) -> RawMessage:
    """Build a :class:`RawMessage` from a ``format=full`` Gmail resource."""
    payload = resource.get("payload") or {}
    headers = payload.get("headers")
    subject = header_value(headers, "Subject") or str(resource.get("snippet", ""))
    body = extract_body(payload)
    if body.degraded:
        LOGGER.warning("Message %s body decoded on a best-effort basis", resource.get("id"))
    return RawMessage(
        provider_id=str(resource["id"]),
        sender=header_value(headers, "From"),
        subject=subject,
        body=body.html,
        received_at=from_epoch_millis(resource.get("internalDate")),
        body_degraded=body.degraded,
    )


def _walk(part: Part) -> Iterator[Part]:
    yield part
    for child in part.get("parts") or ():
        yield from _walk(child)


def _part_data(part: Part) -> str:
    body = part.get("body") or {}
    return str(body.get("data") or "")


def _decode_data(data: str) -> str | None:
    padded = data + "=" * (-len(data) % 4)
    try:
        raw = base64.b64decode(padded.encode("ascii"), altchars=b"-_", validate=True)
    except (binascii.Error, ValueError) as exc:
        LOGGER.debug("Failed to decode message part: %s", exc)
        return None
    return raw.decode("utf-8", errors="replace")


def _wrap(lines: list[str]) -> str:
    return "<p>" + "<br>".join(lines) + "</p>"


def _identity(value: str) -> str:
    return value


__all__ = [
    "extract_body",
    "header_value",
    "parse_gmail_message",
    "text_to_html",
]
