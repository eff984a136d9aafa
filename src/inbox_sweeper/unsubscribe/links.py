"""Discovery of unsubscribe links in message bodies."""

from __future__ import annotations

import html
import logging
import re
from urllib.parse import urlparse

from bs4 import BeautifulSoup

LOGGER = logging.getLogger(__name__)

_URL_CHARS = r"[^\s\"'<>()]"
_KEYWORDS = (
    rf"(?:unsubscribe|opt{_URL_CHARS}*?out|opt{_URL_CHARS}*?un"
    rf"|cancel{_URL_CHARS}*?subscription|stop{_URL_CHARS}*?emails?)"
)

BARE_URL_PATTERN = re.compile(
    rf"https?://{_URL_CHARS}*?{_KEYWORDS}{_URL_CHARS}*", re.IGNORECASE
)
ATTRIBUTE_URL_PATTERN = re.compile(
    rf"(?:href|src)\s*=\s*[\"']?({_URL_CHARS}*?{_KEYWORDS}{_URL_CHARS}*)",
    re.IGNORECASE,
)

UNSUBSCRIBE_TEXT_KEYWORDS: tuple[str, ...] = (
    "unsubscribe",
    "opt out",
    "opt-out",
    "optout",
    "cancel subscription",
    "stop email",
    "email preferences",
    "manage preferences",
    "remove me",
    "unsub",
    "no thanks",
    "decline",
    "turn off",
    "cancel",
)

_REJECTED_PREFIXES = ("mailto:", "javascript:", "tel:", "data:", "#")


def is_unsubscribe_text(text: str) -> bool:
    """Return ``True`` when visible link text reads like an unsubscribe control."""
    lowered = text.strip().lower()
    return any(keyword in lowered for keyword in UNSUBSCRIBE_TEXT_KEYWORDS)


def normalize_candidate(raw: str) -> str | None:
    """Clean a discovered URL, returning ``None`` when it is not a web URL."""
    candidate = html.unescape(raw.strip().strip("\"'")).strip()
    if not candidate or candidate.lower().startswith(_REJECTED_PREFIXES):
        return None
    if candidate.startswith("//"):
        candidate = "https:" + candidate
    elif "://" not in candidate:
        candidate = "https://" + candidate
    parsed = urlparse(candidate)
    if parsed.scheme.lower() not in ("http", "https"):
        return None
    if not parsed.netloc or not parsed.hostname or any(ch.isspace() for ch in parsed.netloc):
        return None
    return candidate


def discover_unsubscribe_links(body: str) -> list[str]:
    """Return unsubscribe URL candidates found in ``body`` in discovery order.

    Bare URLs are collected first, then ``href``/``src`` attribute values, then
    anchors whose visible text matches an unsubscribe keyword. Candidates are
    normalised and deduplicated.
    """
    if not body:
        return []

    raw_candidates: list[str] = [match.group(0) for match in BARE_URL_PATTERN.finditer(body)]
    raw_candidates.extend(match.group(1) for match in ATTRIBUTE_URL_PATTERN.finditer(body))

    soup = BeautifulSoup(body, "html.parser")
    for anchor in soup.find_all("a", href=True):
        if is_unsubscribe_text(anchor.get_text(" ")):
            raw_candidates.append(str(anchor["href"]))

    links: list[str] = []
    seen: set[str] = set()
    for raw in raw_candidates:
        candidate = normalize_candidate(raw)
        if candidate is None or candidate in seen:
            continue
        seen.add(candidate)
        links.append(candidate)
    LOGGER.debug("Discovered %d unsubscribe link candidates", len(links))
    return links


__all__ = [
    "ATTRIBUTE_URL_PATTERN",
    "BARE_URL_PATTERN",
    "UNSUBSCRIBE_TEXT_KEYWORDS",
    "discover_unsubscribe_links",
    "is_unsubscribe_text",
    "normalize_candidate",
]
