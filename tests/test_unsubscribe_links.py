"""Tests for unsubscribe link discovery."""

from __future__ import annotations

import pytest

from inbox_sweeper.unsubscribe import discover_unsubscribe_links
from inbox_sweeper.unsubscribe.links import is_unsubscribe_text, normalize_candidate


def test_anchor_url_is_found_once() -> None:
    body = '<p><a href="https://news.example.com/unsubscribe?u=1">Unsubscribe</a></p>'

    assert discover_unsubscribe_links(body) == ["https://news.example.com/unsubscribe?u=1"]


def test_bare_urls_precede_text_matched_anchors() -> None:
    body = (
        '<a href="https://shop.example.com/prefs">Manage preferences</a>'
        "<p>Or visit https://shop.example.com/opt-out/123 to stop.</p>"
    )

    assert discover_unsubscribe_links(body) == [
        "https://shop.example.com/opt-out/123",
        "https://shop.example.com/prefs",
    ]


def test_non_web_links_are_rejected() -> None:
    body = (
        '<a href="mailto:unsubscribe@example.com">Unsubscribe</a>'
        '<a href="javascript:unsubscribe()">Opt out</a>'
    )

    assert discover_unsubscribe_links(body) == []


def test_protocol_relative_and_escaped_urls_are_normalized() -> None:
    body = (
        '<a href="//lists.example.com/unsubscribe">x</a>'
        '<a href="https://mail.example.com/unsubscribe?a=1&amp;b=2">y</a>'
    )

    links = discover_unsubscribe_links(body)

    assert "https://lists.example.com/unsubscribe" in links
    assert "https://mail.example.com/unsubscribe?a=1&b=2" in links


def test_empty_body_has_no_links() -> None:
    assert discover_unsubscribe_links("") == []
    assert discover_unsubscribe_links("<p>Nothing to see</p>") == []


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("example.com/unsubscribe", "https://example.com/unsubscribe"),
        ("'http://example.com/u'", "http://example.com/u"),
        ("ftp://example.com/unsubscribe", None),
        ("#unsubscribe", None),
        ("https://", None),
    ],
)
def test_normalize_candidate(raw: str, expected: str | None) -> None:
    assert normalize_candidate(raw) == expected


def test_is_unsubscribe_text() -> None:
    assert is_unsubscribe_text("  Click here to OPT-OUT ")
    assert not is_unsubscribe_text("Read more")
