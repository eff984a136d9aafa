"""Tests for Gmail payload decoding into canonical HTML bodies."""

from __future__ import annotations

import base64
from datetime import datetime, timezone

from inbox_sweeper.ingestion import extract_body, parse_gmail_message, text_to_html


def _encode(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


def _part(mime_type: str, text: str) -> dict:
    return {"mimeType": mime_type, "body": {"data": _encode(text)}}


def test_html_part_wins_over_earlier_plain_part() -> None:
    payload = {
        "mimeType": "multipart/mixed",
        "parts": [
            _part("text/plain", "plain first"),
            {
                "mimeType": "multipart/alternative",
                "parts": [_part("text/html", "<b>nested html</b>")],
            },
        ],
    }

    body = extract_body(payload)

    assert body.html == "<b>nested html</b>"
    assert body.degraded is False


def test_plain_part_is_converted_to_paragraphs() -> None:
    payload = {"mimeType": "multipart/alternative", "parts": [_part("text/plain", "Hi\nthere")]}

    body = extract_body(payload)

    assert body.html == "<p>Hi<br>there</p>"
    assert body.degraded is False


def test_single_part_payload_uses_top_level_body() -> None:
    body = extract_body(_part("text/html", "<p>only</p>"))
    assert body.html == "<p>only</p>"


def test_undecodable_html_falls_back_to_plain_and_marks_degraded() -> None:
    payload = {
        "mimeType": "multipart/alternative",
        "parts": [
            {"mimeType": "text/html", "body": {"data": "!!!not base64!!!"}},
            _part("text/plain", "fallback"),
        ],
    }

    body = extract_body(payload)

    assert body.html == "<p>fallback</p>"
    assert body.degraded is True


def test_unknown_part_is_used_best_effort() -> None:
    payload = {"mimeType": "multipart/mixed", "parts": [_part("text/calendar", "BEGIN")]}

    body = extract_body(payload)

    assert body.html == "BEGIN"
    assert body.degraded is True


def test_empty_payload_returns_empty_degraded_body() -> None:
    body = extract_body({"mimeType": "multipart/mixed", "parts": []})
    assert body.html == ""
    assert body.degraded is True


def test_text_to_html_preserves_blank_line_spacing() -> None:
    text = "\nLine one\nLine two\n\n\nNext & last\n\n"

    assert text_to_html(text) == (
        "<p>Line one<br>Line two</p><p>&nbsp;</p><p>&nbsp;</p><p>Next &amp; last</p>"
    )


def test_text_to_html_empty_input() -> None:
    assert text_to_html("") == ""


def test_parse_gmail_message_reads_headers_and_internal_date() -> None:
    resource = {
        "id": "abc123",
        "snippet": "snippet text",
        "internalDate": "1700000000000",
        "payload": {
            "mimeType": "text/plain",
            "headers": [
                {"name": "From", "value": "News <news@example.com>"},
                {"name": "subject", "value": "Weekly digest"},
            ],
            "body": {"data": _encode("Hello")},
        },
    }

    raw = parse_gmail_message(resource)

    assert raw.provider_id == "abc123"
    assert raw.sender == "News <news@example.com>"
    assert raw.subject == "Weekly digest"
    assert raw.body == "<p>Hello</p>"
    assert raw.received_at == datetime.fromtimestamp(1_700_000_000, tz=timezone.utc)
    assert raw.body_degraded is False


def test_parse_gmail_message_falls_back_to_snippet_subject() -> None:
    resource = {
        "id": "x",
        "snippet": "from snippet",
        "internalDate": "0",
        "payload": {"mimeType": "text/html", "headers": [], "body": {"data": _encode("<i>x</i>")}},
    }

    raw = parse_gmail_message(resource)

    assert raw.subject == "from snippet"
