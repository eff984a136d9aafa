"""Tests for parsing model-suggested unsubscribe directives."""

from __future__ import annotations

import pytest

from inbox_sweeper.unsubscribe import DirectiveError, DirectiveKind, parse_directive


def test_click_directive() -> None:
    directive = parse_directive("CLICK: #unsubscribe-btn")
    assert directive.kind is DirectiveKind.CLICK
    assert directive.selector == "#unsubscribe-btn"


def test_form_directive_with_fences_and_quotes() -> None:
    directive = parse_directive("`form:'button.confirm'`")
    assert directive.kind is DirectiveKind.FORM
    assert directive.selector == "button.confirm"


def test_selector_keeps_inner_colons() -> None:
    directive = parse_directive("CLICK:a:nth-of-type(2)")
    assert directive.selector == "a:nth-of-type(2)"


def test_confirmed_directive() -> None:
    directive = parse_directive("  confirmed\n")
    assert directive.kind is DirectiveKind.CONFIRMED
    assert directive.selector is None


@pytest.mark.parametrize("raw", ["", "CLICK:", "NAVIGATE:/away", "Sure! Click the button."])
def test_anything_else_is_rejected(raw: str) -> None:
    with pytest.raises(DirectiveError):
        parse_directive(raw)
