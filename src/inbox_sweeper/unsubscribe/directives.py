"""Parsing of model-suggested unsubscribe actions."""

from __future__ import annotations

import enum
from dataclasses import dataclass


class DirectiveKind(enum.Enum):
    CLICK = "CLICK"
    FORM = "FORM"
    CONFIRMED = "CONFIRMED"


@dataclass(slots=True, frozen=True)
class Directive:
    """An unsubscribe action drawn from a closed set."""

    kind: DirectiveKind
    selector: str | None = None


class DirectiveError(ValueError):
    """Raised when a model answer is not a recognised directive."""


def parse_directive(raw: str) -> Directive:
    """Parse ``CLICK:<selector>``, ``FORM:<selector>`` or ``CONFIRMED``.

    Surrounding whitespace and code fences are ignored. Anything else,
    including a directive with an empty selector, raises
    :class:`DirectiveError`.
    """
    answer = raw.strip().strip("`").strip()
    if answer.upper() == DirectiveKind.CONFIRMED.value:
        return Directive(DirectiveKind.CONFIRMED)
    prefix, separator, selector = answer.partition(":")
    if separator:
        kind = prefix.strip().upper()
        if kind in (DirectiveKind.CLICK.value, DirectiveKind.FORM.value):
            selector = selector.strip().strip("\"'").strip()
            if not selector:
                raise DirectiveError(f"Directive {kind} is missing a selector")
            return Directive(DirectiveKind(kind), selector)
    raise DirectiveError(f"Unrecognised unsubscribe directive: {answer[:100]!r}")


__all__ = ["Directive", "DirectiveError", "DirectiveKind", "parse_directive"]
