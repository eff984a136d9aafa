"""Unsubscribe link discovery and automation."""

from .directives import Directive, DirectiveError, DirectiveKind, parse_directive
from .forms import build_form_data, infer_field_value
from .links import discover_unsubscribe_links
from .service import UnsubscribeReport, UnsubscribeService

__all__ = [
    "Directive",
    "DirectiveError",
    "DirectiveKind",
    "UnsubscribeReport",
    "UnsubscribeService",
    "build_form_data",
    "discover_unsubscribe_links",
    "infer_field_value",
    "parse_directive",
]
