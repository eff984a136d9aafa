"""Form filling for unsubscribe pages."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urljoin

from bs4.element import Tag

_SKIPPED_INPUT_TYPES = frozenset({"submit", "button", "image", "reset", "file"})
_CHECKABLE_INPUT_TYPES = frozenset({"checkbox", "radio"})

FIELD_VALUE_TABLE: dict[str, str] = {
    "confirm": "on",
    "agreed": "true",
    "optout": "true",
    "unsubscribe": "true",
    "unsub": "true",
    "accept": "false",
    "receive": "false",
    "marketing": "false",
    "newsletter": "false",
}


@dataclass(slots=True, frozen=True)
class FormSubmission:
    """A filled form ready to be sent."""

    method: str
    url: str
    data: tuple[tuple[str, str], ...]


def infer_field_value(name: str, owner_email: str | None = None) -> str:
    """Guess a value for an empty form field from its name."""
    lowered = name.strip().lower()
    if lowered == "email" or (lowered.endswith("email") and owner_email):
        return owner_email or ""
    if lowered in FIELD_VALUE_TABLE:
        return FIELD_VALUE_TABLE[lowered]
    if "unsub" in lowered or "opt" in lowered or "cancel" in lowered:
        return "true"
    return ""


def build_form_data(form: Tag, owner_email: str | None = None) -> list[tuple[str, str]]:
    """Collect the name/value pairs a browser would submit for ``form``."""
    fields: list[tuple[str, str]] = []
    for element in form.find_all(["input", "select", "textarea"]):
        name = element.get("name")
        if not name:
            continue
        name = str(name)
        if element.name == "select":
            fields.append((name, _selected_option(element)))
        elif element.name == "textarea":
            fields.append((name, element.get_text()))
        else:
            value = _input_value(element, name, owner_email)
            if value is not None:
                fields.append((name, value))
    return fields


def prepare_submission(form: Tag, page_url: str, owner_email: str | None = None) -> FormSubmission:
    """Resolve ``form``'s method and action against ``page_url`` and fill it."""
    method = str(form.get("method") or "GET").strip().upper()
    if method not in ("GET", "POST"):
        method = "GET"
    action = str(form.get("action") or "").strip()
    url = urljoin(page_url, action) if action else page_url
    return FormSubmission(method=method, url=url, data=tuple(build_form_data(form, owner_email)))


def _input_value(element: Tag, name: str, owner_email: str | None) -> str | None:
    input_type = str(element.get("type") or "text").lower()
    if input_type in _SKIPPED_INPUT_TYPES:
        return None
    if input_type in _CHECKABLE_INPUT_TYPES:
        lowered = name.lower()
        if element.has_attr("checked") or "confirm" in lowered or "agree" in lowered:
            return str(element.get("value") or "on")
        return None
    if element.has_attr("value"):
        return str(element.get("value"))
    return infer_field_value(name, owner_email)


def _selected_option(select: Tag) -> str:
    options = select.find_all("option")
    chosen = next((option for option in options if option.has_attr("selected")), None)
    if chosen is None and options:
        chosen = options[0]
    if chosen is None:
        return ""
    if chosen.has_attr("value"):
        return str(chosen.get("value"))
    return chosen.get_text(strip=True)


__all__ = [
    "FIELD_VALUE_TABLE",
    "FormSubmission",
    "build_form_data",
    "infer_field_value",
    "prepare_submission",
]
