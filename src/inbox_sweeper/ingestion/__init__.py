"""Ingestion pipeline components."""

from .cursor import CursorFilter, CursorState
from .parser import extract_body, parse_gmail_message, text_to_html
from .sync_engine import SyncEngine

__all__ = [
    "CursorFilter",
    "CursorState",
    "SyncEngine",
    "extract_body",
    "parse_gmail_message",
    "text_to_html",
]
