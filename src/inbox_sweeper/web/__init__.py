"""Web application entry point for Inbox Sweeper."""

from .app import create_app, event_stream

__all__ = ["create_app", "event_stream"]
