"""Mail provider transports."""

from .gmail_client import GmailMailboxClient, build_gmail_service

__all__ = ["GmailMailboxClient", "build_gmail_service"]
