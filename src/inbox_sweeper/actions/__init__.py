"""Bulk actions over stored messages."""

from .bulk import BulkAction, BulkActionReport, BulkActionService

__all__ = ["BulkAction", "BulkActionReport", "BulkActionService"]
