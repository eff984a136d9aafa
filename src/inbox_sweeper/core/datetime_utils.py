"""Datetime helpers shared across the application."""

from __future__ import annotations

from datetime import UTC, datetime

__all__ = [
    "ensure_utc",
    "from_epoch_millis",
    "parse_datetime",
    "serialize_datetime",
]


def ensure_utc(value: datetime | None) -> datetime | None:
    """Return ``value`` as an aware UTC datetime; naive values are assumed UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def serialize_datetime(value: datetime | None) -> str | None:
    """Serialise ``value`` to ISO 8601 in UTC."""
    normalised = ensure_utc(value)
    if normalised is None:
        return None
    return normalised.isoformat()


def parse_datetime(value: str | None, *, assume_utc: bool = True) -> datetime | None:
    """Parse an ISO 8601 string into a ``datetime`` instance."""
    if value is None:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None and assume_utc:
        return parsed.replace(tzinfo=UTC)
    return parsed


def from_epoch_millis(value: str | int | None) -> datetime:
    """Convert a provider ``internalDate`` in epoch milliseconds to UTC."""
    if value in (None, ""):
        return datetime.now(tz=UTC)
    return datetime.fromtimestamp(int(value) // 1000, tz=UTC)
