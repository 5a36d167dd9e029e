"""Utility functions for domain models."""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Get the current UTC datetime with timezone awareness."""
    return datetime.now(UTC)


def to_epoch_seconds(value: datetime) -> float:
    """Convert a datetime to the float epoch seconds stored in vector store columns."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.timestamp()


def from_epoch_seconds(value: float) -> datetime:
    """Convert stored epoch seconds back to an aware UTC datetime."""
    return datetime.fromtimestamp(value, tz=UTC)
