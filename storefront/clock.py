"""UTC time helpers shared by the model and service layers."""

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime | None) -> datetime | None:
    """
    Attach UTC to a naive datetime.

    SQLite drops tzinfo on DateTime(timezone=True) columns, so values read
    back from the store are naive even though they were written as UTC.
    """
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)
