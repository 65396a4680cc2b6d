"""Horodatage UTC / UTC timestamps."""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Instant courant en UTC / Current instant in UTC."""
    return datetime.now(timezone.utc)
