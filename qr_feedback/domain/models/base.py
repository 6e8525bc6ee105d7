"""Clock and id sources shared by the domain models."""

from datetime import datetime, timezone
from uuid import uuid4


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


def as_utc(dt: datetime) -> datetime:
    """Normalize a datetime to aware UTC.

    Naive values (SQLite hands these back) are assumed to already be UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
