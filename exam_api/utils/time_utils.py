"""Time and identifier utilities."""
import uuid
from datetime import datetime, timezone


def utc_now() -> datetime:
    """Get current UTC time as an aware datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def isoformat(value: datetime | None) -> str | None:
    """Render datetime as an ISO string in UTC."""
    value = ensure_utc(value)
    return value.isoformat() if value else None


def new_id() -> str:
    """Generate an opaque identifier."""
    return uuid.uuid4().hex
