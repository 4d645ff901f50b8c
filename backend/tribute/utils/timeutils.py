"""
Time helpers. All persisted timestamps are naive UTC.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time as naive UTC, truncated to whole seconds."""
    return datetime.now(timezone.utc).replace(tzinfo=None, microsecond=0)


def to_epoch(value: datetime) -> int:
    """Convert a naive UTC datetime to integer epoch seconds."""
    return int(value.replace(tzinfo=timezone.utc).timestamp())


def from_epoch(value: int) -> datetime:
    """Convert epoch seconds to a naive UTC datetime."""
    return datetime.fromtimestamp(int(value), tz=timezone.utc).replace(tzinfo=None)


def expires_in_days(days: Optional[int], now: Optional[datetime] = None) -> Optional[datetime]:
    """Expiry timestamp for a link lifetime in days; 0 or None means never."""
    if not days or days <= 0:
        return None
    return (now or utcnow()) + timedelta(days=days)


def earliest(*values: Optional[datetime]) -> Optional[datetime]:
    """Earliest non-null timestamp, or None when all are null."""
    present = [v for v in values if v is not None]
    return min(present) if present else None
