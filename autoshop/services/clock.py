from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_timezone(dt: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on the way back)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def expires_at(now: datetime, ttl_minutes: int) -> datetime:
    return now + timedelta(minutes=ttl_minutes)


def is_expired(expiry: Optional[datetime], now: datetime) -> bool:
    """A session without an expiry never expires; otherwise it dies once `now` passes it."""
    if expiry is None:
        return False
    return ensure_timezone(expiry) < ensure_timezone(now)


def start_of_day(now: datetime) -> datetime:
    now = ensure_timezone(now)
    return now.replace(hour=0, minute=0, second=0, microsecond=0)
