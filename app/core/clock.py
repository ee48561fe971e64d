from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall clock returning naive UTC datetimes."""

    def now(self) -> datetime:
        return datetime.utcnow()


class FixedClock:
    """Clock pinned to a given instant; used to make time checks deterministic."""

    def __init__(self, current: datetime):
        self.current = to_utc_naive(current)

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


def to_utc_naive(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a datetime to naive UTC, the representation stored in the database."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
