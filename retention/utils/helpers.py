from datetime import datetime, timezone
from typing import Optional


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def as_utc(moment: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat those as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def days_between(later: datetime, earlier: Optional[datetime]) -> Optional[int]:
    """Whole days elapsed from `earlier` to `later`, never negative."""
    if earlier is None:
        return None
    return max(0, (as_utc(later) - as_utc(earlier)).days)


def whole_minutes(later: datetime, earlier: datetime) -> int:
    return int((as_utc(later) - as_utc(earlier)).total_seconds() // 60)
