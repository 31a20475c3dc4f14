"""Date and time helpers.

Stored timestamps are UTC. SQLite hands back naive datetimes, so every
comparison goes through ``ensure_aware``.
"""

from datetime import date, datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes; aware values are converted to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def isoformat(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_aware(value).isoformat()
    return value.isoformat()


def calculate_age(date_of_birth: Optional[date], today: Optional[date] = None) -> Optional[int]:
    """Whole years between ``date_of_birth`` and ``today``."""
    if date_of_birth is None:
        return None
    today = today or utcnow().date()
    had_birthday = (today.month, today.day) >= (date_of_birth.month, date_of_birth.day)
    return today.year - date_of_birth.year - (0 if had_birthday else 1)


def is_minor(date_of_birth: Optional[date], today: Optional[date] = None) -> bool:
    age = calculate_age(date_of_birth, today)
    return age is not None and age < 18


def hours_until(moment: datetime, now: Optional[datetime] = None) -> float:
    now = now or utcnow()
    return (ensure_aware(moment) - now).total_seconds() / 3600
