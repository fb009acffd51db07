"""Date helpers for due dates and scheduling."""
from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional, Union

from django.utils import timezone
from django.utils.dateparse import parse_date as _parse_date, parse_datetime as _parse_datetime

from .exceptions import ValidationFailed, ErrorCode

CLOSED_STATUSES = ('COMPLETED', 'ARCHIVED')


def to_aware(value: Union[date, datetime]) -> datetime:
    """Promote a date or naive datetime to an aware datetime in the current timezone."""
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    if timezone.is_naive(value):
        value = timezone.make_aware(value)
    return value


def parse_date(value: str) -> datetime:
    """
    Parse an ISO 8601 date or datetime string into an aware datetime.
    """
    if not value or not isinstance(value, str):
        raise ValidationFailed("Date value is required", code=ErrorCode.MISSING_REQUIRED_FIELD)
    try:
        parsed = _parse_datetime(value) or _parse_date(value)
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationFailed(
            f"Invalid date: {value}",
            code=ErrorCode.INVALID_FORMAT,
            details={"value": value, "expected": "ISO 8601"},
        )
    return to_aware(parsed)


def is_valid_date_string(value: str) -> bool:
    try:
        parse_date(value)
    except ValidationFailed:
        return False
    return True


def days_remaining(due: Optional[datetime], now: Optional[datetime] = None) -> Optional[int]:
    """Whole calendar days until `due`; negative once it has passed."""
    if due is None:
        return None
    now = now or timezone.now()
    return (timezone.localdate(to_aware(due)) - timezone.localdate(now)).days


def is_overdue(due: Optional[datetime], status: str, now: Optional[datetime] = None) -> bool:
    if due is None or status in CLOSED_STATUSES:
        return False
    return to_aware(due) < (now or timezone.now())


def is_in_past(value: Union[date, datetime], now: Optional[datetime] = None) -> bool:
    return to_aware(value) < (now or timezone.now())


def add_business_days(start: date, days: int, holidays: Iterable[date] = ()) -> date:
    """
    Move `days` working days from `start`, skipping weekends and `holidays`.
    """
    skip = set(holidays)
    step = 1 if days >= 0 else -1
    remaining = abs(days)
    current = start
    while remaining:
        current += timedelta(days=step)
        if current.weekday() < 5 and current not in skip:
            remaining -= 1
    return current
