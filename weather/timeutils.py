from __future__ import annotations

from datetime import date, datetime, timedelta, tzinfo

from django.utils import timezone


def ensure_aware(dt: datetime, tz: tzinfo) -> datetime:
    """Attach or convert timezone information to a datetime."""

    if dt.tzinfo is None or dt.tzinfo.utcoffset(dt) is None:
        return dt.replace(tzinfo=tz)
    return dt.astimezone(tz)


def to_local_date(value: date | datetime) -> date:
    """Calendar date of ``value`` in the current Django timezone."""

    if isinstance(value, datetime):
        zone = timezone.get_current_timezone()
        return ensure_aware(value, zone).date()
    return value


def days_until(day: date, today: date | None = None) -> int:
    """Whole days from ``today`` (local) until ``day``; negative if past."""

    return (day - (today or timezone.localdate())).days


def date_window(end: date, days_back: int) -> tuple[date, date]:
    """The ``days_back`` days ending the day before ``end``."""

    last = end - timedelta(days=1)
    return last - timedelta(days=days_back - 1), last
