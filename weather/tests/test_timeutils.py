from __future__ import annotations

# ruff: noqa: S101
from datetime import UTC, date, datetime
from zoneinfo import ZoneInfo

from django.utils import timezone

from weather.timeutils import (
    date_window,
    days_until,
    ensure_aware,
    to_local_date,
)


def test_ensure_aware_attaches_or_converts() -> None:
    madrid = ZoneInfo("Europe/Madrid")
    naive = datetime(2024, 1, 15, 12, 0)
    aware = datetime(2024, 1, 15, 12, 0, tzinfo=UTC)

    assert ensure_aware(naive, madrid) == datetime(
        2024, 1, 15, 12, 0, tzinfo=madrid
    )
    assert ensure_aware(aware, madrid).hour == 13


def test_to_local_date_uses_current_timezone() -> None:
    late_utc = datetime(2025, 1, 1, 23, 30, tzinfo=UTC)

    with timezone.override(ZoneInfo("Europe/Madrid")):
        assert to_local_date(late_utc) == date(2025, 1, 2)
    with timezone.override(ZoneInfo("UTC")):
        assert to_local_date(late_utc) == date(2025, 1, 1)
    assert to_local_date(date(2025, 6, 1)) == date(2025, 6, 1)


def test_days_until() -> None:
    today = date(2025, 5, 1)

    assert days_until(date(2025, 5, 16), today) == 15
    assert days_until(date(2025, 4, 30), today) == -1
    assert days_until(timezone.localdate()) == 0


def test_date_window_ends_day_before() -> None:
    assert date_window(date(2025, 3, 1), 7) == (
        date(2025, 2, 22),
        date(2025, 2, 28),
    )
    assert date_window(date(2025, 3, 1), 1) == (
        date(2025, 2, 28),
        date(2025, 2, 28),
    )
