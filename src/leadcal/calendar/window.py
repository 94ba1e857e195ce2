"""Time windows used to scope calendar list queries."""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from enum import StrEnum
from zoneinfo import ZoneInfo

_RESOLUTION = timedelta(microseconds=1)

WEEKDAY_NAMES = {
    "monday": calendar.MONDAY,
    "tuesday": calendar.TUESDAY,
    "wednesday": calendar.WEDNESDAY,
    "thursday": calendar.THURSDAY,
    "friday": calendar.FRIDAY,
    "saturday": calendar.SATURDAY,
    "sunday": calendar.SUNDAY,
}


class ViewMode(StrEnum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


def _rfc3339(value: datetime) -> str:
    return value.astimezone(UTC).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class SyncWindow:
    """An inclusive ``[start, end]`` range of aware datetimes."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise ValueError("SyncWindow boundaries must be timezone-aware")
        if self.end < self.start:
            raise ValueError("SyncWindow end must not precede its start")

    @property
    def duration(self) -> timedelta:
        """Wall-clock length of the window, counting the final instant."""
        return self.end - self.start + _RESOLUTION

    @property
    def time_min(self) -> str:
        return _rfc3339(self.start)

    @property
    def time_max(self) -> str:
        return _rfc3339(self.end)


def _start_of_day(day: date, tz: ZoneInfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz)


def _end_of_day(day: date, tz: ZoneInfo) -> datetime:
    return datetime.combine(day, time.max, tzinfo=tz)


def _shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def _month_bounds(year: int, month: int) -> tuple[date, date]:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def _as_local_date(reference: date | datetime, tz: ZoneInfo) -> date:
    if isinstance(reference, datetime):
        if reference.tzinfo is not None:
            return reference.astimezone(tz).date()
        return reference.date()
    return reference


def compute_window(
    mode: ViewMode | str,
    reference: date | datetime,
    *,
    timezone: str,
    week_start: int = calendar.SUNDAY,
) -> SyncWindow:
    """Return the window shown by *mode* around *reference*.

    ``week_start`` uses :mod:`calendar` weekday numbers (Monday is 0).
    """
    tz = ZoneInfo(timezone)
    view = ViewMode(mode)
    day = _as_local_date(reference, tz)

    if view is ViewMode.DAY:
        return SyncWindow(_start_of_day(day, tz), _end_of_day(day, tz))

    if view is ViewMode.WEEK:
        first = day - timedelta(days=(day.weekday() - week_start) % 7)
        last = first + timedelta(days=6)
        return SyncWindow(_start_of_day(first, tz), _end_of_day(last, tz))

    first, last = _month_bounds(day.year, day.month)
    return SyncWindow(_start_of_day(first, tz), _end_of_day(last, tz))


def lead_window(now: datetime, *, timezone: str, months: int = 6) -> SyncWindow:
    """Return the wide window searched for a lead's events.

    Runs from the start of the month ``months`` before *now* to the end of the
    month ``months`` after it.
    """
    if months < 0:
        raise ValueError("months must not be negative")
    tz = ZoneInfo(timezone)
    today = _as_local_date(now, tz)
    start_year, start_month = _shift_month(today.year, today.month, -months)
    end_year, end_month = _shift_month(today.year, today.month, months)
    first, _ = _month_bounds(start_year, start_month)
    _, last = _month_bounds(end_year, end_month)
    return SyncWindow(_start_of_day(first, tz), _end_of_day(last, tz))
