from __future__ import annotations

from datetime import date, timedelta
from typing import Protocol

from .timeline_models import DayCountRule

SATURDAY = 5
"""date.weekday() value of the first weekend day; Sunday is 6."""


class CalendarArithmetic(Protocol):
    """Date operations the scheduler depends on."""

    def add_days(self, day: date, days: int) -> date: ...

    def add_business_days(self, day: date, days: int) -> date: ...

    def days_between(self, later: date, earlier: date) -> int: ...


class GregorianCalendar:
    """CalendarArithmetic over the standard library; Monday–Friday business week, no holidays."""

    def add_days(self, day: date, days: int) -> date:
        return day + timedelta(days=days)

    def add_business_days(self, day: date, days: int) -> date:
        # Only the stepping skips weekends; a zero offset never snaps the base date.
        step = 1 if days > 0 else -1
        remaining = abs(days)
        current = day
        while remaining:
            current += timedelta(days=step)
            if is_business_day(current):
                remaining -= 1
        return current

    def days_between(self, later: date, earlier: date) -> int:
        return (later - earlier).days


DEFAULT_CALENDAR: CalendarArithmetic = GregorianCalendar()


def is_business_day(day: date) -> bool:
    return day.weekday() < SATURDAY


def advance(
    base_date: date,
    offset_days: int,
    rule: DayCountRule,
    calendar: CalendarArithmetic = DEFAULT_CALENDAR,
) -> date:
    """
    Move `base_date` by a signed number of days counted under `rule`.

    Negative offsets move backward. Under BUSINESS_DAYS_MON_FRI only Monday
    to Friday are counted, so any non-zero offset lands on a weekday.
    """

    if rule == DayCountRule.BUSINESS_DAYS_MON_FRI:
        return calendar.add_business_days(base_date, offset_days)
    return calendar.add_days(base_date, offset_days)


def days_between(later: date, earlier: date, calendar: CalendarArithmetic = DEFAULT_CALENDAR) -> int:
    """Signed calendar-day difference `later - earlier`."""
    return calendar.days_between(later, earlier)
