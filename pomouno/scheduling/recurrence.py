"""
Recurrence advance — when is a recurring task due next?

``next_recurring_date`` keeps the local time of day of *from_ms* and moves
only the calendar date. ``recurring_dates`` expands a config into the
concrete dates it covers inside a window, for calendar views.
"""

from __future__ import annotations

import calendar
import math
from datetime import date, datetime, timedelta
from typing import List, Optional

from ..domain.dates import js_weekday, local_date, to_local, to_ms
from ..domain.models import MonthlyPattern, RecurrencePattern, RecurringConfig, WeeklyPattern

MAX_CALENDAR_DATES = 1000


def add_months(day: date, months: int) -> date:
    """Shift *day* by *months*, clamping the day to the target month's length."""
    index = day.month - 1 + months
    year, month = day.year + index // 12, index % 12 + 1
    last = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last))


def week_of_month(day: date) -> int:
    """1-based ordinal of *day*'s weekday within its month (3 for the 3rd Tuesday)."""
    return math.ceil(day.day / 7)


def nth_weekday(year: int, month: int, weekday: int, ordinal: int) -> date:
    """The *ordinal*-th *weekday* (Python numbering) of a month, clamped to the last one."""
    first = date(year, month, 1)
    offset = (weekday - first.weekday()) % 7
    candidate = first + timedelta(days=offset + 7 * (ordinal - 1))
    while candidate.month != month:
        candidate -= timedelta(days=7)
    return candidate


def last_weekday(year: int, month: int, weekday: int) -> date:
    last = date(year, month, calendar.monthrange(year, month)[1])
    return last - timedelta(days=(last.weekday() - weekday) % 7)


def _next_specific_day(day: date, days_of_week) -> date:
    targets = sorted(set(days_of_week))
    if not targets:
        return day + timedelta(days=7)
    current = js_weekday(day)
    later = [d for d in targets if d > current]
    if later:
        return day + timedelta(days=later[0] - current)
    return day + timedelta(days=7 - current + targets[0])


def _next_monthly(day: date, recurring: RecurringConfig) -> date:
    interval = recurring.interval or 1
    pattern = recurring.monthly_pattern or MonthlyPattern.SAME_DATE
    if pattern == MonthlyPattern.SAME_DATE:
        return add_months(day, interval)
    target = add_months(day.replace(day=1), interval)
    if pattern == MonthlyPattern.SAME_WEEKDAY:
        return nth_weekday(target.year, target.month, day.weekday(), week_of_month(day))
    return last_weekday(target.year, target.month, day.weekday())


def next_due_day(day: date, recurring: RecurringConfig) -> date:
    interval = recurring.interval or 1
    pattern = recurring.pattern

    if pattern in (RecurrencePattern.DAILY, RecurrencePattern.CUSTOM):
        return day + timedelta(days=interval)

    if pattern == RecurrencePattern.WEEKDAYS:
        nxt = day + timedelta(days=1)
        while nxt.weekday() >= 5:           # Saturday / Sunday
            nxt += timedelta(days=1)
        return nxt

    if pattern == RecurrencePattern.WEEKLY:
        if recurring.weekly_pattern == WeeklyPattern.EVERY_OTHER_WEEK:
            return day + timedelta(days=14)
        return day + timedelta(days=7 * interval)

    if pattern == RecurrencePattern.SPECIFIC_DAYS:
        return _next_specific_day(day, recurring.days_of_week)

    if pattern == RecurrencePattern.MONTHLY:
        return _next_monthly(day, recurring)

    return day + timedelta(days=interval)


def next_recurring_date(from_ms: int, recurring: RecurringConfig) -> int:
    """Epoch ms of the next due moment after *from_ms* for *recurring*."""
    moment = to_local(from_ms)
    nxt = next_due_day(moment.date(), recurring)
    return to_ms(datetime.combine(nxt, moment.time()))


def _occurs_on(day: date, recurring: RecurringConfig, anchor: date) -> bool:
    pattern = recurring.pattern
    if pattern in (RecurrencePattern.DAILY, RecurrencePattern.CUSTOM):
        return (day - anchor).days % (recurring.interval or 1) == 0
    if pattern == RecurrencePattern.WEEKDAYS:
        return day.weekday() < 5
    if pattern == RecurrencePattern.WEEKLY:
        days = recurring.days_of_week or (js_weekday(anchor),)
        if js_weekday(day) not in days:
            return False
        step = 2 if recurring.weekly_pattern == WeeklyPattern.EVERY_OTHER_WEEK else (recurring.interval or 1)
        return ((day - anchor).days // 7) % step == 0
    if pattern == RecurrencePattern.SPECIFIC_DAYS:
        return js_weekday(day) in recurring.days_of_week
    if pattern == RecurrencePattern.MONTHLY:
        pattern = recurring.monthly_pattern or MonthlyPattern.SAME_DATE
        if pattern == MonthlyPattern.SAME_WEEKDAY:
            return day == nth_weekday(day.year, day.month, anchor.weekday(), week_of_month(anchor))
        if pattern == MonthlyPattern.LAST_WEEKDAY:
            return day == last_weekday(day.year, day.month, anchor.weekday())
        wanted = recurring.day_of_month or anchor.day
        return day.day == min(wanted, calendar.monthrange(day.year, day.month)[1])
    return False


def recurring_dates(
    recurring: RecurringConfig,
    start: date,
    end: date,
    anchor_ms: Optional[int] = None,
) -> List[date]:
    """
    Dates within ``[start, end]`` on which *recurring* falls due.

    *anchor_ms* is the task's creation time: nothing is produced before it,
    and interval/weekday/ordinal patterns are counted from it. The result is
    capped at MAX_CALENDAR_DATES entries.
    """
    if not recurring.enabled:
        return []
    anchor = local_date(anchor_ms) if anchor_ms is not None else start
    current = max(start, anchor)
    last = end
    if recurring.end_date is not None:
        last = min(last, local_date(recurring.end_date))

    dates: List[date] = []
    while current <= last and len(dates) < MAX_CALENDAR_DATES:
        if _occurs_on(current, recurring, anchor):
            dates.append(current)
        current += timedelta(days=1)
    return dates
