"""
Clock and local-calendar helpers.

All records carry epoch-millisecond timestamps; every calendar question
("same day?", "which week?") is answered in local time.
"""

from __future__ import annotations

import time
from datetime import date, datetime, timedelta
from typing import Tuple

SECOND_MS = 1000
MINUTE_MS = 60 * SECOND_MS
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS


def now_ms() -> int:
    return int(time.time() * 1000)


def to_local(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000)


def to_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def local_date(ms: int) -> date:
    return to_local(ms).date()


def date_key(day: date) -> str:
    """YYYY-MM-DD key used for daily rollups and daily session counters."""
    return day.isoformat()


def parse_date(value: str) -> date:
    return date.fromisoformat(value)


def day_bounds(day: date) -> Tuple[int, int]:
    """Return [start, end) of *day* in epoch ms, local time."""
    start = datetime(day.year, day.month, day.day)
    end = start + timedelta(days=1)
    return to_ms(start), to_ms(end)


def in_day(ms: int, day: date) -> bool:
    start, end = day_bounds(day)
    return start <= ms < end


def same_local_day(a_ms: int, b_ms: int) -> bool:
    return local_date(a_ms) == local_date(b_ms)


def week_start(day: date) -> date:
    """Sunday on or before *day*."""
    # date.weekday(): Monday=0 .. Sunday=6
    return day - timedelta(days=(day.weekday() + 1) % 7)


def js_weekday(day: date) -> int:
    """Day of week with Sunday=0 .. Saturday=6 (the numbering stored in days_of_week)."""
    return (day.weekday() + 1) % 7
