"""
Records owned by the engine: sessions, tasks, break reminders and their
completion events.

Every record is a frozen dataclass. Mutations go through
``dataclasses.replace`` and return a new value; callers store the result.
``to_dict`` / ``from_dict`` define the JSON shape kept in the persistence
gateway.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .dates import now_ms


class SessionType(str, Enum):
    WORK = "work"
    SHORT_BREAK = "short-break"
    LONG_BREAK = "long-break"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class RecurrencePattern(str, Enum):
    DAILY = "daily"
    WEEKDAYS = "weekdays"
    WEEKLY = "weekly"
    SPECIFIC_DAYS = "specific-days"
    MONTHLY = "monthly"
    CUSTOM = "custom"


class WeeklyPattern(str, Enum):
    EVERY_WEEK = "every-week"
    EVERY_OTHER_WEEK = "every-other-week"
    CUSTOM_WEEKS = "custom-weeks"


class MonthlyPattern(str, Enum):
    SAME_DATE = "same-date"
    SAME_WEEKDAY = "same-weekday"
    LAST_WEEKDAY = "last-weekday"


class BreakType(str, Enum):
    SHORT = "short"
    LONG = "long"
    BOTH = "both"


class ReminderCategory(str, Enum):
    HYDRATION = "hydration"
    MOVEMENT = "movement"
    REST = "rest"
    CUSTOM = "custom"


class ReminderFrequency(str, Enum):
    EVERY_BREAK = "every-break"
    EVERY_30MIN = "every-30min"
    HOURLY = "hourly"
    EVERY_2HOURS = "every-2hours"
    EVERY_3HOURS = "every-3hours"
    CUSTOM = "custom"


class FrequencyUnit(str, Enum):
    MINUTES = "minutes"
    HOURS = "hours"
    BREAKS = "breaks"


def new_id(prefix: str, now: Optional[int] = None) -> str:
    stamp = now if now is not None else now_ms()
    return f"{prefix}_{stamp}_{uuid.uuid4().hex[:9]}"


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items() if v is not None}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def _opt_int(data: Dict[str, Any], key: str) -> Optional[int]:
    value = data.get(key)
    return None if value is None else int(value)


def _opt_enum(enum_cls, value):
    return None if value is None else enum_cls(value)


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Session:
    """A completed timer interval. Append-only; never mutated after creation."""
    id: str
    type: SessionType
    duration: int                       # minutes, as configured at creation
    completed: bool
    timestamp: int                      # epoch ms
    task_id: Optional[str] = None
    break_reminders_completed: Optional[Tuple[str, ...]] = None
    break_reminders_shown: Optional[Tuple[str, ...]] = None

    @property
    def is_work(self) -> bool:
        return self.type == SessionType.WORK

    def to_dict(self) -> Dict[str, Any]:
        return _jsonable(asdict(self))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        completed = data.get("break_reminders_completed")
        shown = data.get("break_reminders_shown")
        return cls(
            id=str(data["id"]),
            type=SessionType(data["type"]),
            duration=int(data["duration"]),
            completed=bool(data.get("completed", True)),
            timestamp=int(data["timestamp"]),
            task_id=data.get("task_id"),
            break_reminders_completed=tuple(completed) if completed else None,
            break_reminders_shown=tuple(shown) if shown else None,
        )


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RecurringConfig:
    pattern: RecurrencePattern
    next_due: int
    enabled: bool = True
    interval: int = 1
    days_of_week: Tuple[int, ...] = ()  # 0 = Sunday .. 6 = Saturday
    day_of_month: Optional[int] = None
    end_date: Optional[int] = None
    last_completed: Optional[int] = None
    weekly_pattern: Optional[WeeklyPattern] = None
    monthly_pattern: Optional[MonthlyPattern] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecurringConfig":
        return cls(
            pattern=RecurrencePattern(data["pattern"]),
            next_due=int(data.get("next_due", 0)),
            enabled=bool(data.get("enabled", True)),
            interval=int(data.get("interval") or 1),
            days_of_week=tuple(int(d) for d in data.get("days_of_week") or ()),
            day_of_month=_opt_int(data, "day_of_month"),
            end_date=_opt_int(data, "end_date"),
            last_completed=_opt_int(data, "last_completed"),
            weekly_pattern=_opt_enum(WeeklyPattern, data.get("weekly_pattern")),
            monthly_pattern=_opt_enum(MonthlyPattern, data.get("monthly_pattern")),
        )


@dataclass(frozen=True)
class SpacedRepetition:
    next_review_date: int
    enabled: bool = True
    difficulty: Difficulty = Difficulty.MEDIUM
    review_count: int = 0
    interval: int = 1                   # days until next review
    last_reviewed: Optional[int] = None

    def __post_init__(self):
        if self.interval < 1:
            raise ValueError("spaced repetition interval must be >= 1 day")
        if self.review_count < 0:
            raise ValueError("review_count must be >= 0")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SpacedRepetition":
        return cls(
            next_review_date=int(data["next_review_date"]),
            enabled=bool(data.get("enabled", True)),
            difficulty=Difficulty(data.get("difficulty", "medium")),
            review_count=int(data.get("review_count", 0)),
            interval=max(1, int(data.get("interval") or 1)),
            last_reviewed=_opt_int(data, "last_reviewed"),
        )


@dataclass(frozen=True)
class DailySessions:
    date: str                           # YYYY-MM-DD
    count: int = 0


@dataclass(frozen=True)
class Task:
    id: str
    title: str
    created_at: int
    description: str = ""
    completed: bool = False
    sessions_completed: int = 0
    estimated_sessions: int = 0
    auto_complete: bool = False
    priority: Optional[Priority] = None
    category: Optional[str] = None
    tags: Tuple[str, ...] = ()
    completed_at: Optional[int] = None
    archived_at: Optional[int] = None
    daily_sessions: Optional[DailySessions] = None
    recurring: Optional[RecurringConfig] = None
    spaced_repetition: Optional[SpacedRepetition] = None

    def __post_init__(self):
        if self.is_recurring and self.is_spaced:
            raise ValueError("a task cannot be both recurring and spaced-repetition")
        if self.sessions_completed < 0 or self.estimated_sessions < 0:
            raise ValueError("session counters must be >= 0")

    @property
    def is_recurring(self) -> bool:
        return self.recurring is not None and self.recurring.enabled

    @property
    def is_spaced(self) -> bool:
        return self.spaced_repetition is not None and self.spaced_repetition.enabled

    @property
    def is_plain(self) -> bool:
        return not self.is_recurring and not self.is_spaced

    @property
    def is_active(self) -> bool:
        return not self.completed and self.archived_at is None

    def to_dict(self) -> Dict[str, Any]:
        return _jsonable(asdict(self))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        daily = data.get("daily_sessions")
        recurring = data.get("recurring")
        spaced = data.get("spaced_repetition")
        return cls(
            id=str(data["id"]),
            title=str(data["title"]),
            created_at=int(data.get("created_at", 0)),
            description=data.get("description") or "",
            completed=bool(data.get("completed", False)),
            sessions_completed=max(0, int(data.get("sessions_completed", 0))),
            estimated_sessions=max(0, int(data.get("estimated_sessions", 0))),
            auto_complete=bool(data.get("auto_complete", False)),
            priority=_opt_enum(Priority, data.get("priority")),
            category=data.get("category"),
            tags=tuple(data.get("tags") or ()),
            completed_at=_opt_int(data, "completed_at"),
            archived_at=_opt_int(data, "archived_at"),
            daily_sessions=DailySessions(**daily) if daily else None,
            recurring=RecurringConfig.from_dict(recurring) if recurring else None,
            spaced_repetition=SpacedRepetition.from_dict(spaced) if spaced else None,
        )


# ---------------------------------------------------------------------------
# Break reminders
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CustomFrequency:
    interval: int
    unit: FrequencyUnit


@dataclass(frozen=True)
class BreakReminder:
    id: str
    title: str
    description: str
    break_type: BreakType
    category: ReminderCategory = ReminderCategory.CUSTOM
    enabled: bool = True
    frequency: ReminderFrequency = ReminderFrequency.EVERY_BREAK
    custom_frequency: Optional[CustomFrequency] = None
    custom_category: Optional[str] = None
    created_at: int = 0
    last_shown: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return _jsonable(asdict(self))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BreakReminder":
        custom = data.get("custom_frequency")
        return cls(
            id=str(data["id"]),
            title=str(data["title"]),
            description=data.get("description") or "",
            break_type=BreakType(data["break_type"]),
            category=ReminderCategory(data.get("category", "custom")),
            enabled=bool(data.get("enabled", True)),
            frequency=ReminderFrequency(data.get("frequency", "every-break")),
            custom_frequency=CustomFrequency(
                interval=int(custom["interval"]), unit=FrequencyUnit(custom["unit"])
            ) if custom else None,
            custom_category=data.get("custom_category"),
            created_at=int(data.get("created_at", 0)),
            last_shown=_opt_int(data, "last_shown"),
        )


@dataclass(frozen=True)
class BreakReminderCompletion:
    """User acknowledgement of a reminder during a break. Append-only."""
    id: str
    reminder_id: str
    completed_at: int
    session_id: str
    break_type: BreakType               # short | long
    user_interaction: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return _jsonable(asdict(self))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BreakReminderCompletion":
        return cls(
            id=str(data["id"]),
            reminder_id=str(data["reminder_id"]),
            completed_at=int(data["completed_at"]),
            session_id=str(data.get("session_id", "")),
            break_type=BreakType(data["break_type"]),
            user_interaction=bool(data.get("user_interaction", True)),
        )


@dataclass(frozen=True)
class Category:
    """User-defined grouping for tasks or break reminders."""
    id: str
    name: str
    color: str = "#6B7280"
    icon: Optional[str] = None
    created_at: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return _jsonable(asdict(self))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Category":
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            color=data.get("color") or "#6B7280",
            icon=data.get("icon"),
            created_at=int(data.get("created_at", 0)),
        )
