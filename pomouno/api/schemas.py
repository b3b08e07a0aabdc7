"""
Pydantic schemas for the FastAPI local API.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..domain.models import (
    BreakType,
    Difficulty,
    FrequencyUnit,
    MonthlyPattern,
    Priority,
    RecurrencePattern,
    ReminderCategory,
    ReminderFrequency,
    WeeklyPattern,
)
from ..timer.state_machine import TimerPhase

# ── Timer ──────────────────────────────────────────────────────────────────

class TimerStateOut(BaseModel):
    phase: str
    activity: str
    time_left: int = Field(..., ge=0, description="seconds")
    total_time: int = Field(..., ge=0, description="seconds")
    current_session: int
    work_sessions_completed: int
    session_id: Optional[str]
    task_id: Optional[str]
    reminders_shown: List[str]
    reminders_completed: List[str]


class TimerTransitionOut(BaseModel):
    changed: bool
    timer: TimerStateOut


class SessionTypeIn(BaseModel):
    phase: TimerPhase


class TimerTaskIn(BaseModel):
    task_id: Optional[str] = None


# ── Tasks ──────────────────────────────────────────────────────────────────

class RecurringIn(BaseModel):
    pattern: RecurrencePattern
    interval: int = Field(default=1, ge=1, le=365)
    days_of_week: List[int] = Field(default_factory=list)
    day_of_month: Optional[int] = Field(default=None, ge=1, le=31)
    weekly_pattern: Optional[WeeklyPattern] = None
    monthly_pattern: Optional[MonthlyPattern] = None
    end_date: Optional[int] = None


class TaskIn(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    estimated_sessions: int = Field(default=0, ge=0, le=100)
    priority: Optional[Priority] = None
    category: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    auto_complete: bool = False
    spaced_repetition: bool = False
    recurring: Optional[RecurringIn] = None


class TaskPatch(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    estimated_sessions: Optional[int] = Field(None, ge=0, le=100)
    priority: Optional[Priority] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None
    auto_complete: Optional[bool] = None
    archived_at: Optional[int] = None


class DailySessionsOut(BaseModel):
    date: str
    count: int


class RecurringOut(BaseModel):
    enabled: bool
    pattern: str
    interval: int
    next_due: int
    days_of_week: List[int] = Field(default_factory=list)
    day_of_month: Optional[int] = None
    end_date: Optional[int] = None
    last_completed: Optional[int] = None
    weekly_pattern: Optional[str] = None
    monthly_pattern: Optional[str] = None


class SpacedRepetitionOut(BaseModel):
    enabled: bool
    difficulty: Difficulty
    next_review_date: int
    review_count: int
    interval: int
    last_reviewed: Optional[int] = None


class TaskOut(BaseModel):
    id: str
    title: str
    description: str = ""
    completed: bool
    sessions_completed: int
    estimated_sessions: int
    created_at: int
    auto_complete: bool = False
    priority: Optional[str] = None
    category: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    completed_at: Optional[int] = None
    archived_at: Optional[int] = None
    daily_sessions: Optional[DailySessionsOut] = None
    recurring: Optional[RecurringOut] = None
    spaced_repetition: Optional[SpacedRepetitionOut] = None
    progress: float = 0.0
    due_today: bool = False


class TaskCompletionOut(BaseModel):
    changed: bool
    task: TaskOut


# ── Break reminders ────────────────────────────────────────────────────────

class CustomFrequencyIn(BaseModel):
    interval: int = Field(..., ge=1, le=1440)
    unit: FrequencyUnit


class ReminderIn(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    break_type: BreakType
    category: ReminderCategory = ReminderCategory.CUSTOM
    custom_category: Optional[str] = None
    enabled: bool = True
    frequency: ReminderFrequency = ReminderFrequency.EVERY_BREAK
    custom_frequency: Optional[CustomFrequencyIn] = None


class ReminderPatch(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    break_type: Optional[BreakType] = None
    category: Optional[ReminderCategory] = None
    custom_category: Optional[str] = None
    enabled: Optional[bool] = None
    frequency: Optional[ReminderFrequency] = None
    custom_frequency: Optional[CustomFrequencyIn] = None


class ReminderOut(BaseModel):
    id: str
    title: str
    description: str
    break_type: str
    category: str
    enabled: bool
    frequency: str
    custom_frequency: Optional[Dict[str, Any]] = None
    custom_category: Optional[str] = None
    created_at: int
    last_shown: Optional[int] = None
    display: Dict[str, str] = Field(default_factory=dict)


class SurfaceIn(BaseModel):
    break_type: BreakType
    session_id: Optional[str] = Field(
        None, description="Break session id; defaults to the running timer's"
    )


class AcknowledgeIn(BaseModel):
    session_id: Optional[str] = None
    break_type: BreakType
    user_interaction: bool = True


class CompletionOut(BaseModel):
    id: str
    reminder_id: str
    completed_at: int
    session_id: str
    break_type: str
    user_interaction: bool


# ── Settings ───────────────────────────────────────────────────────────────

class SettingsPatch(BaseModel):
    work_duration:             Optional[int]   = Field(None, ge=1,   le=180)
    short_break_duration:      Optional[int]   = Field(None, ge=1,   le=60)
    long_break_duration:       Optional[int]   = Field(None, ge=1,   le=120)
    sessions_until_long_break: Optional[int]   = Field(None, ge=1,   le=12)
    auto_start_breaks:         Optional[bool]  = None
    auto_start_work:           Optional[bool]  = None
    daily_session_goal:        Optional[int]   = Field(None, ge=1,   le=48)
    notifications:             Optional[bool]  = None
    sound_volume:              Optional[float] = Field(None, ge=0.0, le=1.0)
    notification_volume:       Optional[float] = Field(None, ge=0.0, le=1.0)
    auto_complete_task:        Optional[bool]  = None
    dark_mode:                 Optional[bool]  = None
    show_task_estimation:      Optional[bool]  = None
    focus_audio:               Optional[str]   = None
    break_audio:               Optional[str]   = None
    notification_audio:        Optional[str]   = None
    use_playlist_for_lofi:     Optional[bool]  = None


# ── Sync ───────────────────────────────────────────────────────────────────

class SyncStatusOut(BaseModel):
    enabled: bool
    pushed: int
    failures: int
    dropped: int
    pending: int
    last_error: Optional[str]
    notice: Optional[str]
