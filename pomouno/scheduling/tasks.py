"""
Task Scheduler — completion and due-date rules for plain, recurring and
spaced-repetition tasks.

Plain tasks complete once and stay completed. Recurring and spaced tasks
never set ``completed``; a completion advances ``last_completed`` /
``last_reviewed`` and the next due date instead, at most once per local
calendar day.
"""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import Iterable, List, Optional, Sequence, Tuple

from ..domain.dates import DAY_MS, date_key, day_bounds, local_date, now_ms, same_local_day
from ..domain.models import (
    Category,
    DailySessions,
    Difficulty,
    Priority,
    RecurrencePattern,
    RecurringConfig,
    SpacedRepetition,
    Task,
    new_id,
)
from .recurrence import next_recurring_date

logger = logging.getLogger(__name__)

INTERVAL_MULTIPLIERS = {
    Difficulty.EASY:   2.5,
    Difficulty.MEDIUM: 1.3,
    Difficulty.HARD:   1.0,
}

# (name, color, icon)
DEFAULT_TASK_CATEGORIES = (
    ("Work",     "#3B82F6", "💼"),
    ("Study",    "#10B981", "📚"),
    ("Personal", "#8B5CF6", "🏠"),
    ("Health",   "#F59E0B", "🏃"),
    ("Creative", "#EC4899", "🎨"),
)


def _now(now: Optional[int]) -> int:
    return now if now is not None else now_ms()


# ---------------------------------------------------------------------------
# Completion
# ---------------------------------------------------------------------------

def can_complete_today(task: Task, now: Optional[int] = None) -> bool:
    """False when a recurring/spaced task was already completed on today's date."""
    current = _now(now)
    if task.is_recurring and task.recurring.last_completed is not None:
        if same_local_day(task.recurring.last_completed, current):
            return False
    if task.is_spaced and task.spaced_repetition.last_reviewed is not None:
        if same_local_day(task.spaced_repetition.last_reviewed, current):
            return False
    return True


def next_spaced_interval(interval: int, difficulty: Difficulty) -> int:
    return max(1, math.ceil(interval * INTERVAL_MULTIPLIERS.get(difficulty, 1.3)))


def complete_task(task: Task, now: Optional[int] = None) -> Task:
    """
    Record one completion of *task* and return the updated record.

    Completing a recurring/spaced task a second time on the same day returns
    it unchanged.
    """
    current = _now(now)
    if not can_complete_today(task, current):
        logger.debug("Task %s already completed today, ignoring", task.id)
        return task

    sessions = task.sessions_completed + 1

    if task.is_spaced:
        sr = task.spaced_repetition
        interval = next_spaced_interval(sr.interval, sr.difficulty)
        return replace(
            task,
            sessions_completed=sessions,
            completed=False,
            spaced_repetition=replace(
                sr,
                review_count=sr.review_count + 1,
                last_reviewed=current,
                interval=interval,
                next_review_date=current + interval * DAY_MS,
            ),
        )

    if task.is_recurring:
        rec = task.recurring
        return replace(
            task,
            sessions_completed=sessions,
            completed=False,
            recurring=replace(
                rec,
                last_completed=current,
                next_due=next_recurring_date(current, rec),
            ),
        )

    return replace(task, sessions_completed=sessions, completed=True, completed_at=current)


def uncomplete_task(task: Task) -> Task:
    """
    Undo a completion. Counters step back and completion stamps are cleared;
    ``next_due`` / ``next_review_date`` keep their advanced values.
    """
    updated = replace(
        task,
        sessions_completed=max(0, task.sessions_completed - 1),
        completed=False,
        completed_at=None,
    )
    if task.is_spaced:
        sr = task.spaced_repetition
        updated = replace(
            updated,
            spaced_repetition=replace(
                sr, last_reviewed=None, review_count=max(0, sr.review_count - 1)
            ),
        )
    if task.is_recurring:
        updated = replace(updated, recurring=replace(task.recurring, last_completed=None))
    return updated


# ---------------------------------------------------------------------------
# Focus sessions
# ---------------------------------------------------------------------------

def todays_daily_sessions(task: Task, now: Optional[int] = None) -> int:
    today = date_key(local_date(_now(now)))
    if task.daily_sessions is None or task.daily_sessions.date != today:
        return 0
    return task.daily_sessions.count


def register_focus_session(task: Task, now: Optional[int] = None) -> Tuple[Task, bool]:
    """
    Credit one finished work session to *task*.

    Bumps ``sessions_completed`` and today's ``daily_sessions``. Once the
    estimate is met the task is completed as well, when today allows it.
    Returns ``(task, auto_completed)``.
    """
    current = _now(now)
    today = date_key(local_date(current))
    updated = replace(
        task,
        sessions_completed=task.sessions_completed + 1,
        daily_sessions=DailySessions(date=today, count=todays_daily_sessions(task, current) + 1),
    )

    reached = updated.estimated_sessions > 0 and updated.sessions_completed >= updated.estimated_sessions
    if not reached or updated.completed or not can_complete_today(updated, current):
        return updated, False

    # complete_task credits the finished session again on top of the focus count.
    completed = complete_task(updated, current)
    logger.info("Task %s reached its estimate and was auto-completed", task.id)
    return completed, True


# ---------------------------------------------------------------------------
# Due dates and listings
# ---------------------------------------------------------------------------

def is_due_today(task: Task, now: Optional[int] = None) -> bool:
    start, end = day_bounds(local_date(_now(now)))
    if task.is_recurring:
        return start <= task.recurring.next_due < end
    if task.is_spaced:
        return start <= task.spaced_repetition.next_review_date < end
    return not task.completed


def active_tasks(tasks: Iterable[Task]) -> List[Task]:
    return [t for t in tasks if t.is_active]


def tasks_due_today(tasks: Iterable[Task], now: Optional[int] = None) -> List[Task]:
    """Active tasks to work on today: every plain one, plus overdue or due recurring/spaced ones."""
    _, end = day_bounds(local_date(_now(now)))
    due = []
    for task in active_tasks(tasks):
        if task.is_recurring:
            if task.recurring.next_due < end:
                due.append(task)
        elif task.is_spaced:
            if task.spaced_repetition.next_review_date < end:
                due.append(task)
        else:
            due.append(task)
    return due


def task_progress(task: Task) -> float:
    if task.estimated_sessions == 0:
        return 100.0 if task.completed else 0.0
    return min(100.0, task.sessions_completed / task.estimated_sessions * 100)


def can_complete_on_break(task: Task) -> bool:
    """Only unestimated tasks may be ticked off outside a work session."""
    return task.estimated_sessions == 0


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def create_task(
    title: str,
    description: str = "",
    estimated_sessions: int = 0,
    priority: Optional[Priority] = None,
    category: Optional[str] = None,
    tags: Sequence[str] = (),
    spaced_repetition: bool = False,
    recurring: Optional[RecurringConfig] = None,
    auto_complete: bool = False,
    now: Optional[int] = None,
) -> Task:
    """
    Build a new task. A spaced task starts at medium difficulty with a
    one-day interval; a recurring task's first due date is one step of its
    pattern after creation.
    """
    created = _now(now)
    spaced = None
    if spaced_repetition:
        spaced = SpacedRepetition(next_review_date=created + DAY_MS)

    rec = None
    if recurring is not None:
        rec = replace(
            recurring,
            enabled=True,
            interval=recurring.interval or 1,
            last_completed=None,
            next_due=next_recurring_date(created, recurring),
        )

    return Task(
        id=new_id("task", created),
        title=title,
        description=description,
        created_at=created,
        estimated_sessions=estimated_sessions,
        auto_complete=auto_complete,
        priority=priority,
        category=category,
        tags=tuple(tags),
        recurring=rec,
        spaced_repetition=spaced,
    )


def recurring_config(
    pattern: RecurrencePattern, interval: int = 1, **options
) -> RecurringConfig:
    """Config stub for ``create_task``; ``next_due`` is filled in there."""
    return RecurringConfig(pattern=pattern, next_due=0, interval=interval, **options)


def create_category(
    name: str, color: str = "#6B7280", icon: Optional[str] = None, now: Optional[int] = None
) -> Category:
    created = _now(now)
    return Category(id=new_id("category", created), name=name, color=color, icon=icon, created_at=created)


def default_task_categories(now: Optional[int] = None) -> List[Category]:
    return [create_category(name, color, icon, now) for name, color, icon in DEFAULT_TASK_CATEGORIES]
