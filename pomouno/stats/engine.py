"""
Statistics Engine — read-time rollups over the session log and task list.

Nothing here is cached: every figure is recomputed from the records the
engine was built with, so a rollup can never drift from its inputs.
Calendar windows are local time; a day is ``[00:00, next 00:00)``.
"""

from __future__ import annotations

import calendar
from collections import Counter, defaultdict
from dataclasses import asdict, dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

from ..domain.dates import DAY_MS, date_key, day_bounds, in_day, local_date, now_ms, week_start
from ..domain.models import (
    BreakReminder,
    BreakReminderCompletion,
    Session,
    SessionType,
    Task,
)
from ..scheduling.recurrence import recurring_dates

MAX_STREAK_DAYS = 365
UPCOMING_REVIEW_WINDOW_DAYS = 7


@dataclass(frozen=True)
class DateRange:
    """Inclusive epoch-ms window."""
    start: int
    end: int

    def contains(self, ms: Optional[int]) -> bool:
        return ms is not None and self.start <= ms <= self.end


# ---------------------------------------------------------------------------
# Result shapes
# ---------------------------------------------------------------------------

@dataclass
class DailyStats:
    date: str
    sessions: int = 0
    focus_time: int = 0                 # minutes
    tasks_completed: int = 0
    streak: int = 0
    work_sessions: int = 0
    short_break_sessions: int = 0
    long_break_sessions: int = 0
    break_reminders_shown: int = 0
    break_reminders_completed: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class WeeklyStats:
    week_start: str
    week_end: str
    total_sessions: int
    total_focus_time: int
    total_tasks_completed: int
    average_sessions_per_day: float
    best_day: str
    daily_breakdown: List[DailyStats]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class MonthlyStats:
    year: int
    month: int
    total_sessions: int
    total_focus_time: int
    total_tasks_completed: int
    average_sessions_per_day: float
    best_day: str
    daily_breakdown: List[DailyStats]
    weekly_breakdown: List[WeeklyStats]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class TaskStats:
    total_tasks: int
    completed_tasks: int
    active_tasks: int
    completion_rate: float
    average_sessions_per_task: float
    tasks_by_category: Dict[str, int]
    tasks_by_priority: Dict[str, int]
    daily_completions: List[Dict[str, Any]]
    recurring_tasks_completed: int
    spaced_repetition_tasks_reviewed: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SpacedRepetitionStats:
    total_reviews: int
    streak_days: int
    upcoming_reviews: List[Dict[str, Any]]
    difficulty_distribution: Dict[str, int]
    retention_rate: float
    average_interval: float
    tasks_in_review: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BreakReminderStats:
    total_reminders_shown: int
    total_reminders_completed: int
    completion_rate: float
    reminders_by_category: Dict[str, Dict[str, int]]
    daily_completions: List[Dict[str, Any]]
    average_completions_per_break: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PomodoroStats:
    total_sessions: int
    work_sessions: int
    short_break_sessions: int
    long_break_sessions: int
    total_focus_time: int
    average_session_length: float
    current_streak: int
    longest_streak: int                 # most sessions recorded on a single day
    sessions_today: int
    sessions_this_week: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CalendarEvent:
    id: str
    title: str
    date: str
    type: str                           # task | recurring-task | spaced-repetition
    task_id: str
    priority: Optional[str] = None
    category: Optional[str] = None
    is_completed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class RangeStats:
    start: str
    end: str
    sessions: int
    focus_time: int
    tasks_completed: int
    break_reminders_completed: int
    daily_breakdown: List[DailyStats] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def completion_rate(completed: int, total: int) -> float:
    """Percentage of *completed* over *total*; 0 when there is nothing to complete."""
    if total <= 0:
        return 0.0
    return completed / total * 100


def _shown_count(sessions: Iterable[Session]) -> int:
    return sum(len(s.break_reminders_shown or ()) for s in sessions)


def _task_completed_in(task: Task, start: int, end: int) -> bool:
    """Whether *task* was completed within ``[start, end)``, by its kind's stamp."""
    if task.completed_at is not None and start <= task.completed_at < end:
        return True
    if task.is_recurring:
        stamp = task.recurring.last_completed
        if stamp is not None and start <= stamp < end:
            return True
    if task.is_spaced:
        stamp = task.spaced_repetition.last_reviewed
        if stamp is not None and start <= stamp < end:
            return True
    return False


class StatisticsEngine:
    """Pure aggregation over injected sessions, tasks and reminder data."""

    def __init__(
        self,
        sessions: Sequence[Session],
        tasks: Sequence[Task] = (),
        completions: Sequence[BreakReminderCompletion] = (),
        reminders: Sequence[BreakReminder] = (),
    ):
        self.sessions = list(sessions)
        self.tasks = list(tasks)
        self.completions = list(completions)
        self.reminders = list(reminders)

    completion_rate = staticmethod(completion_rate)

    # ------------------------------------------------------------------
    # Calendar rollups
    # ------------------------------------------------------------------

    def daily_stats(self, day: date) -> DailyStats:
        start, end = day_bounds(day)
        sessions = [s for s in self.sessions if start <= s.timestamp < end]
        work = [s for s in sessions if s.type == SessionType.WORK]

        streak = 0
        for s in sorted(work, key=lambda s: s.timestamp, reverse=True):
            if not s.completed:
                break
            streak += 1

        return DailyStats(
            date=date_key(day),
            sessions=len(sessions),
            focus_time=sum(s.duration for s in work),
            tasks_completed=sum(1 for t in self.tasks if _task_completed_in(t, start, end)),
            streak=streak,
            work_sessions=len(work),
            short_break_sessions=sum(1 for s in sessions if s.type == SessionType.SHORT_BREAK),
            long_break_sessions=sum(1 for s in sessions if s.type == SessionType.LONG_BREAK),
            break_reminders_shown=_shown_count(sessions),
            break_reminders_completed=sum(
                1 for c in self.completions if start <= c.completed_at < end
            ),
        )

    def _rollup(self, days: List[date]):
        daily = [self.daily_stats(d) for d in days]
        best_day, best = date_key(days[0]), 0
        for stats in daily:
            if stats.sessions > best:
                best_day, best = stats.date, stats.sessions
        return daily, best_day

    def weekly_stats(self, day: date) -> WeeklyStats:
        """Sunday-to-Saturday week containing *day*."""
        first = week_start(day)
        days = [first + timedelta(days=i) for i in range(7)]
        daily, best_day = self._rollup(days)
        total = sum(d.sessions for d in daily)
        return WeeklyStats(
            week_start=date_key(days[0]),
            week_end=date_key(days[-1]),
            total_sessions=total,
            total_focus_time=sum(d.focus_time for d in daily),
            total_tasks_completed=sum(d.tasks_completed for d in daily),
            average_sessions_per_day=total / 7,
            best_day=best_day,
            daily_breakdown=daily,
        )

    def monthly_stats(self, year: int, month: int) -> MonthlyStats:
        n_days = calendar.monthrange(year, month)[1]
        days = [date(year, month, i) for i in range(1, n_days + 1)]
        daily, best_day = self._rollup(days)
        total = sum(d.sessions for d in daily)
        weekly = [self.weekly_stats(date(year, month, d)) for d in range(1, n_days + 1, 7)]
        return MonthlyStats(
            year=year,
            month=month,
            total_sessions=total,
            total_focus_time=sum(d.focus_time for d in daily),
            total_tasks_completed=sum(d.tasks_completed for d in daily),
            average_sessions_per_day=total / n_days,
            best_day=best_day,
            daily_breakdown=daily,
            weekly_breakdown=weekly,
        )

    def stats_for_range(self, start: date, end: date) -> RangeStats:
        """Totals and per-day breakdown for the inclusive date span ``start..end``."""
        lo, _ = day_bounds(start)
        _, hi = day_bounds(end)
        sessions = [s for s in self.sessions if lo <= s.timestamp < hi]
        daily = []
        current = start
        while current <= end:
            daily.append(self.daily_stats(current))
            current += timedelta(days=1)
        return RangeStats(
            start=date_key(start),
            end=date_key(end),
            sessions=len(sessions),
            focus_time=sum(s.duration for s in sessions if s.type == SessionType.WORK),
            tasks_completed=sum(1 for t in self.tasks if _task_completed_in(t, lo, hi)),
            break_reminders_completed=sum(1 for c in self.completions if lo <= c.completed_at < hi),
            daily_breakdown=daily,
        )

    # ------------------------------------------------------------------
    # Streaks
    # ------------------------------------------------------------------

    def active_days(self) -> Set[date]:
        return {local_date(s.timestamp) for s in self.sessions}

    def current_streak(self, today: Optional[date] = None) -> int:
        """Consecutive days with sessions, counted back from today (or yesterday)."""
        day = today or local_date(now_ms())
        active = self.active_days()
        if day not in active:
            day -= timedelta(days=1)
        streak = 0
        while day in active and streak < MAX_STREAK_DAYS:
            streak += 1
            day -= timedelta(days=1)
        return streak

    # ------------------------------------------------------------------
    # Goals
    # ------------------------------------------------------------------

    def goal_reached(self, daily_goal: int, day: Optional[date] = None) -> bool:
        return self.daily_stats(day or local_date(now_ms())).sessions >= daily_goal

    def homepage_focus(self, daily_goal: int, now: Optional[int] = None) -> Dict[str, Any]:
        """Home-screen line: ``FOCUS • N sessions today • Goal x / y``."""
        goal = daily_goal if daily_goal and daily_goal > 0 else 4
        today = self.daily_stats(local_date(now if now is not None else now_ms()))
        progress = min(today.sessions, goal)
        goal_label = f"Goal {progress} / {goal}"
        return {
            "current_sessions": today.sessions,
            "focus_label": f"FOCUS • {today.sessions} sessions today • {goal_label}",
            "goal_progress": goal_label,
            "completion_rate": round(progress / goal * 100),
        }

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def _known_days(self) -> List[date]:
        days = self.active_days()
        for t in self.tasks:
            days.add(local_date(t.created_at))
            if t.completed_at is not None:
                days.add(local_date(t.completed_at))
        return sorted(days)

    def task_stats(self, now: Optional[int] = None) -> TaskStats:
        current = now if now is not None else now_ms()
        start, end = day_bounds(local_date(current))

        def done(task: Task) -> bool:
            if task.completed:
                return True
            if task.is_recurring and task.recurring.last_completed is not None:
                return start <= task.recurring.last_completed < end
            if task.is_spaced and task.spaced_repetition.last_reviewed is not None:
                return start <= task.spaced_repetition.last_reviewed < end
            return False

        tasks = self.tasks
        completed = [t for t in tasks if done(t)]
        by_category = Counter(t.category or "Uncategorized" for t in tasks)
        by_priority = Counter(t.priority.value if t.priority else "None" for t in tasks)

        daily = []
        for day in self._known_days():
            daily.append({
                "date": date_key(day),
                "completed": sum(
                    1 for t in tasks if t.completed_at is not None and in_day(t.completed_at, day)
                ),
                "created": sum(1 for t in tasks if in_day(t.created_at, day)),
            })

        return TaskStats(
            total_tasks=len(tasks),
            completed_tasks=len(completed),
            active_tasks=sum(1 for t in tasks if t.is_active),
            completion_rate=completion_rate(len(completed), len(tasks)),
            average_sessions_per_task=(
                sum(t.sessions_completed for t in tasks) / len(tasks) if tasks else 0.0
            ),
            tasks_by_category=dict(by_category),
            tasks_by_priority=dict(by_priority),
            daily_completions=daily,
            recurring_tasks_completed=sum(
                1 for t in tasks if t.is_recurring and t.recurring.last_completed is not None
            ),
            spaced_repetition_tasks_reviewed=sum(
                1 for t in tasks if t.is_spaced and t.spaced_repetition.last_reviewed is not None
            ),
        )

    def spaced_repetition_stats(self, now: Optional[int] = None) -> SpacedRepetitionStats:
        current = now if now is not None else now_ms()
        spaced = [t for t in self.tasks if t.is_spaced]

        reviewed_days = {
            local_date(t.spaced_repetition.last_reviewed)
            for t in spaced if t.spaced_repetition.last_reviewed is not None
        }
        streak, day = 0, local_date(current)
        while day in reviewed_days and streak < MAX_STREAK_DAYS:
            streak += 1
            day -= timedelta(days=1)

        horizon = current + UPCOMING_REVIEW_WINDOW_DAYS * DAY_MS
        upcoming = sorted(
            (t for t in spaced if t.spaced_repetition.next_review_date <= horizon),
            key=lambda t: t.spaced_repetition.next_review_date,
        )

        n = len(spaced)
        return SpacedRepetitionStats(
            total_reviews=sum(t.spaced_repetition.review_count for t in spaced),
            streak_days=streak,
            upcoming_reviews=[
                {
                    "id": t.id,
                    "title": t.title,
                    "next_review_date": t.spaced_repetition.next_review_date,
                    "difficulty": t.spaced_repetition.difficulty.value,
                    "interval": t.spaced_repetition.interval,
                    "review_count": t.spaced_repetition.review_count,
                }
                for t in upcoming
            ],
            difficulty_distribution=dict(Counter(t.spaced_repetition.difficulty.value for t in spaced)),
            # share of tasks reviewed more than once
            retention_rate=completion_rate(
                sum(1 for t in spaced if t.spaced_repetition.review_count > 1), n
            ),
            average_interval=sum(t.spaced_repetition.interval for t in spaced) / n if n else 0.0,
            tasks_in_review=n,
        )

    # ------------------------------------------------------------------
    # Break reminders
    # ------------------------------------------------------------------

    def break_reminder_stats(self, date_range: Optional[DateRange] = None) -> BreakReminderStats:
        if date_range is None:
            completions, sessions = self.completions, self.sessions
        else:
            completions = [c for c in self.completions if date_range.contains(c.completed_at)]
            sessions = [s for s in self.sessions if date_range.contains(s.timestamp)]

        by_id = {r.id: r for r in self.reminders}
        by_category: Dict[str, Dict[str, int]] = defaultdict(lambda: {"shown": 0, "completed": 0})

        def category_of(reminder_id: str) -> Optional[str]:
            reminder = by_id.get(reminder_id)
            if reminder is None:
                return None
            return reminder.custom_category or reminder.category.value

        for s in sessions:
            for rid in s.break_reminders_shown or ():
                cat = category_of(rid)
                if cat is not None:
                    by_category[cat]["shown"] += 1
        for c in completions:
            cat = category_of(c.reminder_id)
            if cat is not None:
                by_category[cat]["completed"] += 1

        daily = []
        for day in sorted({local_date(s.timestamp) for s in sessions}):
            start, end = day_bounds(day)
            shown = _shown_count(s for s in sessions if start <= s.timestamp < end)
            done = sum(1 for c in completions if start <= c.completed_at < end)
            daily.append({
                "date": date_key(day),
                "shown": shown,
                "completed": done,
                "completion_rate": completion_rate(done, shown),
            })

        total_shown = _shown_count(sessions)
        breaks = sum(1 for s in sessions if not s.is_work)
        return BreakReminderStats(
            total_reminders_shown=total_shown,
            total_reminders_completed=len(completions),
            completion_rate=completion_rate(len(completions), total_shown),
            reminders_by_category={k: dict(v) for k, v in by_category.items()},
            daily_completions=daily,
            average_completions_per_break=len(completions) / breaks if breaks else 0.0,
        )

    # ------------------------------------------------------------------
    # Sessions overall
    # ------------------------------------------------------------------

    def pomodoro_stats(self, now: Optional[int] = None) -> PomodoroStats:
        today = local_date(now if now is not None else now_ms())
        work = [s for s in self.sessions if s.type == SessionType.WORK]
        focus = sum(s.duration for s in work)
        per_day = Counter(local_date(s.timestamp) for s in self.sessions)
        return PomodoroStats(
            total_sessions=len(self.sessions),
            work_sessions=len(work),
            short_break_sessions=sum(1 for s in self.sessions if s.type == SessionType.SHORT_BREAK),
            long_break_sessions=sum(1 for s in self.sessions if s.type == SessionType.LONG_BREAK),
            total_focus_time=focus,
            average_session_length=focus / len(work) if work else 0.0,
            current_streak=self.current_streak(today),
            longest_streak=max(per_day.values(), default=0),
            sessions_today=per_day.get(today, 0),
            sessions_this_week=self.weekly_stats(today).total_sessions,
        )

    # ------------------------------------------------------------------
    # Calendar
    # ------------------------------------------------------------------

    def calendar_events(self, start: date, end: date) -> List[CalendarEvent]:
        """Task occurrences between *start* and *end* inclusive, sorted by date."""
        lo, _ = day_bounds(start)
        _, hi = day_bounds(end)
        events: List[CalendarEvent] = []
        for task in self.tasks:
            priority = task.priority.value if task.priority else None
            if task.is_plain:
                if lo <= task.created_at < hi and not task.completed:
                    events.append(CalendarEvent(
                        id=f"task-{task.id}",
                        title=task.title,
                        date=date_key(local_date(task.created_at)),
                        type="task",
                        task_id=task.id,
                        priority=priority,
                        category=task.category,
                    ))
            elif task.is_recurring:
                for day in recurring_dates(task.recurring, start, end, task.created_at):
                    events.append(CalendarEvent(
                        id=f"recurring-{task.id}-{date_key(day)}",
                        title=task.title,
                        date=date_key(day),
                        type="recurring-task",
                        task_id=task.id,
                        priority=priority,
                        category=task.category,
                    ))
            else:
                review = task.spaced_repetition.next_review_date
                if lo <= review < hi:
                    events.append(CalendarEvent(
                        id=f"spaced-{task.id}",
                        title=f"Review: {task.title}",
                        date=date_key(local_date(review)),
                        type="spaced-repetition",
                        task_id=task.id,
                        priority=priority,
                        category=task.category,
                    ))
        events.sort(key=lambda e: e.date)
        return events
