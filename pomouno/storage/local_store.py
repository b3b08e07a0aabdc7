"""
Local Store — typed collections kept in the persistence gateway.

Each logical collection is one JSON list (or object) under a fixed key.
Reads never raise: a missing or malformed collection is empty, and a single
corrupt record is skipped with a warning so the rest of the list survives.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, TypeVar

from ..domain.dates import date_key, in_day, local_date, now_ms, parse_date
from ..domain.models import (
    BreakReminder,
    BreakReminderCompletion,
    Category,
    Session,
    Task,
)
from ..scheduling.reminders import prune_completions

logger = logging.getLogger(__name__)

T = TypeVar("T")

SESSIONS = "sessions"
TODAY_SESSIONS = "today_sessions"
TASKS = "tasks"
DAILY_STATS = "daily_stats"
BREAK_REMINDERS = "break_reminders"
BREAK_REMINDER_CATEGORIES = "break_reminder_categories"
BREAK_REMINDER_COMPLETIONS = "break_reminder_completions"
TASK_CATEGORIES = "task_categories"
ONBOARDING_SHOWN = "onboarding_shown"
SETTINGS = "settings"

ALL_KEYS = (
    SESSIONS, TODAY_SESSIONS, TASKS, SETTINGS, DAILY_STATS, BREAK_REMINDERS,
    BREAK_REMINDER_CATEGORIES, BREAK_REMINDER_COMPLETIONS, TASK_CATEGORIES,
    ONBOARDING_SHOWN,
)

DAILY_STATS_RETENTION_DAYS = 90


class LocalStore:
    """Typed read/write helpers over a PersistenceGateway."""

    def __init__(self, gateway):
        self.gateway = gateway

    # ------------------------------------------------------------------
    # Generic helpers
    # ------------------------------------------------------------------

    def _load_list(self, key: str, parse: Callable[[Dict[str, Any]], T]) -> List[T]:
        raw = self.gateway.get(key)
        if raw is None:
            return []
        if not isinstance(raw, list):
            logger.warning("Collection %r is not a list, treating as empty", key)
            return []
        items: List[T] = []
        for entry in raw:
            try:
                items.append(parse(entry))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping corrupt record in %r: %s", key, e)
        return items

    def _save_list(self, key: str, items: Iterable[Any]) -> None:
        self.gateway.set(key, [item.to_dict() for item in items])

    # ------------------------------------------------------------------
    # Sessions (append-only)
    # ------------------------------------------------------------------

    def sessions(self) -> List[Session]:
        return self._load_list(SESSIONS, Session.from_dict)

    def add_session(self, session: Session) -> None:
        sessions = self.sessions()
        sessions.append(session)
        self._save_list(SESSIONS, sessions)
        self._add_today_session(session)

    def sessions_between(self, start_ms: int, end_ms: int) -> List[Session]:
        """Sessions with ``start_ms <= timestamp < end_ms``."""
        return [s for s in self.sessions() if start_ms <= s.timestamp < end_ms]

    def sessions_on(self, day: date) -> List[Session]:
        return [s for s in self.sessions() if in_day(s.timestamp, day)]

    def today_sessions(self, now: Optional[int] = None) -> List[Session]:
        """Today's sessions; yesterday's leftovers in the today collection are ignored."""
        today = local_date(now if now is not None else now_ms())
        return [
            s for s in self._load_list(TODAY_SESSIONS, Session.from_dict)
            if in_day(s.timestamp, today)
        ]

    def _add_today_session(self, session: Session) -> None:
        today = self.today_sessions(session.timestamp)
        today.append(session)
        self._save_list(TODAY_SESSIONS, today)

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def tasks(self) -> List[Task]:
        return self._load_list(TASKS, Task.from_dict)

    def save_tasks(self, tasks: Iterable[Task]) -> None:
        self._save_list(TASKS, tasks)

    def get_task(self, task_id: str) -> Optional[Task]:
        return next((t for t in self.tasks() if t.id == task_id), None)

    def upsert_task(self, task: Task) -> Task:
        tasks = self.tasks()
        for i, existing in enumerate(tasks):
            if existing.id == task.id:
                tasks[i] = task
                break
        else:
            tasks.append(task)
        self.save_tasks(tasks)
        return task

    def delete_task(self, task_id: str) -> bool:
        tasks = self.tasks()
        kept = [t for t in tasks if t.id != task_id]
        if len(kept) == len(tasks):
            return False
        self.save_tasks(kept)
        return True

    # ------------------------------------------------------------------
    # Break reminders
    # ------------------------------------------------------------------

    def reminders(self) -> List[BreakReminder]:
        return self._load_list(BREAK_REMINDERS, BreakReminder.from_dict)

    def has_reminders(self) -> bool:
        return self.gateway.get(BREAK_REMINDERS) is not None

    def save_reminders(self, reminders: Iterable[BreakReminder]) -> None:
        self._save_list(BREAK_REMINDERS, reminders)

    def get_reminder(self, reminder_id: str) -> Optional[BreakReminder]:
        return next((r for r in self.reminders() if r.id == reminder_id), None)

    def upsert_reminder(self, reminder: BreakReminder) -> BreakReminder:
        reminders = self.reminders()
        for i, existing in enumerate(reminders):
            if existing.id == reminder.id:
                reminders[i] = reminder
                break
        else:
            reminders.append(reminder)
        self.save_reminders(reminders)
        return reminder

    def delete_reminder(self, reminder_id: str) -> bool:
        reminders = self.reminders()
        kept = [r for r in reminders if r.id != reminder_id]
        if len(kept) == len(reminders):
            return False
        self.save_reminders(kept)
        return True

    def completions(self) -> List[BreakReminderCompletion]:
        return self._load_list(BREAK_REMINDER_COMPLETIONS, BreakReminderCompletion.from_dict)

    def add_completion(
        self, completion: BreakReminderCompletion, now: Optional[int] = None
    ) -> None:
        """Append *completion*, dropping entries older than the retention window."""
        current = now if now is not None else completion.completed_at
        kept = prune_completions(self.completions(), current)
        kept.append(completion)
        self._save_list(BREAK_REMINDER_COMPLETIONS, kept)

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def reminder_categories(self) -> List[Category]:
        return self._load_list(BREAK_REMINDER_CATEGORIES, Category.from_dict)

    def save_reminder_categories(self, categories: Iterable[Category]) -> None:
        self._save_list(BREAK_REMINDER_CATEGORIES, categories)

    def task_categories(self) -> List[Category]:
        return self._load_list(TASK_CATEGORIES, Category.from_dict)

    def save_task_categories(self, categories: Iterable[Category]) -> None:
        self._save_list(TASK_CATEGORIES, categories)

    # ------------------------------------------------------------------
    # Daily stats cache
    # ------------------------------------------------------------------

    def daily_stats_cache(self) -> Dict[str, Dict[str, Any]]:
        raw = self.gateway.get(DAILY_STATS)
        if raw is None:
            return {}
        if not isinstance(raw, dict):
            logger.warning("Daily stats cache is not an object, treating as empty")
            return {}
        return {k: v for k, v in raw.items() if isinstance(v, dict)}

    def cache_daily_stats(self, day: date, stats: Dict[str, Any]) -> None:
        """Store a freshly recomputed rollup for *day*; entries past 90 days are dropped."""
        cache = self.daily_stats_cache()
        cache[date_key(day)] = stats
        cutoff = day - timedelta(days=DAILY_STATS_RETENTION_DAYS)
        kept = {}
        for key, value in cache.items():
            try:
                if parse_date(key) >= cutoff:
                    kept[key] = value
            except ValueError:
                logger.warning("Dropping daily stats entry with bad date %r", key)
        self.gateway.set(DAILY_STATS, kept)

    # ------------------------------------------------------------------
    # Onboarding / export
    # ------------------------------------------------------------------

    def onboarding_shown(self) -> bool:
        return bool(self.gateway.get(ONBOARDING_SHOWN))

    def set_onboarding_shown(self, shown: bool = True) -> None:
        self.gateway.set(ONBOARDING_SHOWN, shown)

    def export_all(self) -> Dict[str, Any]:
        """Raw dump of every collection, as stored."""
        return {key: self.gateway.get(key) for key in ALL_KEYS}

    def clear_all(self) -> None:
        for key in ALL_KEYS:
            self.gateway.delete(key)
