"""
Task Manager: stored-task operations on top of the pure scheduler.

Every method loads the current record, derives a new value through
``pomouno.scheduling.tasks`` and writes it back, so the store only ever holds
whole replacement records. Writes share one lock: the timer credits focus
sessions from the event loop while the task routes run in the threadpool.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Any, List, Mapping, Optional, Tuple

from ..domain.models import Category, Priority, RecurringConfig, Task
from ..scheduling import tasks as scheduler
from ..scheduling.reminders import merge_categories
from ..storage.local_store import LocalStore
from .events import TASK_AUTO_COMPLETED, EventBus

logger = logging.getLogger(__name__)

# Fields a client may patch directly; scheduling state goes through complete/uncomplete.
EDITABLE_FIELDS = {
    "title", "description", "estimated_sessions", "priority", "category",
    "tags", "auto_complete", "archived_at",
}


class TaskManager:

    def __init__(self, store: LocalStore, bus: Optional[EventBus] = None):
        self.store = store
        self.bus = bus or EventBus()
        self._lock = threading.RLock()

    def list(self, include_archived: bool = True) -> List[Task]:
        tasks = self.store.tasks()
        if include_archived:
            return tasks
        return [t for t in tasks if t.archived_at is None]

    def get(self, task_id: str) -> Optional[Task]:
        return self.store.get_task(task_id)

    def create(
        self,
        title: str,
        recurring: Optional[RecurringConfig] = None,
        spaced_repetition: bool = False,
        now: Optional[int] = None,
        **options: Any,
    ) -> Task:
        task = scheduler.create_task(
            title, recurring=recurring, spaced_repetition=spaced_repetition, now=now, **options
        )
        with self._lock:
            return self.store.upsert_task(task)

    def update(self, task_id: str, patch: Mapping[str, Any]) -> Optional[Task]:
        changes = {k: v for k, v in patch.items() if k in EDITABLE_FIELDS}
        if "priority" in changes and changes["priority"] is not None:
            changes["priority"] = Priority(changes["priority"])
        if "tags" in changes:
            changes["tags"] = tuple(changes["tags"] or ())
        with self._lock:
            task = self.get(task_id)
            if task is None:
                return None
            return self.store.upsert_task(replace(task, **changes))

    def delete(self, task_id: str) -> bool:
        with self._lock:
            return self.store.delete_task(task_id)

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def complete(self, task_id: str, now: Optional[int] = None) -> Optional[Tuple[Task, bool]]:
        """Complete *task_id*; returns (task, changed), or None when it does not exist."""
        with self._lock:
            task = self.get(task_id)
            if task is None:
                return None
            updated = scheduler.complete_task(task, now)
            if updated is task:
                return task, False
            self.store.upsert_task(updated)
        return updated, True

    def uncomplete(self, task_id: str) -> Optional[Task]:
        with self._lock:
            task = self.get(task_id)
            if task is None:
                return None
            return self.store.upsert_task(scheduler.uncomplete_task(task))

    def register_focus_session(
        self, task_id: str, now: Optional[int] = None
    ) -> Optional[Tuple[Task, bool]]:
        with self._lock:
            task = self.get(task_id)
            if task is None:
                logger.warning("Finished work session refers to unknown task %s", task_id)
                return None
            updated, auto_completed = scheduler.register_focus_session(task, now)
            self.store.upsert_task(updated)
        if auto_completed:
            self.bus.emit(TASK_AUTO_COMPLETED, updated)
        return updated, auto_completed

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def due_today(self, now: Optional[int] = None) -> List[Task]:
        return scheduler.tasks_due_today(self.store.tasks(), now)

    def categories(self, now: Optional[int] = None) -> List[Category]:
        return merge_categories(scheduler.default_task_categories(now), self.store.task_categories())

    def add_category(self, name: str, color: str = "#6B7280", icon: Optional[str] = None,
                     now: Optional[int] = None) -> Category:
        category = scheduler.create_category(name, color, icon, now)
        with self._lock:
            categories = self.store.task_categories()
            categories.append(category)
            self.store.save_task_categories(categories)
        return category
