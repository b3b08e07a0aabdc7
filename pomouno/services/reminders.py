"""
Reminder Service — stored break reminders and the per-break surfacing step.

``surface`` is the one place a reminder's ``last_shown`` moves. It is keyed
by the break's session id, so asking again for the same break (a second
panel, a page refresh) returns the same reminders without re-stamping them.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import replace
from typing import Any, Dict, List, Mapping, Optional

from ..domain.models import (
    BreakReminder,
    BreakReminderCompletion,
    BreakType,
    Category,
    CustomFrequency,
    FrequencyUnit,
    ReminderCategory,
    ReminderFrequency,
)
from ..scheduling import reminders as policy
from ..storage.local_store import LocalStore

logger = logging.getLogger(__name__)

# Number of recent breaks whose surfaced reminders are remembered.
_SURFACED_MEMORY = 64

EDITABLE_FIELDS = {
    "title", "description", "break_type", "category", "enabled", "frequency",
    "custom_frequency", "custom_category",
}


class ReminderService:

    def __init__(self, store: LocalStore, timer=None):
        self.store = store
        self.timer = timer
        self._surfaced: "OrderedDict[str, List[str]]" = OrderedDict()

    def ensure_defaults(self, now: Optional[int] = None) -> None:
        """Seed the default reminders the first time the store has none at all."""
        if not self.store.has_reminders():
            self.store.save_reminders(policy.default_reminders(now))
            logger.info("Seeded default break reminders")

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def list(self) -> List[BreakReminder]:
        return self.store.reminders()

    def get(self, reminder_id: str) -> Optional[BreakReminder]:
        return self.store.get_reminder(reminder_id)

    def create(self, title: str, description: str, break_type: BreakType,
               now: Optional[int] = None, **options: Any) -> BreakReminder:
        reminder = policy.create_reminder(title, description, break_type, now=now, **_coerce(options))
        return self.store.upsert_reminder(reminder)

    def update(self, reminder_id: str, patch: Mapping[str, Any]) -> Optional[BreakReminder]:
        reminder = self.get(reminder_id)
        if reminder is None:
            return None
        changes = _coerce({k: v for k, v in patch.items() if k in EDITABLE_FIELDS})
        return self.store.upsert_reminder(replace(reminder, **changes))

    def delete(self, reminder_id: str) -> bool:
        return self.store.delete_reminder(reminder_id)

    def categories(self, now: Optional[int] = None) -> List[Category]:
        return policy.merge_categories(
            policy.default_reminder_categories(now), self.store.reminder_categories()
        )

    def display(self, reminder: BreakReminder) -> Dict[str, str]:
        return policy.category_display(reminder, self.store.reminder_categories())

    # ------------------------------------------------------------------
    # Breaks
    # ------------------------------------------------------------------

    def surface(self, break_type: BreakType, session_id: str,
                now: Optional[int] = None) -> List[BreakReminder]:
        """Reminders to show on the break *session_id*; each is stamped shown once."""
        if session_id in self._surfaced:
            wanted = self._surfaced[session_id]
            by_id = {r.id: r for r in self.store.reminders()}
            return [by_id[rid] for rid in wanted if rid in by_id]

        due = policy.reminders_for_break(self.store.reminders(), break_type, now)
        shown = [policy.mark_shown(r, now) for r in due]
        if shown:
            by_id = {r.id: r for r in shown}
            self.store.save_reminders([by_id.get(r.id, r) for r in self.store.reminders()])

        self._surfaced[session_id] = [r.id for r in shown]
        while len(self._surfaced) > _SURFACED_MEMORY:
            self._surfaced.popitem(last=False)

        if self.timer is not None:
            for r in shown:
                self.timer.record_reminder_shown(r.id)
        return shown

    def acknowledge(self, reminder_id: str, session_id: str, break_type: BreakType,
                    user_interaction: bool = True,
                    now: Optional[int] = None) -> Optional[BreakReminderCompletion]:
        if self.get(reminder_id) is None:
            return None
        completion = policy.create_completion(
            reminder_id, session_id, break_type, user_interaction, now
        )
        self.store.add_completion(completion, now)
        if self.timer is not None:
            self.timer.record_reminder_completed(reminder_id)
        return completion


def _coerce(values: Mapping[str, Any]) -> Dict[str, Any]:
    """Turn JSON-ish option values into the enum/dataclass types BreakReminder holds."""
    out = dict(values)
    if out.get("break_type") is not None:
        out["break_type"] = BreakType(out["break_type"])
    if out.get("category") is not None:
        out["category"] = ReminderCategory(out["category"])
    if out.get("frequency") is not None:
        out["frequency"] = ReminderFrequency(out["frequency"])
    custom = out.get("custom_frequency")
    if isinstance(custom, Mapping):
        out["custom_frequency"] = CustomFrequency(
            interval=int(custom["interval"]), unit=FrequencyUnit(custom["unit"])
        )
    return out
