"""
Break Reminder Scheduler — should a reminder surface on this break?

Pure functions over BreakReminder values. Showing a reminder is recorded by
``mark_shown`` returning a new record; persisting it is the caller's job.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Sequence

from ..domain.dates import DAY_MS, HOUR_MS, MINUTE_MS, now_ms
from ..domain.models import (
    BreakReminder,
    BreakReminderCompletion,
    BreakType,
    Category,
    FrequencyUnit,
    ReminderCategory,
    ReminderFrequency,
    new_id,
)

COMPLETION_RETENTION_DAYS = 30

_FIXED_INTERVALS_MS = {
    ReminderFrequency.EVERY_BREAK:  0,
    ReminderFrequency.EVERY_30MIN:  30 * MINUTE_MS,
    ReminderFrequency.HOURLY:       HOUR_MS,
    ReminderFrequency.EVERY_2HOURS: 2 * HOUR_MS,
    ReminderFrequency.EVERY_3HOURS: 3 * HOUR_MS,
}

_UNIT_MS = {
    FrequencyUnit.MINUTES: MINUTE_MS,
    FrequencyUnit.HOURS:   HOUR_MS,
    FrequencyUnit.BREAKS:  0,
}

# (name, icon, color)
DEFAULT_REMINDER_CATEGORIES = (
    ("Hydration",   "💧", "#3B82F6"),
    ("Movement",    "🏃", "#10B981"),
    ("Rest",        "💜", "#8B5CF6"),
    ("Nutrition",   "🍎", "#F59E0B"),
    ("Mindfulness", "🧘", "#EC4899"),
)

FALLBACK_DISPLAY = {"name": "Custom", "icon": "📝", "color": "#6B7280"}


def frequency_interval_ms(reminder: BreakReminder) -> int:
    """Minimum gap between two showings; 0 means every break."""
    if reminder.frequency == ReminderFrequency.CUSTOM:
        custom = reminder.custom_frequency
        if custom is None:
            return 0
        return custom.interval * _UNIT_MS[custom.unit]
    return _FIXED_INTERVALS_MS.get(reminder.frequency, 0)


def applies_to(reminder: BreakReminder, break_type: BreakType) -> bool:
    return reminder.break_type in (BreakType.BOTH, break_type)


def should_show(
    reminder: BreakReminder, break_type: BreakType, now: Optional[int] = None
) -> bool:
    if not reminder.enabled or not applies_to(reminder, break_type):
        return False
    if reminder.frequency == ReminderFrequency.EVERY_BREAK:
        return True
    # No break counter exists; a "breaks" unit behaves like every-break.
    custom = reminder.custom_frequency
    if reminder.frequency == ReminderFrequency.CUSTOM and custom and custom.unit == FrequencyUnit.BREAKS:
        return True

    interval = frequency_interval_ms(reminder)
    if interval == 0 or reminder.last_shown is None:
        return True
    current = now if now is not None else now_ms()
    return current - reminder.last_shown >= interval


def mark_shown(reminder: BreakReminder, now: Optional[int] = None) -> BreakReminder:
    return replace(reminder, last_shown=now if now is not None else now_ms())


def reminders_for_break(
    reminders: Iterable[BreakReminder], break_type: BreakType, now: Optional[int] = None
) -> List[BreakReminder]:
    """Reminders due on a break of *break_type*, in stored order."""
    return [r for r in reminders if should_show(r, break_type, now)]


def create_reminder(
    title: str,
    description: str,
    break_type: BreakType,
    category: ReminderCategory = ReminderCategory.CUSTOM,
    frequency: ReminderFrequency = ReminderFrequency.EVERY_BREAK,
    now: Optional[int] = None,
    **extra,
) -> BreakReminder:
    created = now if now is not None else now_ms()
    return BreakReminder(
        id=new_id("reminder", created),
        title=title,
        description=description,
        break_type=break_type,
        category=category,
        frequency=frequency,
        created_at=created,
        **extra,
    )


def default_reminders(now: Optional[int] = None) -> List[BreakReminder]:
    """The seed set offered to a new user."""
    return [
        create_reminder(
            "Drink Water", "Stay hydrated! Take a sip of water.",
            BreakType.BOTH, ReminderCategory.HYDRATION, ReminderFrequency.EVERY_30MIN, now,
        ),
        create_reminder(
            "Stretch", "Stand up and do some light stretching.",
            BreakType.SHORT, ReminderCategory.MOVEMENT, ReminderFrequency.EVERY_BREAK, now,
        ),
        create_reminder(
            "Deep Breathing", "Take 5 deep breaths to relax.",
            BreakType.BOTH, ReminderCategory.REST, ReminderFrequency.HOURLY, now,
        ),
        create_reminder(
            "Walk Around", "Take a short walk to get your blood flowing.",
            BreakType.LONG, ReminderCategory.MOVEMENT, ReminderFrequency.EVERY_2HOURS, now,
        ),
    ]


# ---------------------------------------------------------------------------
# Completions
# ---------------------------------------------------------------------------

def create_completion(
    reminder_id: str,
    session_id: str,
    break_type: BreakType,
    user_interaction: bool = True,
    now: Optional[int] = None,
) -> BreakReminderCompletion:
    completed_at = now if now is not None else now_ms()
    return BreakReminderCompletion(
        id=new_id("completion", completed_at),
        reminder_id=reminder_id,
        completed_at=completed_at,
        session_id=session_id,
        break_type=break_type,
        user_interaction=user_interaction,
    )


def prune_completions(
    completions: Iterable[BreakReminderCompletion], now: Optional[int] = None
) -> List[BreakReminderCompletion]:
    """Drop completions older than the 30-day retention window."""
    current = now if now is not None else now_ms()
    cutoff = current - COMPLETION_RETENTION_DAYS * DAY_MS
    return [c for c in completions if c.completed_at >= cutoff]


def completion_rate(
    reminder_id: str,
    completions: Sequence[BreakReminderCompletion],
    sessions: Sequence,
    days: int = 7,
    now: Optional[int] = None,
) -> float:
    """Acknowledgements of one reminder per break session over the last *days*, in percent."""
    end = now if now is not None else now_ms()
    start = end - days * DAY_MS
    done = [c for c in completions if c.reminder_id == reminder_id and start <= c.completed_at <= end]
    breaks = [s for s in sessions if start <= s.timestamp <= end and not s.is_work]
    if not breaks:
        return 0.0
    return len(done) / len(breaks) * 100


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

def _category(name: str, icon: Optional[str], color: str, now: Optional[int]) -> Category:
    created = now if now is not None else now_ms()
    return Category(id=new_id("category", created), name=name, color=color, icon=icon, created_at=created)


def default_reminder_categories(now: Optional[int] = None) -> List[Category]:
    return [_category(name, icon, color, now) for name, icon, color in DEFAULT_REMINDER_CATEGORIES]


def merge_categories(defaults: Sequence[Category], custom: Iterable[Category]) -> List[Category]:
    """Defaults first, then custom categories whose name (case-insensitive) is new."""
    merged = list(defaults)
    seen = {c.name.lower() for c in merged}
    for cat in custom:
        if cat.name.lower() not in seen:
            merged.append(cat)
            seen.add(cat.name.lower())
    return merged


def category_display(
    reminder: BreakReminder, custom_categories: Iterable[Category] = ()
) -> Dict[str, str]:
    """Name, icon and color to show for *reminder*'s category."""
    if reminder.category != ReminderCategory.CUSTOM:
        for name, icon, color in DEFAULT_REMINDER_CATEGORIES:
            if name.lower() == reminder.category.value:
                return {"name": name, "icon": icon, "color": color}
    if reminder.custom_category:
        for cat in custom_categories:
            if cat.id == reminder.custom_category:
                return {
                    "name": cat.name,
                    "icon": cat.icon or FALLBACK_DISPLAY["icon"],
                    "color": cat.color,
                }
    return dict(FALLBACK_DISPLAY)
