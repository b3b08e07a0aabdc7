"""
Tests for the task scheduler (pomouno/scheduling/tasks.py) and TaskManager.
"""

from __future__ import annotations

import threading
import time
from dataclasses import replace
from datetime import datetime

import pytest

from pomouno.domain.dates import DAY_MS, HOUR_MS, to_ms
from pomouno.domain.models import (
    Difficulty,
    Priority,
    RecurrencePattern,
    RecurringConfig,
    SpacedRepetition,
)
from pomouno.scheduling import tasks as scheduler
from pomouno.services.events import TASK_AUTO_COMPLETED, EventBus
from pomouno.services.task_manager import TaskManager
from pomouno.storage.gateway import MemoryGateway
from pomouno.storage.local_store import LocalStore

NOW = to_ms(datetime(2024, 5, 15, 10, 0))          # Wednesday
FRIDAY = to_ms(datetime(2024, 5, 17, 10, 0))


def spaced(difficulty=Difficulty.MEDIUM, now=NOW):
    task = scheduler.create_task("Flashcards", spaced_repetition=True, now=now)
    sr = replace(task.spaced_repetition, difficulty=difficulty)
    return replace(task, spaced_repetition=sr)


def recurring(pattern=RecurrencePattern.DAILY, now=NOW, **options):
    return scheduler.create_task(
        "Standup", recurring=scheduler.recurring_config(pattern, **options), now=now
    )


# ── Creation ──────────────────────────────────────────────────────────────────

class TestCreateTask:
    def test_plain_task_defaults(self):
        task = scheduler.create_task("Write report", now=NOW)
        assert task.id.startswith("task_")
        assert task.created_at == NOW
        assert not task.completed
        assert task.sessions_completed == 0
        assert task.is_plain

    def test_spaced_task_starts_tomorrow_at_medium(self):
        task = scheduler.create_task("Flashcards", spaced_repetition=True, now=NOW)
        sr = task.spaced_repetition
        assert sr.difficulty == Difficulty.MEDIUM
        assert sr.interval == 1
        assert sr.review_count == 0
        assert sr.next_review_date == NOW + DAY_MS

    def test_recurring_task_first_due_one_step_ahead(self):
        task = recurring(RecurrencePattern.SPECIFIC_DAYS, days_of_week=(1, 3, 5))
        assert task.recurring.next_due == FRIDAY
        assert task.recurring.last_completed is None

    def test_recurring_and_spaced_are_exclusive(self):
        with pytest.raises(ValueError):
            scheduler.create_task(
                "Both",
                spaced_repetition=True,
                recurring=scheduler.recurring_config(RecurrencePattern.DAILY),
                now=NOW,
            )

    def test_spaced_interval_must_be_positive(self):
        with pytest.raises(ValueError):
            SpacedRepetition(next_review_date=NOW, interval=0)

    def test_default_categories(self):
        names = [c.name for c in scheduler.default_task_categories(NOW)]
        assert names == ["Work", "Study", "Personal", "Health", "Creative"]


# ── Completion ────────────────────────────────────────────────────────────────

class TestCompleteTask:
    def test_plain_task_completes_once(self):
        task = scheduler.complete_task(scheduler.create_task("Report", now=NOW), NOW)
        assert task.completed
        assert task.completed_at == NOW
        assert task.sessions_completed == 1

    def test_recurring_same_day_is_idempotent(self):
        task = scheduler.complete_task(recurring(), NOW)
        assert not scheduler.can_complete_today(task, NOW + HOUR_MS)
        again = scheduler.complete_task(task, NOW + HOUR_MS)
        assert again is task
        assert again.sessions_completed == 1

    def test_recurring_next_day_allowed(self):
        task = scheduler.complete_task(recurring(), NOW)
        later = scheduler.complete_task(task, NOW + DAY_MS)
        assert later.sessions_completed == 2
        assert later.recurring.last_completed == NOW + DAY_MS

    def test_recurring_never_marked_completed(self):
        task = scheduler.complete_task(recurring(), NOW)
        assert task.completed is False
        assert task.recurring.next_due == NOW + DAY_MS

    def test_mon_wed_fri_completed_wednesday_is_due_friday(self):
        task = recurring(RecurrencePattern.SPECIFIC_DAYS, days_of_week=(1, 3, 5))
        done = scheduler.complete_task(task, NOW)
        assert done.recurring.next_due == FRIDAY

    def test_spaced_medium_advances_two_days(self):
        task = scheduler.complete_task(spaced(), NOW)
        sr = task.spaced_repetition
        assert sr.interval == 2
        assert sr.review_count == 1
        assert sr.last_reviewed == NOW
        assert sr.next_review_date == NOW + 2 * DAY_MS
        assert task.completed is False

    def test_spaced_same_day_is_idempotent(self):
        task = scheduler.complete_task(spaced(), NOW)
        assert scheduler.complete_task(task, NOW + HOUR_MS) is task

    @pytest.mark.parametrize("difficulty", list(Difficulty))
    def test_spaced_intervals_never_shrink(self, difficulty):
        task = spaced(difficulty)
        intervals = []
        for day in range(8):
            task = scheduler.complete_task(task, NOW + day * DAY_MS)
            intervals.append(task.spaced_repetition.interval)
        assert intervals == sorted(intervals)
        assert min(intervals) >= 1

    def test_spaced_interval_sequence(self):
        assert [scheduler.next_spaced_interval(i, Difficulty.MEDIUM) for i in (1, 2, 3, 4)] == [2, 3, 4, 6]
        assert scheduler.next_spaced_interval(1, Difficulty.EASY) == 3
        assert scheduler.next_spaced_interval(1, Difficulty.HARD) == 1


class TestUncompleteTask:
    def test_plain_task_reopens(self):
        task = scheduler.complete_task(scheduler.create_task("Report", now=NOW), NOW)
        undone = scheduler.uncomplete_task(task)
        assert not undone.completed
        assert undone.completed_at is None
        assert undone.sessions_completed == 0

    def test_counter_never_goes_negative(self):
        undone = scheduler.uncomplete_task(scheduler.create_task("Report", now=NOW))
        assert undone.sessions_completed == 0

    def test_recurring_due_date_is_not_rewound(self):
        task = scheduler.complete_task(recurring(), NOW)
        undone = scheduler.uncomplete_task(task)
        assert undone.recurring.last_completed is None
        assert undone.recurring.next_due == NOW + DAY_MS
        assert scheduler.can_complete_today(undone, NOW)

    def test_spaced_review_count_steps_back(self):
        task = scheduler.complete_task(spaced(), NOW)
        undone = scheduler.uncomplete_task(task)
        assert undone.spaced_repetition.review_count == 0
        assert undone.spaced_repetition.last_reviewed is None
        assert undone.spaced_repetition.interval == 2


# ── Focus sessions ────────────────────────────────────────────────────────────

class TestFocusSessions:
    def test_counts_sessions_and_daily_sessions(self):
        task = scheduler.create_task("Report", estimated_sessions=4, now=NOW)
        task, auto = scheduler.register_focus_session(task, NOW)
        task, auto = scheduler.register_focus_session(task, NOW + HOUR_MS)
        assert task.sessions_completed == 2
        assert task.daily_sessions.date == "2024-05-15"
        assert task.daily_sessions.count == 2
        assert auto is False

    def test_daily_sessions_reset_on_new_day(self):
        task = scheduler.create_task("Report", estimated_sessions=4, now=NOW)
        task, _ = scheduler.register_focus_session(task, NOW)
        task, _ = scheduler.register_focus_session(task, NOW + DAY_MS)
        assert task.daily_sessions.count == 1
        assert scheduler.todays_daily_sessions(task, NOW + DAY_MS) == 1
        assert scheduler.todays_daily_sessions(task, NOW + 2 * DAY_MS) == 0

    def test_auto_complete_credits_session_through_complete_task(self):
        task = scheduler.create_task("Report", estimated_sessions=2, now=NOW)
        task, auto = scheduler.register_focus_session(task, NOW)
        assert auto is False
        task, auto = scheduler.register_focus_session(task, NOW)
        assert auto is True
        assert task.completed
        assert task.sessions_completed == 3

    def test_completed_task_keeps_counting_without_auto_complete(self):
        task = scheduler.complete_task(scheduler.create_task("Report", estimated_sessions=1, now=NOW), NOW)
        task, auto = scheduler.register_focus_session(task, NOW)
        assert auto is False
        assert task.sessions_completed == 2

    def test_unestimated_task_never_auto_completes(self):
        task, auto = scheduler.register_focus_session(scheduler.create_task("Report", now=NOW), NOW)
        assert auto is False
        assert not task.completed

    def test_recurring_auto_complete_once_per_day(self):
        task = replace(recurring(), estimated_sessions=1)
        task, auto = scheduler.register_focus_session(task, NOW)
        assert auto is True
        assert task.recurring.last_completed == NOW
        assert task.sessions_completed == 2
        task, auto = scheduler.register_focus_session(task, NOW + HOUR_MS)
        assert auto is False
        assert task.sessions_completed == 3


# ── Due dates ─────────────────────────────────────────────────────────────────

class TestDueToday:
    def test_plain_open_task_is_due(self):
        assert scheduler.is_due_today(scheduler.create_task("Report", now=NOW), NOW)

    def test_recurring_due_tomorrow_is_not_due_today(self):
        task = recurring()
        assert not scheduler.is_due_today(task, NOW)
        assert scheduler.is_due_today(task, NOW + DAY_MS)

    def test_listing_includes_overdue_and_skips_finished(self):
        plain = scheduler.create_task("Plain", now=NOW)
        done = scheduler.complete_task(scheduler.create_task("Done", now=NOW), NOW)
        archived = replace(scheduler.create_task("Old", now=NOW), archived_at=NOW)
        overdue = recurring(now=NOW - 5 * DAY_MS)
        future = recurring()
        due = scheduler.tasks_due_today([plain, done, archived, overdue, future], NOW)
        assert [t.title for t in due] == ["Plain", "Standup"]
        assert due[1] is overdue

    def test_disabled_recurrence_is_treated_as_plain(self):
        task = recurring()
        task = replace(task, recurring=replace(task.recurring, enabled=False))
        assert task.is_plain
        assert scheduler.is_due_today(task, NOW)


class TestProgress:
    def test_progress_percent(self):
        task = replace(scheduler.create_task("Report", estimated_sessions=4, now=NOW), sessions_completed=1)
        assert scheduler.task_progress(task) == 25.0

    def test_progress_capped(self):
        task = replace(scheduler.create_task("Report", estimated_sessions=2, now=NOW), sessions_completed=5)
        assert scheduler.task_progress(task) == 100.0

    def test_unestimated_progress(self):
        task = scheduler.create_task("Report", now=NOW)
        assert scheduler.task_progress(task) == 0.0
        assert scheduler.task_progress(scheduler.complete_task(task, NOW)) == 100.0

    def test_break_completion_only_for_unestimated(self):
        assert scheduler.can_complete_on_break(scheduler.create_task("a", now=NOW))
        assert not scheduler.can_complete_on_break(scheduler.create_task("b", estimated_sessions=1, now=NOW))


# ── TaskManager ───────────────────────────────────────────────────────────────

@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def manager(store, bus):
    return TaskManager(store, bus)


class TestTaskManager:
    def test_create_persists(self, manager, store):
        task = manager.create("Report", estimated_sessions=3, priority=Priority.HIGH, now=NOW)
        assert store.get_task(task.id) == task

    def test_update_patches_editable_fields_only(self, manager):
        task = manager.create("Report", now=NOW)
        updated = manager.update(task.id, {
            "title": "Final report", "priority": "low", "tags": ["q2"], "completed": True,
        })
        assert updated.title == "Final report"
        assert updated.priority == Priority.LOW
        assert updated.tags == ("q2",)
        assert updated.completed is False

    def test_update_unknown_task(self, manager):
        assert manager.update("missing", {"title": "x"}) is None

    def test_delete(self, manager):
        task = manager.create("Report", now=NOW)
        assert manager.delete(task.id) is True
        assert manager.delete(task.id) is False
        assert manager.get(task.id) is None

    def test_complete_reports_change(self, manager):
        task = manager.create("Standup", recurring=scheduler.recurring_config(RecurrencePattern.DAILY), now=NOW)
        _, changed = manager.complete(task.id, NOW)
        assert changed is True
        _, changed = manager.complete(task.id, NOW + HOUR_MS)
        assert changed is False
        assert manager.complete("missing", NOW) is None

    def test_uncomplete_persists(self, manager):
        task = manager.create("Report", now=NOW)
        manager.complete(task.id, NOW)
        assert manager.uncomplete(task.id).completed is False
        assert manager.get(task.id).completed is False

    def test_focus_session_emits_auto_completed(self, manager, bus):
        seen = []
        bus.register_listener(TASK_AUTO_COMPLETED, seen.append)
        task = manager.create("Report", estimated_sessions=1, now=NOW)
        result, auto = manager.register_focus_session(task.id, NOW)
        assert auto is True
        assert [t.id for t in seen] == [task.id]
        assert manager.get(task.id).completed

    def test_focus_session_for_unknown_task(self, manager):
        assert manager.register_focus_session("missing", NOW) is None

    def test_concurrent_writes_from_two_threads_both_land(self):
        class SlowGateway(MemoryGateway):
            def get(self, key):
                value = super().get(key)
                time.sleep(0.02)
                return value

        manager = TaskManager(LocalStore(SlowGateway()))
        credited = manager.create("Report", estimated_sessions=4, now=NOW)
        finished = manager.create("Email", now=NOW)

        threads = [
            threading.Thread(target=manager.register_focus_session, args=(credited.id, NOW)),
            threading.Thread(target=manager.complete, args=(finished.id, NOW)),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

        assert manager.get(credited.id).sessions_completed == 1
        assert manager.get(finished.id).completed is True

    def test_list_hides_archived_on_request(self, manager):
        task = manager.create("Old", now=NOW)
        manager.update(task.id, {"archived_at": NOW})
        manager.create("New", now=NOW)
        assert len(manager.list()) == 2
        assert [t.title for t in manager.list(include_archived=False)] == ["New"]

    def test_categories_merge_custom(self, manager):
        manager.add_category("Reading", "#000000", "📖", now=NOW)
        manager.add_category("work", now=NOW)
        names = [c.name for c in manager.categories(NOW)]
        assert names == ["Work", "Study", "Personal", "Health", "Creative", "Reading"]

    def test_recurring_config_roundtrip_through_store(self, manager):
        task = manager.create(
            "Gym",
            recurring=RecurringConfig(pattern=RecurrencePattern.SPECIFIC_DAYS, next_due=0, days_of_week=(1, 3, 5)),
            now=NOW,
        )
        stored = manager.get(task.id)
        assert stored.recurring.days_of_week == (1, 3, 5)
        assert stored.recurring.next_due == FRIDAY
