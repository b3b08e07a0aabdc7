"""
Timer Service — owns the state machine, its one-second ticker and the
completion side effects.

The ticker is an asyncio task that exists only while the machine is
running: ``start`` creates it, every transition away from running cancels
it. Transitions and ticks share one lock, so a completion (persist the
session, credit the task, fan out events, pick the next phase) is never
interleaved with another tick.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Optional

from ..domain.dates import local_date
from ..settings import Settings, SettingsStore
from ..stats.engine import StatisticsEngine
from ..storage.local_store import LocalStore
from ..timer.state_machine import SessionCompletion, TimerPhase, TimerSnapshot, TimerStateMachine
from .events import (
    DAILY_GOAL_REACHED,
    SESSION_COMPLETED,
    SETTINGS_CHANGED,
    TASK_SESSION_COMPLETED,
    EventBus,
)
from .task_manager import TaskManager

logger = logging.getLogger(__name__)


class TimerService:

    def __init__(
        self,
        store: LocalStore,
        settings_store: SettingsStore,
        tasks: TaskManager,
        bus: Optional[EventBus] = None,
        tick_interval_ms: int = 1000,
    ):
        self.store = store
        self.settings_store = settings_store
        self.tasks = tasks
        self.bus = bus or EventBus()
        self.tick_interval_ms = tick_interval_ms
        self.machine = TimerStateMachine(settings_store.get())
        self._lock = threading.Lock()
        self._ticker: Optional[asyncio.Task] = None
        settings_store.register_listener(self._on_settings_changed)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start(self, now: Optional[int] = None) -> bool:
        with self._lock:
            changed = self.machine.start(now)
        if changed:
            self._spawn_ticker()
        return changed

    def pause(self) -> bool:
        with self._lock:
            self._cancel_ticker()
            return self.machine.pause()

    def stop(self) -> bool:
        with self._lock:
            self._cancel_ticker()
            return self.machine.stop()

    def reset(self) -> bool:
        with self._lock:
            self._cancel_ticker()
            return self.machine.reset()

    def change_session_type(self, phase: TimerPhase) -> bool:
        with self._lock:
            self._cancel_ticker()
            return self.machine.change_session_type(phase)

    def associate_task(self, task_id: Optional[str]) -> None:
        with self._lock:
            self.machine.associate_task(task_id)

    def record_reminder_shown(self, reminder_id: str) -> None:
        with self._lock:
            self.machine.record_reminder_shown(reminder_id)

    def record_reminder_completed(self, reminder_id: str) -> None:
        with self._lock:
            self.machine.record_reminder_completed(reminder_id)

    def snapshot(self) -> TimerSnapshot:
        with self._lock:
            return self.machine.snapshot()

    # ------------------------------------------------------------------
    # Ticking
    # ------------------------------------------------------------------

    def tick(self, seconds: int = 1, now: Optional[int] = None) -> Optional[SessionCompletion]:
        """Advance the countdown; a finished session is handled before the lock is released."""
        with self._lock:
            completion = self.machine.tick(seconds, now)
            if completion is not None:
                self._handle_completion(completion)
            return completion

    def _spawn_ticker(self) -> None:
        if self._ticker is not None and not self._ticker.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; timer must be ticked manually")
            return
        self._ticker = loop.create_task(self._run())

    def _cancel_ticker(self) -> None:
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.tick_interval_ms / 1000.0)
            try:
                self.tick()
            except Exception:
                logger.exception("Timer tick failed")
            if not self.machine.is_running:
                break
        self._ticker = None

    async def shutdown(self) -> None:
        ticker, self._ticker = self._ticker, None
        if ticker is None:
            return
        ticker.cancel()
        try:
            await ticker
        except asyncio.CancelledError:
            pass

    # ------------------------------------------------------------------
    # Completion side effects
    # ------------------------------------------------------------------

    def _handle_completion(self, completion: SessionCompletion) -> None:
        session = completion.session
        day = local_date(session.timestamp)
        goal = self.machine.settings.daily_session_goal
        before = len(self.store.sessions_on(day))

        self.store.add_session(session)
        self._refresh_daily_cache(day)
        self.bus.emit(SESSION_COMPLETED, session)

        if completion.task_session_completed:
            result = self.tasks.register_focus_session(
                completion.task_session_completed, session.timestamp
            )
            if result is not None:
                task, auto_completed = result
                self.bus.emit(TASK_SESSION_COMPLETED, {
                    "task_id": task.id,
                    "sessions_completed": task.sessions_completed,
                    "auto_completed": auto_completed,
                })

        if before < goal <= before + 1:
            logger.info("Daily goal of %d sessions reached", goal)
            self.bus.emit(DAILY_GOAL_REACHED, {"date": day.isoformat(), "goal": goal})

    def _refresh_daily_cache(self, day) -> None:
        engine = StatisticsEngine(
            self.store.sessions_on(day), self.store.tasks(), self.store.completions()
        )
        self.store.cache_daily_stats(day, engine.daily_stats(day).to_dict())

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def _on_settings_changed(self, settings: Settings) -> None:
        with self._lock:
            self.machine.apply_settings(settings)
        self.bus.emit(SETTINGS_CHANGED, settings.to_dict())
