"""
Timer Session State Machine: phase × activity countdown.

Phases cycle work → short/long break → work. Each phase is idle, running
or paused. The machine never touches a clock or a store on its own: the
owner calls ``tick()`` once per elapsed second and persists whatever
``SessionCompletion`` comes back.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from ..domain.dates import now_ms
from ..domain.models import BreakType, Session, SessionType, new_id
from ..settings import DEFAULTS, Settings

logger = logging.getLogger(__name__)


class TimerPhase(str, Enum):
    WORK = "work"
    SHORT_BREAK = "short_break"
    LONG_BREAK = "long_break"

    @property
    def session_type(self) -> SessionType:
        return _PHASE_TO_TYPE[self]

    @property
    def break_type(self) -> Optional[BreakType]:
        if self == TimerPhase.SHORT_BREAK:
            return BreakType.SHORT
        if self == TimerPhase.LONG_BREAK:
            return BreakType.LONG
        return None

    @classmethod
    def from_session_type(cls, session_type: SessionType) -> "TimerPhase":
        return {v: k for k, v in _PHASE_TO_TYPE.items()}[SessionType(session_type)]


_PHASE_TO_TYPE = {
    TimerPhase.WORK: SessionType.WORK,
    TimerPhase.SHORT_BREAK: SessionType.SHORT_BREAK,
    TimerPhase.LONG_BREAK: SessionType.LONG_BREAK,
}

_FALLBACK_MINUTES = {
    TimerPhase.WORK: DEFAULTS["work_duration"],
    TimerPhase.SHORT_BREAK: DEFAULTS["short_break_duration"],
    TimerPhase.LONG_BREAK: DEFAULTS["long_break_duration"],
}


class Activity(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"


@dataclass(frozen=True)
class SessionCompletion:
    """What one finished countdown produced."""
    session: Session
    next_phase: TimerPhase
    auto_started: bool
    task_session_completed: Optional[str] = None   # task to credit with a focus session


@dataclass(frozen=True)
class TimerSnapshot:
    phase: TimerPhase
    activity: Activity
    time_left: int
    total_time: int
    current_session: int
    work_sessions_completed: int
    session_id: Optional[str]
    task_id: Optional[str]
    reminders_shown: List[str]
    reminders_completed: List[str]

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["phase"] = self.phase.value
        data["activity"] = self.activity.value
        return data


class TimerStateMachine:

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings()
        self.phase = TimerPhase.WORK
        self.activity = Activity.IDLE
        self.current_session = 1
        self.work_sessions_completed = 0
        self.total_time = self.duration_seconds(TimerPhase.WORK)
        self.time_left = self.total_time
        self.session_id: Optional[str] = None
        self.task_id: Optional[str] = None
        self._reminders_shown: List[str] = []
        self._reminders_completed: List[str] = []

    # ------------------------------------------------------------------
    # Durations
    # ------------------------------------------------------------------

    def duration_minutes(self, phase: TimerPhase) -> int:
        minutes = self.settings.duration_minutes(phase.session_type)
        if not isinstance(minutes, int) or isinstance(minutes, bool) or minutes <= 0:
            return _FALLBACK_MINUTES[phase]
        return minutes

    def duration_seconds(self, phase: TimerPhase) -> int:
        return self.duration_minutes(phase) * 60

    @property
    def sessions_until_long_break(self) -> int:
        n = self.settings.sessions_until_long_break
        if not isinstance(n, int) or isinstance(n, bool) or n <= 0:
            return DEFAULTS["sessions_until_long_break"]
        return n

    @property
    def is_active(self) -> bool:
        return self.activity != Activity.IDLE

    @property
    def is_running(self) -> bool:
        return self.activity == Activity.RUNNING

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start(self, now: Optional[int] = None) -> bool:
        if self.activity == Activity.RUNNING:
            return False
        if self.session_id is None:
            self.session_id = new_id("session", now)
        self.activity = Activity.RUNNING
        return True

    def pause(self) -> bool:
        if self.activity != Activity.RUNNING:
            return False
        self.activity = Activity.PAUSED
        return True

    def stop(self) -> bool:
        """Abandon the current session; the countdown goes back to full length."""
        if self.activity == Activity.IDLE:
            return False
        self._rearm(self.phase)
        return True

    def reset(self) -> bool:
        self.current_session = 1
        self.work_sessions_completed = 0
        self._rearm(TimerPhase.WORK)
        return True

    def change_session_type(self, phase: TimerPhase) -> bool:
        phase = TimerPhase(phase)
        changed = (
            self.is_active
            or phase != self.phase
            or self.time_left != self.duration_seconds(phase)
        )
        self.stop()
        self._rearm(phase)
        return changed

    def apply_settings(self, settings: Settings) -> None:
        """Swap in new settings; an idle countdown is re-synced to the new length."""
        self.settings = settings
        if not self.is_active:
            self.total_time = self.duration_seconds(self.phase)
            self.time_left = self.total_time

    def associate_task(self, task_id: Optional[str]) -> None:
        self.task_id = task_id

    def record_reminder_shown(self, reminder_id: str) -> None:
        if reminder_id not in self._reminders_shown:
            self._reminders_shown.append(reminder_id)

    def record_reminder_completed(self, reminder_id: str) -> None:
        if reminder_id not in self._reminders_completed:
            self._reminders_completed.append(reminder_id)

    def tick(self, seconds: int = 1, now: Optional[int] = None) -> Optional[SessionCompletion]:
        """Advance a running countdown; returns the completion when it hits zero."""
        if self.activity != Activity.RUNNING:
            return None
        self.time_left = max(0, self.time_left - seconds)
        if self.time_left > 0:
            return None
        return self._complete(now if now is not None else now_ms())

    # ------------------------------------------------------------------
    # Session complete
    # ------------------------------------------------------------------

    def _complete(self, now: int) -> SessionCompletion:
        finished = self.phase
        is_work = finished == TimerPhase.WORK
        session = Session(
            id=self.session_id or new_id("session", now),
            type=finished.session_type,
            duration=self.duration_minutes(finished),
            completed=True,
            timestamp=now,
            task_id=self.task_id if is_work else None,
            break_reminders_completed=None if is_work or not self._reminders_completed
            else tuple(self._reminders_completed),
            break_reminders_shown=None if is_work or not self._reminders_shown
            else tuple(self._reminders_shown),
        )
        task_credit = self.task_id if is_work else None

        if is_work:
            self.work_sessions_completed += 1
            if self.work_sessions_completed % self.sessions_until_long_break == 0:
                next_phase = TimerPhase.LONG_BREAK
            else:
                next_phase = TimerPhase.SHORT_BREAK
            auto = self.settings.auto_start_breaks
        else:
            next_phase = TimerPhase.WORK
            self.current_session += 1
            auto = self.settings.auto_start_work

        self._rearm(next_phase)
        if auto:
            self.start(now)

        logger.info(
            "%s session %s completed, next %s (%s)",
            finished.value, session.id, next_phase.value,
            "running" if auto else "idle",
        )
        return SessionCompletion(
            session=session,
            next_phase=next_phase,
            auto_started=bool(auto),
            task_session_completed=task_credit,
        )

    def _rearm(self, phase: TimerPhase) -> None:
        self.phase = phase
        self.activity = Activity.IDLE
        self.total_time = self.duration_seconds(phase)
        self.time_left = self.total_time
        self.session_id = None
        self._reminders_shown = []
        self._reminders_completed = []

    def snapshot(self) -> TimerSnapshot:
        return TimerSnapshot(
            phase=self.phase,
            activity=self.activity,
            time_left=self.time_left,
            total_time=self.total_time,
            current_session=self.current_session,
            work_sessions_completed=self.work_sessions_completed,
            session_id=self.session_id,
            task_id=self.task_id,
            reminders_shown=list(self._reminders_shown),
            reminders_completed=list(self._reminders_completed),
        )
