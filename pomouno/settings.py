"""
User-tunable timer settings, persisted through the persistence gateway
under the ``settings`` key.

The core never looks settings up on its own: a ``Settings`` value is handed
to the timer and schedulers by whoever composes them. ``SettingsStore`` is
that composer's read/patch/notify helper.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Mapping

from .domain.models import SessionType

logger = logging.getLogger(__name__)

DEFAULTS: dict[str, Any] = {
    "work_duration":             25,    # minutes
    "short_break_duration":      5,
    "long_break_duration":       15,
    "sessions_until_long_break": 4,
    "auto_start_breaks":         False,
    "auto_start_work":           False,
    "daily_session_goal":        8,
    "notifications":             True,
    "sound_volume":              0.5,
    "notification_volume":       0.7,
    "auto_complete_task":        False,
    "dark_mode":                 False,
    "show_task_estimation":      True,
    "focus_audio":               "none",
    "break_audio":               "none",
    "notification_audio":        "notification-ping",
    "use_playlist_for_lofi":     True,
}

# Keys that must stay strictly positive; anything else falls back to the default.
_POSITIVE_KEYS = {
    "work_duration",
    "short_break_duration",
    "long_break_duration",
    "sessions_until_long_break",
    "daily_session_goal",
}

_TRUE_STRINGS = {"1", "true", "yes", "on"}


def _coerce(key: str, value: Any) -> Any:
    default = DEFAULTS[key]
    if isinstance(default, bool):
        if isinstance(value, str):
            return value.strip().lower() in _TRUE_STRINGS
        return bool(value)
    if value is None or isinstance(value, bool):
        raise ValueError(f"{key} cannot be {value!r}")
    # coerce to the same type as the default
    coerced = type(default)(value)
    if isinstance(coerced, float) and not math.isfinite(coerced):
        raise ValueError(f"{key} must be finite")
    if key in _POSITIVE_KEYS and coerced <= 0:
        raise ValueError(f"{key} must be positive")
    return coerced


def normalise(data: Mapping[str, Any]) -> dict[str, Any]:
    """Merge *data* over DEFAULTS; unknown keys are dropped, bad values fall back."""
    result = dict(DEFAULTS)
    for k, v in data.items():
        if k not in DEFAULTS:
            continue
        try:
            result[k] = _coerce(k, v)
        except (TypeError, ValueError, OverflowError):
            logger.warning("Invalid setting %s=%r, using default %r", k, v, DEFAULTS[k])
    return result


@dataclass(frozen=True)
class Settings:
    work_duration: int = 25
    short_break_duration: int = 5
    long_break_duration: int = 15
    sessions_until_long_break: int = 4
    auto_start_breaks: bool = False
    auto_start_work: bool = False
    daily_session_goal: int = 8
    notifications: bool = True
    sound_volume: float = 0.5
    notification_volume: float = 0.7
    auto_complete_task: bool = False
    dark_mode: bool = False
    show_task_estimation: bool = True
    focus_audio: str = "none"
    break_audio: str = "none"
    notification_audio: str = "notification-ping"
    use_playlist_for_lofi: bool = True

    @classmethod
    def from_dict(cls, data: Any) -> "Settings":
        """Build settings from stored JSON; anything that is not a mapping yields defaults."""
        if not isinstance(data, Mapping):
            if data is not None:
                logger.warning("Stored settings are not an object, using defaults")
            data = {}
        return cls(**normalise(data))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def with_patch(self, patch: Mapping[str, Any]) -> "Settings":
        merged = self.to_dict()
        merged.update(patch)
        return Settings.from_dict(merged)

    def duration_minutes(self, session_type: SessionType) -> int:
        if session_type == SessionType.SHORT_BREAK:
            return self.short_break_duration
        if session_type == SessionType.LONG_BREAK:
            return self.long_break_duration
        return self.work_duration


class SettingsStore:
    """Reads and patches the persisted settings; notifies listeners on change."""

    KEY = "settings"

    def __init__(self, gateway):
        self._gateway = gateway
        self._listeners: List[Callable[[Settings], None]] = []

    def get(self) -> Settings:
        return Settings.from_dict(self._gateway.get(self.KEY))

    def update(self, patch: Mapping[str, Any]) -> Settings:
        """Apply *patch* (unknown keys ignored), persist, notify, return full settings."""
        current = self.get()
        updated = current.with_patch(patch)
        self._gateway.set(self.KEY, updated.to_dict())
        if updated != current:
            for listener in self._listeners:
                try:
                    listener(updated)
                except Exception:
                    logger.exception("settings listener failed")
        return updated

    def register_listener(self, fn: Callable[[Settings], None]) -> None:
        """Register a callback(settings) fired after every effective change."""
        self._listeners.append(fn)
