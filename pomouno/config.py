"""
Central configuration for the PomoUno engine process.
All values can be overridden via environment variables or a local config.json.

Timer durations and goals are *not* configured here — those are user settings
kept in the persistence gateway (see settings.py).
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

_ROOT = Path(__file__).parent.parent
_CONFIG_FILE = _ROOT / "config.json"


@dataclass
class Config:
    # API
    api_host: str = "127.0.0.1"
    api_port: int = 8766
    log_level: str = "info"

    # Timer
    tick_interval_ms: int = 1000             # one countdown unit per tick

    # Storage
    data_dir: Path = field(default_factory=lambda: _ROOT / "data")
    store_db: str = "pomouno.db"

    # Remote mirror (disabled when sync_url is empty)
    sync_url: str = ""
    sync_timeout_s: float = 3.0
    sync_queue_size: int = 500

    def __post_init__(self):
        self.data_dir = Path(self.data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    @property
    def store_path(self) -> Path:
        return self.data_dir / self.store_db

    @classmethod
    def load(cls) -> "Config":
        cfg = cls()
        if _CONFIG_FILE.exists():
            try:
                overrides = json.loads(_CONFIG_FILE.read_text())
            except ValueError:
                logger.warning("Ignoring malformed %s", _CONFIG_FILE)
                overrides = {}
            for k, v in overrides.items():
                if hasattr(cfg, k):
                    setattr(cfg, k, v)
        # environment variable overrides (POMO_*)
        for k in cfg.__dataclass_fields__:  # type: ignore[attr-defined]
            env_key = f"POMO_{k.upper()}"
            if env_key in os.environ:
                setattr(cfg, k, type(getattr(cfg, k))(os.environ[env_key]))
        cfg.data_dir = Path(cfg.data_dir)
        cfg.data_dir.mkdir(parents=True, exist_ok=True)
        return cfg


# Module-level singleton
config = Config.load()
