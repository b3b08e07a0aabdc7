"""
FastAPI application — local-first Pomodoro timer API.
Runs on http://127.0.0.1:8766 by default.

Everything stateful (store, timer, services, remote mirror) lives on
app.state, so each call to create_app() yields an independent instance
with no shared module-level globals.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from ..config import config
from ..services.events import EventBus
from ..services.reminders import ReminderService
from ..services.task_manager import TaskManager
from ..services.timer import TimerService
from ..settings import SettingsStore
from ..storage.gateway import SqliteGateway
from ..storage.local_store import LocalStore
from ..storage.remote_sync import MirroredGateway, RemoteMirror

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


# ---------------------------------------------------------------------------
# Lifespan: builds the store, services and optional mirror
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    gateway = SqliteGateway(config.store_path)
    mirror = None
    if config.sync_url:
        mirror = RemoteMirror(
            config.sync_url,
            timeout_s=config.sync_timeout_s,
            max_queue=config.sync_queue_size,
        )
        mirror.start()
        gateway = MirroredGateway(gateway, mirror)
        logger.info("Mirroring writes to %s", config.sync_url)

    store = LocalStore(gateway)
    bus = EventBus()
    settings_store = SettingsStore(gateway)
    tasks = TaskManager(store, bus)
    timer = TimerService(store, settings_store, tasks, bus, config.tick_interval_ms)
    reminders = ReminderService(store, timer)
    reminders.ensure_defaults()

    app.state.store = store
    app.state.bus = bus
    app.state.settings_store = settings_store
    app.state.tasks = tasks
    app.state.timer = timer
    app.state.reminders = reminders
    app.state.mirror = mirror

    yield

    await timer.shutdown()
    if mirror is not None:
        mirror.stop()
        mirror.join(timeout=config.sync_timeout_s + 1)


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------

def create_app() -> FastAPI:
    app = FastAPI(
        title="PomoUno",
        description="Local-first Pomodoro timer, tasks and statistics API",
        version=VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://localhost:3000", "null"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from .routers import reminders, settings, stats, sync, tasks, timer

    app.include_router(timer.router)
    app.include_router(tasks.router)
    app.include_router(reminders.router)
    app.include_router(stats.router)
    app.include_router(settings.router)
    app.include_router(sync.router)

    @app.get("/health")
    def health(request: Request):
        timer_service = getattr(request.app.state, "timer", None)
        activity = "unknown" if timer_service is None else timer_service.snapshot().activity.value
        return {"status": "ok", "version": VERSION, "timer": activity}

    return app


app = create_app()
