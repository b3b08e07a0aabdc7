"""
Integration tests for the FastAPI application.
Uses httpx.AsyncClient with the ASGI transport (no running server needed).
Fixtures are provided by tests/conftest.py.

The background ticker is effectively parked (see conftest); tests advance
the countdown by calling ``app.state.timer.tick`` directly.
"""

from __future__ import annotations

from datetime import timedelta

from pomouno.domain.dates import local_date, now_ms
from pomouno.services.events import DAILY_GOAL_REACHED, SESSION_COMPLETED, TASK_SESSION_COMPLETED


async def finish_phase(client, app):
    """Start the current phase and run it to zero."""
    await client.post("/timer/start")
    timer = app.state.timer
    return timer.tick(seconds=timer.snapshot().time_left)


class TestHealth:
    async def test_health_ok(self, client):
        r = await client.get("/health")
        assert r.status_code == 200
        body = r.json()
        assert body["status"] == "ok"
        assert body["timer"] == "idle"


# ── Timer ─────────────────────────────────────────────────────────────────────

class TestTimerEndpoints:
    async def test_initial_state(self, client):
        r = await client.get("/timer")
        assert r.status_code == 200
        body = r.json()
        assert body["phase"] == "work"
        assert body["activity"] == "idle"
        assert body["time_left"] == 25 * 60
        assert body["current_session"] == 1
        assert body["work_sessions_completed"] == 0

    async def test_start_pause_resume(self, client, app):
        r = await client.post("/timer/start")
        assert r.json()["changed"] is True
        assert r.json()["timer"]["activity"] == "running"

        r = await client.post("/timer/start")
        assert r.json()["changed"] is False

        app.state.timer.tick(seconds=90)
        r = await client.post("/timer/pause")
        assert r.json()["timer"]["activity"] == "paused"
        assert r.json()["timer"]["time_left"] == 25 * 60 - 90

        r = await client.post("/timer/start")
        assert r.json()["timer"]["time_left"] == 25 * 60 - 90

    async def test_invalid_transition_reports_unchanged(self, client):
        r = await client.post("/timer/pause")
        assert r.status_code == 200
        assert r.json()["changed"] is False

    async def test_stop_discards_session(self, client, app):
        await client.post("/timer/start")
        app.state.timer.tick(seconds=300)
        r = await client.post("/timer/stop")
        assert r.json()["timer"]["time_left"] == 25 * 60
        assert app.state.store.sessions() == []

    async def test_change_type(self, client):
        r = await client.post("/timer/type", json={"phase": "long_break"})
        assert r.json()["changed"] is True
        assert r.json()["timer"]["time_left"] == 15 * 60

    async def test_change_type_rejects_unknown_phase(self, client):
        r = await client.post("/timer/type", json={"phase": "nap"})
        assert r.status_code == 422

    async def test_reset(self, client, app):
        await finish_phase(client, app)
        r = await client.post("/timer/reset")
        assert r.json()["timer"]["phase"] == "work"
        assert r.json()["timer"]["current_session"] == 1

    async def test_associate_unknown_task(self, client):
        r = await client.post("/timer/task", json={"task_id": "missing"})
        assert r.status_code == 404

    async def test_completion_is_persisted(self, client, app):
        seen = []
        app.state.bus.register_listener(SESSION_COMPLETED, seen.append)
        done = await finish_phase(client, app)
        assert done.session.type.value == "work"

        r = await client.get("/timer")
        assert r.json()["phase"] == "short_break"
        assert r.json()["activity"] == "idle"
        assert [s.id for s in app.state.store.sessions()] == [done.session.id]
        assert len(seen) == 1

        today = local_date(now_ms()).isoformat()
        assert today in app.state.store.daily_stats_cache()

    async def test_completed_work_session_credits_task(self, client, app):
        r = await client.post("/tasks", json={"title": "Write report", "estimated_sessions": 1})
        task_id = r.json()["id"]
        credits = []
        app.state.bus.register_listener(TASK_SESSION_COMPLETED, credits.append)

        r = await client.post("/timer/task", json={"task_id": task_id})
        assert r.json()["task_id"] == task_id
        await finish_phase(client, app)

        task = (await client.get(f"/tasks/{task_id}")).json()
        assert task["sessions_completed"] == 2
        assert task["completed"] is True
        assert task["progress"] == 100.0
        assert credits == [{"task_id": task_id, "sessions_completed": 2, "auto_completed": True}]

    async def test_daily_goal_event_fires_once(self, client, app):
        await client.put("/settings", json={"daily_session_goal": 2, "short_break_duration": 1})
        reached = []
        app.state.bus.register_listener(DAILY_GOAL_REACHED, reached.append)
        for _ in range(4):
            await finish_phase(client, app)
        assert len(reached) == 1
        assert reached[0]["goal"] == 2


# ── Tasks ─────────────────────────────────────────────────────────────────────

class TestTaskEndpoints:
    async def test_create_plain_task(self, client):
        r = await client.post("/tasks", json={
            "title": "Read paper", "estimated_sessions": 3, "priority": "high", "tags": ["ml"],
        })
        assert r.status_code == 201
        body = r.json()
        assert body["priority"] == "high"
        assert body["tags"] == ["ml"]
        assert body["due_today"] is True
        assert body["progress"] == 0.0

    async def test_create_recurring_task(self, client):
        r = await client.post("/tasks", json={
            "title": "Gym",
            "recurring": {"pattern": "specific-days", "days_of_week": [1, 3, 5]},
        })
        assert r.status_code == 201
        rec = r.json()["recurring"]
        assert rec["enabled"] is True
        assert rec["days_of_week"] == [1, 3, 5]
        assert rec["next_due"] > 0

    async def test_recurring_and_spaced_rejected(self, client):
        r = await client.post("/tasks", json={
            "title": "Both", "spaced_repetition": True, "recurring": {"pattern": "daily"},
        })
        assert r.status_code == 422

    async def test_blank_title_rejected(self, client):
        r = await client.post("/tasks", json={"title": ""})
        assert r.status_code == 422

    async def test_get_patch_delete(self, client):
        task_id = (await client.post("/tasks", json={"title": "Draft"})).json()["id"]
        r = await client.patch(f"/tasks/{task_id}", json={"title": "Final", "category": "Work"})
        assert r.json()["title"] == "Final"
        assert r.json()["category"] == "Work"
        assert (await client.delete(f"/tasks/{task_id}")).status_code == 200
        assert (await client.get(f"/tasks/{task_id}")).status_code == 404
        assert (await client.delete(f"/tasks/{task_id}")).status_code == 404

    async def test_spaced_complete_twice_same_day(self, client):
        task_id = (await client.post("/tasks", json={"title": "Kanji", "spaced_repetition": True})).json()["id"]
        first = (await client.post(f"/tasks/{task_id}/complete")).json()
        assert first["changed"] is True
        assert first["task"]["spaced_repetition"]["interval"] == 2
        second = (await client.post(f"/tasks/{task_id}/complete")).json()
        assert second["changed"] is False
        assert second["task"]["spaced_repetition"]["review_count"] == 1

    async def test_uncomplete(self, client):
        task_id = (await client.post("/tasks", json={"title": "Draft"})).json()["id"]
        await client.post(f"/tasks/{task_id}/complete")
        r = await client.post(f"/tasks/{task_id}/uncomplete")
        assert r.json()["completed"] is False
        assert r.json()["sessions_completed"] == 0

    async def test_complete_unknown(self, client):
        assert (await client.post("/tasks/missing/complete")).status_code == 404

    async def test_due_today_and_archived_filter(self, client):
        keep = (await client.post("/tasks", json={"title": "Keep"})).json()["id"]
        old = (await client.post("/tasks", json={"title": "Old"})).json()["id"]
        await client.post("/tasks", json={"title": "Tomorrow", "recurring": {"pattern": "daily"}})
        await client.patch(f"/tasks/{old}", json={"archived_at": now_ms()})

        due = [t["id"] for t in (await client.get("/tasks/due-today")).json()]
        assert due == [keep]
        active = (await client.get("/tasks", params={"include_archived": False})).json()
        assert old not in [t["id"] for t in active]


# ── Reminders ─────────────────────────────────────────────────────────────────

class TestReminderEndpoints:
    async def test_defaults_seeded(self, client):
        body = (await client.get("/reminders")).json()
        assert [r["title"] for r in body] == ["Drink Water", "Stretch", "Deep Breathing", "Walk Around"]
        assert body[0]["display"]["name"] == "Hydration"

    async def test_create_custom(self, client):
        r = await client.post("/reminders", json={
            "title": "Eyes", "break_type": "short", "frequency": "custom",
            "custom_frequency": {"interval": 20, "unit": "minutes"},
        })
        assert r.status_code == 201
        assert r.json()["custom_frequency"] == {"interval": 20, "unit": "minutes"}
        assert r.json()["display"]["name"] == "Custom"

    async def test_patch_and_delete(self, client):
        rid = (await client.get("/reminders")).json()[0]["id"]
        r = await client.patch(f"/reminders/{rid}", json={"enabled": False})
        assert r.json()["enabled"] is False
        assert (await client.delete(f"/reminders/{rid}")).status_code == 200
        assert (await client.patch(f"/reminders/{rid}", json={"enabled": True})).status_code == 404

    async def test_surface_requires_a_session(self, client):
        r = await client.post("/reminders/surface", json={"break_type": "short"})
        assert r.status_code == 409

    async def test_surface_during_break(self, client, app):
        await finish_phase(client, app)
        await client.post("/timer/start")
        r = await client.post("/reminders/surface", json={"break_type": "short"})
        assert r.status_code == 200
        shown = [x["id"] for x in r.json()]
        assert len(shown) == 3

        again = await client.post("/reminders/surface", json={"break_type": "short"})
        assert [x["id"] for x in again.json()] == shown

        r = await client.post(f"/reminders/{shown[0]}/acknowledge", json={"break_type": "short"})
        assert r.status_code == 201
        assert r.json()["session_id"] == app.state.timer.snapshot().session_id

        state = (await client.get("/timer")).json()
        assert state["reminders_shown"] == shown
        assert state["reminders_completed"] == [shown[0]]

        done = app.state.timer.tick(seconds=state["time_left"])
        assert done.session.break_reminders_completed == (shown[0],)

    async def test_acknowledge_unknown(self, client):
        r = await client.post("/reminders/missing/acknowledge",
                              json={"break_type": "long", "session_id": "s1"})
        assert r.status_code == 404


# ── Stats ─────────────────────────────────────────────────────────────────────

class TestStatsEndpoints:
    async def test_daily_after_session(self, client, app):
        await finish_phase(client, app)
        body = (await client.get("/stats/daily")).json()
        assert body["sessions"] == 1
        assert body["focus_time"] == 25

    async def test_daily_for_explicit_day(self, client):
        r = await client.get("/stats/daily", params={"day": "2024-05-15"})
        assert r.json()["date"] == "2024-05-15"
        assert r.json()["sessions"] == 0

    async def test_weekly_and_monthly(self, client):
        week = (await client.get("/stats/weekly", params={"day": "2024-05-15"})).json()
        assert week["week_start"] == "2024-05-12"
        month = (await client.get("/stats/monthly", params={"year": 2024, "month": 2})).json()
        assert len(month["daily_breakdown"]) == 29

    async def test_monthly_rejects_bad_month(self, client):
        assert (await client.get("/stats/monthly", params={"month": 13})).status_code == 422

    async def test_range_validation(self, client):
        r = await client.get("/stats/range", params={"start": "2024-05-15", "end": "2024-05-14"})
        assert r.status_code == 422
        r = await client.get("/stats/range", params={"start": "2020-01-01", "end": "2024-01-01"})
        assert r.status_code == 422
        r = await client.get("/stats/range", params={"start": "2024-05-13", "end": "2024-05-15"})
        assert len(r.json()["daily_breakdown"]) == 3

    async def test_calendar(self, client):
        await client.post("/tasks", json={"title": "Standup", "recurring": {"pattern": "daily"}})
        today = local_date(now_ms())
        r = await client.get("/stats/calendar", params={
            "start": today.isoformat(), "end": (today + timedelta(days=6)).isoformat(),
        })
        events = r.json()
        assert len(events) == 7
        assert {e["type"] for e in events} == {"recurring-task"}

    async def test_dashboard(self, client, app):
        await finish_phase(client, app)
        body = (await client.get("/stats/dashboard")).json()
        assert body["pomodoro"]["work_sessions"] == 1
        assert body["homepage"]["goal_progress"] == "Goal 1 / 8"
        assert body["summary"]["total_sessions"] == 1

    async def test_insights(self, client):
        body = (await client.get("/stats/insights")).json()
        assert set(body) == {"insights", "recommendations", "achievements"}

    async def test_export(self, client):
        body = (await client.get("/stats/export")).json()
        assert len(body["raw_data"]["break_reminders"]) == 4
        assert body["raw_data"]["sessions"] is None


# ── Sync ──────────────────────────────────────────────────────────────────────

class TestSyncEndpoint:
    async def test_disabled_by_default(self, client):
        body = (await client.get("/sync")).json()
        assert body["enabled"] is False
        assert body["notice"] is None
