"""
/stats — rollups recomputed from the session log on every request.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from ...domain.dates import local_date, now_ms
from ...stats import insights
from ...stats.engine import StatisticsEngine

router = APIRouter(prefix="/stats", tags=["stats"])

# Longest span the range and calendar views will expand day by day.
MAX_RANGE_DAYS = 366


def _get_store(request: Request):
    return request.app.state.store


def _get_settings_store(request: Request):
    return request.app.state.settings_store


def _engine(store) -> StatisticsEngine:
    return StatisticsEngine(
        store.sessions(), store.tasks(), store.completions(), store.reminders()
    )


def _today() -> date:
    return local_date(now_ms())


def _check_span(start: date, end: date) -> None:
    if end < start:
        raise HTTPException(status_code=422, detail="end must not be before start")
    if (end - start).days >= MAX_RANGE_DAYS:
        raise HTTPException(status_code=422, detail=f"range is limited to {MAX_RANGE_DAYS} days")


@router.get("/daily")
def daily(day: Optional[date] = Query(default=None, description="YYYY-MM-DD, defaults to today"),
          store=Depends(_get_store)):
    return _engine(store).daily_stats(day or _today()).to_dict()


@router.get("/weekly")
def weekly(day: Optional[date] = Query(default=None, description="Any day inside the week"),
           store=Depends(_get_store)):
    return _engine(store).weekly_stats(day or _today()).to_dict()


@router.get("/monthly")
def monthly(
    year: Optional[int] = Query(default=None, ge=1970, le=9999),
    month: Optional[int] = Query(default=None, ge=1, le=12),
    store=Depends(_get_store),
):
    today = _today()
    return _engine(store).monthly_stats(year or today.year, month or today.month).to_dict()


@router.get("/range")
def date_range(start: date, end: date, store=Depends(_get_store)):
    _check_span(start, end)
    return _engine(store).stats_for_range(start, end).to_dict()


@router.get("/calendar")
def calendar_events(start: date, end: date, store=Depends(_get_store)):
    _check_span(start, end)
    return [e.to_dict() for e in _engine(store).calendar_events(start, end)]


@router.get("/dashboard")
def dashboard(store=Depends(_get_store), settings_store=Depends(_get_settings_store)):
    goal = settings_store.get().daily_session_goal
    stats = insights.dashboard(_engine(store), goal)
    stats["summary"] = insights.stats_summary(stats)
    return stats


@router.get("/insights")
def productivity(store=Depends(_get_store), settings_store=Depends(_get_settings_store)):
    goal = settings_store.get().daily_session_goal
    return insights.productivity_insights(insights.dashboard(_engine(store), goal))


@router.get("/export")
def export(store=Depends(_get_store), settings_store=Depends(_get_settings_store)):
    goal = settings_store.get().daily_session_goal
    return insights.export_all(_engine(store), store.export_all(), goal)
