"""
Dashboard views built on top of StatisticsEngine: one-shot dashboard,
rule-based productivity insights, a short summary and a full export.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from ..domain.dates import local_date, now_ms
from .engine import StatisticsEngine

# Four sessions a day over a seven-day week.
WEEKLY_SESSION_TARGET = 28


def dashboard(engine: StatisticsEngine, daily_goal: int, now: Optional[int] = None) -> Dict[str, Any]:
    current = now if now is not None else now_ms()
    today = local_date(current)
    return {
        "pomodoro": engine.pomodoro_stats(current).to_dict(),
        "tasks": engine.task_stats(current).to_dict(),
        "break_reminders": engine.break_reminder_stats().to_dict(),
        "spaced_repetition": engine.spaced_repetition_stats(current).to_dict(),
        "today": engine.daily_stats(today).to_dict(),
        "this_week": engine.weekly_stats(today).to_dict(),
        "this_month": engine.monthly_stats(today.year, today.month).to_dict(),
        "homepage": engine.homepage_focus(daily_goal, current),
    }


def productivity_insights(stats: Dict[str, Any]) -> Dict[str, List[str]]:
    """Achievements, observations and suggestions derived from a dashboard dict."""
    pomodoro = stats["pomodoro"]
    tasks = stats["tasks"]
    reminders = stats["break_reminders"]
    spaced = stats["spaced_repetition"]

    insights: List[str] = []
    recommendations: List[str] = []
    achievements: List[str] = []

    if pomodoro["sessions_today"] >= 4:
        achievements.append("🎯 Great productivity today!")
    if pomodoro["current_streak"] >= 4:
        achievements.append(f"🔥 {pomodoro['current_streak']} session streak!")
    if tasks["completion_rate"] >= 80:
        achievements.append("✅ High task completion rate!")
    if reminders["completion_rate"] >= 70:
        achievements.append("💪 Great break reminder compliance!")

    if pomodoro["average_session_length"] < 20:
        insights.append("Your sessions are shorter than the standard 25 minutes")
    if tasks["average_sessions_per_task"] > 5:
        insights.append("Tasks might benefit from being broken into smaller chunks")
    if reminders["completion_rate"] < 50:
        insights.append("Consider taking more breaks to maintain productivity")

    if pomodoro["sessions_today"] < 2:
        recommendations.append("Try to complete at least 2 focus sessions today")
    if tasks["active_tasks"] > 10:
        recommendations.append("Consider archiving or completing some tasks to reduce overwhelm")
    if len(spaced["upcoming_reviews"]) > 5:
        recommendations.append("You have several spaced repetition reviews due soon")

    return {
        "insights": insights,
        "recommendations": recommendations,
        "achievements": achievements,
    }


def stats_summary(stats: Dict[str, Any]) -> Dict[str, Any]:
    pomodoro = stats["pomodoro"]
    return {
        "total_sessions": pomodoro["total_sessions"],
        "total_focus_hours": round(pomodoro["total_focus_time"] / 60, 1),
        "total_tasks": stats["tasks"]["total_tasks"],
        "completed_tasks": stats["tasks"]["completed_tasks"],
        "current_streak": pomodoro["current_streak"],
        "weekly_goal_progress": round(
            stats["this_week"]["total_sessions"] / WEEKLY_SESSION_TARGET * 100
        ),
    }


def export_all(
    engine: StatisticsEngine,
    raw_data: Dict[str, Any],
    daily_goal: int,
    now: Optional[int] = None,
) -> Dict[str, Any]:
    """Everything a backup needs: computed statistics plus the raw collections."""
    current = now if now is not None else now_ms()
    stats = dashboard(engine, daily_goal, current)
    daily = [
        engine.daily_stats(day).to_dict() for day in sorted(engine.active_days())
    ]
    return {
        "export_date": datetime.fromtimestamp(current / 1000).isoformat(),
        "pomodoro": stats["pomodoro"],
        "tasks": stats["tasks"],
        "break_reminders": stats["break_reminders"],
        "spaced_repetition": stats["spaced_repetition"],
        "daily_stats": daily,
        "raw_data": raw_data,
    }
