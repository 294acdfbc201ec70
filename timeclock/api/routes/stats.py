from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query

from ...reporting import (
    build_dashboard,
    daily_stats,
    default_target_hours,
    month_bounds,
    monthly_stats,
    productivity_score,
    week_bounds,
    weekly_stats,
)
from ...tracker import TimeTracker
from ..deps import get_tracker
from ..schemas import DailyStatsOut, DashboardOut, PeriodStatsOut

router = APIRouter(prefix="/api/v1/users/{user_id}/stats", tags=["stats"])


def _target(target: float | None) -> float:
    return target if target is not None else default_target_hours()


@router.get("/daily", response_model=DailyStatsOut)
def get_daily(
    user_id: int,
    day: date | None = None,
    tracker: TimeTracker = Depends(get_tracker),
) -> DailyStatsOut:
    tracker.db.get_user(user_id)
    ref = day or tracker.clock.now().date()
    sessions = tracker.db.list_sessions_between(ref, ref, user_id=user_id)
    return DailyStatsOut.from_model(daily_stats(sessions, ref))


@router.get("/weekly", response_model=PeriodStatsOut)
def get_weekly(
    user_id: int,
    ref: date | None = None,
    target: float | None = Query(default=None, gt=0),
    tracker: TimeTracker = Depends(get_tracker),
) -> PeriodStatsOut:
    tracker.db.get_user(user_id)
    ref_day = ref or tracker.clock.now().date()
    start, end = week_bounds(ref_day)
    stats = weekly_stats(tracker.db.list_sessions_between(start, end, user_id=user_id), ref_day)
    return PeriodStatsOut.from_model(stats, productivity_score(stats, _target(target)))


@router.get("/monthly", response_model=PeriodStatsOut)
def get_monthly(
    user_id: int,
    ref: date | None = None,
    target: float | None = Query(default=None, gt=0),
    tracker: TimeTracker = Depends(get_tracker),
) -> PeriodStatsOut:
    tracker.db.get_user(user_id)
    ref_day = ref or tracker.clock.now().date()
    start, end = month_bounds(ref_day)
    stats = monthly_stats(tracker.db.list_sessions_between(start, end, user_id=user_id), ref_day)
    return PeriodStatsOut.from_model(stats, productivity_score(stats, _target(target)))


@router.get("/dashboard", response_model=DashboardOut)
def get_dashboard(
    user_id: int,
    ref: date | None = None,
    target: float | None = Query(default=None, gt=0),
    tracker: TimeTracker = Depends(get_tracker),
) -> DashboardOut:
    tracker.db.get_user(user_id)
    ref_day = ref or tracker.clock.now().date()
    week_start, week_end = week_bounds(ref_day)
    month_start, month_end = month_bounds(ref_day)
    sessions = tracker.db.list_sessions_between(
        min(week_start, month_start),
        max(week_end, month_end),
        user_id=user_id,
    )
    goal = _target(target)
    dashboard = build_dashboard(sessions, ref_day, goal)
    return DashboardOut.from_model(dashboard, productivity_score(dashboard.this_month, goal))
