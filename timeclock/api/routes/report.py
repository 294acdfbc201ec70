from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ...reporting import default_target_hours, generate_period_report, month_bounds, week_bounds
from ...tracker import TimeTracker
from ..deps import get_tracker
from ..schemas import FileResult

router = APIRouter(prefix="/api/v1/users/{user_id}", tags=["report"])


class PeriodReportRequest(BaseModel):
    period: Literal["week", "month"] = "week"
    ref: date | None = None
    target: float | None = Field(default=None, gt=0)
    out_dir: str | None = None


@router.post("/report", response_model=FileResult)
def generate_report(
    user_id: int,
    payload: PeriodReportRequest,
    tracker: TimeTracker = Depends(get_tracker),
) -> FileResult:
    user = tracker.db.get_user(user_id)
    out_dir = Path(payload.out_dir) if payload.out_dir else Path(__file__).resolve().parents[2] / "out"
    now = tracker.clock.now()
    ref = payload.ref or now.date()
    start, end = week_bounds(ref) if payload.period == "week" else month_bounds(ref)
    report_path = generate_period_report(
        sessions=tracker.db.list_sessions_between(start, end, user_id=user_id),
        out_dir=out_dir,
        period=payload.period,
        ref=ref,
        now=now,
        target_hours_per_day=payload.target or default_target_hours(),
        owner=user.full_name,
    )
    return FileResult(path=str(report_path))
