from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from ...exporting import UNKNOWN_EMPLOYEE, master_table_to_csv
from ...models import User, WorkSession
from ...reporting import team_overview
from ...tracker import TimeTracker
from ..deps import get_tracker, require_admin
from ..schemas import MasterRowOut, TeamOverviewOut

router = APIRouter(prefix="/api/v1/admin", tags=["admin"])


@router.get("/team", response_model=TeamOverviewOut)
def team(
    _: User = Depends(require_admin),
    tracker: TimeTracker = Depends(get_tracker),
) -> TeamOverviewOut:
    now = tracker.clock.now()
    today = now.date()
    overview = team_overview(
        tracker.db.list_users(),
        tracker.db.list_sessions_between(today, today),
        now,
        today,
    )
    return TeamOverviewOut.from_model(overview)


def _master_table(
    tracker: TimeTracker,
    date_from: date | None,
    date_to: date | None,
    user_id: int | None,
    limit: int,
) -> tuple[list[WorkSession], dict[int, str]]:
    if user_id is not None:
        tracker.db.get_user(user_id)
    items = tracker.db.list_sessions(
        user_id=user_id,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
    )
    names = {user.id: user.full_name for user in tracker.db.list_users()}
    return items, names


@router.get("/sessions", response_model=list[MasterRowOut])
def all_sessions(
    date_from: date | None = None,
    date_to: date | None = None,
    user_id: int | None = None,
    limit: int = Query(default=500, ge=1, le=5000),
    _: User = Depends(require_admin),
    tracker: TimeTracker = Depends(get_tracker),
) -> list[MasterRowOut]:
    items, names = _master_table(tracker, date_from, date_to, user_id, limit)
    return [MasterRowOut.from_session(item, names.get(item.user_id, UNKNOWN_EMPLOYEE)) for item in items]


@router.get("/sessions.csv")
def all_sessions_csv(
    date_from: date | None = None,
    date_to: date | None = None,
    user_id: int | None = None,
    limit: int = Query(default=5000, ge=1, le=5000),
    _: User = Depends(require_admin),
    tracker: TimeTracker = Depends(get_tracker),
) -> Response:
    items, names = _master_table(tracker, date_from, date_to, user_id, limit)
    stamp = tracker.clock.now().strftime("%Y%m%d")
    return Response(
        content=master_table_to_csv(items, names),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="timeclock-master-{stamp}.csv"'},
    )
