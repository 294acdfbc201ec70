from __future__ import annotations

from pathlib import Path

from fastapi import Depends, Header, HTTPException, Request

from ..clock import Clock
from ..db import TimeClockDB
from ..errors import NotFound
from ..models import User
from ..tracker import TimeTracker


def get_db(request: Request) -> TimeClockDB:
    db_path = Path(request.app.state.db_path)
    return TimeClockDB(db_path)


def get_clock(request: Request) -> Clock:
    return request.app.state.clock


def get_tracker(db: TimeClockDB = Depends(get_db), clock: Clock = Depends(get_clock)) -> TimeTracker:
    return TimeTracker(db, clock)


def require_admin(
    x_user_id: int | None = Header(default=None),
    db: TimeClockDB = Depends(get_db),
) -> User:
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="missing X-User-Id header")
    try:
        user = db.get_user(x_user_id)
    except NotFound:
        raise HTTPException(status_code=403, detail="admin role required") from None
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="admin role required")
    return user
