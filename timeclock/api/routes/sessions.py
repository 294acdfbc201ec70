from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query

from ...db import TimeClockDB
from ..deps import get_db
from ..schemas import NotesUpdate, SessionOut

router = APIRouter(prefix="/api/v1", tags=["sessions"])


@router.get("/users/{user_id}/sessions", response_model=list[SessionOut])
def list_sessions(
    user_id: int,
    date_from: date | None = None,
    date_to: date | None = None,
    limit: int = Query(default=100, ge=1, le=5000),
    db: TimeClockDB = Depends(get_db),
) -> list[SessionOut]:
    db.get_user(user_id)
    items = db.list_sessions(user_id=user_id, date_from=date_from, date_to=date_to, limit=limit)
    return [SessionOut.from_model(item) for item in items]


@router.get("/sessions/{session_id}", response_model=SessionOut)
def get_session(session_id: int, db: TimeClockDB = Depends(get_db)) -> SessionOut:
    return SessionOut.from_model(db.get_session(session_id))


@router.patch("/sessions/{session_id}/notes", response_model=SessionOut)
def update_notes(session_id: int, payload: NotesUpdate, db: TimeClockDB = Depends(get_db)) -> SessionOut:
    return SessionOut.from_model(db.update_notes(session_id, payload.notes))


@router.delete("/sessions/{session_id}", status_code=204)
def delete_session(session_id: int, db: TimeClockDB = Depends(get_db)) -> None:
    db.delete_session(session_id)
