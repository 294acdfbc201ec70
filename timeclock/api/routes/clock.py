from __future__ import annotations

from fastapi import APIRouter, Depends

from ...durations import live_paused_seconds, live_worked_seconds
from ...models import work_state
from ...tracker import TimeTracker
from ..deps import get_tracker
from ..schemas import ClockInRequest, CurrentOut, PauseStartRequest, SessionOut

router = APIRouter(prefix="/api/v1/users/{user_id}", tags=["clock"])


@router.get("/current", response_model=CurrentOut)
def current(user_id: int, tracker: TimeTracker = Depends(get_tracker)) -> CurrentOut:
    session = tracker.current(user_id)
    if session is None:
        return CurrentOut(state=work_state(None), worked_sec=0, paused_sec=0)

    now = tracker.clock.now()
    return CurrentOut(
        state=work_state(session),
        worked_sec=live_worked_seconds(session, now),
        paused_sec=live_paused_seconds(session, now),
        session=SessionOut.from_model(session),
    )


@router.post("/clock-in", response_model=SessionOut)
def clock_in(
    user_id: int,
    payload: ClockInRequest | None = None,
    tracker: TimeTracker = Depends(get_tracker),
) -> SessionOut:
    notes = payload.notes if payload is not None else None
    return SessionOut.from_model(tracker.clock_in(user_id, notes=notes))


@router.post("/clock-out", response_model=SessionOut)
def clock_out(user_id: int, tracker: TimeTracker = Depends(get_tracker)) -> SessionOut:
    return SessionOut.from_model(tracker.clock_out(user_id))


@router.post("/pause/start", response_model=SessionOut)
def pause_start(
    user_id: int,
    payload: PauseStartRequest | None = None,
    tracker: TimeTracker = Depends(get_tracker),
) -> SessionOut:
    request = payload or PauseStartRequest()
    return SessionOut.from_model(tracker.pause_start(user_id, request.type))


@router.post("/pause/end", response_model=SessionOut)
def pause_end(user_id: int, tracker: TimeTracker = Depends(get_tracker)) -> SessionOut:
    return SessionOut.from_model(tracker.pause_end(user_id))
