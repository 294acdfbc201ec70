"""Clock-in/out and pause transitions.

Every function takes the user's currently open session (or ``None``) and
returns the next snapshot. Nothing is mutated in place and nothing is
written anywhere; persisting the result is the caller's job.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime

from .durations import rounded_minutes, worked_hours
from .errors import InvalidTransition
from .models import Pause, PauseType, WorkSession, WorkState, work_state


def clock_in(
    user_id: int,
    current: WorkSession | None,
    now: datetime,
    notes: str | None = None,
) -> WorkSession:
    _check_owner(user_id, current)
    if work_state(current) is not WorkState.IDLE:
        raise InvalidTransition("已有进行中的工作记录，不能重复上班打卡")

    return WorkSession(
        user_id=user_id,
        date=now.date(),
        clock_in=now,
        notes=(notes or "").strip() or None,
    )


def clock_out(user_id: int, current: WorkSession | None, now: datetime) -> WorkSession:
    session = _require_open(user_id, current, "当前没有进行中的工作记录，无法下班打卡")

    # Any open pause is closed at the same instant before totals are computed.
    if session.open_pause is not None:
        session = _close_open_pause(session, now)

    # Close first with a placeholder total so worked_hours sees clock_out.
    closed = replace(session, clock_out=max(now, session.clock_in), total_hours=0.0)
    total = max(0.0, round(worked_hours(closed), 2))
    return replace(closed, total_hours=total)


def pause_start(
    user_id: int,
    current: WorkSession | None,
    pause_type: PauseType | str,
    now: datetime,
) -> WorkSession:
    session = _require_open(user_id, current, "当前没有进行中的工作记录，无法开始暂停")
    if session.open_pause is not None:
        raise InvalidTransition("已有进行中的暂停")

    pause = Pause(start_time=now, type=PauseType(pause_type), session_id=session.id)
    return replace(session, pauses=session.pauses + (pause,))


def pause_end(user_id: int, current: WorkSession | None, now: datetime) -> WorkSession:
    session = _require_open(user_id, current, "当前没有进行中的暂停")
    if session.open_pause is None:
        raise InvalidTransition("当前没有进行中的暂停")
    return _close_open_pause(session, now)


def _close_open_pause(session: WorkSession, now: datetime) -> WorkSession:
    pauses: list[Pause] = []
    for pause in session.pauses:
        if pause.is_open:
            end = max(now, pause.start_time)
            pause = replace(pause, end_time=end, duration=rounded_minutes(pause.start_time, end))
        pauses.append(pause)
    return replace(session, pauses=tuple(pauses))


def _require_open(user_id: int, current: WorkSession | None, message: str) -> WorkSession:
    _check_owner(user_id, current)
    if current is None or not current.is_open:
        raise InvalidTransition(message)
    return current


def _check_owner(user_id: int, current: WorkSession | None) -> None:
    if current is not None and current.user_id != user_id:
        raise InvalidTransition("工作记录不属于该用户")
