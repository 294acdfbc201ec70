from __future__ import annotations

from datetime import datetime
import math
from typing import Iterable

from .models import Pause, WorkSession


def elapsed_seconds(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds())


def elapsed_minutes(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() / 60)


def rounded_minutes(start: datetime, end: datetime) -> int:
    minutes = (end - start).total_seconds() / 60
    return int(math.floor(minutes + 0.5))


def closed_pause_seconds(pauses: Iterable[Pause]) -> int:
    total = 0
    for pause in pauses:
        if pause.end_time is None:
            continue
        total += elapsed_seconds(pause.start_time, pause.end_time)
    return total


def open_pause_seconds(session: WorkSession, now: datetime) -> int:
    pause = session.open_pause
    if pause is None:
        return 0
    return elapsed_seconds(pause.start_time, now)


def live_worked_seconds(session: WorkSession, now: datetime) -> int:
    # Floored at zero: "now" may come from a clock that lags the stored instants.
    end_point = session.clock_out or now
    total = elapsed_seconds(session.clock_in, end_point)
    paused = closed_pause_seconds(session.pauses) + open_pause_seconds(session, now)
    return max(0, total - paused)


def live_paused_seconds(session: WorkSession, now: datetime) -> int:
    return closed_pause_seconds(session.pauses) + open_pause_seconds(session, now)


def worked_hours(session: WorkSession) -> float:
    """Hours worked in a closed session, pauses excluded.

    Returns 0.0 for a session that has not been clocked out yet; that zero
    does not mean the session is empty.
    """
    if session.clock_out is None:
        return 0.0
    total_min = elapsed_minutes(session.clock_in, session.clock_out)
    pause_min = 0
    for pause in session.pauses:
        if pause.end_time is None:
            continue
        pause_min += elapsed_minutes(pause.start_time, pause.end_time)
    return (total_min - pause_min) / 60


def format_duration(seconds: int) -> str:
    total = max(0, int(seconds))
    minutes, sec = divmod(total, 60)
    hours, minutes = divmod(minutes, 60)
    return f"{hours:02d}:{minutes:02d}:{sec:02d}"


def format_hours(hours: float) -> str:
    return f"{hours:.1f}h"
