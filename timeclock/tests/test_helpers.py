from __future__ import annotations

from contextlib import contextmanager
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
import shutil
import uuid

from timeclock.models import Pause, PauseType, WorkSession


@contextmanager
def local_tmp_dir():
    base = Path(__file__).resolve().parent / "_tmp"
    base.mkdir(parents=True, exist_ok=True)
    for child in base.iterdir():
        if child.is_dir():
            shutil.rmtree(child, ignore_errors=True)
    path = base / uuid.uuid4().hex
    path.mkdir(parents=True, exist_ok=False)
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)


def at(day: date, hour: int, minute: int = 0) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=timezone.utc)


def completed_session(
    day: date,
    hours: float,
    user_id: int = 1,
    start_hour: int = 9,
    pause_minutes: int = 0,
    notes: str | None = None,
) -> WorkSession:
    clock_in = at(day, start_hour)
    pauses: tuple[Pause, ...] = ()
    if pause_minutes:
        pause_start = clock_in + timedelta(hours=1)
        pauses = (
            Pause(
                start_time=pause_start,
                end_time=pause_start + timedelta(minutes=pause_minutes),
                duration=pause_minutes,
                type=PauseType.MEAL,
            ),
        )
    return WorkSession(
        user_id=user_id,
        date=day,
        clock_in=clock_in,
        clock_out=clock_in + timedelta(hours=hours, minutes=pause_minutes),
        total_hours=hours,
        pauses=pauses,
        notes=notes,
    )
