from __future__ import annotations

from datetime import datetime
import logging
from typing import Callable

from . import transitions
from .clock import Clock, RealClock
from .db import TimeClockDB
from .models import PauseType, WorkSession, WorkState, work_state

logger = logging.getLogger(__name__)


class TimeTracker:
    """Apply clock/pause transitions for a user and persist the result.

    Each operation reads the user's open session, computes the next snapshot
    with the pure functions in :mod:`timeclock.transitions` and saves it in one
    store transaction. A failed transition leaves the store untouched.
    """

    def __init__(self, db: TimeClockDB, clock: Clock | None = None) -> None:
        self.db = db
        self.clock = clock or RealClock()

    def current(self, user_id: int) -> WorkSession | None:
        self.db.get_user(user_id)
        return self.db.get_open_session(user_id)

    def state(self, user_id: int) -> WorkState:
        return work_state(self.current(user_id))

    def clock_in(self, user_id: int, notes: str | None = None) -> WorkSession:
        return self._apply(
            "clock_in",
            user_id,
            lambda current, now: transitions.clock_in(user_id, current, now, notes=notes),
        )

    def clock_out(self, user_id: int) -> WorkSession:
        return self._apply(
            "clock_out",
            user_id,
            lambda current, now: transitions.clock_out(user_id, current, now),
        )

    def pause_start(self, user_id: int, pause_type: PauseType | str = PauseType.BREAK) -> WorkSession:
        return self._apply(
            "pause_start",
            user_id,
            lambda current, now: transitions.pause_start(user_id, current, pause_type, now),
        )

    def pause_end(self, user_id: int) -> WorkSession:
        return self._apply(
            "pause_end",
            user_id,
            lambda current, now: transitions.pause_end(user_id, current, now),
        )

    def _apply(
        self,
        action: str,
        user_id: int,
        step: Callable[[WorkSession | None, datetime], WorkSession],
    ) -> WorkSession:
        current = self.current(user_id)
        before = work_state(current)
        updated = step(current, self.clock.now())
        stored = self.db.save_session(updated)
        logger.info(
            "%s user=%s session=%s %s -> %s",
            action,
            user_id,
            stored.id,
            before.value,
            work_state(stored).value,
        )
        return stored
