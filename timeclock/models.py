from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum


class SessionStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class PauseType(str, Enum):
    MEAL = "meal"
    BREAK = "break"
    OTHER = "other"


class WorkState(str, Enum):
    IDLE = "idle"
    WORKING = "working"
    PAUSED = "paused"


class Role(str, Enum):
    EMPLOYEE = "employee"
    ADMIN = "admin"


@dataclass(frozen=True)
class User:
    id: int
    full_name: str
    role: Role = Role.EMPLOYEE

    def __post_init__(self) -> None:
        if not isinstance(self.role, Role):
            object.__setattr__(self, "role", Role(self.role))

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


@dataclass(frozen=True)
class Pause:
    """A rest interval inside a work session.

    A pause is either open (no ``end_time`` and no ``duration``) or closed
    (both set). Mixing the two is rejected at construction time.
    """

    start_time: datetime
    type: PauseType = PauseType.BREAK
    end_time: datetime | None = None
    duration: int | None = None
    id: int | None = None
    session_id: int | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.type, PauseType):
            object.__setattr__(self, "type", PauseType(self.type))
        if (self.end_time is None) != (self.duration is None):
            raise ValueError("pause end_time and duration must be set together")
        if self.end_time is not None and self.end_time < self.start_time:
            raise ValueError("pause end_time is before start_time")
        if self.duration is not None and self.duration < 0:
            raise ValueError("pause duration must not be negative")

    @property
    def is_open(self) -> bool:
        return self.end_time is None


@dataclass(frozen=True)
class WorkSession:
    """One clock-in to clock-out span of a user.

    ``status`` is derived from the other fields: a session with ``clock_out``
    is completed, an open session with an open pause is paused, anything else
    is active. ``date`` is the calendar day used for bucketing and is never
    recomputed from ``clock_in``.
    """

    user_id: int
    date: date
    clock_in: datetime
    clock_out: datetime | None = None
    total_hours: float | None = None
    pauses: tuple[Pause, ...] = field(default_factory=tuple)
    edited_manually: bool = False
    notes: str | None = None
    id: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "pauses", tuple(self.pauses))
        if (self.clock_out is None) != (self.total_hours is None):
            raise ValueError("clock_out and total_hours must be set together")
        if self.clock_out is not None and self.clock_out < self.clock_in:
            raise ValueError("clock_out is before clock_in")

        open_count = sum(1 for pause in self.pauses if pause.is_open)
        if open_count > 1:
            raise ValueError("a session can have at most one open pause")
        if open_count and self.clock_out is not None:
            raise ValueError("a completed session cannot have an open pause")

    @property
    def status(self) -> SessionStatus:
        if self.clock_out is not None:
            return SessionStatus.COMPLETED
        if self.open_pause is not None:
            return SessionStatus.PAUSED
        return SessionStatus.ACTIVE

    @property
    def is_open(self) -> bool:
        return self.clock_out is None

    @property
    def open_pause(self) -> Pause | None:
        for pause in self.pauses:
            if pause.is_open:
                return pause
        return None

    @property
    def closed_pauses(self) -> tuple[Pause, ...]:
        return tuple(pause for pause in self.pauses if not pause.is_open)

    @property
    def pause_minutes(self) -> int:
        return sum(pause.duration or 0 for pause in self.closed_pauses)


def work_state(session: WorkSession | None) -> WorkState:
    if session is None or not session.is_open:
        return WorkState.IDLE
    if session.status is SessionStatus.PAUSED:
        return WorkState.PAUSED
    return WorkState.WORKING
