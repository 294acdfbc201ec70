from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, Field

from ..models import PauseType, Role, SessionStatus, User, WorkSession, WorkState
from ..reporting import DailyStats, Dashboard, PeriodStats, TeamMember, TeamOverview


class UserOut(BaseModel):
    id: int
    full_name: str
    role: Role

    @classmethod
    def from_model(cls, user: User) -> "UserOut":
        return cls(id=user.id, full_name=user.full_name, role=user.role)


class UserCreate(BaseModel):
    full_name: str = Field(min_length=1)
    role: Role = Role.EMPLOYEE


class PauseOut(BaseModel):
    id: int | None
    start_time: dt.datetime
    end_time: dt.datetime | None = None
    type: PauseType
    duration: int | None = None


class SessionOut(BaseModel):
    id: int | None
    user_id: int
    date: dt.date
    clock_in: dt.datetime
    clock_out: dt.datetime | None = None
    total_hours: float | None = None
    status: SessionStatus
    edited_manually: bool
    notes: str | None = None
    pause_minutes: int
    pauses: list[PauseOut] = Field(default_factory=list)

    @classmethod
    def from_model(cls, item: WorkSession) -> "SessionOut":
        return cls(
            id=item.id,
            user_id=item.user_id,
            date=item.date,
            clock_in=item.clock_in,
            clock_out=item.clock_out,
            total_hours=item.total_hours,
            status=item.status,
            edited_manually=item.edited_manually,
            notes=item.notes,
            pause_minutes=item.pause_minutes,
            pauses=[
                PauseOut(
                    id=pause.id,
                    start_time=pause.start_time,
                    end_time=pause.end_time,
                    type=pause.type,
                    duration=pause.duration,
                )
                for pause in item.pauses
            ],
        )


class MasterRowOut(SessionOut):
    employee: str

    @classmethod
    def from_session(cls, item: WorkSession, employee: str) -> "MasterRowOut":
        return cls(**SessionOut.from_model(item).model_dump(), employee=employee)


class CurrentOut(BaseModel):
    state: WorkState
    worked_sec: int
    paused_sec: int
    session: SessionOut | None = None


class ClockInRequest(BaseModel):
    notes: str | None = None


class PauseStartRequest(BaseModel):
    type: PauseType = PauseType.BREAK


class NotesUpdate(BaseModel):
    notes: str | None = None


class DailyStatsOut(BaseModel):
    date: dt.date
    total_worked: float
    total_paused: float
    entries: int

    @classmethod
    def from_model(cls, stats: DailyStats) -> "DailyStatsOut":
        return cls(
            date=stats.date,
            total_worked=stats.total_worked,
            total_paused=stats.total_paused,
            entries=stats.entries,
        )


class PeriodStatsOut(BaseModel):
    start: dt.date
    end: dt.date
    total_hours: float
    average_daily: float
    days_worked: int
    productivity: int
    daily_breakdown: list[DailyStatsOut]

    @classmethod
    def from_model(cls, stats: PeriodStats, productivity: int) -> "PeriodStatsOut":
        return cls(
            start=stats.start,
            end=stats.end,
            total_hours=stats.total_hours,
            average_daily=stats.average_daily,
            days_worked=stats.days_worked,
            productivity=productivity,
            daily_breakdown=[DailyStatsOut.from_model(day) for day in stats.daily_breakdown],
        )


class DashboardOut(BaseModel):
    today: DailyStatsOut
    this_week: PeriodStatsOut
    this_month: PeriodStatsOut
    productivity: int

    @classmethod
    def from_model(cls, dashboard: Dashboard, month_productivity: int) -> "DashboardOut":
        return cls(
            today=DailyStatsOut.from_model(dashboard.today),
            this_week=PeriodStatsOut.from_model(dashboard.this_week, dashboard.productivity),
            this_month=PeriodStatsOut.from_model(dashboard.this_month, month_productivity),
            productivity=dashboard.productivity,
        )


class TeamMemberOut(BaseModel):
    user: UserOut
    state: WorkState
    is_working: bool
    today_hours: float
    live_worked_sec: int

    @classmethod
    def from_model(cls, member: TeamMember) -> "TeamMemberOut":
        return cls(
            user=UserOut.from_model(member.user),
            state=member.state,
            is_working=member.is_working,
            today_hours=member.today_hours,
            live_worked_sec=member.live_worked_sec,
        )


class TeamOverviewOut(BaseModel):
    total_employees: int
    active_now: int
    paused_now: int
    today_hours: float
    members: list[TeamMemberOut]

    @classmethod
    def from_model(cls, overview: TeamOverview) -> "TeamOverviewOut":
        return cls(
            total_employees=overview.total_employees,
            active_now=overview.active_now,
            paused_now=overview.paused_now,
            today_hours=overview.today_hours,
            members=[TeamMemberOut.from_model(member) for member in overview.members],
        )


class FileResult(BaseModel):
    path: str


class HealthOut(BaseModel):
    status: str = Field(default="ok")


class MetaOut(BaseModel):
    app: str
    version: str
    db_path: str
    platform: str
