from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime, timedelta
import logging
import math
import os
from pathlib import Path
from typing import Iterable, Sequence

from .durations import format_duration, format_hours, live_worked_seconds
from .models import User, WorkSession, WorkState, work_state

logger = logging.getLogger(__name__)

DEFAULT_TARGET_HOURS = 8.0


@dataclass(frozen=True)
class DailyStats:
    date: date
    total_worked: float
    total_paused: float
    entries: int


@dataclass(frozen=True)
class PeriodStats:
    start: date
    end: date
    total_hours: float
    average_daily: float
    days_worked: int
    daily_breakdown: tuple[DailyStats, ...]


@dataclass(frozen=True)
class Dashboard:
    today: DailyStats
    this_week: PeriodStats
    this_month: PeriodStats
    productivity: int


@dataclass(frozen=True)
class TeamMember:
    user: User
    state: WorkState
    today_hours: float
    live_worked_sec: int
    last_session: WorkSession | None

    @property
    def is_working(self) -> bool:
        return self.state is not WorkState.IDLE


@dataclass(frozen=True)
class TeamOverview:
    total_employees: int
    active_now: int
    paused_now: int
    today_hours: float
    members: tuple[TeamMember, ...]


def default_target_hours() -> float:
    raw = os.getenv("TIMECLOCK_TARGET_HOURS", "").strip()
    if not raw:
        return DEFAULT_TARGET_HOURS
    try:
        value = float(raw)
    except ValueError:
        logger.warning("ignoring invalid TIMECLOCK_TARGET_HOURS=%r", raw)
        return DEFAULT_TARGET_HOURS
    return value if value > 0 else DEFAULT_TARGET_HOURS


def daily_stats(sessions: Iterable[WorkSession], day: date) -> DailyStats:
    day = _as_date(day)
    day_sessions = [item for item in sessions if item.date == day]
    total_worked = sum(item.total_hours or 0.0 for item in day_sessions)
    total_paused = sum(item.pause_minutes for item in day_sessions) / 60
    return DailyStats(
        date=day,
        total_worked=total_worked,
        total_paused=total_paused,
        entries=len(day_sessions),
    )


def week_bounds(ref: date) -> tuple[date, date]:
    ref = _as_date(ref)
    start = ref - timedelta(days=ref.weekday())
    return start, start + timedelta(days=6)


def month_bounds(ref: date) -> tuple[date, date]:
    ref = _as_date(ref)
    last_day = calendar.monthrange(ref.year, ref.month)[1]
    return ref.replace(day=1), ref.replace(day=last_day)


def weekly_stats(sessions: Iterable[WorkSession], ref: date) -> PeriodStats:
    start, end = week_bounds(ref)
    return period_stats(sessions, start, end)


def monthly_stats(sessions: Iterable[WorkSession], ref: date) -> PeriodStats:
    start, end = month_bounds(ref)
    return period_stats(sessions, start, end)


def period_stats(sessions: Iterable[WorkSession], start: date, end: date) -> PeriodStats:
    """Aggregate sessions bucketed by their stored date over ``start..end``.

    Every calendar day of the window appears in ``daily_breakdown``, including
    days without sessions. Open sessions count as entries but add no hours.
    """
    items = list(sessions)
    breakdown: list[DailyStats] = []
    current = start
    while current <= end:
        breakdown.append(daily_stats(items, current))
        current += timedelta(days=1)

    total_hours = sum(item.total_hours or 0.0 for item in items if start <= item.date <= end)
    days_worked = sum(1 for day in breakdown if day.entries > 0)
    average = total_hours / days_worked if days_worked > 0 else 0.0
    return PeriodStats(
        start=start,
        end=end,
        total_hours=total_hours,
        average_daily=average,
        days_worked=days_worked,
        daily_breakdown=tuple(breakdown),
    )


def productivity_score(stats: PeriodStats, target_hours_per_day: float = DEFAULT_TARGET_HOURS) -> int:
    if target_hours_per_day <= 0:
        raise ValueError("target_hours_per_day must be positive")
    if stats.days_worked == 0:
        return 0
    ratio = stats.total_hours / (stats.days_worked * target_hours_per_day)
    score = int(math.floor(ratio * 100 + 0.5))
    return max(0, min(100, score))


def build_dashboard(
    sessions: Iterable[WorkSession],
    ref: date,
    target_hours_per_day: float = DEFAULT_TARGET_HOURS,
) -> Dashboard:
    items = list(sessions)
    ref = _as_date(ref)
    week = weekly_stats(items, ref)
    return Dashboard(
        today=daily_stats(items, ref),
        this_week=week,
        this_month=monthly_stats(items, ref),
        productivity=productivity_score(week, target_hours_per_day),
    )


def team_overview(
    users: Iterable[User],
    sessions: Iterable[WorkSession],
    now: datetime,
    day: date | None = None,
) -> TeamOverview:
    """Summarise today's activity of every non-admin user."""
    today = _as_date(day or now)
    by_user: dict[int, list[WorkSession]] = {}
    for item in sessions:
        if item.date != today:
            continue
        by_user.setdefault(item.user_id, []).append(item)

    members: list[TeamMember] = []
    for user in users:
        if user.is_admin:
            continue
        own = sorted(by_user.get(user.id, []), key=lambda item: item.clock_in)
        last = own[-1] if own else None
        members.append(
            TeamMember(
                user=user,
                state=work_state(last),
                today_hours=sum(item.total_hours or 0.0 for item in own),
                live_worked_sec=sum(live_worked_seconds(item, now) for item in own),
                last_session=last,
            )
        )

    return TeamOverview(
        total_employees=len(members),
        active_now=sum(1 for member in members if member.is_working),
        paused_now=sum(1 for member in members if member.state is WorkState.PAUSED),
        today_hours=sum(member.today_hours for member in members),
        members=tuple(members),
    )


def generate_period_report(
    sessions: Sequence[WorkSession],
    out_dir: Path,
    period: str = "week",
    ref: date | None = None,
    now: datetime | None = None,
    target_hours_per_day: float = DEFAULT_TARGET_HOURS,
    owner: str = "",
) -> Path:
    stamp = now or datetime.now().astimezone()
    ref_day = _as_date(ref or stamp)

    if period == "week":
        stats = weekly_stats(sessions, ref_day)
        iso = stats.start.isocalendar()
        title = f"{iso[0]}-W{iso[1]:02d}"
        file_name = f"week-{iso[0]}-W{iso[1]:02d}.md"
        period_text = "周报"
    elif period == "month":
        stats = monthly_stats(sessions, ref_day)
        title = f"{stats.start.year}-{stats.start.month:02d}"
        file_name = f"month-{stats.start.year}-{stats.start.month:02d}.md"
        period_text = "月报"
    else:
        raise ValueError(f"unknown report period: {period}")

    score = productivity_score(stats, target_hours_per_day)
    in_window = [item for item in sessions if stats.start <= item.date <= stats.end]
    open_count = sum(1 for item in in_window if item.is_open)
    paused_hours = sum(day.total_paused for day in stats.daily_breakdown)

    lines: list[str] = []
    header = f"# 工时{period_text} {title}"
    if owner:
        header += f"（{owner}）"
    lines.append(header)
    lines.append("")
    lines.append(f"- 统计区间：{stats.start.isoformat()} 至 {stats.end.isoformat()}")
    lines.append(f"- 生成时间：{stamp.strftime('%Y-%m-%d %H:%M:%S %Z')}")
    lines.append("")

    lines.append("## 总览")
    lines.append(f"- 工作总时长：{format_hours(stats.total_hours)}")
    lines.append(f"- 暂停总时长：{format_hours(paused_hours)}")
    lines.append(f"- 出勤天数：{stats.days_worked} 天")
    lines.append(f"- 日均工时：{format_hours(stats.average_daily)}")
    lines.append(f"- 工作记录：{len(in_window)} 条（进行中 {open_count} 条）")
    lines.append(f"- 效率得分：{score}%（每日目标 {target_hours_per_day:g} 小时）")
    lines.append("")

    lines.append("## 每日明细")
    if stats.days_worked:
        lines.append("| 日期 | 工时 | 暂停 | 记录数 |")
        lines.append("| --- | --- | --- | --- |")
        for day in stats.daily_breakdown:
            if day.entries == 0:
                continue
            lines.append(
                f"| {day.date.isoformat()} | {format_hours(day.total_worked)} | "
                f"{format_duration(int(round(day.total_paused * 3600)))} | {day.entries} |"
            )
    else:
        lines.append("该区间暂无工作记录。")
    lines.append("")

    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    report_path = out_dir / file_name
    report_path.write_text("\n".join(lines), encoding="utf-8")
    logger.info("wrote %s report %s", period, report_path)
    return report_path


def _as_date(value: date) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value
