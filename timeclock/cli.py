from __future__ import annotations

import argparse
from datetime import date, datetime
import logging
import os
from pathlib import Path
import sys

from .clock import RealClock
from .db import TimeClockDB, default_db_path
from .durations import format_duration, format_hours, live_paused_seconds, live_worked_seconds
from .errors import TimeClockError
from .exporting import STATUS_LABELS, UNKNOWN_EMPLOYEE, export_master_table_csv, export_sessions_csv
from .models import PauseType, Role, WorkState, work_state
from .reporting import (
    build_dashboard,
    default_target_hours,
    generate_period_report,
    month_bounds,
    team_overview,
    week_bounds,
)
from .tracker import TimeTracker


DEFAULT_OUT_DIR = Path(__file__).resolve().parent / "out"

STATE_LABELS = {
    WorkState.IDLE: "未上班",
    WorkState.WORKING: "工作中",
    WorkState.PAUSED: "暂停中",
}

PAUSE_LABELS = {
    PauseType.MEAL: "用餐",
    PauseType.BREAK: "休息",
    PauseType.OTHER: "其他",
}


def parse_day(value: str) -> date:
    try:
        return date.fromisoformat(value.strip())
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"日期格式错误：{value}，请使用 YYYY-MM-DD") from exc


def positive_float(value: str) -> float:
    try:
        number = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"不是有效数字：{value}") from exc
    if number <= 0:
        raise argparse.ArgumentTypeError("必须大于 0")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="timeclock",
        description="TimeClock：员工上下班打卡、暂停记录与工时统计工具",
    )
    parser.add_argument(
        "--db",
        default=str(default_db_path()),
        help="SQLite 数据库路径（默认读取 TIMECLOCK_DB，否则为 timeclock/data/timeclock.sqlite）",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("TIMECLOCK_LOG_LEVEL", "WARNING"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="日志级别",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    user_add = subparsers.add_parser("user-add", help="新增用户")
    user_add.add_argument("name", help="姓名")
    user_add.add_argument("--admin", action="store_true", help="设为管理员")

    subparsers.add_parser("users", help="列出用户")

    clock_in = subparsers.add_parser("clock-in", help="上班打卡")
    clock_in.add_argument("--user", type=int, required=True, help="用户 ID")
    clock_in.add_argument("--notes", default=None, help="备注")

    clock_out = subparsers.add_parser("clock-out", help="下班打卡")
    clock_out.add_argument("--user", type=int, required=True, help="用户 ID")

    pause = subparsers.add_parser("pause", help="开始暂停")
    pause.add_argument("--user", type=int, required=True, help="用户 ID")
    pause.add_argument(
        "--type",
        dest="pause_type",
        default=PauseType.BREAK.value,
        choices=[item.value for item in PauseType],
        help="暂停类型",
    )

    resume = subparsers.add_parser("resume", help="结束暂停")
    resume.add_argument("--user", type=int, required=True, help="用户 ID")

    status = subparsers.add_parser("status", help="查看当前状态")
    status.add_argument("--user", type=int, required=True, help="用户 ID")

    log_parser = subparsers.add_parser("log", help="查看工作记录")
    log_parser.add_argument("--user", type=int, required=True, help="用户 ID")
    log_parser.add_argument("--since", type=parse_day, default=None, help="起始日期")
    log_parser.add_argument("--limit", type=int, default=30, help="最多显示条数")

    stats_parser = subparsers.add_parser("stats", help="查看统计")
    stats_parser.add_argument("--user", type=int, required=True, help="用户 ID")
    stats_parser.add_argument("--date", type=parse_day, default=None, help="参考日期，默认今天")
    stats_parser.add_argument("--target", type=positive_float, default=None, help="每日目标工时")

    report_parser = subparsers.add_parser("report", help="生成周报/月报 Markdown")
    report_parser.add_argument("--user", type=int, required=True, help="用户 ID")
    report_parser.add_argument("--period", choices=["week", "month"], default="week", help="统计周期")
    report_parser.add_argument("--date", type=parse_day, default=None, help="参考日期，默认今天")
    report_parser.add_argument("--target", type=positive_float, default=None, help="每日目标工时")
    report_parser.add_argument(
        "--out-dir",
        default=str(DEFAULT_OUT_DIR),
        help="输出目录，默认 timeclock/out",
    )

    export_parser = subparsers.add_parser("export", help="导出 CSV")
    export_parser.add_argument("--user", type=int, required=True, help="用户 ID")
    export_parser.add_argument("--since", type=parse_day, default=None, help="起始日期")
    export_parser.add_argument(
        "--out-dir",
        default=str(DEFAULT_OUT_DIR),
        help="输出目录，默认 timeclock/out",
    )

    delete_parser = subparsers.add_parser("delete", help="删除已完成的工作记录")
    delete_parser.add_argument("session_id", type=int, help="工作记录 ID")

    note_parser = subparsers.add_parser("note", help="修改工作记录备注")
    note_parser.add_argument("session_id", type=int, help="工作记录 ID")
    note_parser.add_argument("text", help="备注内容，传空字符串表示清除")

    subparsers.add_parser("team", help="查看团队今日状态")

    sessions_parser = subparsers.add_parser("sessions", help="查看全员工作记录总表")
    sessions_parser.add_argument("--from", dest="date_from", type=parse_day, default=None, help="起始日期，默认本月 1 日")
    sessions_parser.add_argument("--to", dest="date_to", type=parse_day, default=None, help="结束日期，默认今天")
    sessions_parser.add_argument("--user", type=int, default=None, help="只看某个用户")
    sessions_parser.add_argument("--csv", action="store_true", help="导出为 CSV 而不是打印")
    sessions_parser.add_argument(
        "--out-dir",
        default=str(DEFAULT_OUT_DIR),
        help="CSV 输出目录，默认 timeclock/out",
    )

    serve_parser = subparsers.add_parser("serve", help="启动 HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1", help="监听地址")
    serve_parser.add_argument("--port", type=int, default=8000, help="监听端口")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level, logging.WARNING),
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )

    if args.command == "serve":
        return _handle_serve(args)

    handlers = {
        "user-add": _handle_user_add,
        "users": _handle_users,
        "clock-in": _handle_clock_in,
        "clock-out": _handle_clock_out,
        "pause": _handle_pause,
        "resume": _handle_resume,
        "status": _handle_status,
        "log": _handle_log,
        "stats": _handle_stats,
        "report": _handle_report,
        "export": _handle_export,
        "delete": _handle_delete,
        "note": _handle_note,
        "team": _handle_team,
        "sessions": _handle_sessions,
    }
    handler = handlers.get(args.command)
    if handler is None:
        parser.print_help()
        return 2

    try:
        db = TimeClockDB(Path(args.db))
        return handler(args, TimeTracker(db, RealClock()))
    except TimeClockError as exc:
        print(f"错误：{exc.message}", file=sys.stderr)
        return 1


def _handle_user_add(args: argparse.Namespace, tracker: TimeTracker) -> int:
    role = Role.ADMIN if args.admin else Role.EMPLOYEE
    user = tracker.db.add_user(args.name, role)
    print(f"已创建用户 #{user.id}：{user.full_name}（{user.role.value}）")
    return 0


def _handle_users(args: argparse.Namespace, tracker: TimeTracker) -> int:
    users = tracker.db.list_users()
    if not users:
        print("暂无用户。")
        return 0
    for user in users:
        print(f"#{user.id} | {user.full_name} | {user.role.value}")
    return 0


def _handle_clock_in(args: argparse.Namespace, tracker: TimeTracker) -> int:
    session = tracker.clock_in(args.user, notes=args.notes)
    start_text = session.clock_in.astimezone().strftime("%Y-%m-%d %H:%M:%S")
    print(f"上班打卡成功：{start_text}（记录 #{session.id}）")
    return 0


def _handle_clock_out(args: argparse.Namespace, tracker: TimeTracker) -> int:
    session = tracker.clock_out(args.user)
    print(f"下班打卡成功：本次工时 {session.total_hours:.2f} 小时，暂停 {session.pause_minutes} 分钟")
    return 0


def _handle_pause(args: argparse.Namespace, tracker: TimeTracker) -> int:
    pause_type = PauseType(args.pause_type)
    tracker.pause_start(args.user, pause_type)
    print(f"已开始暂停（{PAUSE_LABELS[pause_type]}）")
    return 0


def _handle_resume(args: argparse.Namespace, tracker: TimeTracker) -> int:
    session = tracker.pause_end(args.user)
    last = session.closed_pauses[-1] if session.closed_pauses else None
    minutes = last.duration if last is not None else 0
    print(f"已结束暂停，本次暂停 {minutes} 分钟")
    return 0


def _handle_status(args: argparse.Namespace, tracker: TimeTracker) -> int:
    session = tracker.current(args.user)
    state = work_state(session)
    print(f"状态：{STATE_LABELS[state]}")
    if session is None:
        return 0

    now = tracker.clock.now()
    print(f"上班时间：{session.clock_in.astimezone().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"已工作：{format_duration(live_worked_seconds(session, now))}")
    paused = live_paused_seconds(session, now)
    if paused > 0:
        print(f"已暂停：{format_duration(paused)}")
    open_pause = session.open_pause
    if open_pause is not None:
        print(f"当前暂停：{PAUSE_LABELS[open_pause.type]}")
    return 0


def _handle_log(args: argparse.Namespace, tracker: TimeTracker) -> int:
    tracker.db.get_user(args.user)
    sessions = tracker.db.list_sessions(user_id=args.user, date_from=args.since, limit=args.limit)
    if not sessions:
        print("没有匹配记录。")
        return 0

    for item in sessions:
        start_text = item.clock_in.astimezone().strftime("%H:%M")
        end_text = item.clock_out.astimezone().strftime("%H:%M") if item.clock_out else "进行中"
        hours_text = f"{item.total_hours:.2f}h" if item.total_hours is not None else "-"
        edited = " | 已手动修改" if item.edited_manually else ""
        print(
            f"#{item.id} | {item.date.isoformat()} | {start_text} → {end_text} | {hours_text} | "
            f"暂停 {item.pause_minutes} 分钟 | {STATUS_LABELS[item.status]}{edited} | 备注: {item.notes or '-'}"
        )
    return 0


def _handle_stats(args: argparse.Namespace, tracker: TimeTracker) -> int:
    tracker.db.get_user(args.user)
    ref = args.date or tracker.clock.now().date()
    target = args.target or default_target_hours()
    week_start, week_end = week_bounds(ref)
    month_start, month_end = month_bounds(ref)
    sessions = tracker.db.list_sessions_between(
        min(week_start, month_start),
        max(week_end, month_end),
        user_id=args.user,
    )
    dashboard = build_dashboard(sessions, ref, target)

    print(f"[今天 {dashboard.today.date.isoformat()}]")
    print(f"工作时长: {format_hours(dashboard.today.total_worked)}")
    print(f"暂停时长: {format_hours(dashboard.today.total_paused)}")
    print(f"工作记录: {dashboard.today.entries} 条")
    print("")
    for title, period in (("本周", dashboard.this_week), ("本月", dashboard.this_month)):
        print(f"[{title} {period.start.isoformat()} ~ {period.end.isoformat()}]")
        print(f"工作总时长: {format_hours(period.total_hours)}")
        print(f"出勤天数: {period.days_worked} 天")
        print(f"日均工时: {format_hours(period.average_daily)}")
        print("")
    print(f"本周效率得分: {dashboard.productivity}%")
    return 0


def _handle_report(args: argparse.Namespace, tracker: TimeTracker) -> int:
    user = tracker.db.get_user(args.user)
    now = tracker.clock.now()
    ref = args.date or now.date()
    start, end = week_bounds(ref) if args.period == "week" else month_bounds(ref)
    report_path = generate_period_report(
        sessions=tracker.db.list_sessions_between(start, end, user_id=args.user),
        out_dir=Path(args.out_dir),
        period=args.period,
        ref=ref,
        now=now,
        target_hours_per_day=args.target or default_target_hours(),
        owner=user.full_name,
    )
    print(f"报告已生成：{report_path}")
    return 0


def _handle_export(args: argparse.Namespace, tracker: TimeTracker) -> int:
    tracker.db.get_user(args.user)
    sessions = tracker.db.list_sessions(user_id=args.user, date_from=args.since, limit=5000)
    csv_path = export_sessions_csv(
        sessions,
        Path(args.out_dir),
        filename=f"timeclock-user{args.user}-{datetime.now().strftime('%Y%m%d')}.csv",
    )
    print(f"CSV 已导出：{csv_path}")
    return 0


def _handle_delete(args: argparse.Namespace, tracker: TimeTracker) -> int:
    tracker.db.delete_session(args.session_id)
    print(f"已删除工作记录 #{args.session_id}")
    return 0


def _handle_note(args: argparse.Namespace, tracker: TimeTracker) -> int:
    session = tracker.db.update_notes(args.session_id, args.text)
    print(f"已更新工作记录 #{session.id} 的备注")
    return 0


def _handle_team(args: argparse.Namespace, tracker: TimeTracker) -> int:
    now = tracker.clock.now()
    today = now.date()
    overview = team_overview(
        tracker.db.list_users(),
        tracker.db.list_sessions_between(today, today),
        now,
        today,
    )
    print(f"员工总数: {overview.total_employees}")
    print(f"当前在岗: {overview.active_now}（暂停中 {overview.paused_now}）")
    print(f"今日累计工时: {format_hours(overview.today_hours)}")
    for member in overview.members:
        print(
            f"#{member.user.id} | {member.user.full_name} | {STATE_LABELS[member.state]} | "
            f"今日 {format_duration(member.live_worked_sec)}"
        )
    return 0


def _handle_sessions(args: argparse.Namespace, tracker: TimeTracker) -> int:
    today = tracker.clock.now().date()
    date_from = args.date_from or today.replace(day=1)
    date_to = args.date_to or today
    if args.user is not None:
        tracker.db.get_user(args.user)

    names = {user.id: user.full_name for user in tracker.db.list_users()}
    sessions = list(reversed(tracker.db.list_sessions_between(date_from, date_to, user_id=args.user)))

    if args.csv:
        csv_path = export_master_table_csv(
            sessions,
            names,
            Path(args.out_dir),
            filename=f"timeclock-master-{today.strftime('%Y%m%d')}.csv",
        )
        print(f"CSV 已导出：{csv_path}（{len(sessions)} 条）")
        return 0

    print(f"[{date_from.isoformat()} ~ {date_to.isoformat()}] 共 {len(sessions)} 条")
    for item in sessions:
        start_text = item.clock_in.astimezone().strftime("%H:%M")
        end_text = item.clock_out.astimezone().strftime("%H:%M") if item.clock_out else "进行中"
        hours_text = f"{item.total_hours:.2f}h" if item.total_hours is not None else "-"
        print(
            f"#{item.id} | {item.date.isoformat()} | {names.get(item.user_id, UNKNOWN_EMPLOYEE)} | "
            f"{start_text} → {end_text} | {hours_text} | {STATUS_LABELS[item.status]} | 备注: {item.notes or '-'}"
        )
    return 0


def _handle_serve(args: argparse.Namespace) -> int:
    try:
        import uvicorn
    except ImportError as exc:
        print(f"启动失败：缺少依赖 uvicorn。{exc}", file=sys.stderr)
        return 2

    from .api.app import create_app

    uvicorn.run(create_app(db_path=Path(args.db)), host=args.host, port=args.port, log_level=args.log_level.lower())
    return 0
