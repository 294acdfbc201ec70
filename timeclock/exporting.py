from __future__ import annotations

import csv
from datetime import datetime
import io
import logging
from pathlib import Path
from typing import Iterable, Mapping

from .models import SessionStatus, WorkSession

logger = logging.getLogger(__name__)

CSV_HEADER = [
    "Date",
    "Clock-in time",
    "Clock-out time",
    "Pause minutes",
    "Total hours",
    "Status",
    "Notes",
]

STATUS_LABELS = {
    SessionStatus.ACTIVE: "Active",
    SessionStatus.PAUSED: "Paused",
    SessionStatus.COMPLETED: "Completed",
}

MASTER_CSV_HEADER = [CSV_HEADER[0], "Employee", *CSV_HEADER[1:]]

PLACEHOLDER = "-"
UNKNOWN_EMPLOYEE = "N/A"


def _local_time(value: datetime) -> str:
    return value.astimezone().strftime("%H:%M")


def session_row(item: WorkSession) -> list[object]:
    return [
        item.date.isoformat(),
        _local_time(item.clock_in),
        _local_time(item.clock_out) if item.clock_out is not None else PLACEHOLDER,
        item.pause_minutes,
        f"{item.total_hours:.2f}" if item.total_hours is not None else PLACEHOLDER,
        STATUS_LABELS[item.status],
        item.notes or "",
    ]


def sessions_to_csv(sessions: Iterable[WorkSession]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for item in sessions:
        writer.writerow(session_row(item))
    return buffer.getvalue()


def master_table_to_csv(sessions: Iterable[WorkSession], employee_names: Mapping[int, str]) -> str:
    """Render every employee's sessions with an extra ``Employee`` column."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(MASTER_CSV_HEADER)
    for item in sessions:
        row = session_row(item)
        row.insert(1, employee_names.get(item.user_id, UNKNOWN_EMPLOYEE))
        writer.writerow(row)
    return buffer.getvalue()


def _write_csv(text: str, out_dir: Path, filename: str) -> Path:
    out_path = Path(out_dir)
    out_path.mkdir(parents=True, exist_ok=True)
    csv_path = out_path / filename

    with csv_path.open("w", encoding="utf-8", newline="") as fp:
        fp.write(text)

    logger.info("exported sessions to %s", csv_path)
    return csv_path


def export_master_table_csv(
    sessions: Iterable[WorkSession],
    employee_names: Mapping[int, str],
    out_dir: Path,
    filename: str = "timeclock-master.csv",
) -> Path:
    return _write_csv(master_table_to_csv(sessions, employee_names), out_dir, filename)


def export_sessions_csv(
    sessions: Iterable[WorkSession],
    out_dir: Path,
    filename: str = "timeclock.csv",
) -> Path:
    return _write_csv(sessions_to_csv(sessions), out_dir, filename)
