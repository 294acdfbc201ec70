from __future__ import annotations

from contextlib import contextmanager
from datetime import date, datetime, timezone
import logging
import os
from pathlib import Path
import sqlite3
from typing import Iterator

from .errors import InvalidTransition, NotFound, StoreFailure
from .models import Pause, Role, User, WorkSession

logger = logging.getLogger(__name__)

_SESSION_COLUMNS = (
    "id, user_id, date, clock_in, clock_out, total_hours, status, edited_manually, notes"
)
_PAUSE_COLUMNS = "id, session_id, start_time, end_time, type, duration"


def _to_utc_text(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S")


def _from_utc_text(text: str) -> datetime:
    return datetime.strptime(text, "%Y-%m-%dT%H:%M:%S").replace(tzinfo=timezone.utc)


def _optional_utc_text(value: datetime | None) -> str | None:
    return _to_utc_text(value) if value is not None else None


def _optional_from_utc_text(text: str | None) -> datetime | None:
    return _from_utc_text(text) if text else None


class TimeClockDB:
    def __init__(self, db_path: Path, journal_mode: str | None = None) -> None:
        self.db_path = Path(db_path)
        raw_mode = (journal_mode or os.getenv("TIMECLOCK_JOURNAL_MODE") or "MEMORY").strip()
        self.journal_mode = raw_mode.upper() if raw_mode else "MEMORY"
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        self._apply_journal_mode(conn)
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    def _apply_journal_mode(self, conn: sqlite3.Connection) -> None:
        try:
            conn.execute(f"PRAGMA journal_mode={self.journal_mode}")
        except sqlite3.OperationalError:
            conn.execute("PRAGMA journal_mode=MEMORY")

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection whose writes commit together or not at all."""
        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            logger.error("cannot open database %s: %s", self.db_path, exc)
            raise StoreFailure(f"无法打开数据库：{exc}") from exc

        try:
            yield conn
            conn.commit()
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            if "work_sessions.user_id" in str(exc):
                raise InvalidTransition("该用户已有进行中的工作记录") from exc
            if "pauses.session_id" in str(exc):
                raise InvalidTransition("已有进行中的暂停") from exc
            logger.error("integrity error on %s: %s", self.db_path, exc)
            raise StoreFailure(f"数据完整性错误：{exc}") from exc
        except sqlite3.Error as exc:
            conn.rollback()
            logger.error("database error on %s: %s", self.db_path, exc)
            raise StoreFailure(f"数据库操作失败：{exc}") from exc
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    def init_schema(self) -> None:
        with self._transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    full_name TEXT NOT NULL,
                    role TEXT NOT NULL DEFAULT 'employee' CHECK (role IN ('employee', 'admin'))
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS work_sessions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    date TEXT NOT NULL,
                    clock_in TEXT NOT NULL,
                    clock_out TEXT,
                    total_hours REAL,
                    status TEXT NOT NULL CHECK (status IN ('active', 'paused', 'completed')),
                    edited_manually INTEGER NOT NULL DEFAULT 0 CHECK (edited_manually IN (0, 1)),
                    notes TEXT
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS pauses (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    session_id INTEGER NOT NULL REFERENCES work_sessions(id) ON DELETE CASCADE,
                    start_time TEXT NOT NULL,
                    end_time TEXT,
                    type TEXT NOT NULL CHECK (type IN ('meal', 'break', 'other')),
                    duration INTEGER CHECK (duration IS NULL OR duration >= 0)
                )
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_work_sessions_user_date
                ON work_sessions(user_id, date)
                """
            )
            conn.execute(
                """
                CREATE UNIQUE INDEX IF NOT EXISTS idx_work_sessions_one_open
                ON work_sessions(user_id)
                WHERE status IN ('active', 'paused')
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_pauses_session
                ON pauses(session_id)
                """
            )
            conn.execute(
                """
                CREATE UNIQUE INDEX IF NOT EXISTS idx_pauses_one_open
                ON pauses(session_id)
                WHERE end_time IS NULL
                """
            )

    def add_user(self, full_name: str, role: Role | str = Role.EMPLOYEE) -> User:
        clean_role = Role(role)
        with self._transaction() as conn:
            cursor = conn.execute(
                "INSERT INTO users (full_name, role) VALUES (?, ?)",
                (full_name.strip(), clean_role.value),
            )
            user_id = int(cursor.lastrowid)
        return User(id=user_id, full_name=full_name.strip(), role=clean_role)

    def get_user(self, user_id: int) -> User:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT id, full_name, role FROM users WHERE id = ?", (int(user_id),)
            ).fetchone()
        if row is None:
            raise NotFound(f"用户不存在：{user_id}")
        return User(id=int(row["id"]), full_name=row["full_name"], role=Role(row["role"]))

    def list_users(self) -> list[User]:
        with self._transaction() as conn:
            rows = conn.execute("SELECT id, full_name, role FROM users ORDER BY full_name ASC").fetchall()
        return [User(id=int(row["id"]), full_name=row["full_name"], role=Role(row["role"])) for row in rows]

    def save_session(self, session: WorkSession) -> WorkSession:
        """Write a session and all of its pauses in a single transaction.

        Only open sessions can be updated, and the snapshot must carry every
        pause already stored for it. A snapshot read before another write to
        the same session is refused with ``InvalidTransition``.
        """
        with self._transaction() as conn:
            values = (
                session.user_id,
                session.date.isoformat(),
                _to_utc_text(session.clock_in),
                _optional_utc_text(session.clock_out),
                session.total_hours,
                session.status.value,
                1 if session.edited_manually else 0,
                (session.notes or "").strip() or None,
            )
            if session.id is None:
                cursor = conn.execute(
                    """
                    INSERT INTO work_sessions (
                        user_id,
                        date,
                        clock_in,
                        clock_out,
                        total_hours,
                        status,
                        edited_manually,
                        notes
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    values,
                )
                session_id = int(cursor.lastrowid)
            else:
                cursor = conn.execute(
                    """
                    UPDATE work_sessions
                    SET user_id = ?, date = ?, clock_in = ?, clock_out = ?, total_hours = ?,
                        status = ?, edited_manually = ?, notes = ?
                    WHERE id = ? AND status IN ('active', 'paused')
                    """,
                    (*values, session.id),
                )
                session_id = int(session.id)
                if cursor.rowcount == 0:
                    exists = conn.execute(
                        "SELECT 1 FROM work_sessions WHERE id = ?", (session_id,)
                    ).fetchone()
                    if exists is None:
                        raise NotFound(f"工作记录不存在：{session.id}")
                    raise InvalidTransition("该工作记录已结束，不能再修改")
                self._check_pauses_current(conn, session_id, session)

            for pause in session.pauses:
                self._write_pause(conn, session_id, pause)

        return self.get_session(session_id)

    def _check_pauses_current(self, conn: sqlite3.Connection, session_id: int, session: WorkSession) -> None:
        rows = conn.execute("SELECT id FROM pauses WHERE session_id = ?", (session_id,)).fetchall()
        stored = {int(row["id"]) for row in rows}
        known = {pause.id for pause in session.pauses if pause.id is not None}
        if stored - known:
            logger.warning("stale snapshot for session %s: unknown pauses %s", session_id, sorted(stored - known))
            raise InvalidTransition("工作记录已被其他操作修改，请刷新后重试")

    def _write_pause(self, conn: sqlite3.Connection, session_id: int, pause: Pause) -> None:
        values = (
            _to_utc_text(pause.start_time),
            _optional_utc_text(pause.end_time),
            pause.type.value,
            pause.duration,
        )
        if pause.id is None:
            conn.execute(
                """
                INSERT INTO pauses (session_id, start_time, end_time, type, duration)
                VALUES (?, ?, ?, ?, ?)
                """,
                (session_id, *values),
            )
            return
        cursor = conn.execute(
            """
            UPDATE pauses
            SET start_time = ?, end_time = ?, type = ?, duration = ?
            WHERE id = ? AND session_id = ?
            """,
            (*values, pause.id, session_id),
        )
        if cursor.rowcount == 0:
            raise NotFound(f"暂停记录不存在：{pause.id}")

    def get_session(self, session_id: int) -> WorkSession:
        query = f"SELECT {_SESSION_COLUMNS} FROM work_sessions WHERE id = ?"
        items = self._read_sessions(query, [int(session_id)])
        if not items:
            raise NotFound(f"工作记录不存在：{session_id}")
        return items[0]

    def get_open_session(self, user_id: int) -> WorkSession | None:
        query = (
            f"SELECT {_SESSION_COLUMNS} FROM work_sessions "
            "WHERE user_id = ? AND status IN ('active', 'paused') "
            "ORDER BY clock_in DESC LIMIT 1"
        )
        items = self._read_sessions(query, [int(user_id)])
        return items[0] if items else None

    def list_sessions(
        self,
        user_id: int | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        limit: int = 200,
    ) -> list[WorkSession]:
        clauses = ["1=1"]
        params: list[object] = []

        if user_id is not None:
            clauses.append("user_id = ?")
            params.append(int(user_id))
        if date_from is not None:
            clauses.append("date >= ?")
            params.append(date_from.isoformat())
        if date_to is not None:
            clauses.append("date <= ?")
            params.append(date_to.isoformat())

        safe_limit = max(1, min(5000, int(limit)))
        query = (
            f"SELECT {_SESSION_COLUMNS} FROM work_sessions "
            f"WHERE {' AND '.join(clauses)} "
            "ORDER BY date DESC, clock_in DESC "
            "LIMIT ?"
        )
        params.append(safe_limit)
        return self._read_sessions(query, params)

    def list_sessions_between(
        self,
        start: date,
        end: date,
        user_id: int | None = None,
    ) -> list[WorkSession]:
        clauses = ["date >= ?", "date <= ?"]
        params: list[object] = [start.isoformat(), end.isoformat()]
        if user_id is not None:
            clauses.append("user_id = ?")
            params.append(int(user_id))
        query = (
            f"SELECT {_SESSION_COLUMNS} FROM work_sessions "
            f"WHERE {' AND '.join(clauses)} "
            "ORDER BY date ASC, clock_in ASC"
        )
        return self._read_sessions(query, params)

    def delete_session(self, session_id: int) -> None:
        session = self.get_session(session_id)
        if session.is_open:
            raise InvalidTransition("进行中的工作记录不能删除，请先下班打卡")
        with self._transaction() as conn:
            conn.execute("DELETE FROM work_sessions WHERE id = ?", (int(session_id),))
        logger.info("deleted session %s of user %s", session_id, session.user_id)

    def update_notes(self, session_id: int, notes: str | None) -> WorkSession:
        with self._transaction() as conn:
            cursor = conn.execute(
                "UPDATE work_sessions SET notes = ? WHERE id = ?",
                ((notes or "").strip() or None, int(session_id)),
            )
            if cursor.rowcount == 0:
                raise NotFound(f"工作记录不存在：{session_id}")
        return self.get_session(session_id)

    def _read_sessions(self, query: str, params: list[object]) -> list[WorkSession]:
        with self._transaction() as conn:
            rows = conn.execute(query, params).fetchall()
            pauses_by_session = self._read_pauses(conn, [int(row["id"]) for row in rows])

        items: list[WorkSession] = []
        for row in rows:
            session_id = int(row["id"])
            try:
                item = WorkSession(
                    id=session_id,
                    user_id=int(row["user_id"]),
                    date=date.fromisoformat(row["date"]),
                    clock_in=_from_utc_text(row["clock_in"]),
                    clock_out=_optional_from_utc_text(row["clock_out"]),
                    total_hours=(float(row["total_hours"]) if row["total_hours"] is not None else None),
                    pauses=tuple(pauses_by_session.get(session_id, [])),
                    edited_manually=bool(row["edited_manually"]),
                    notes=row["notes"],
                )
            except ValueError as exc:
                logger.error("corrupt session %s in %s: %s", session_id, self.db_path, exc)
                raise StoreFailure(f"工作记录数据损坏：#{session_id}") from exc
            items.append(item)
        return items

    def _read_pauses(self, conn: sqlite3.Connection, session_ids: list[int]) -> dict[int, list[Pause]]:
        if not session_ids:
            return {}
        placeholders = ", ".join("?" for _ in session_ids)
        rows = conn.execute(
            f"SELECT {_PAUSE_COLUMNS} FROM pauses "
            f"WHERE session_id IN ({placeholders}) "
            "ORDER BY start_time ASC, id ASC",
            session_ids,
        ).fetchall()

        grouped: dict[int, list[Pause]] = {}
        for row in rows:
            session_id = int(row["session_id"])
            grouped.setdefault(session_id, []).append(
                Pause(
                    id=int(row["id"]),
                    session_id=session_id,
                    start_time=_from_utc_text(row["start_time"]),
                    end_time=_optional_from_utc_text(row["end_time"]),
                    type=row["type"],
                    duration=(int(row["duration"]) if row["duration"] is not None else None),
                )
            )
        return grouped


def default_db_path() -> Path:
    env_path = os.getenv("TIMECLOCK_DB", "").strip()
    if env_path:
        return Path(env_path)
    return Path(__file__).resolve().parent / "data" / "timeclock.sqlite"
