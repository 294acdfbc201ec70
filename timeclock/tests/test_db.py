from __future__ import annotations

from dataclasses import replace
from datetime import date, timedelta
import sqlite3
import unittest

from timeclock import transitions
from timeclock.db import TimeClockDB
from timeclock.errors import InvalidTransition, NotFound
from timeclock.models import PauseType, Role, SessionStatus
from timeclock.tests.test_helpers import at, completed_session, local_tmp_dir


class TestDBSchema(unittest.TestCase):
    def test_schema_created(self) -> None:
        with local_tmp_dir() as tmp:
            db_path = tmp / "data" / "timeclock.sqlite"
            TimeClockDB(db_path)

            with sqlite3.connect(db_path) as conn:
                rows = conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
            conn.close()

            names = {row[0] for row in rows}
            self.assertTrue({"users", "work_sessions", "pauses"} <= names)

    def test_users(self) -> None:
        with local_tmp_dir() as tmp:
            db = TimeClockDB(tmp / "timeclock.sqlite")
            worker = db.add_user("  Marta  ")
            boss = db.add_user("Jefa", Role.ADMIN)

            self.assertEqual(db.get_user(worker.id).full_name, "Marta")
            self.assertTrue(db.get_user(boss.id).is_admin)
            self.assertEqual([user.full_name for user in db.list_users()], ["Jefa", "Marta"])
            with self.assertRaises(NotFound):
                db.get_user(999)


class TestSessionStore(unittest.TestCase):
    def test_save_and_reload_with_pauses(self) -> None:
        with local_tmp_dir() as tmp:
            db = TimeClockDB(tmp / "timeclock.sqlite")
            user = db.add_user("Marta")
            day = date(2026, 2, 9)

            session = db.save_session(transitions.clock_in(user.id, None, at(day, 9)))
            self.assertIsNotNone(session.id)
            self.assertIs(session.status, SessionStatus.ACTIVE)

            session = db.save_session(transitions.pause_start(user.id, session, PauseType.MEAL, at(day, 12)))
            self.assertIs(db.get_open_session(user.id).status, SessionStatus.PAUSED)
            self.assertIsNotNone(session.pauses[0].id)

            session = db.save_session(transitions.clock_out(user.id, session, at(day, 17)))
            loaded = db.get_session(session.id)
            self.assertIs(loaded.status, SessionStatus.COMPLETED)
            self.assertEqual(loaded.total_hours, 3.0)
            self.assertEqual(len(loaded.pauses), 1)
            self.assertEqual(loaded.pauses[0].duration, 300)
            self.assertIsNone(db.get_open_session(user.id))

    def test_one_open_session_per_user(self) -> None:
        with local_tmp_dir() as tmp:
            db = TimeClockDB(tmp / "timeclock.sqlite")
            user = db.add_user("Marta")
            day = date(2026, 2, 9)
            db.save_session(transitions.clock_in(user.id, None, at(day, 9)))

            # A stale snapshot (None) lets the pure step pass; the store must refuse.
            with self.assertRaises(InvalidTransition):
                db.save_session(transitions.clock_in(user.id, None, at(day, 9, 5)))
            self.assertEqual(len(db.list_sessions(user_id=user.id)), 1)

    def test_stale_pause_start_is_refused(self) -> None:
        with local_tmp_dir() as tmp:
            db = TimeClockDB(tmp / "timeclock.sqlite")
            user = db.add_user("Marta")
            day = date(2026, 2, 9)
            db.save_session(transitions.clock_in(user.id, None, at(day, 9)))

            first = db.get_open_session(user.id)
            second = db.get_open_session(user.id)
            db.save_session(transitions.pause_start(user.id, first, PauseType.BREAK, at(day, 11)))

            with self.assertRaises(InvalidTransition):
                db.save_session(transitions.pause_start(user.id, second, PauseType.MEAL, at(day, 11, 1)))

            current = db.get_open_session(user.id)
            self.assertIs(current.status, SessionStatus.PAUSED)
            self.assertEqual(len(current.pauses), 1)
            self.assertIs(current.pauses[0].type, PauseType.BREAK)

    def test_stale_clock_out_is_refused(self) -> None:
        with local_tmp_dir() as tmp:
            db = TimeClockDB(tmp / "timeclock.sqlite")
            user = db.add_user("Marta")
            day = date(2026, 2, 9)
            db.save_session(transitions.clock_in(user.id, None, at(day, 9)))

            before_pause = db.get_open_session(user.id)
            paused = db.get_open_session(user.id)
            db.save_session(transitions.pause_start(user.id, paused, PauseType.MEAL, at(day, 12)))

            with self.assertRaises(InvalidTransition):
                db.save_session(transitions.clock_out(user.id, before_pause, at(day, 13)))

            current = db.get_open_session(user.id)
            self.assertIs(current.status, SessionStatus.PAUSED)
            self.assertIsNone(current.clock_out)

            resumed = db.save_session(transitions.pause_end(user.id, current, at(day, 12, 30)))
            done = db.save_session(transitions.clock_out(user.id, resumed, at(day, 17)))
            self.assertIs(done.status, SessionStatus.COMPLETED)

    def test_completed_session_cannot_be_rewritten(self) -> None:
        with local_tmp_dir() as tmp:
            db = TimeClockDB(tmp / "timeclock.sqlite")
            user = db.add_user("Marta")
            day = date(2026, 2, 9)
            running = db.save_session(transitions.clock_in(user.id, None, at(day, 9)))
            db.save_session(transitions.clock_out(user.id, running, at(day, 17)))

            with self.assertRaises(InvalidTransition):
                db.save_session(transitions.pause_start(user.id, running, PauseType.BREAK, at(day, 17, 5)))
            with self.assertRaises(InvalidTransition):
                db.save_session(transitions.clock_out(user.id, running, at(day, 18)))

            self.assertIsNone(db.get_open_session(user.id))
            self.assertEqual(db.get_session(running.id).total_hours, 8.0)

    def test_second_open_pause_is_refused_by_index(self) -> None:
        with local_tmp_dir() as tmp:
            db = TimeClockDB(tmp / "timeclock.sqlite")
            user = db.add_user("Marta")
            day = date(2026, 2, 9)
            running = db.save_session(transitions.clock_in(user.id, None, at(day, 9)))
            db.save_session(transitions.pause_start(user.id, running, PauseType.BREAK, at(day, 10)))

            with self.assertRaises(InvalidTransition):
                with db._transaction() as conn:
                    conn.execute(
                        "INSERT INTO pauses (session_id, start_time, type) VALUES (?, ?, ?)",
                        (running.id, "2026-02-09T10:05:00", "meal"),
                    )
            self.assertEqual(len(db.get_session(running.id).pauses), 1)

    def test_list_filters_and_order(self) -> None:
        with local_tmp_dir() as tmp:
            db = TimeClockDB(tmp / "timeclock.sqlite")
            user = db.add_user("Marta")
            other = db.add_user("Pedro")
            for offset in range(3):
                db.save_session(completed_session(date(2026, 2, 9) + timedelta(days=offset), 4, user_id=user.id))
            db.save_session(completed_session(date(2026, 2, 10), 2, user_id=other.id))

            newest_first = db.list_sessions(user_id=user.id)
            self.assertEqual([item.date.day for item in newest_first], [11, 10, 9])

            window = db.list_sessions_between(date(2026, 2, 10), date(2026, 2, 11), user_id=user.id)
            self.assertEqual([item.date.day for item in window], [10, 11])

            everyone = db.list_sessions_between(date(2026, 2, 10), date(2026, 2, 10))
            self.assertEqual({item.user_id for item in everyone}, {user.id, other.id})

    def test_delete_only_completed(self) -> None:
        with local_tmp_dir() as tmp:
            db = TimeClockDB(tmp / "timeclock.sqlite")
            user = db.add_user("Marta")
            done = db.save_session(completed_session(date(2026, 2, 9), 3, user_id=user.id, pause_minutes=15))
            running = db.save_session(transitions.clock_in(user.id, None, at(date(2026, 2, 10), 9)))

            with self.assertRaises(InvalidTransition):
                db.delete_session(running.id)

            db.delete_session(done.id)
            with self.assertRaises(NotFound):
                db.get_session(done.id)
            with self.assertRaises(NotFound):
                db.delete_session(done.id)

            with sqlite3.connect(db.db_path) as conn:
                left = conn.execute("SELECT COUNT(*) FROM pauses").fetchone()[0]
            conn.close()
            self.assertEqual(left, 0)

    def test_update_notes(self) -> None:
        with local_tmp_dir() as tmp:
            db = TimeClockDB(tmp / "timeclock.sqlite")
            user = db.add_user("Marta")
            done = db.save_session(completed_session(date(2026, 2, 9), 3, user_id=user.id))

            self.assertEqual(db.update_notes(done.id, " reunión, cliente ").notes, "reunión, cliente")
            self.assertIsNone(db.update_notes(done.id, "").notes)
            with self.assertRaises(NotFound):
                db.update_notes(12345, "x")

    def test_update_missing_session_rolls_back(self) -> None:
        with local_tmp_dir() as tmp:
            db = TimeClockDB(tmp / "timeclock.sqlite")
            user = db.add_user("Marta")
            ghost = replace(completed_session(date(2026, 2, 9), 3, user_id=user.id, pause_minutes=10), id=77)

            with self.assertRaises(NotFound):
                db.save_session(ghost)
            self.assertEqual(db.list_sessions(), [])


if __name__ == "__main__":
    unittest.main()
