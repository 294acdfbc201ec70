from __future__ import annotations

import csv
from datetime import date, datetime, timezone
import io
import os
from pathlib import Path
import unittest
from unittest import mock

from timeclock.clock import FakeClock
from timeclock.db import TimeClockDB
from timeclock.models import Role
from timeclock.tests.test_helpers import completed_session, local_tmp_dir


class TestAPI(unittest.TestCase):
    def setUp(self) -> None:
        try:
            from fastapi.testclient import TestClient  # noqa: F401
            from timeclock.api.app import create_app  # noqa: F401
        except Exception as exc:  # pragma: no cover
            self.skipTest(f"fastapi test client unavailable: {exc}")

    def _client(self, db_path, clock):
        from fastapi.testclient import TestClient

        from timeclock.api.app import create_app

        return TestClient(create_app(db_path=db_path, clock=clock))

    def test_health_meta_and_openapi(self) -> None:
        with local_tmp_dir() as tmp:
            db_path = tmp / "data" / "timeclock.sqlite"
            client = self._client(db_path, FakeClock())

            health = client.get("/api/v1/health")
            self.assertEqual(health.status_code, 200)
            self.assertEqual(health.json().get("status"), "ok")

            meta = client.get("/api/v1/meta")
            self.assertEqual(meta.status_code, 200)
            self.assertEqual(meta.json().get("db_path"), str(db_path))

            paths = client.get("/openapi.json").json().get("paths", {})
            self.assertIn("/api/v1/users/{user_id}/clock-in", paths)
            self.assertIn("/api/v1/admin/team", paths)

    def test_default_app_uses_env_db(self) -> None:
        from fastapi import FastAPI
        from fastapi.testclient import TestClient

        from timeclock.api import app as app_module

        self.assertIsInstance(app_module.app, FastAPI)
        with local_tmp_dir() as tmp:
            db_path = tmp / "env" / "timeclock.sqlite"
            with mock.patch.dict(os.environ, {"TIMECLOCK_DB": str(db_path)}):
                client = TestClient(app_module.create_default_app())
            self.assertTrue(db_path.exists())
            self.assertEqual(client.get("/api/v1/meta").json().get("db_path"), str(db_path))

    def test_report_covers_old_window(self) -> None:
        with local_tmp_dir() as tmp:
            db_path = tmp / "timeclock.sqlite"
            db = TimeClockDB(db_path)
            worker = db.add_user("Marta")
            db.save_session(completed_session(date(2025, 3, 4), 6.0, user_id=worker.id))
            db.save_session(completed_session(date(2026, 2, 9), 4.0, user_id=worker.id))
            client = self._client(db_path, FakeClock(start=datetime(2026, 2, 11, 9, 0, tzinfo=timezone.utc)))

            response = client.post(
                f"/api/v1/users/{worker.id}/report",
                json={"period": "month", "ref": "2025-03-10", "out_dir": str(tmp / "out")},
            )
            self.assertEqual(response.status_code, 200)
            content = Path(response.json()["path"]).read_text(encoding="utf-8")
            self.assertIn("2025-03", content)
            self.assertIn("| 2025-03-04 | 6.0h |", content)
            self.assertNotIn("2026-02-09", content)

    def test_clock_flow(self) -> None:
        with local_tmp_dir() as tmp:
            db_path = tmp / "timeclock.sqlite"
            clock = FakeClock(start=datetime(2026, 2, 9, 9, 0, tzinfo=timezone.utc))
            client = self._client(db_path, clock)

            created = client.post("/api/v1/users", json={"full_name": "Marta"})
            self.assertEqual(created.status_code, 201)
            user_id = created.json()["id"]
            prefix = f"/api/v1/users/{user_id}"

            idle = client.get(f"{prefix}/current").json()
            self.assertEqual(idle["state"], "idle")
            self.assertIsNone(idle["session"])

            self.assertEqual(client.post(f"{prefix}/pause/end").status_code, 409)

            started = client.post(f"{prefix}/clock-in", json={"notes": "oficina"})
            self.assertEqual(started.status_code, 200)
            self.assertEqual(started.json()["status"], "active")
            self.assertEqual(client.post(f"{prefix}/clock-in").status_code, 409)

            clock.advance(hours=1)
            paused = client.post(f"{prefix}/pause/start", json={"type": "meal"})
            self.assertEqual(paused.json()["status"], "paused")
            self.assertEqual(client.post(f"{prefix}/pause/start", json={"type": "nap"}).status_code, 422)

            clock.advance(minutes=30)
            live = client.get(f"{prefix}/current").json()
            self.assertEqual(live["state"], "paused")
            self.assertEqual(live["worked_sec"], 3600)
            self.assertEqual(live["paused_sec"], 1800)

            self.assertEqual(client.post(f"{prefix}/pause/end").json()["status"], "active")
            clock.advance(hours=6, minutes=30)
            done = client.post(f"{prefix}/clock-out").json()
            self.assertEqual(done["status"], "completed")
            self.assertEqual(done["total_hours"], 7.0)
            self.assertEqual(done["pauses"][0]["duration"], 30)

            daily = client.get(f"{prefix}/stats/daily", params={"day": "2026-02-09"}).json()
            self.assertEqual(daily["total_worked"], 7.0)
            self.assertEqual(daily["entries"], 1)

            weekly = client.get(f"{prefix}/stats/weekly").json()
            self.assertEqual(len(weekly["daily_breakdown"]), 7)
            self.assertEqual(weekly["days_worked"], 1)
            self.assertEqual(weekly["productivity"], 88)

            dashboard = client.get(f"{prefix}/stats/dashboard", params={"target": 7}).json()
            self.assertEqual(dashboard["productivity"], 100)
            self.assertEqual(len(dashboard["this_month"]["daily_breakdown"]), 28)

            export = client.get(f"{prefix}/export.csv")
            self.assertEqual(export.status_code, 200)
            self.assertTrue(export.headers["content-type"].startswith("text/csv"))
            rows = list(csv.reader(io.StringIO(export.text)))
            self.assertEqual(rows[1][4], "7.00")
            self.assertEqual(rows[1][6], "oficina")

            session_id = done["id"]
            noted = client.patch(f"/api/v1/sessions/{session_id}/notes", json={"notes": "revisado"})
            self.assertEqual(noted.json()["notes"], "revisado")
            self.assertEqual(client.delete(f"/api/v1/sessions/{session_id}").status_code, 204)
            self.assertEqual(client.get(f"/api/v1/sessions/{session_id}").status_code, 404)

    def test_open_session_cannot_be_deleted(self) -> None:
        with local_tmp_dir() as tmp:
            db_path = tmp / "timeclock.sqlite"
            client = self._client(db_path, FakeClock())
            user_id = client.post("/api/v1/users", json={"full_name": "Marta"}).json()["id"]
            session_id = client.post(f"/api/v1/users/{user_id}/clock-in").json()["id"]

            resp = client.delete(f"/api/v1/sessions/{session_id}")
            self.assertEqual(resp.status_code, 409)
            self.assertEqual(resp.json()["error"], "InvalidTransition")

    def test_unknown_user_is_404(self) -> None:
        with local_tmp_dir() as tmp:
            client = self._client(tmp / "timeclock.sqlite", FakeClock())
            self.assertEqual(client.post("/api/v1/users/99/clock-in").status_code, 404)
            self.assertEqual(client.get("/api/v1/users/99/stats/weekly").status_code, 404)

    def test_admin_routes_require_admin_role(self) -> None:
        with local_tmp_dir() as tmp:
            db_path = tmp / "timeclock.sqlite"
            db = TimeClockDB(db_path)
            boss = db.add_user("Jefa", Role.ADMIN)
            worker = db.add_user("Marta")
            db.save_session(completed_session(date(2026, 2, 9), 4.0, user_id=worker.id))
            clock = FakeClock(start=datetime(2026, 2, 9, 15, 0, tzinfo=timezone.utc))
            client = self._client(db_path, clock)

            self.assertEqual(client.get("/api/v1/admin/team").status_code, 401)
            denied = client.get("/api/v1/admin/team", headers={"X-User-Id": str(worker.id)})
            self.assertEqual(denied.status_code, 403)

            team = client.get("/api/v1/admin/team", headers={"X-User-Id": str(boss.id)})
            self.assertEqual(team.status_code, 200)
            body = team.json()
            self.assertEqual(body["total_employees"], 1)
            self.assertEqual(body["today_hours"], 4.0)
            self.assertEqual(body["active_now"], 0)

            table = client.get("/api/v1/admin/sessions", headers={"X-User-Id": str(boss.id)})
            self.assertEqual(table.status_code, 200)
            self.assertEqual(len(table.json()), 1)
            self.assertEqual(table.json()[0]["employee"], "Marta")

    def test_admin_master_table_filters_and_csv(self) -> None:
        with local_tmp_dir() as tmp:
            db_path = tmp / "timeclock.sqlite"
            db = TimeClockDB(db_path)
            boss = db.add_user("Jefa", Role.ADMIN)
            marta = db.add_user("Marta")
            pedro = db.add_user("Pedro")
            db.save_session(completed_session(date(2026, 2, 2), 6.0, user_id=marta.id))
            db.save_session(completed_session(date(2026, 2, 9), 4.0, user_id=marta.id, notes="visita, cliente"))
            db.save_session(completed_session(date(2026, 2, 10), 5.0, user_id=pedro.id))
            clock = FakeClock(start=datetime(2026, 2, 11, 9, 0, tzinfo=timezone.utc))
            client = self._client(db_path, clock)
            headers = {"X-User-Id": str(boss.id)}

            window = client.get(
                "/api/v1/admin/sessions",
                params={"date_from": "2026-02-09", "date_to": "2026-02-10"},
                headers=headers,
            ).json()
            self.assertEqual([row["employee"] for row in window], ["Pedro", "Marta"])

            only_marta = client.get(
                "/api/v1/admin/sessions", params={"user_id": marta.id}, headers=headers
            ).json()
            self.assertEqual([row["date"] for row in only_marta], ["2026-02-09", "2026-02-02"])

            missing = client.get("/api/v1/admin/sessions", params={"user_id": 99}, headers=headers)
            self.assertEqual(missing.status_code, 404)

            denied = client.get("/api/v1/admin/sessions.csv", headers={"X-User-Id": str(marta.id)})
            self.assertEqual(denied.status_code, 403)

            exported = client.get(
                "/api/v1/admin/sessions.csv",
                params={"date_from": "2026-02-09"},
                headers=headers,
            )
            self.assertEqual(exported.status_code, 200)
            self.assertTrue(exported.headers["content-type"].startswith("text/csv"))
            rows = list(csv.reader(io.StringIO(exported.text)))
            self.assertEqual(rows[0][:2], ["Date", "Employee"])
            self.assertEqual(len(rows), 3)
            self.assertEqual(rows[2][1], "Marta")
            self.assertEqual(rows[2][-1], "visita, cliente")


if __name__ == "__main__":
    unittest.main()
