from __future__ import annotations

from datetime import date
from pathlib import Path

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from pydantic import BaseModel

from ...db import TimeClockDB
from ...exporting import export_sessions_csv, sessions_to_csv
from ..deps import get_db
from ..schemas import FileResult

router = APIRouter(prefix="/api/v1/users/{user_id}", tags=["export"])


class ExportCsvRequest(BaseModel):
    out_dir: str | None = None
    date_from: date | None = None
    date_to: date | None = None


@router.get("/export.csv")
def download_csv(
    user_id: int,
    date_from: date | None = None,
    date_to: date | None = None,
    db: TimeClockDB = Depends(get_db),
) -> Response:
    db.get_user(user_id)
    sessions = db.list_sessions(user_id=user_id, date_from=date_from, date_to=date_to, limit=5000)
    return Response(
        content=sessions_to_csv(sessions),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="timeclock-user{user_id}.csv"'},
    )


@router.post("/export/csv", response_model=FileResult)
def export_csv(user_id: int, payload: ExportCsvRequest, db: TimeClockDB = Depends(get_db)) -> FileResult:
    db.get_user(user_id)
    out_dir = Path(payload.out_dir) if payload.out_dir else Path(__file__).resolve().parents[2] / "out"
    sessions = db.list_sessions(
        user_id=user_id,
        date_from=payload.date_from,
        date_to=payload.date_to,
        limit=5000,
    )
    csv_path = export_sessions_csv(sessions, out_dir, filename=f"timeclock-user{user_id}.csv")
    return FileResult(path=str(csv_path))
