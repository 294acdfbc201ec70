from __future__ import annotations

import logging
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .. import __version__
from ..clock import Clock, RealClock
from ..db import TimeClockDB, default_db_path
from ..errors import InvalidTransition, NotFound, StoreFailure, TimeClockError
from .routes.admin import router as admin_router
from .routes.clock import router as clock_router
from .routes.export import router as export_router
from .routes.health import router as health_router
from .routes.meta import router as meta_router
from .routes.report import router as report_router
from .routes.sessions import router as sessions_router
from .routes.stats import router as stats_router
from .routes.users import router as users_router

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    InvalidTransition: 409,
    NotFound: 404,
    StoreFailure: 503,
}


def create_app(db_path: Path | None = None, clock: Clock | None = None) -> FastAPI:
    resolved_db = Path(db_path or default_db_path())
    TimeClockDB(resolved_db)

    app = FastAPI(title="TimeClock API", version=__version__)
    app.state.db_path = str(resolved_db)
    app.state.clock = clock or RealClock()

    app.add_exception_handler(TimeClockError, _handle_timeclock_error)

    app.include_router(health_router)
    app.include_router(meta_router)
    app.include_router(users_router)
    app.include_router(clock_router)
    app.include_router(sessions_router)
    app.include_router(stats_router)
    app.include_router(export_router)
    app.include_router(report_router)
    app.include_router(admin_router)

    return app


async def _handle_timeclock_error(request: Request, exc: Exception) -> JSONResponse:
    status_code = 400
    for error_type, code in ERROR_STATUS.items():
        if isinstance(exc, error_type):
            status_code = code
            break
    message = exc.message if isinstance(exc, TimeClockError) else str(exc)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, message)
    return JSONResponse(
        status_code=status_code,
        content={"detail": message, "error": type(exc).__name__},
    )


def create_default_app() -> FastAPI:
    return create_app(db_path=default_db_path())


app = create_default_app()
