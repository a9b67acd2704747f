"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from tradedesk.api.routes import get_pl_report_router
from tradedesk.config import AppSettings, get_settings
from tradedesk.core.logging import setup_logging
from tradedesk.core.telemetry import setup_telemetry
from tradedesk.db.init import init_database
from tradedesk.db.session import Database, get_database
from tradedesk.services.errors import InvalidAdjustmentError, ReportStageError
from tradedesk.services.report import ReportAssembler, build_report_assembler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI, database: Database, settings: AppSettings):
    logger.info("Starting %s with %s", settings.app_name, settings.dict_for_logging())
    await init_database(database)
    yield
    await database.dispose()


async def _invalid_adjustment_handler(request: Request, exc: InvalidAdjustmentError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


async def _stage_error_handler(request: Request, exc: ReportStageError) -> JSONResponse:
    logger.error("P&L report %s stage failed for %s: %s", exc.stage, request.url.path, exc, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": str(exc), "stage": exc.stage},
    )


def create_app(
    database: Database | None = None,
    settings: AppSettings | None = None,
    assembler: ReportAssembler | None = None,
) -> FastAPI:
    """Build the service around one database and one report assembler."""

    settings = settings or get_settings()
    database = database or get_database()
    assembler = assembler or build_report_assembler(database, settings)

    app = FastAPI(
        title=settings.app_name,
        version="0.1.0",
        lifespan=lambda app: _lifespan(app, database, settings),
    )
    app.state.database = database
    app.state.assembler = assembler
    setup_logging()
    setup_telemetry(app, settings, engine=database.engine)

    app.add_exception_handler(InvalidAdjustmentError, _invalid_adjustment_handler)
    app.add_exception_handler(ReportStageError, _stage_error_handler)

    @app.get("/health", tags=["health"])
    async def health() -> dict[str, str]:
        """Return service readiness metadata."""

        return {
            "status": "ok",
            "timestamp": datetime.now().isoformat(),
            "timezone": settings.timezone,
        }

    app.include_router(get_pl_report_router(assembler))
    return app


__all__ = ["create_app"]
