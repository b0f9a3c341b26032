import asyncio
import os
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from autoshop.config import Settings, get_settings
from autoshop.logging_config import get_logger, setup_logging
from autoshop.routers import attendance, conversations, sessions
from autoshop.services.core import CoreContext, build_core
from autoshop.services.errors import StorageError
from autoshop.services.orchestrator import SessionOrchestrator

maintenance_logger = get_logger("maintenance")


def _is_maintenance_enabled(settings: Settings) -> bool:
    if os.environ.get("PYTEST_CURRENT_TEST"):
        return False
    return settings.maintenance_enabled


def _cors_origins(settings: Settings) -> list[str]:
    origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()]
    return origins or ["*"]


async def _periodic(name: str, interval_seconds: float, job: Callable[[], int]) -> None:
    interval_seconds = max(interval_seconds, 0.1)
    while True:
        try:
            await asyncio.sleep(interval_seconds)
            await asyncio.to_thread(job)
        except asyncio.CancelledError:
            break
        except Exception as exc:
            maintenance_logger.error(
                f"Maintenance job {name} failed",
                extra={"context": {"job": name, "error": str(exc)}},
            )


def create_app(settings: Optional[Settings] = None, core: Optional[CoreContext] = None) -> FastAPI:
    if core is not None:
        settings = core.settings
    settings = settings or get_settings()
    setup_logging(settings.log_level)
    if core is None:
        core = build_core(settings, create_tables=False)

    app = FastAPI(
        title="Autoshop API",
        description="Session and human attendance backend for the workshop WhatsApp assistant",
        version="0.1.0",
    )
    app.state.core = core
    app.state.orchestrator = SessionOrchestrator(core)
    app.state.maintenance_tasks = []

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(settings),
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(attendance.router)
    app.include_router(conversations.router)
    app.include_router(sessions.router)

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        return JSONResponse(status_code=503, content={"detail": "Storage unavailable", "operation": exc.operation})

    @app.on_event("startup")
    async def start_maintenance() -> None:
        core.create_tables()
        if not _is_maintenance_enabled(settings):
            return
        orchestrator: SessionOrchestrator = app.state.orchestrator
        app.state.maintenance_tasks = [
            asyncio.create_task(
                _periodic("sweep_expired", settings.sweep_interval_seconds, orchestrator.sessions.sweep_expired)
            ),
            asyncio.create_task(
                _periodic("report_waiting", settings.queue_report_interval_seconds, orchestrator.report_waiting)
            ),
        ]
        maintenance_logger.info("Maintenance jobs started")

    @app.on_event("shutdown")
    async def stop_maintenance() -> None:
        tasks = app.state.maintenance_tasks
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        app.state.maintenance_tasks = []

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app
