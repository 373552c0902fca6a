"""
FastAPI application entry point.
"""

from __future__ import annotations

import asyncio
import hashlib
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text

from booking_engine import __version__
from booking_engine.accounts.repository import AccountCredentialResolver
from booking_engine.availability.router import router as availability_router
from booking_engine.config import get_settings
from booking_engine.conversation.factory import get_conversation_engine
from booking_engine.messaging.config import get_messaging_config
from booking_engine.messaging.factory import create_messaging_adapters
from booking_engine.scheduling.runner import Scheduler, build_scheduler
from booking_engine.scheduling.stores import SqlStoreFactory
from booking_engine.shared.database import DatabaseManager, get_database_manager
from booking_engine.shared.exceptions import AppointmentStoreError, DataIntegrityError
from booking_engine.shared.logging import get_logger, setup_logging

logger = get_logger(__name__)

LOCK_RETRY_SECONDS = 5


def _advisory_lock_id(key: str) -> int:
    """Derive a stable signed bigint lock id from an arbitrary string key."""
    digest = hashlib.blake2b(key.encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big", signed=False) & 0x7FFF_FFFF_FFFF_FFFF


def create_scheduler(db_manager: DatabaseManager) -> Scheduler:
    settings = get_settings()
    gateway, text_channel = create_messaging_adapters(
        get_messaging_config(),
        AccountCredentialResolver(db_manager),
    )
    return build_scheduler(
        SqlStoreFactory(db_manager),
        get_conversation_engine(),
        gateway,
        text_channel,
        settings,
    )


async def _run_until_cancelled(scheduler: Scheduler) -> None:
    scheduler.start()
    try:
        await asyncio.Event().wait()
    finally:
        await scheduler.stop()


async def _scheduler_supervisor(db_manager: DatabaseManager) -> None:
    """Run the periodic tasks only on the process holding the advisory lock.

    Non-Postgres backends have no advisory locks and run the tasks directly.
    """
    settings = get_settings()
    scheduler = create_scheduler(db_manager)

    if not db_manager.is_postgres:
        logger.info("Scheduler running without leader lock", extra={"tasks": scheduler.task_names})
        await _run_until_cancelled(scheduler)
        return

    lock_id = _advisory_lock_id(settings.scheduler_lock_key)
    logger.info(
        "Scheduler supervisor starting",
        extra={"lock_id": lock_id, "tasks": scheduler.task_names},
    )

    while True:
        try:
            # Dedicated connection holds the session-level lock for as long as we lead.
            async with db_manager.engine.connect() as conn:
                res = await conn.execute(
                    text("SELECT pg_try_advisory_lock(:lock_id)"),
                    {"lock_id": lock_id},
                )
                if not bool(res.scalar()):
                    logger.info(
                        "Scheduler leader lock busy; standby",
                        extra={"lock_id": lock_id, "sleep_seconds": LOCK_RETRY_SECONDS},
                    )
                    await asyncio.sleep(LOCK_RETRY_SECONDS)
                    continue

                logger.info("Scheduler leader lock acquired", extra={"lock_id": lock_id})
                await _run_until_cancelled(scheduler)

        except asyncio.CancelledError:
            logger.info("Scheduler supervisor cancelled; stopping")
            raise
        except Exception:
            logger.exception(
                "Scheduler supervisor error; retrying",
                extra={"sleep_seconds": LOCK_RETRY_SECONDS},
            )
            await asyncio.sleep(LOCK_RETRY_SECONDS)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    setup_logging()
    settings = get_settings()
    db_manager = get_database_manager()

    logger.info("Application starting", extra={"env": settings.app_env})

    supervisor: asyncio.Task[None] | None = None
    if settings.scheduler_enabled:
        supervisor = asyncio.create_task(_scheduler_supervisor(db_manager))
        logger.info("Scheduler enabled; background task created")

    yield

    logger.info("Shutting down application")

    if supervisor is not None:
        supervisor.cancel()
        try:
            await supervisor
        except asyncio.CancelledError:
            pass
        logger.info("Scheduler background task stopped")

    await db_manager.close()
    logger.info("Application shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Booking Engine API",
        description="Resource availability and lead outreach scheduling",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    @app.exception_handler(DataIntegrityError)
    async def _not_found(_: Request, exc: DataIntegrityError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})

    @app.exception_handler(AppointmentStoreError)
    async def _store_unavailable(_: Request, exc: AppointmentStoreError) -> JSONResponse:
        logger.warning(
            "Appointment store unavailable",
            extra={"error_code": exc.error_code, "error": str(exc)},
        )
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "Appointment store unavailable", "code": exc.error_code},
        )

    @app.exception_handler(ValueError)
    async def _bad_input(_: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})

    # Request validation (FastAPI/Pydantic) -> consistent 422 payload
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        errors = []
        for error in exc.errors():
            field = ".".join(str(loc) for loc in error["loc"])
            errors.append(
                {
                    "field": field,
                    "message": error["msg"],
                    "type": error["type"],
                }
            )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "detail": {
                    "code": "VALIDATION_ERROR",
                    "message": "Request validation failed",
                    "errors": errors,
                }
            },
        )

    app.include_router(availability_router)

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy"}

    return app


app = create_app()
