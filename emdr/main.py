"""
EMDR Protokoll API - FastAPI Application

Main entry point for the FastAPI application.
"""

from contextlib import asynccontextmanager
from pathlib import Path

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from emdr.api import router as api_router
from emdr.core.config import get_settings
from emdr.core.exceptions import EmdrError, ProtocolValidationError
from emdr.db.base import Base
from emdr.db import models_registry  # noqa: F401 - Import to register models
from emdr.db.session import async_session_maker, engine
from emdr.services.user_service import UserService
from emdr.workers.session_cleanup import SessionCleanupWorker

settings = get_settings()

# Global instances
scheduler: AsyncIOScheduler | None = None


async def init_database() -> None:
    """Initialize database tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database initialized")


async def init_default_user() -> None:
    """Create the configured default account if it does not exist."""
    if not settings.default_username or not settings.default_password:
        return

    async with async_session_maker() as db:
        user_service = UserService(db)
        existing = await user_service.get_by_username(settings.default_username)
        if not existing:
            await user_service.create_user(
                username=settings.default_username,
                password=settings.default_password,
                display_name=settings.default_display_name,
            )
            logger.info(f"Default user '{settings.default_username}' created")


async def start_background_services() -> None:
    """Start background services."""
    global scheduler

    if not settings.enable_background_services:
        logger.info("Background services disabled")
        return

    scheduler = AsyncIOScheduler()

    session_cleanup = SessionCleanupWorker()
    scheduler.add_job(
        session_cleanup.run,
        "interval",
        minutes=settings.session_cleanup_interval_minutes,
        id="session_cleanup",
    )

    scheduler.start()
    logger.info("Scheduler started")


async def stop_background_services() -> None:
    """Stop background services."""
    global scheduler

    if scheduler:
        scheduler.shutdown()
        scheduler = None
        logger.info("Scheduler stopped")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting EMDR Protokoll API...")

    # Ensure data directory exists
    Path(settings.data_save_folder).mkdir(parents=True, exist_ok=True)

    await init_database()
    await init_default_user()
    await start_background_services()

    logger.info(f"EMDR Protokoll API started on port {settings.port}")

    yield

    logger.info("Shutting down EMDR Protokoll API...")
    await stop_background_services()
    logger.info("EMDR Protokoll API stopped")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="EMDR Protokoll API - documentation of EMDR therapy sessions",
    lifespan=lifespan,
    docs_url="/swagger" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
    expose_headers=["Content-Disposition"],
)


# Exception handlers
@app.exception_handler(ProtocolValidationError)
async def protocol_validation_handler(
    request: Request, exc: ProtocolValidationError
) -> JSONResponse:
    """Incomplete protocol drafts."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "Code": exc.status_code,
            "Message": exc.message,
            "errors": exc.errors,
            "missingFields": exc.missing_fields,
        },
    )


@app.exception_handler(EmdrError)
async def emdr_exception_handler(request: Request, exc: EmdrError) -> JSONResponse:
    """Domain errors."""
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"Code": exc.status_code, "Message": exc.message},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler."""
    logger.error(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={"Code": 500, "Message": str(exc)},
    )


# Include API router
app.include_router(api_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "emdr.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        workers=settings.workers,
    )
