"""Application entry point for the FastAPI backend."""
from __future__ import annotations

import asyncio
import logging
import math
import os
from datetime import timedelta
from typing import Iterable

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import get_settings
from .database import create_session, init_db
from .exceptions import (
    AccountRestricted,
    InteractionBlocked,
    InvalidModerationInput,
    ModerationError,
    NothingToRestore,
    RateLimitExceeded,
    StorageFailure,
    TargetNotFound,
    Unauthorized,
)
from .routers import (
    blocks_router,
    catches_router,
    follows_router,
    moderation_router,
    notifications_router,
    rate_limits_router,
    realtime_router,
    reports_router,
)
from .services import CleanupError, run_cleanup
from .services.clock import utcnow
from .services.migrations import run_migrations_if_needed

logger = logging.getLogger(__name__)

settings = get_settings()
APP_NAME = settings.app_name
API_VERSION = settings.api_version
DISABLE_SWEEP = settings.disable_sweep or os.getenv("PYTEST_CURRENT_TEST") is not None

app = FastAPI(title=APP_NAME, version=API_VERSION)

if settings.cors_origins:
    origins: Iterable[str] = [origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()]
else:
    origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(catches_router)
app.include_router(follows_router)
app.include_router(blocks_router)
app.include_router(reports_router)
app.include_router(rate_limits_router)
app.include_router(moderation_router)
app.include_router(notifications_router)
app.include_router(realtime_router)


@app.exception_handler(RateLimitExceeded)
async def _rate_limited(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    retry_after = max(0, math.ceil((exc.reset_at - utcnow()).total_seconds()))
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"detail": exc.message, "action": exc.action, "reset_at": exc.reset_at.isoformat()},
        headers={"Retry-After": str(retry_after)},
    )


@app.exception_handler(InvalidModerationInput)
async def _invalid_input(request: Request, exc: InvalidModerationInput) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": exc.message, "field": exc.field},
    )


@app.exception_handler(AccountRestricted)
async def _restricted(request: Request, exc: AccountRestricted) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content={
            "detail": exc.message,
            "status": exc.status,
            "until": exc.until.isoformat() if exc.until else None,
        },
    )


_STATUS_CODES: dict[type[ModerationError], int] = {
    TargetNotFound: status.HTTP_404_NOT_FOUND,
    NothingToRestore: status.HTTP_409_CONFLICT,
    Unauthorized: status.HTTP_403_FORBIDDEN,
    InteractionBlocked: status.HTTP_403_FORBIDDEN,
    StorageFailure: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@app.exception_handler(ModerationError)
async def _moderation_error(request: Request, exc: ModerationError) -> JSONResponse:
    status_code = next(
        (code for kind, code in _STATUS_CODES.items() if isinstance(exc, kind)),
        status.HTTP_400_BAD_REQUEST,
    )
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


_SWEEP_INTERVAL = timedelta(minutes=max(1, settings.rate_limit_sweep_minutes))
_sweep_task: asyncio.Task[None] | None = None
_sweep_stop = asyncio.Event()


async def _run_sweep_once() -> None:
    """Execute a single rate-limit sweep in a worker thread."""

    try:
        summary = await asyncio.to_thread(run_cleanup, create_session)
        logger.info("Sweep summary (windows=%d)", summary.windows)
    except CleanupError:
        logger.exception("Scheduled rate-limit sweep failed")
    except Exception:  # pragma: no cover - keep the loop alive
        logger.exception("Unexpected error during rate-limit sweep")


async def _sweep_loop() -> None:
    """Background task that sweeps expired windows on a fixed interval."""

    while not _sweep_stop.is_set():
        await _run_sweep_once()
        try:
            await asyncio.wait_for(_sweep_stop.wait(), timeout=_SWEEP_INTERVAL.total_seconds())
        except asyncio.TimeoutError:
            continue


@app.on_event("startup")
async def _startup() -> None:
    """Ensure database schema and background tasks are ready before serving."""

    try:
        run_migrations_if_needed(settings)
        init_db()
    except Exception:  # pragma: no cover - best effort logging
        logger.exception("Database initialisation failed")
        raise

    if DISABLE_SWEEP:
        logger.info("Rate-limit sweep disabled")
        return

    global _sweep_task
    if _sweep_task is None or _sweep_task.done():
        _sweep_stop.clear()
        _sweep_task = asyncio.create_task(_sweep_loop())


@app.on_event("shutdown")
async def _shutdown() -> None:
    """Stop background tasks cleanly during application shutdown."""

    if DISABLE_SWEEP:
        return

    _sweep_stop.set()
    if _sweep_task is not None:
        try:
            await _sweep_task
        except asyncio.CancelledError:  # pragma: no cover - task cancelled by the server
            pass


@app.get("/api", tags=["system"])
def api_info() -> dict[str, str]:
    return {"service": APP_NAME, "version": API_VERSION}


@app.get("/health", tags=["system"])
async def healthcheck() -> dict[str, str]:
    return {"status": "ok", "version": API_VERSION}
