"""FastAPI application for the clinic call agent."""
from __future__ import annotations

import asyncio
import base64
import contextlib
import logging
from collections.abc import AsyncIterator
from datetime import timedelta

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from .core.config import settings
from .db.session import SessionLocal
from .routers import admin as admin_router
from .routers import twilio as twilio_router
from .services.llm import GeminiGateway
from .services.reaper import run_periodic_sweep
from .services.store import StoreError

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    sweeper: asyncio.Task[None] | None = None
    if settings.reaper_interval_seconds > 0:
        sweeper = asyncio.create_task(
            run_periodic_sweep(
                SessionLocal,
                interval_seconds=settings.reaper_interval_seconds,
                max_age=timedelta(seconds=settings.stale_session_after_seconds),
            )
        )
        logger.info("Stale call sweep every %ss", settings.reaper_interval_seconds)
    try:
        yield
    finally:
        if sweeper is not None:
            sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweeper


app = FastAPI(title="Clinic Call Agent API", version="0.1.0", lifespan=lifespan)
app.state.gateway = GeminiGateway.from_settings(settings)

if settings.cors_allow_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(twilio_router.router, prefix="/api/twilio", tags=["voice"])
app.include_router(admin_router.router, prefix="/api", tags=["dashboard"])


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    logger.error("Storage failure on %s", request.url.path, exc_info=exc)
    return JSONResponse(status_code=503, content={"detail": "Storage temporarily unavailable"})


FAVICON_BYTES = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR4nGMAAQAABQABDQottAAAAABJRU5ErkJggg=="
)


@app.get("/api/health", tags=["meta"])
async def health() -> dict[str, str]:
    """Simple liveness probe."""

    return {"status": "ok"}


@app.head("/api/health", tags=["meta"])
async def health_head() -> Response:
    """Allow HEAD for uptime monitors that only need the status code."""

    return Response(status_code=200)


@app.get("/robots.txt", response_class=PlainTextResponse, include_in_schema=False)
async def robots() -> PlainTextResponse:
    """Serve a minimal robots.txt to avoid 404 noise."""

    return PlainTextResponse("User-agent: *\nDisallow:")


@app.get("/favicon.ico", include_in_schema=False)
async def favicon() -> Response:
    """Return a tiny placeholder favicon."""

    return Response(content=FAVICON_BYTES, media_type="image/png")
