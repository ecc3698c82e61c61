"""
TradeFeedAgent Main Application
===============================

FastAPI entry point for the resilient stream agent.

The lifespan starts the StreamEngine as a background task. If the engine
raises StreamFatalError the process is asked to shut down with SIGTERM;
a supervisor decides whether to restart it.

Endpoints:
    GET  /          - Service information
    GET  /health    - Liveness probe (is process alive?)
    GET  /ready     - Readiness probe (stream connected?)
    GET  /metrics   - Engine and dispatcher counters
"""

import asyncio
import logging
import os
import signal
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from tradefeed_agent.backoff import BackoffPolicy
from tradefeed_agent.config import settings
from tradefeed_agent.consumers import LoggingEventConsumer
from tradefeed_agent.stream import (
    EventBuffer,
    EventDispatcher,
    HttpxConnectionOpener,
    StreamEngine,
    StreamFatalError,
    StreamRequest,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Global State
# =============================================================================

_opener: Optional[HttpxConnectionOpener] = None
_dispatcher: Optional[EventDispatcher] = None
_engine: Optional[StreamEngine] = None
_engine_task: Optional[asyncio.Task] = None
_startup_time: float = 0.0
_fatal_error: Optional[str] = None


# =============================================================================
# Getters
# =============================================================================

def get_engine() -> Optional[StreamEngine]:
    return _engine

def get_dispatcher() -> Optional[EventDispatcher]:
    return _dispatcher


# =============================================================================
# Engine Factory
# =============================================================================

def create_engine(opener: HttpxConnectionOpener) -> StreamEngine:
    """Build the stream engine from settings."""
    global _dispatcher

    _dispatcher = EventDispatcher(
        consumer=LoggingEventConsumer(),
        buffer=EventBuffer(maxsize=settings.stream.max_queue_size),
    )
    request = StreamRequest(
        url=settings.stream.url,
        bearer_token=settings.stream.bearer_token,
    )
    if not request.bearer_token:
        logger.warning("No bearer token configured, streaming unauthenticated")

    return StreamEngine(
        opener=opener,
        request=request,
        dispatcher=_dispatcher,
        policy=BackoffPolicy(settings.backoff.to_settings()),
        idle_timeout=settings.stream.idle_timeout_seconds,
        drain_timeout=settings.stream.drain_timeout_seconds,
        min_reconnect_interval=settings.stream.min_reconnect_interval_seconds,
    )


def _on_engine_done(task: asyncio.Task) -> None:
    """Turn a fatal engine exit into process shutdown."""
    global _fatal_error

    if task.cancelled():
        return

    error = task.exception()
    if error is None:
        return

    _fatal_error = str(error)
    if isinstance(error, StreamFatalError):
        logger.critical(f"Stream engine terminated: {error}")
    else:
        logger.critical(f"Stream engine crashed: {error!r}")

    logger.critical("Requesting process shutdown")
    os.kill(os.getpid(), signal.SIGTERM)


# =============================================================================
# Lifespan Management
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager with graceful shutdown."""
    global _opener, _engine, _engine_task, _startup_time

    # Startup
    _startup_time = time.time()
    logger.info(f"Starting {settings.agent.name} {settings.agent.version}")
    logger.info(f"Stream URL: {settings.stream.url}")

    _opener = HttpxConnectionOpener(
        connect_timeout=settings.stream.connect_timeout_seconds,
    )
    _engine = create_engine(_opener)
    _engine_task = asyncio.create_task(_engine.run(), name="stream_engine")
    _engine_task.add_done_callback(_on_engine_done)

    yield

    # Shutdown
    logger.info("Shutting down gracefully...")

    if _engine:
        await _engine.stop()

    if _engine_task and not _engine_task.done():
        try:
            await asyncio.wait_for(
                _engine_task,
                timeout=settings.stream.drain_timeout_seconds + 5.0,
            )
        except asyncio.TimeoutError:
            _engine_task.cancel()
            try:
                await _engine_task
            except asyncio.CancelledError:
                pass

    if _opener:
        await _opener.aclose()

    logger.info("Shutdown complete")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="TradeFeedAgent",
    description="Resilient consumer for a long-lived HTTP event stream",
    version=settings.agent.version,
    lifespan=lifespan,
)


# =============================================================================
# HTTP Endpoints
# =============================================================================

@app.get("/")
async def root() -> JSONResponse:
    """Service information endpoint."""
    return JSONResponse({
        "service": "TradeFeedAgent",
        "version": settings.agent.version,
        "name": settings.agent.name,
        "status": "running" if _fatal_error is None else "fatal",
        "stream_url": settings.stream.url,
    })


@app.get("/health")
async def health() -> JSONResponse:
    """
    Liveness probe - is the process alive?

    Returns 500 once the engine has given up on the stream.
    """
    if _fatal_error is not None:
        return JSONResponse(
            {"status": "fatal", "error": _fatal_error},
            status_code=500,
        )
    return JSONResponse({
        "status": "healthy",
        "uptime_seconds": round(time.time() - _startup_time, 1),
    })


@app.get("/ready")
async def ready() -> JSONResponse:
    """
    Readiness probe - is the stream connected?

    Returns 200 while a session is reading a 2xx body, 503 otherwise.
    """
    engine = get_engine()
    stream_connected = engine.connected if engine else False

    if stream_connected:
        return JSONResponse({
            "status": "ready",
            "stream_connected": True,
            "records_forwarded": engine.metrics.records_forwarded,
        })
    return JSONResponse(
        {
            "status": "not_ready",
            "stream_connected": False,
        },
        status_code=503,
    )


@app.get("/metrics")
async def metrics() -> JSONResponse:
    """Detailed metrics for observability."""
    engine = get_engine()
    dispatcher = get_dispatcher()

    engine_metrics = {}
    if engine:
        engine_metrics = {
            "stream_connected": engine.connected,
            "backoff_seconds": engine.backoff_state.delay,
            **engine.metrics.to_dict(),
        }

    dispatch_metrics = {}
    if dispatcher:
        dispatch_metrics = {
            f"dispatch_{key}": value
            for key, value in dispatcher.metrics().items()
        }

    return JSONResponse({
        "uptime_seconds": round(time.time() - _startup_time, 1),
        "fatal_error": _fatal_error,
        **engine_metrics,
        **dispatch_metrics,
    })


# =============================================================================
# Main Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    # Cloud Run uses PORT env var
    port = int(os.environ.get("PORT", settings.server.port))

    uvicorn.run(
        "tradefeed_agent.main:app",
        host=settings.server.host,
        port=port,
        reload=False,
    )
