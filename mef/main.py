"""MEF Funding Platform backend: FastAPI application entry point."""

import signal
import uuid
from contextlib import asynccontextmanager

# CRITICAL ORDER: configure_structlog MUST be called before all other mef imports
# to avoid the structlog cache pitfall (structlog caches the processor chain on first use).
from mef.core.logging import configure_structlog
from mef.core.config import get_settings as _get_settings_early

_early_settings = _get_settings_early()
configure_structlog(
    log_level="DEBUG" if _early_settings.debug else _early_settings.log_level,
    json_logs=not _early_settings.debug,
    logger_levels=_early_settings.log_logger_levels,
)

import structlog

from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from mef.api.routes import api_router
from mef.core.config import get_settings
from mef.core.exceptions import AppError
from mef.db import close_db, close_redis, get_session_factory, init_db, init_redis
from mef.middleware.correlation import (
    setup_correlation_middleware,
    get_correlation_id,
)
from mef.workers.setup import build_worker_deps, create_scheduler

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # SIGTERM handler flips this so the health check returns 503 while draining
    app.state.shutting_down = False

    def handle_sigterm(signum, frame):
        app.state.shutting_down = True
        logger.info("sigterm_received", action="health_check_503_draining_connections")

    signal.signal(signal.SIGTERM, handle_sigterm)

    # Startup
    settings = get_settings()
    logger.info("startup_begin", app_name=settings.app_name, debug=settings.debug)

    await init_db()
    logger.info("db_initialized")

    if settings.worker_lock_backend == "redis":
        await init_redis()
        logger.info("redis_initialized")

    deps = build_worker_deps(settings, get_session_factory())
    scheduler = create_scheduler(deps, include_recurring=settings.scheduler_enabled)
    app.state.worker_deps = deps
    app.state.scheduler = scheduler
    scheduler.start()

    yield

    # Shutdown
    logger.info("shutdown_begin")
    await scheduler.stop()
    await close_redis()
    await close_db()
    logger.info("shutdown_complete")


def _request_context(request: Request) -> dict:
    return {
        "correlation_id": get_correlation_id(),
        "path": request.url.path,
        "method": request.method,
        "user_id": getattr(request.state, "user_id", None),
    }


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Global handler for service-level AppError with debug_id tracking."""
    debug_id = str(uuid.uuid4())

    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "app_error",
        status_code=exc.status_code,
        code=exc.code,
        debug_id=debug_id,
        detail=exc.message,
        **_request_context(request),
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "code": exc.code, "debug_id": debug_id},
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Global exception handler for HTTPException with debug_id tracking.

    Logs errors server-side with full context, returns sanitized response to client.
    """
    debug_id = str(uuid.uuid4())

    logger.error(
        "http_exception",
        status_code=exc.status_code,
        debug_id=debug_id,
        detail=exc.detail,
        **_request_context(request),
    )

    # Return sanitized response (no stack traces, no secrets)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "debug_id": debug_id},
        headers=getattr(exc, "headers", None),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler for unhandled errors with debug_id tracking.

    Logs full exception with traceback, returns generic 500 to client.
    """
    debug_id = str(uuid.uuid4())

    logger.error(
        "unhandled_exception",
        debug_id=debug_id,
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=True,
        **_request_context(request),
    )

    # Return generic 500 (no internal details leaked)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "debug_id": debug_id},
    )


def create_app(use_lifespan: bool = True) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        use_lifespan: Attach the startup/shutdown handler. Tests build the
            app without it and wire their own database and scheduler.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Mina Ecosystem Funding: funding rounds, proposals and community voting",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan if use_lifespan else None,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url, "http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Correlation ID middleware (runs first on incoming requests)
    setup_correlation_middleware(app)

    # Exception handlers
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(HTTPException)(http_exception_handler)
    app.exception_handler(Exception)(generic_exception_handler)

    # Include API routes
    app.include_router(api_router, prefix="/api")

    return app


# Create the app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "mef.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
