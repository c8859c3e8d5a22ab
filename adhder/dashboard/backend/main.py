"""
ADHDer Task API - FastAPI Application

REST backend for the task core: tasks, renegotiations, outcomes,
commitments and categories. Every error leaves as {"error", "code"}.

Usage:
    uvicorn adhder.dashboard.backend.main:app --host 127.0.0.1 --port 8080 --reload

    Or run directly:
    python -m adhder.dashboard.backend.main
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ... import __version__
from ...config import load_config, resolve_path
from ...errors import ApiError, code_for_status
from ...logging_config import bind_request_context, clear_request_context, get_logger, setup_logging
from ...security.ratelimit import build_rate_limiters
from .database import Database
from .models import ErrorResponse, HealthCheck
from .routes import api_router

logger = logging.getLogger(__name__)
access_log = get_logger("adhder.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting ADHDer task API...")
    app.state.db.init_db()
    logger.info(f"Database initialized at {app.state.db.path}")

    yield

    logger.info("Shutting down ADHDer task API...")


async def request_context_middleware(request: Request, call_next):
    """Bind request id/method/path into the log context and log the outcome."""
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
    bind_request_context(request_id=request_id, method=request.method, path=request.url.path)
    started = time.perf_counter()
    try:
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        access_log.info(
            "request_completed",
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        return response
    finally:
        clear_request_context()


def _validation_message(exc: RequestValidationError) -> str:
    messages = []
    for error in exc.errors():
        message = str(error.get("msg", "Invalid value")).removeprefix("Value error, ")
        field = ".".join(str(part) for part in error.get("loc", ())[1:])
        messages.append(f"{field}: {message}" if field else message)
    return ", ".join(messages) or "Invalid request"


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        return JSONResponse(status_code=exc.status_code or 500, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=ErrorResponse(error=_validation_message(exc), code="VALIDATION_ERROR").model_dump(),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions with consistent format."""
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=str(exc.detail), code=code_for_status(exc.status_code)).model_dump(),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(error="Internal server error", code="INTERNAL_ERROR").model_dump(),
        )


def create_app(db_path: Path | str | None = None, config: dict[str, Any] | None = None) -> FastAPI:
    """
    Build the API application.

    The database handle, rate limiters and config live on app.state, so
    each app (and each test) gets its own limiter buckets. Tables are
    created in the lifespan startup.
    """
    config = config if config is not None else load_config()

    app = FastAPI(
        title="ADHDer Task API",
        description="Tasks, renegotiations and outcomes for the ADHDer task core",
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.db = Database(db_path or resolve_path(config["database"]["path"]))
    app.state.rate_limiters = build_rate_limiters(config)

    server_config = config.get("server", {})
    app.add_middleware(
        CORSMiddleware,
        allow_origins=server_config.get("allowed_origins", ["http://localhost:3000"]),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.middleware("http")(request_context_middleware)
    register_exception_handlers(app)

    @app.get("/api/health", response_model=HealthCheck, tags=["health"])
    async def health_check(request: Request):
        """Check the API and its database."""
        services = {}
        try:
            request.app.state.db.ping()
            services["database"] = "healthy"
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            services["database"] = "unhealthy"

        overall = "healthy" if all(s == "healthy" for s in services.values()) else "degraded"
        return HealthCheck(status=overall, version=__version__, timestamp=datetime.now(), services=services)

    app.include_router(api_router)
    return app


app = create_app()


# =============================================================================
# Main Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    setup_logging(app.state.config)
    server = app.state.config.get("server", {})
    uvicorn.run(
        "adhder.dashboard.backend.main:app",
        host=server.get("host", "127.0.0.1"),
        port=server.get("port", 8080),
        reload=True,
        log_level="info",
    )
