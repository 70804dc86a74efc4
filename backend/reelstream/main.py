"""
ReelStream FastAPI Application Entry Point

This module builds the ReelStream API application:

- FastAPI application with lifespan-managed MongoDB and Redis connections
- CORS middleware for the web frontend
- Request logging middleware adding X-Request-ID and X-Process-Time headers
- Exception handlers rendering every error as {"error", "detail", "status_code"}
- API router registration under the /api/v1 prefix
- Health (/health) and readiness (/ready) endpoints

API Structure:
    /api/v1/auth    - Registration, credential sign-in, logout, profile, field validation
    /api/v1/upload  - Upload authentication parameters for the media CDN
    /api/v1/videos  - Video catalogue

Usage:
    uvicorn reelstream.main:app --host 0.0.0.0 --port 8000 --reload
"""

import logging
import time
import uuid

from contextlib import asynccontextmanager
from datetime import UTC, datetime
from http import HTTPStatus
from typing import Any

import uvicorn

from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

from reelstream import __version__
from reelstream.api.v1 import api_router
from reelstream.config import get_settings
from reelstream.core.database import (
    DatabaseConfigurationError,
    close_db,
    connect_db,
)
from reelstream.core.redis_client import close_redis, get_redis_client, init_redis
from reelstream.utils.logger import add_log_context, setup_logging
from reelstream.utils.validators import FormValidationError


# Configure module logger
logger = logging.getLogger(__name__)

# Status codes >= 400 indicate errors
HTTP_ERROR_THRESHOLD = 400


# =============================================================================
# Application Lifespan Management
# =============================================================================


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """
    Manage application startup and shutdown.

    Startup warms the cached MongoDB connection. A failure there is logged
    and not fatal: the cache retries on the first request that needs the
    database. Redis is optional and only logged when unavailable.
    """
    settings = get_settings()
    setup_logging(log_level=settings.log_level, json_logs=settings.log_json)

    logger.info(
        "%s API starting (env=%s, debug=%s, %s:%d)",
        settings.app_name,
        settings.app_env,
        settings.debug,
        settings.host,
        settings.port,
    )

    try:
        await connect_db(settings)
    except DatabaseConfigurationError as e:
        logger.warning("MongoDB not configured: %s", e)
    except PyMongoError:
        logger.exception("MongoDB unavailable at startup, will retry on first request")

    try:
        await init_redis(settings)
    except RuntimeError:
        logger.warning("Application will continue without Redis sessions and caching")

    yield

    logger.info("%s API shutting down", settings.app_name)
    await close_redis()
    await close_db()


# =============================================================================
# FastAPI Application Instance
# =============================================================================

_settings = get_settings()

app = FastAPI(
    title=f"{_settings.app_name} API",
    description=(
        "Backend for ReelStream short videos: account registration, credential sign-in, "
        "direct-upload authentication for the media CDN and the video catalogue."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)


# =============================================================================
# Middleware Configuration
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Process-Time"],
)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next) -> Response:
    """
    Log each request with its timing and tag the response with tracing headers.

    An incoming X-Request-ID header is reused so traces can span services.
    """
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    ctx_logger = add_log_context(logger, request_id=request_id)

    start_time = time.perf_counter()
    ctx_logger.debug("Request started: %s %s", request.method, request.url.path)

    response = await call_next(request)

    process_time_ms = round((time.perf_counter() - start_time) * 1000, 2)
    response.headers["X-Process-Time"] = f"{process_time_ms}ms"
    response.headers["X-Request-ID"] = request_id

    log_level = logging.DEBUG if response.status_code < HTTP_ERROR_THRESHOLD else logging.WARNING
    ctx_logger.log(
        log_level,
        "Request completed: %s %s [Status: %d] [Time: %sms]",
        request.method,
        request.url.path,
        response.status_code,
        process_time_ms,
    )

    return response


# =============================================================================
# Exception Handlers
# =============================================================================


def _error_code(status_code: int) -> str:
    """Snake-case error code derived from the HTTP status, e.g. 409 -> conflict."""
    try:
        return HTTPStatus(status_code).phrase.lower().replace(" ", "_").replace("-", "_")
    except ValueError:
        return "error"


def _error_response(
    status_code: int,
    detail: str,
    errors: dict[str, str] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    content: dict[str, Any] = {
        "error": _error_code(status_code),
        "detail": detail,
        "status_code": status_code,
    }
    if errors:
        content["errors"] = errors
    return JSONResponse(status_code=status_code, content=content, headers=headers)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error_response(exc.status_code, str(exc.detail), headers=exc.headers)


@app.exception_handler(FormValidationError)
async def form_validation_handler(_request: Request, exc: FormValidationError) -> JSONResponse:
    return _error_response(status.HTTP_400_BAD_REQUEST, exc.message, errors=exc.errors)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Report malformed request bodies as 400 with one message per field.

    The field name is the last element of the error location, so a missing
    body field "title" is reported under "title".
    """
    errors: dict[str, str] = {}
    for error in exc.errors():
        loc = error.get("loc") or ("body",)
        field = str(loc[-1]) if len(loc) > 1 else str(loc[0])
        errors.setdefault(field, error.get("msg", "Invalid value"))

    return _error_response(status.HTTP_400_BAD_REQUEST, "Invalid request", errors=errors)


@app.exception_handler(Exception)
async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log unexpected errors and return a generic 500 without internal details."""
    logger.error(
        "Internal server error on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=exc,
    )
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An unexpected error occurred. Please try again later.",
    )


# =============================================================================
# API Router Registration
# =============================================================================

app.include_router(api_router, prefix="/api/v1")


# =============================================================================
# Core Endpoints
# =============================================================================


@app.get("/", tags=["root"], summary="API Root")
async def root() -> dict[str, Any]:
    return {
        "name": f"{_settings.app_name} API",
        "version": __version__,
        "documentation": {
            "swagger": "/docs",
            "redoc": "/redoc",
            "openapi": "/openapi.json",
        },
        "api_prefix": "/api/v1",
        "endpoints": {
            "auth": "/api/v1/auth",
            "upload": "/api/v1/upload",
            "videos": "/api/v1/videos",
        },
    }


@app.get("/health", tags=["health"], summary="Health Check")
async def health_check() -> dict[str, Any]:
    """Liveness probe; does not touch MongoDB or Redis."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "version": __version__,
        "service": f"{_settings.app_name} API",
    }


@app.get("/ready", tags=["health"], summary="Readiness Check")
async def readiness_check() -> JSONResponse:
    """
    Readiness probe checking dependencies.

    The service is ready when MongoDB answers a ping; Redis is reported but
    optional. Returns 503 when not ready. Going through connect_db means a
    probe also retries a connection that failed at startup.
    """
    checks: dict[str, bool] = {}

    try:
        db_client = await connect_db()
        checks["mongodb"] = await db_client.ping()
    except (DatabaseConfigurationError, PyMongoError):
        checks["mongodb"] = False

    redis_client = get_redis_client()
    checks["redis"] = await redis_client.ping() if redis_client else False

    is_ready = checks["mongodb"]

    return JSONResponse(
        status_code=status.HTTP_200_OK if is_ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "ready": is_ready,
            "timestamp": datetime.now(UTC).isoformat(),
            "checks": checks,
        },
    )


# =============================================================================
# Main Execution Block
# =============================================================================

if __name__ == "__main__":
    uvicorn.run(
        "reelstream.main:app",
        host=_settings.host,
        port=_settings.port,
        reload=_settings.debug,
        log_level=_settings.log_level,
    )
