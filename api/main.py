"""
api/main.py -- FastAPI application entry point for mintgate.

Run with:      uvicorn api.main:app

Middleware stack (outermost to innermost):
  1. CORSMiddleware  -- adds CORS headers for allowed browser origins
  2. log_requests    -- one access-log line per request

Lifespan builds the Authenticator once at startup: settings -> record store ->
credential snapshot. If the snapshot cannot be loaded the exception escapes
the lifespan and the server never reports ready -- there is no degraded mode
that serves logins from a partial snapshot.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from auth.authenticator import Authenticator
from auth.snapshot import SnapshotError
from auth.store import RecordStore
from core.config import get_settings
from core.log import configure_logging

API_VERSION = "1.0.0"

logger = logging.getLogger("mintgate.api")


# ---------------------------------------------------------------------------
# Lifespan -- startup / shutdown
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown. Startup order matters:
      1. Settings first -- a missing SECRET_KEY must fail before anything else.
      2. Record store second -- the snapshot reads from it. Startup never creates
         the schema; a missing users table is a SnapshotError like any other
         unreadable store.
      3. Authenticator last -- loads the snapshot; a SnapshotError aborts startup.
    """
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info("mintgate API starting up")

    store = RecordStore(settings.database_url)
    try:
        app.state.authenticator = Authenticator.from_store(store, settings.secret_key, settings.bcrypt_rounds)
    except SnapshotError:
        logger.critical("Credential snapshot failed to load -- refusing to start")
        store.close()
        raise
    app.state.record_store = store
    logger.info("Authenticator ready (%d usernames)", len(app.state.authenticator.snapshot))

    yield

    # Shutdown
    app.state.record_store.close()
    logger.info("mintgate API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="mintgate API",
    description="Username/password verification and signed identity token issuance.",
    version=API_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost", "http://localhost:3000", "http://127.0.0.1"],
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Every request passes through this coroutine before reaching any route
# handler. Only method, path, status, latency and client are logged -- never
# the body, which carries the password on /auth/login.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when the request body fails validation.

    Only location and message are echoed back. Pydantic's error dicts also
    carry the rejected input value, which for /auth/login can be the password.
    """
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', 'invalid')}" for err in exc.errors()
    )
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=problems,
            )
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Route dependencies raise HTTPException with a dict detail; use it directly
    as the error field rather than stringifying it.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=exc.headers,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
async def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and whether the credential snapshot is loaded."""
    authenticator = getattr(request.app.state, "authenticator", None)
    return HealthResponse(
        version=API_VERSION,
        components={
            "app": "ok",
            "records": "ok" if authenticator is not None else "error",
        },
    )
