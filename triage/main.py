"""
main.py — FastAPI application for the incident capture & triage backend

Wires middleware, structured error handlers and routers. Route handlers
live in routers/; business logic lives in services/.

Business Rules:
- Every response carries an 8-char X-Request-ID, also bound into log context
- Every error body has the ErrorResponse shape: error, status_code, request_id, code
- TriageError subclasses map to their own status code and machine-readable code

Called by: uvicorn (triage.main:app)
Depends on: routers, services, config, logging_config, startup
"""

import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from .config import settings
from .errors import TriageError
from .http_client import close_clients
from .logging_config import setup_logging
from .routers import admin_reports, notifications, reports, uploads
from .schemas.errors import ErrorResponse
from .startup import run_startup_migrations

APP_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    run_startup_migrations()
    logger.info("Triage backend v{} started", APP_VERSION)
    yield
    await close_clients()


app = FastAPI(title="Incident Triage", version=APP_VERSION, lifespan=lifespan)
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.secret_key,
    https_only=settings.app_url.startswith("https"),
    same_site="lax",
)


@app.middleware("http")
async def request_context(request: Request, call_next):
    """Request ID, timing and security headers on every response."""
    request_id = uuid.uuid4().hex[:8]
    request.state.request_id = request_id
    start = time.perf_counter()
    with logger.contextualize(request_id=request_id):
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug(
            "{} {} -> {} ({:.1f}ms)",
            request.method, request.url.path, response.status_code, elapsed_ms,
        )
    response.headers["X-Request-ID"] = request_id
    response.headers["X-Response-Time"] = f"{elapsed_ms:.1f}ms"
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "")


def _error(request: Request, status_code: int, message: str, code: str | None = None, detail=None):
    body = ErrorResponse(
        error=message,
        status_code=status_code,
        request_id=_request_id(request),
        code=code,
        detail=detail,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@app.exception_handler(TriageError)
async def triage_error_handler(request: Request, exc: TriageError):
    logger.info("{} on {}: {}", exc.code, request.url.path, exc.message)
    return _error(request, exc.status_code, exc.message, exc.code)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    codes = {401: "unauthorized", 403: "forbidden", 404: "not_found", 405: "method_not_allowed"}
    return _error(request, exc.status_code, str(exc.detail), codes.get(exc.status_code))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": list(e.get("loc", [])), "msg": e.get("msg", ""), "type": e.get("type", "")}
        for e in exc.errors()
    ]
    return _error(request, 422, "Validation failed", "validation_error", errors)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on {} {}", request.method, request.url.path)
    return _error(request, 500, "Internal server error", "internal_error")


@app.get("/health")
def health():
    return {"status": "ok", "version": APP_VERSION}


app.include_router(reports.router)
app.include_router(admin_reports.router)
app.include_router(uploads.router)
app.include_router(notifications.router)
