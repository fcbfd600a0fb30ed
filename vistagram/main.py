"""
Vistagram Backend — FastAPI Application Factory
===================================================

What:  Creates and configures the FastAPI application instance.
Why:   Centralizes middleware registration, route mounting, exception
       mapping and lifecycle management in one place.
How:   create_app() returns a configured FastAPI instance and is also the
       composition root: the SchedulerService is built here and stored on
       app.state.scheduler.
Who:   uvicorn (vistagram.main:app); tests call create_app() directly.

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                      FastAPI App                         │
    │                                                          │
    │  Middleware Chain:                                       │
    │  ┌─────────────────┐ ┌──────────┐ ┌─────────┐ ┌──────┐   │
    │  │ Auth Rate Limit │→│ Req ID   │→│ Logging │→│ CORS │   │
    │  └─────────────────┘ └──────────┘ └─────────┘ └──────┘   │
    │                                                          │
    │  Routes:                                                 │
    │  /api/auth/*  /api/posts/*  /api/users/*  /api/cron/*    │
    │  /api/files/* /health /                                  │
    │                                                          │
    │  app.state.scheduler → SchedulerService → SeedingService │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging → config validation (logged, not fatal) → storage
              directory → register the population cron job
    Shutdown: stop all jobs → dispose database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncGenerator, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from vistagram import __version__
from vistagram.config import settings
from vistagram.database import dispose_engine
from vistagram.exceptions import (
    VistagramError,
    ValidationError,
    AuthenticationError,
    NotFoundError,
    LLMServiceError,
    CircuitBreakerOpenError,
    DatabaseError,
    RateLimitExceededError,
    FileStorageError,
)
from vistagram.middleware.request_id import RequestIDMiddleware, request_id_var
from vistagram.middleware.logging import RequestLoggingMiddleware
from vistagram.middleware.rate_limit import RateLimitMiddleware
from vistagram.routes import auth, cron, files, health, posts, users
from vistagram.services.scheduler_service import SchedulerService

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging once for the whole process.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s to stdout,
    level from LOG_LEVEL; chatty third-party loggers are raised to WARNING.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("Vistagram Backend starting up...")

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Not fatal: the API can still serve and report the problem
        logger.error("Configuration error: %s", str(e))

    storage = Path(settings.storage_root)
    storage.mkdir(parents=True, exist_ok=True)
    logger.info("Storage directory: %s", storage.resolve())

    scheduler: SchedulerService = app.state.scheduler
    try:
        scheduler.start_database_population()
    except ValueError as e:
        logger.error("Could not schedule database population: %s", str(e))

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Vistagram Backend shutting down...")
    scheduler.stop_all_jobs()
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def error_body(message: str, code: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """{"error", "code", "details"?, "request_id"}: the shape of every error response."""
    body: Dict[str, Any] = {"error": message, "code": code}
    if details:
        body["details"] = details
    body["request_id"] = request_id_var.get("")
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """
    Handler hierarchy:
        ValidationError / RequestValidationError → 400
        AuthenticationError (incl. InvalidTokenError) → 401 + WWW-Authenticate
        NotFoundError → 404
        RateLimitExceededError → 429
        LLMServiceError / CircuitBreakerOpenError → 503
        DatabaseError / FileStorageError / VistagramError → 500
        Exception → 500 (raw message only with EXPOSE_ERROR_DETAILS)

    Exception context dicts are logged, never returned.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        details = {"field": exc.field} if exc.field else None
        return JSONResponse(status_code=400, content=error_body(exc.message, "validation_error", details))

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path", "header", "cookie")]
        field = loc[-1] if loc else "body"
        if first.get("type") == "missing":
            message = f"{field} is required"
        else:
            reason = str(first.get("msg", "is invalid"))
            reason = reason.removeprefix("Value error, ")
            message = f"{field}: {reason}"
        logger.warning("[%s] Request validation failed: %s", request_id_var.get(""), message)
        return JSONResponse(
            status_code=400,
            content=error_body(message, "validation_error", {"field": field}),
        )

    @app.exception_handler(AuthenticationError)
    async def handle_authentication_error(request: Request, exc: AuthenticationError):
        logger.info("[%s] Authentication failed: %s", request_id_var.get(""), exc.reason)
        return JSONResponse(
            status_code=401,
            content=error_body(exc.message, "unauthorized"),
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content=error_body(exc.message, "not_found"))

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        return JSONResponse(
            status_code=429,
            content=error_body(exc.message, "rate_limit_exceeded", {"retry_after": exc.retry_after}),
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(CircuitBreakerOpenError)
    async def handle_circuit_breaker(request: Request, exc: CircuitBreakerOpenError):
        logger.warning("[%s] Circuit breaker open: %s", request_id_var.get(""), exc.message)
        return JSONResponse(
            status_code=503,
            content=error_body(exc.message, "service_unavailable", {"recovery_time": exc.recovery_time}),
            headers={"Retry-After": str(exc.recovery_time)},
        )

    @app.exception_handler(LLMServiceError)
    async def handle_llm_error(request: Request, exc: LLMServiceError):
        logger.error("[%s] LLM service error: %s", request_id_var.get(""), exc.message)
        headers = {"Retry-After": str(exc.retry_after)} if exc.retry_after else {}
        return JSONResponse(
            status_code=503,
            content=error_body(exc.message, "llm_service_error"),
            headers=headers,
        )

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        rid = request_id_var.get("")
        logger.error("[%s] Database error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content=error_body("An internal error occurred. Please try again later.", "server_error"),
        )

    @app.exception_handler(FileStorageError)
    async def handle_file_storage_error(request: Request, exc: FileStorageError):
        rid = request_id_var.get("")
        logger.error("[%s] File storage error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(status_code=500, content=error_body(exc.message, "server_error"))

    @app.exception_handler(VistagramError)
    async def handle_app_error(request: Request, exc: VistagramError):
        rid = request_id_var.get("")
        logger.error("[%s] Unhandled application error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(status_code=500, content=error_body(exc.message, "server_error"))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        # Unknown routes, wrong methods: same body shape as everything else
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(str(exc.detail), "http_error"),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        message = (
            str(exc) if settings.expose_error_details and str(exc)
            else "An unexpected error occurred. Please try again or contact support."
        )
        return JSONResponse(status_code=500, content=error_body(message, "internal_server_error"))


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(scheduler: Optional[SchedulerService] = None) -> FastAPI:
    """
    Assemble the application.

    Args:
        scheduler: injected by tests; defaults to a SchedulerService over the
                   real seeding job.
    """
    app = FastAPI(
        title="Vistagram API",
        description=(
            "Image-sharing backend: accounts with access/refresh tokens, posts, "
            "likes and shares, plus a scheduled job that seeds synthetic content."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.state.scheduler = scheduler or SchedulerService()

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added runs first: RateLimit → RequestID → Logging → CORS

    # Credentials allowed so the browser sends the refresh cookie
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID", "X-Cron-Token"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(auth.router)
    app.include_router(posts.router)
    app.include_router(users.router)
    app.include_router(cron.router)
    app.include_router(files.router)
    app.include_router(health.router)

    return app


# uvicorn vistagram.main:app
app = create_app()
