"""
Crowslist Backend — FastAPI Application Factory
=================================================

What:  Builds the FastAPI application: middleware, exception handlers,
       routes, and per-app state (database gateway, session store, image
       store).
Who:   uvicorn (`uvicorn crowslist.main:app`) and the test suite, which calls
       create_app() with its own database and session store.

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                      FastAPI App                         │
    │                                                          │
    │  Middleware:  Request ID → Logging → Rate Limit → GZip → CORS
    │                                                          │
    │  Routes:      /api/register /api/login /api/logout       │
    │               /api/verify-email[/resend] /api/auth/check │
    │               /api/listings[/my|/{id}[/status]]          │
    │               /api/profile   /health                     │
    │                                                          │
    │  app.state:   database, session_store, file_service      │
    │                                                          │
    │  Errors:      Validation/Auth/Conflict → 400             │
    │               AuthRequired → 401   NotFound → 404        │
    │               RateLimit → 429      Internal → 500        │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Configure logging
    2. Report development-only settings that are still on
    3. Create missing tables (retried while the database comes up)
    4. Seed sample data if SEED_SAMPLE_DATA is set
    5. Create the image storage directory

    Shutdown:
    1. Dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from datetime import timedelta
from pathlib import Path
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from crowslist import __version__
from crowslist.config import settings
from crowslist.database import Database, create_database
from crowslist.exceptions import (
    AuthError,
    AuthRequiredError,
    ConflictError,
    CrowslistError,
    InternalError,
    NotFoundError,
    RateLimitExceededError,
    ValidationError,
)
from crowslist.middleware.logging import RequestLoggingMiddleware
from crowslist.middleware.rate_limit import RateLimitMiddleware
from crowslist.middleware.request_id import RequestIDMiddleware, request_id_var
from crowslist.routes import auth, health, listings, profile
from crowslist.services.file_service import FileService
from crowslist.services.session_store import InMemorySessionStore, SessionStore

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure the root logger once, at startup.

    Format: 2026-01-15T12:00:00 [INFO] crowslist.services.auth_service: ...
    Every module logs through logging.getLogger(__name__); access lines go
    to `crowslist.access`.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Per-statement and per-connection chatter
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("passlib").setLevel(logging.WARNING)
    logging.getLogger("multipart").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Startup helpers
# ══════════════════════════════════════════════════════════════════════════

async def ensure_schema(database: Database) -> None:
    """
    create_schema_if_absent(), retried with backoff.

    In docker-compose the API can start before PostgreSQL accepts
    connections; the first attempts fail with connection errors.
    """
    async for attempt in AsyncRetrying(
        retry=retry_if_exception_type((OSError, SQLAlchemyError)),
        stop=stop_after_attempt(settings.startup_retry_attempts),
        wait=wait_exponential_jitter(initial=settings.startup_retry_wait, max=30, jitter=1),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    ):
        with attempt:
            await database.create_schema_if_absent()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("Crowslist Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Development defaults are allowed; they are just loud
        logger.warning("%s", str(e))

    database: Database = app.state.database
    await ensure_schema(database)
    logger.info("Database backend: %s", database.backend)

    if settings.seed_sample_data:
        from crowslist.seed import seed_sample_data

        await seed_sample_data(database)

    storage = app.state.file_service.storage_root
    Path(storage).mkdir(parents=True, exist_ok=True)
    logger.info("Image storage: %s", storage)

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Crowslist Backend shutting down...")
    await database.dispose()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_body(code: str, message: str, details: Optional[dict] = None) -> dict:
    body = {"error": code, "message": message, "request_id": request_id_var.get("")}
    if details:
        body["details"] = details
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map application exceptions to JSON error responses.

    Handler hierarchy:
        ValidationError         → 400 validation_error (details = field info)
        RequestValidationError  → 400 validation_error (malformed body/params)
        AuthError               → 400 auth_error
        ConflictError           → 400 conflict
        AuthRequiredError       → 401 authentication_required
        NotFoundError           → 404 not_found
        RateLimitExceededError  → 429 rate_limit_exceeded (+ Retry-After)
        InternalError (+ DatabaseError, FileStorageError) → 500 server_error
        CrowslistError / Exception (fallback) → 500

    5xx bodies never carry internal details; those are logged with the
    request id.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return JSONResponse(
            status_code=400,
            content=_error_body("validation_error", exc.message, exc.context),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        problems = [
            {
                "field": ".".join(str(part) for part in err.get("loc", ())[1:]) or "body",
                "message": err.get("msg", "Invalid value"),
            }
            for err in exc.errors()
        ]
        first = problems[0] if problems else {"field": "body", "message": "Invalid request"}
        message = f"{first['field']}: {first['message']}"
        logger.warning("[%s] Request validation failed: %s", request_id_var.get(""), message)
        return JSONResponse(
            status_code=400,
            content=_error_body("validation_error", message, {"errors": problems}),
        )

    @app.exception_handler(AuthError)
    async def handle_auth_error(request: Request, exc: AuthError):
        return JSONResponse(status_code=400, content=_error_body("auth_error", exc.message))

    @app.exception_handler(ConflictError)
    async def handle_conflict(request: Request, exc: ConflictError):
        return JSONResponse(status_code=400, content=_error_body("conflict", exc.message))

    @app.exception_handler(AuthRequiredError)
    async def handle_auth_required(request: Request, exc: AuthRequiredError):
        return JSONResponse(
            status_code=401,
            content=_error_body("authentication_required", exc.message),
        )

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content=_error_body("not_found", exc.message))

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        return JSONResponse(
            status_code=429,
            content=_error_body("rate_limit_exceeded", exc.message, exc.context),
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(InternalError)
    async def handle_internal_error(request: Request, exc: InternalError):
        logger.error(
            "[%s] %s: %s | Context: %s",
            request_id_var.get(""),
            type(exc).__name__,
            exc.message,
            exc.context,
        )
        # Our 500 messages are written to be user-safe ("Failed to create listing")
        return JSONResponse(status_code=500, content=_error_body("server_error", exc.message))

    @app.exception_handler(CrowslistError)
    async def handle_crowslist_error(request: Request, exc: CrowslistError):
        logger.error("[%s] Unmapped application error: %s", request_id_var.get(""), exc.message)
        return JSONResponse(
            status_code=500,
            content=_error_body("server_error", "An internal error occurred. Please try again later."),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error(
            "[%s] Unexpected error: %s",
            request_id_var.get(""),
            str(exc),
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "internal_server_error",
                "An unexpected error occurred. Please try again later.",
            ),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    database: Optional[Database] = None,
    session_store: Optional[SessionStore] = None,
    file_service: Optional[FileService] = None,
) -> FastAPI:
    """
    Create and configure the application.

    Args:
        database:      Gateway to use; default built from DATABASE_URL.
        session_store: Session backend; default a fresh InMemorySessionStore
                       with the configured TTL.
        file_service:  Image store; default rooted at STORAGE_ROOT.
    """
    app = FastAPI(
        title="Crowslist API",
        description=(
            "Campus classifieds: institutional-email accounts, listings with "
            "images, and user profiles."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Explicit None checks: an empty session store has len() == 0 and is falsy
    app.state.database = database if database is not None else create_database(settings.database_url)
    app.state.session_store = (
        session_store
        if session_store is not None
        else InMemorySessionStore(
            ttl=timedelta(hours=settings.session_ttl_hours),
            rolling=settings.session_rolling,
        )
    )
    app.state.file_service = (
        file_service if file_service is not None else FileService(settings.storage_root)
    )

    # ── Middleware ────────────────────────────────────────────────────────
    # Executes in reverse order of addition: RequestID runs first.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(auth.router)
    app.include_router(listings.router)
    app.include_router(profile.router)
    app.include_router(health.router)

    return app


app = create_app()
