"""
api/main.py -- FastAPI application entry point for Exploree Accounts.

The central account service: every Exploree property (jobs, tender, events,
opportunities) signs users in here and verifies the resulting tokens either
locally with the shared secret or through /api/auth/verify.

Run with:      uvicorn asgi:app --reload
               python main.py serve

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- credentials allowed so the token cookie crosses
                              from the configured front-end origins

Lifespan builds every component once from Settings and hangs it on
app.state; route handlers read app.state and never the environment.
Shutdown closes both stores.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Callable

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from accounts.activity import ActivityLog
from accounts.store import AccountStore
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.admin import router as admin_router
from api.routes.auth import router as auth_router
from api.routes.waitlist import router as waitlist_router
from auth.config import AuthConfig
from auth.passwords import PasswordHasher
from auth.service_keys import ServiceAuthorizer
from auth.tokens import TokenCodec
from core.config import Settings, get_settings
from core.errors import ServiceError
from waitlist.store import WaitlistStore

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("exploree.api")


# ---------------------------------------------------------------------------
# Component wiring
# ---------------------------------------------------------------------------


def init_state(
    app: FastAPI,
    app_settings: Settings,
    account_store: AccountStore,
    waitlist_store: WaitlistStore,
    clock: Callable[[], float] = time.time,
) -> None:
    """Build the auth components from settings and attach them to app.state.

    Shared by the lifespan and the test fixtures so both wire the app the
    same way. clock is injected into the TokenCodec for expiry checks.
    """
    auth_config = AuthConfig.from_settings(app_settings)
    app.state.settings = app_settings
    app.state.auth_config = auth_config
    app.state.account_store = account_store
    app.state.waitlist_store = waitlist_store
    app.state.hasher = PasswordHasher(rounds=auth_config.bcrypt_rounds)
    app.state.token_codec = TokenCodec(auth_config, clock=clock)
    app.state.service_authorizer = ServiceAuthorizer(auth_config)
    app.state.activity_log = ActivityLog(account_store)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the stores on startup and close them on shutdown.

    Both stores share one database URL; each creates its own tables.
    """
    logger.info("%s %s starting up", settings.app_name, settings.version)
    init_state(
        app,
        settings,
        account_store=AccountStore(settings.database_url),
        waitlist_store=WaitlistStore(settings.database_url),
    )
    if not settings.service_api_key:
        logger.warning("SERVICE_API_KEY not set -- no downstream service will be trusted")
    logger.info("Stores initialized (service_urls=%s)", sorted(settings.service_urls))

    yield

    app.state.account_store.close()
    app.state.waitlist_store.close()
    logger.info("%s shutdown complete", settings.app_name)


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title=f"{settings.app_name} API",
    description="Central accounts, token verification and waitlists for the Exploree properties.",
    version=settings.version,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=settings.allowed_hosts,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization", settings.service_key_header],
    max_age=3600,
)


# ---------------------------------------------------------------------------
# Request logging middleware
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

app.include_router(auth_router, prefix="/api", tags=["Auth"])
app.include_router(admin_router, prefix="/api", tags=["Admin"])
app.include_router(waitlist_router, prefix="/api", tags=["Waitlist"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Map the core/errors.py taxonomy onto its status code and envelope."""
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(code=exc.code, message=exc.message, detail=exc.detail)
        ).model_dump(exclude_none=True),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with field-level detail when a body or query param fails validation."""
    fields = [
        {"field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"), "message": err.get("msg", "")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=fields,
            )
        ).model_dump(),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Return a structured error for FastAPI/Starlette HTTP exceptions (404 route, 405, ...)."""
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(exclude_none=True),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The traceback goes to the log only; the client receives a generic message.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(exclude_none=True),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state.
# ---------------------------------------------------------------------------


@app.get("/api/health", include_in_schema=True, tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=settings.version)
