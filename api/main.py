"""
api/main.py -- FastAPI application entry point for RxAuth.

Exposes the auth core over HTTP. The core itself (auth/) knows nothing about
HTTP; this module builds the services once at startup, puts them on app.state,
and translates auth.errors into status codes.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware    -- adds CORS headers for allowed browser origins
  2. SlowAPIMiddleware -- enforces per-route rate limits from api.limiter

Lifespan handles startup (settings, store, services, throttle purge task) and
shutdown (cancel purge task, close the SQL store if one is used) symmetrically.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from auth.errors import AuthError, LockedOutError, WeakPasswordError
from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.store import InMemoryUserStore, SQLUserStore
from auth.throttle import LoginThrottle
from auth.tokens import TokenService
from core.config import Settings, get_settings

API_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("rxauth.api")

# Status code for every auth.errors code. The core never picks transport
# semantics itself; this table is the only place they are decided.
ERROR_STATUS: dict[str, int] = {
    "validation_error": 400,
    "weak_password": 400,
    "already_exists": 409,
    "invalid_credentials": 401,
    "locked_out": 429,
    "invalid_token": 401,
    "unauthorized": 401,
    "forbidden": 403,
    "not_found": 404,
    "hashing_error": 500,
}


# ---------------------------------------------------------------------------
# Service assembly
# ---------------------------------------------------------------------------


def build_auth_service(settings: Settings) -> AuthService:
    """Build the auth core from settings. Called once per process by lifespan."""
    store = SQLUserStore(settings.database_url) if settings.database_url else InMemoryUserStore()
    return AuthService(
        store=store,
        hasher=PasswordHasher(rounds=settings.bcrypt_rounds),
        tokens=TokenService(
            access_secret=settings.jwt_secret,
            refresh_secret=settings.refresh_token_secret,
            access_expire=settings.jwt_expire,
            refresh_expire=settings.refresh_token_expire,
        ),
        throttle=LoginThrottle(
            max_attempts=settings.max_login_attempts,
            window_seconds=settings.lockout_seconds,
        ),
    )


# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI) -> None:
    """Drop expired lockout records once per lockout window.

    is_locked() already ignores expired records; this only bounds memory for
    identities that never come back. CancelledError from task.cancel() during
    shutdown propagates out of asyncio.sleep and unwinds the coroutine.
    """
    throttle: LoginThrottle = app.state.auth_service.throttle
    while True:
        await asyncio.sleep(throttle.window_seconds)
        removed = throttle.purge_expired()
        if removed:
            logger.info("Purged %d expired lockout records", removed)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the auth core on startup and release it on shutdown.

    Settings are resolved here, so a production start without JWT_SECRET or
    REFRESH_TOKEN_SECRET fails before the first request is served.
    """
    logger.info("RxAuth API starting up")
    settings = get_settings()
    app.state.auth_service = build_auth_service(settings)
    logger.info(
        "Auth initialized (store=%s, max_attempts=%d, lockout=%dm)",
        type(app.state.auth_service.store).__name__,
        settings.max_login_attempts,
        settings.lockout_minutes,
    )
    app.state.purge_task = asyncio.create_task(_purge_loop(app))

    yield

    app.state.purge_task.cancel()
    store = app.state.auth_service.store
    if isinstance(store, SQLUserStore):
        store.close()
    logger.info("RxAuth API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="RxAuth API",
    description="Authentication and authorization for the pharmacy back office.",
    version=API_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost", "http://localhost:3000", "http://127.0.0.1"],
    allow_methods=["GET", "POST", "PATCH"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


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

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every handler answers with the one ErrorResponse envelope, so clients read
# error.code and never have to guess the schema from the status.
# ---------------------------------------------------------------------------


def _error_response(
    status_code: int,
    code: str,
    message: str,
    detail: str | None = None,
    errors: list[str] | None = None,
) -> JSONResponse:
    envelope = ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail, errors=errors))
    return JSONResponse(status_code=status_code, content=envelope.model_dump(exclude_none=True))


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Translate a core error into its status code and the standard envelope."""
    status_code = ERROR_STATUS.get(exc.code, 400)
    if status_code >= 500:
        logger.error("%s on %s %s", exc.code, request.method, request.url.path, exc_info=exc)
    response = _error_response(
        status_code,
        exc.code,
        exc.message,
        errors=exc.errors if isinstance(exc, WeakPasswordError) else None,
    )
    if isinstance(exc, LockedOutError) and exc.retry_after:
        response.headers["Retry-After"] = str(exc.retry_after)
    if status_code == 401:
        response.headers["WWW-Authenticate"] = "Bearer"
    return response


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Per-IP limit on /auth/login tripped. Separate from the per-identity lockout."""
    logger.warning("Rate limit exceeded for %s on %s", get_remote_address(request), request.url.path)
    response = _error_response(429, "rate_limited", "Too many requests.", detail=str(exc.detail))
    response.headers["Retry-After"] = "60"
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Body or path failed the pydantic schema before reaching the core."""
    fields = sorted({".".join(str(part) for part in err["loc"][1:]) or "body" for err in exc.errors()})
    return _error_response(
        422,
        "validation_error",
        "Request validation failed.",
        detail=f"Invalid field(s): {', '.join(fields)}",
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort. The traceback goes to the log, never into the body."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable.
# No rate limit -- health checks must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=API_VERSION)
