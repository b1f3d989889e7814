"""
api/main.py -- FastAPI application entry point for the car rental API.

Run with:      uvicorn asgi:app --reload
               python main.py serve

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan is the composition root: it reads Settings once, builds the stores,
the token service (signer + clock), the auth service and the booking service,
and hangs them on app.state. The token signer gets the secret key from here
and nowhere else.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, RootResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.cars import router as cars_router
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import BcryptPasswordHasher, JoseSigner, SystemClock, TokenService
from core.config import get_settings
from core.errors import RentalApiError, RouteNotFoundError, ValidationError
from rental.booking import BookingService
from rental.store import RentalStore

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("carrental.api")

_settings = get_settings()

# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build application services on startup and release them on shutdown.

    Startup order matters:
      1. Stores first -- they create tables and seed the roles.
      2. TokenService -- built from the configured secret; no module reads it later.
      3. Services that depend on both.
    """
    # Startup
    logger.info("Car rental API starting up")
    app.state.settings = _settings
    app.state.user_store = UserStore(db_url=_settings.database_url)
    app.state.rental_store = RentalStore(db_url=_settings.database_url)
    app.state.token_service = TokenService(
        JoseSigner(_settings.secret_key),
        SystemClock(),
        expire_seconds=_settings.token_expire_seconds,
    )
    app.state.auth_service = AuthService(
        users=app.state.user_store,
        roles=app.state.user_store,
        tokens=app.state.token_service,
        hasher=BcryptPasswordHasher(),
    )
    app.state.booking_service = BookingService(app.state.rental_store, app.state.rental_store)
    logger.info(
        "Stores initialized (token expiry=%s)",
        f"{_settings.token_expire_seconds}s" if _settings.token_expire_seconds else "none",
    )

    yield

    # Shutdown
    app.state.user_store.close()
    app.state.rental_store.close()
    logger.info("Car rental API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="BCR API",
    description="Car rental backend: authentication, car inventory and bookings.",
    version="1.0.0",
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Register in the order you want the request to encounter them:
# TrustedHost -> CORS -> SlowAPI.
# ---------------------------------------------------------------------------

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.allowed_hosts,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter

# ---------------------------------------------------------------------------
# Request logging middleware
#
# Every request passes through this coroutine before reaching any route
# handler; wall-clock time around call_next gives the latency.
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

app.include_router(auth_router, prefix="/v1", tags=["Auth"])
app.include_router(cars_router, prefix="/v1", tags=["Cars"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error_response(status_code: int, error: ErrorDetail) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=error).model_dump())


@app.exception_handler(RentalApiError)
async def rental_api_error_handler(request: Request, exc: RentalApiError) -> JSONResponse:
    """Render any taxonomy error with its own status code and details."""
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.name, request.method, request.url.path, exc.message)
    return _error_response(exc.status_code, ErrorDetail(**exc.to_dict()))


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded.

    Retry-After tells clients how many seconds to wait before retrying.
    """
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error_response(
        429,
        ErrorDetail(name="RateLimitExceeded", message="Too many requests.", details={"limit": str(exc.detail)}),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 ValidationError when request body or query params fail validation."""
    err = ValidationError(
        "Request validation failed.",
        {"errors": [{"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()]},
    )
    return _error_response(err.status_code, ErrorDetail(**err.to_dict()))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Structured errors for Starlette HTTP exceptions (unmatched routes, bad methods).

    A 404 here means no route matched: render it as RouteNotFoundError with
    the method and URL so clients see what they asked for.
    """
    if exc.status_code == 404:
        err = RouteNotFoundError(request.method, str(request.url))
        return _error_response(err.status_code, ErrorDetail(**err.to_dict()))
    return _error_response(
        exc.status_code,
        ErrorDetail(name=f"HTTP{exc.status_code}", message=str(exc.detail)),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    The client receives a generic message with details null.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(
        500,
        ErrorDetail(name="InternalServerError", message="An unexpected error occurred."),
    )


# ---------------------------------------------------------------------------
# Root endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state. No rate limit -- load balancer
# probes must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/", tags=["Health"])
async def root() -> RootResponse:
    """Return API liveness."""
    return RootResponse()
