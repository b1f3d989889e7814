"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes:
  POST /v1/auth/login      -- email/password login; 201 {accessToken}
  POST /v1/auth/register   -- create a CUSTOMER account; 201 {accessToken}
  GET  /v1/auth/whoami     -- current user record (CUSTOMER only)

Security:
  POST /login and /register are rate-limited per IP (Settings.login_rate_limit).
  Cache-Control: no-store on every response that carries a token.
  The password hash is never part of a response model.

Annotations are evaluated at import (no __future__ import): FastAPI reads the
endpoint signatures through the @limiter.limit wrapper, whose globals are
slowapi's rather than this module's.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import LoginRequest, RegisterRequest, TokenResponse, UserResponse
from auth.dependencies import authorize
from auth.models import CUSTOMER, Identity
from auth.service import AuthService
from core.config import get_settings

# Auth policy:
# - POST /v1/auth/login:     public -- login endpoint must be unauthenticated
# - POST /v1/auth/register:  public -- self-registration always creates a CUSTOMER
# - GET  /v1/auth/whoami:    requires CUSTOMER (authorize(CUSTOMER))
router = APIRouter()


def _login_limit() -> str:
    return get_settings().login_rate_limit


def _token_response(token: str) -> JSONResponse:
    resp = JSONResponse(
        status_code=201,
        content=TokenResponse(access_token=token).model_dump(by_alias=True),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/login", response_model=TokenResponse, status_code=201)
@limiter.limit(_login_limit)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password and return an access token.

    Unknown email -> 404 NotFoundRegistrationError.
    Wrong password -> 401 InvalidCredentialsError ("Password is not correct!").
    """
    auth: AuthService = request.app.state.auth_service
    return _token_response(auth.login(body.email, body.password))


@router.post("/auth/register", response_model=TokenResponse, status_code=201)
@limiter.limit(_login_limit)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Register a new CUSTOMER and return an access token.

    An email that is already registered -> 422 DuplicateRegistrationError.
    """
    auth: AuthService = request.app.state.auth_service
    return _token_response(auth.register(body.name, body.email, body.password))


@router.get("/auth/whoami", response_model=UserResponse)
def whoami(request: Request, identity: Identity = Depends(authorize(CUSTOMER))) -> UserResponse:
    """Return the stored record of the user behind the bearer token.

    The token only proves who the caller was at issue time; the user and role
    are reloaded so a deleted account yields 404 rather than stale data.
    """
    auth: AuthService = request.app.state.auth_service
    user, role = auth.whoami(identity)
    return UserResponse.from_user(user, role)
