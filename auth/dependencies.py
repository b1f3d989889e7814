"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

authorize(required_role) is the role gate. It returns a dependency that:
  1. reads the "Authorization: Bearer <token>" header,
  2. verifies the token with the TokenService on app.state,
  3. compares the token's role name (case-sensitive) to required_role,
  4. stores the Identity on request.state.user and returns it.

Failures raise core.errors exceptions (AuthenticationError,
InvalidTokenError, AuthorizationError -- all HTTP 401); the handler in
api/main.py renders them.

Use as a FastAPI dependency:
    @router.post("/cars")
    def create_car(identity: Identity = Depends(authorize(ADMIN))): ...

Layer rule: no imports from api/ or rental/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from typing import Callable

from fastapi import Request

from auth.models import Identity
from auth.tokens import TokenService
from core.errors import AuthenticationError, AuthorizationError

_BEARER_PREFIX = "Bearer "


def bearer_token(request: Request) -> str:
    """Return the raw token from the Authorization header.

    Raises AuthenticationError when the header is absent or is not of the
    form "Bearer <token>".
    """
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith(_BEARER_PREFIX):
        raise AuthenticationError()
    token = auth_header[len(_BEARER_PREFIX) :].strip()
    if not token:
        raise AuthenticationError()
    return token


def verify_request(request: Request) -> Identity:
    """Verify the bearer token without attaching anything to the request."""
    tokens: TokenService = request.app.state.token_service
    return tokens.verify(bearer_token(request))


def authorize(required_role: str) -> Callable[[Request], Identity]:
    """Build a dependency that admits only tokens carrying required_role."""

    def _gate(request: Request) -> Identity:
        identity = verify_request(request)
        if identity.role.name != required_role:
            raise AuthorizationError(identity.role.name)
        request.state.user = identity
        return identity

    _gate.__name__ = f"authorize_{required_role.lower()}"
    return _gate
