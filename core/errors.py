"""
core/errors.py -- Error taxonomy for the car rental API.

Every failure the API reports on purpose is an instance of one of the classes
below. Each class owns its HTTP status code; the single exception handler in
api/main.py turns any RentalApiError into the standard envelope:

    {"error": {"name": "<ClassName>", "message": "...", "details": {...} | null}}

Route handlers and services raise these; nothing below the API layer builds
JSONResponse objects by hand.

Layer rule: core/ is the kernel. No imports from api/, auth/, or rental/.
"""

from __future__ import annotations

from typing import Any, Optional


class RentalApiError(Exception):
    """Base class for all expected, client-visible errors."""

    status_code: int = 500

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    @property
    def name(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "message": self.message, "details": self.details}


# ---------------------------------------------------------------------------
# Authentication / authorization
# ---------------------------------------------------------------------------


class AuthenticationError(RentalApiError):
    """No usable bearer token on the request."""

    status_code = 401

    def __init__(self, message: str = "No token provided!", details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message, details)


class InvalidTokenError(AuthenticationError):
    """Token failed verification.

    Bad signature, malformed structure, missing claims and expiry all produce
    the same message so callers cannot learn which check rejected the token.
    """

    def __init__(self) -> None:
        super().__init__("Invalid token!")


class AuthorizationError(RentalApiError):
    """Authenticated identity does not hold the role a route requires."""

    status_code = 401

    def __init__(self, role: str) -> None:
        super().__init__(
            "Access forbidden!",
            {"role": role, "reason": f"{role} is not allowed to perform this operation."},
        )


class NotFoundRegistrationError(RentalApiError):
    status_code = 404

    def __init__(self, email: str) -> None:
        super().__init__(f"{email} is not registered!")


class InvalidCredentialsError(RentalApiError):
    status_code = 401

    def __init__(self) -> None:
        super().__init__("Password is not correct!")


class DuplicateRegistrationError(RentalApiError):
    status_code = 422

    def __init__(self, email: str) -> None:
        super().__init__(f"{email} is already registered!")


# ---------------------------------------------------------------------------
# Records and bookings
# ---------------------------------------------------------------------------


class RecordNotFoundError(RentalApiError):
    """A referenced entity (User, Role, Car) does not exist."""

    status_code = 404

    def __init__(self, entity: str) -> None:
        super().__init__(f"{entity} not found!")


class AlreadyRentedError(RentalApiError):
    status_code = 422

    def __init__(self, car_name: str) -> None:
        super().__init__(f"{car_name} is already rented!!")


class ValidationError(RentalApiError):
    status_code = 422


class RouteNotFoundError(RentalApiError):
    status_code = 404

    def __init__(self, method: str, url: str) -> None:
        super().__init__("Not found!", {"method": method, "url": url})
