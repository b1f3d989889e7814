"""
API request and response models for the car rental REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
rental/models.py, which own the internal domain representation. Route
handlers map between the two.

Wire format is camelCase (rentStartedAt, isCurrentlyRented, pageCount ...).
Every model generates camelCase aliases and also accepts the snake_case field
names, so handlers can build responses with plain Python names.

Separation of concerns: domain dataclasses = domain truth; api/ models = API contract.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from auth.models import Role, User
from core.pagination import Pagination
from rental.models import Car, Rental

# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class CarSizeEnum(str, Enum):
    SMALL = "SMALL"
    MEDIUM = "MEDIUM"
    LARGE = "LARGE"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Inner error object. name is the error kind, details is kind-specific or null."""

    name: str
    message: str
    details: Optional[Any] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope: {"error": {"name": ..., "message": ..., "details": ...}}."""

    error: ErrorDetail


class RootResponse(BaseModel):
    status: str = "OK"
    message: str = "BCR API is up and running!"


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class LoginRequest(CamelModel):
    """Request body for POST /v1/auth/login.

    max_length on password keeps inputs under bcrypt's 72-byte limit.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=72)


class RegisterRequest(LoginRequest):
    name: Optional[str] = Field(default=None, max_length=255)


class TokenResponse(CamelModel):
    access_token: str


class RoleResponse(CamelModel):
    id: int
    name: str

    @classmethod
    def from_role(cls, role: Role) -> RoleResponse:
        return cls(id=role.id, name=role.name)


class UserResponse(CamelModel):
    """Public view of a user. The password hash is never serialized."""

    id: int
    name: Optional[str]
    email: str
    image: Optional[str]
    role_id: int
    role: RoleResponse
    created_at: str
    updated_at: str

    @classmethod
    def from_user(cls, user: User, role: Role) -> UserResponse:
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            image=user.image,
            role_id=user.role_id,
            role=RoleResponse.from_role(role),
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


# ---------------------------------------------------------------------------
# Cars
# ---------------------------------------------------------------------------


class CarWrite(CamelModel):
    """Request body for POST /v1/cars and PUT /v1/cars/{id}.

    isCurrentlyRented is not accepted from clients; create and update always
    reset it to false.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    price: int = Field(ge=0)
    size: CarSizeEnum
    image: Optional[str] = Field(default=None, max_length=2048)


class CarResponse(CamelModel):
    id: int
    name: str
    price: int
    size: str
    image: Optional[str]
    is_currently_rented: bool
    created_at: str
    updated_at: str

    @classmethod
    def from_car(cls, car: Car) -> CarResponse:
        return cls(
            id=car.id,
            name=car.name,
            price=car.price,
            size=car.size,
            image=car.image,
            is_currently_rented=car.is_currently_rented,
            created_at=car.created_at,
            updated_at=car.updated_at,
        )


class PaginationMeta(CamelModel):
    page: int
    page_count: int
    page_size: int
    count: int

    @classmethod
    def from_pagination(cls, pagination: Pagination) -> PaginationMeta:
        return cls(
            page=pagination.page,
            page_count=pagination.page_count,
            page_size=pagination.page_size,
            count=pagination.count,
        )


class ListMeta(CamelModel):
    pagination: PaginationMeta


class CarListResponse(CamelModel):
    """Response body for GET /v1/cars: {"cars": [...], "meta": {"pagination": {...}}}."""

    cars: list[CarResponse]
    meta: ListMeta


# ---------------------------------------------------------------------------
# Rentals
# ---------------------------------------------------------------------------


class RentRequest(CamelModel):
    """Request body for POST /v1/cars/{id}/rent. rentEndedAt defaults to one day after the start."""

    rent_started_at: datetime
    rent_ended_at: Optional[datetime] = None


class RentalResponse(CamelModel):
    id: int
    user_id: int
    car_id: int
    rent_started_at: datetime
    rent_ended_at: datetime
    created_at: str

    @classmethod
    def from_rental(cls, rental: Rental) -> RentalResponse:
        return cls(
            id=rental.id,
            user_id=rental.user_id,
            car_id=rental.car_id,
            rent_started_at=rental.rent_started_at,
            rent_ended_at=rental.rent_ended_at,
            created_at=rental.created_at,
        )
