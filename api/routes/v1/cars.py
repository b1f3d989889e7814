"""
api/routes/v1/cars.py -- Car inventory and rental routes.

Routes:
  GET    /cars             -- paginated listing, filters: size, availableAt (public)
  POST   /cars             -- create car (ADMIN)
  GET    /cars/{car_id}    -- car detail (public)
  PUT    /cars/{car_id}    -- replace car fields (ADMIN)
  DELETE /cars/{car_id}    -- delete car, 204 (ADMIN)
  POST   /cars/{car_id}/rent -- book the car for the caller (CUSTOMER)

Create and update always write isCurrentlyRented=false; the flag is a display
convenience and does not take part in booking conflict checks.

Listing:
  page / pageSize default to 1 / Settings.default_page_size. Zero counts as
  "not given"; negative values are rejected with 422.

Annotations are evaluated at import (no __future__ import): FastAPI reads the
endpoint signatures through the @limiter.limit wrapper, whose globals are
slowapi's rather than this module's.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from api.limiter import limiter
from api.models import (
    CarListResponse,
    CarResponse,
    CarSizeEnum,
    CarWrite,
    ListMeta,
    PaginationMeta,
    RentalResponse,
    RentRequest,
)
from auth.dependencies import authorize
from auth.models import ADMIN, CUSTOMER, Identity
from core.errors import RecordNotFoundError
from core.pagination import paginate, resolve_page
from rental.booking import BookingService
from rental.models import Car, CarFilter
from rental.store import CarRepository

# Auth policy:
# - GET    /v1/cars, /v1/cars/{id}:   public -- browsing inventory needs no account
# - POST/PUT/DELETE /v1/cars[/{id}]:  requires ADMIN (authorize(ADMIN))
# - POST   /v1/cars/{id}/rent:        requires CUSTOMER (authorize(CUSTOMER))
router = APIRouter()


# ---------------------------------------------------------------------------
# GET /cars -- paginated listing
# ---------------------------------------------------------------------------


@router.get("/cars", response_model=CarListResponse)
@limiter.limit("60/minute")
def list_cars(
    request: Request,
    page: Optional[int] = Query(default=None),
    page_size: Optional[int] = Query(default=None, alias="pageSize"),
    size: Optional[CarSizeEnum] = Query(default=None),
    available_at: Optional[datetime] = Query(default=None, alias="availableAt"),
) -> CarListResponse:
    """Return one page of cars plus pagination metadata."""
    cars: CarRepository = request.app.state.rental_store
    default_page_size: int = request.app.state.settings.default_page_size

    page, page_size = resolve_page(page, page_size, default_page_size)
    car_filter = CarFilter(size=size.value if size else None, available_at=available_at)

    count = cars.count_cars(car_filter)
    pagination = paginate(page, page_size, count, default_page_size)
    rows = cars.list_cars(car_filter, offset=pagination.offset, limit=pagination.limit)

    return CarListResponse(
        cars=[CarResponse.from_car(c) for c in rows],
        meta=ListMeta(pagination=PaginationMeta.from_pagination(pagination)),
    )


# ---------------------------------------------------------------------------
# POST /cars -- create
# ---------------------------------------------------------------------------


@router.post("/cars", response_model=CarResponse, status_code=201)
@limiter.limit("30/minute")
def create_car(
    request: Request,
    body: CarWrite,
    identity: Identity = Depends(authorize(ADMIN)),
) -> CarResponse:
    cars: CarRepository = request.app.state.rental_store
    created = cars.create_car(
        Car(
            name=body.name,
            price=body.price,
            size=body.size.value,
            image=body.image,
            is_currently_rented=False,
        )
    )
    return CarResponse.from_car(created)


# ---------------------------------------------------------------------------
# GET /cars/{car_id} -- detail
# ---------------------------------------------------------------------------


@router.get("/cars/{car_id}", response_model=CarResponse)
@limiter.limit("60/minute")
def get_car(request: Request, car_id: int) -> CarResponse:
    cars: CarRepository = request.app.state.rental_store
    car = cars.get_car(car_id)
    if car is None:
        raise RecordNotFoundError("Car")
    return CarResponse.from_car(car)


# ---------------------------------------------------------------------------
# PUT /cars/{car_id} -- update
# ---------------------------------------------------------------------------


@router.put("/cars/{car_id}", response_model=CarResponse)
@limiter.limit("30/minute")
def update_car(
    request: Request,
    car_id: int,
    body: CarWrite,
    identity: Identity = Depends(authorize(ADMIN)),
) -> CarResponse:
    cars: CarRepository = request.app.state.rental_store
    updated = cars.update_car(
        car_id,
        name=body.name,
        price=body.price,
        size=body.size.value,
        image=body.image,
        is_currently_rented=False,
    )
    if updated is None:
        raise RecordNotFoundError("Car")
    return CarResponse.from_car(updated)


# ---------------------------------------------------------------------------
# DELETE /cars/{car_id}
# ---------------------------------------------------------------------------


@router.delete("/cars/{car_id}", status_code=204)
@limiter.limit("30/minute")
def delete_car(
    request: Request,
    car_id: int,
    identity: Identity = Depends(authorize(ADMIN)),
) -> Response:
    """Delete a car. Deleting a car that does not exist is still a 204."""
    cars: CarRepository = request.app.state.rental_store
    cars.delete_car(car_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# POST /cars/{car_id}/rent -- book
# ---------------------------------------------------------------------------


@router.post("/cars/{car_id}/rent", response_model=RentalResponse, status_code=201)
@limiter.limit("30/minute")
def rent_car(
    request: Request,
    car_id: int,
    body: RentRequest,
    identity: Identity = Depends(authorize(CUSTOMER)),
) -> RentalResponse:
    """Book a car for the authenticated customer.

    422 AlreadyRentedError when an existing booking of this car falls inside
    [rentStartedAt, rentEndedAt]. rentEndedAt defaults to one day after start.
    """
    booking: BookingService = request.app.state.booking_service
    rental = booking.rent(identity.id, car_id, body.rent_started_at, body.rent_ended_at)
    return RentalResponse.from_rental(rental)
