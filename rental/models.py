"""
rental/models.py -- Domain dataclasses for cars and rental records.

These are pure data containers with zero logic. Conflict detection lives in
rental/booking.py; persistence lives in rental/store.py.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class Car:
    """A rentable car.

    is_currently_rented is a denormalized display flag. Booking conflicts are
    decided from rental records only, never from this flag.

    id is None before the record is written to the database.
    """

    name: str
    price: int
    size: str  # "SMALL" | "MEDIUM" | "LARGE"
    image: Optional[str] = None
    is_currently_rented: bool = False
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""


@dataclass
class Rental:
    """One reservation of one car for [rent_started_at, rent_ended_at], both inclusive.

    Rental records are never updated -- only inserted and queried.
    Datetimes are timezone-aware UTC.
    """

    user_id: int
    car_id: int
    rent_started_at: datetime
    rent_ended_at: datetime
    id: Optional[int] = None
    created_at: str = ""


@dataclass
class CarFilter:
    """Listing predicate for GET /v1/cars.

    available_at keeps only cars that have a rental record ending on or after
    that instant.
    """

    size: Optional[str] = None
    available_at: Optional[datetime] = None
