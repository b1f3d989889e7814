"""
rental/booking.py -- Booking conflict detection and rental creation.

Conflict rule (containment, not general overlap):
  An existing rental of the same car conflicts with a proposed window
  [start, end] iff  existing.rent_started_at >= start
                and existing.rent_ended_at   <= end
  i.e. the existing booking lies entirely within the window being asked for.
  A booking that merely overlaps one edge of the window, or that encloses the
  whole window, is NOT a conflict under this rule.

  Example: existing [day2, day3]
    proposed [day1, day5]      -> conflict
    proposed [day2.5, day2.8]  -> no conflict (existing not contained)

When the caller gives no end, the window is one day long.

BookingService.rent() runs the check as a cheap pre-flight, then asks the
RentalRepository to insert under its own lock + transaction, which repeats the
same check. The pre-flight keeps the common rejection path read-only; the
store is what actually prevents two concurrent requests from both booking.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from core.errors import AlreadyRentedError, RecordNotFoundError, ValidationError
from rental.models import Rental
from rental.store import CarRepository, RentalRepository

logger = logging.getLogger("carrental.rental")

DEFAULT_RENT_DURATION = timedelta(days=1)


def as_utc(value: datetime) -> datetime:
    """Return value as an aware UTC datetime. Naive values are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def default_rent_end(rent_started_at: datetime) -> datetime:
    return rent_started_at + DEFAULT_RENT_DURATION


class BookingConflictChecker:
    def __init__(self, rentals: RentalRepository) -> None:
        self.rentals = rentals

    def has_conflict(
        self,
        car_id: int,
        rent_started_at: datetime,
        rent_ended_at: Optional[datetime] = None,
    ) -> bool:
        """Return True if a rental of car_id lies within [rent_started_at, rent_ended_at]."""
        if rent_ended_at is None:
            rent_ended_at = default_rent_end(rent_started_at)
        return self.rentals.find_contained(car_id, rent_started_at, rent_ended_at) is not None


class BookingService:
    def __init__(self, cars: CarRepository, rentals: RentalRepository) -> None:
        self.cars = cars
        self.rentals = rentals
        self.checker = BookingConflictChecker(rentals)

    def rent(
        self,
        user_id: int,
        car_id: int,
        rent_started_at: Optional[datetime],
        rent_ended_at: Optional[datetime] = None,
    ) -> Rental:
        """Book car_id for user_id. Raises RecordNotFoundError, ValidationError or AlreadyRentedError."""
        car = self.cars.get_car(car_id)
        if car is None:
            raise RecordNotFoundError("Car")
        if rent_started_at is None:
            raise ValidationError("rentStartedAt is required.")
        rent_started_at = as_utc(rent_started_at)
        if rent_ended_at is None:
            rent_ended_at = default_rent_end(rent_started_at)
        rent_ended_at = as_utc(rent_ended_at)
        if rent_ended_at < rent_started_at:
            raise ValidationError(
                "rentEndedAt must not be before rentStartedAt.",
                {"rentStartedAt": rent_started_at.isoformat(), "rentEndedAt": rent_ended_at.isoformat()},
            )

        if self.checker.has_conflict(car.id, rent_started_at, rent_ended_at):
            logger.info("Booking rejected: car %s already rented within requested window", car.id)
            raise AlreadyRentedError(car.name)

        rental = self.rentals.create_if_available(
            Rental(
                user_id=user_id,
                car_id=car.id,
                rent_started_at=rent_started_at,
                rent_ended_at=rent_ended_at,
            )
        )
        if rental is None:
            logger.warning("Booking rejected: car %s was booked concurrently", car.id)
            raise AlreadyRentedError(car.name)

        logger.info("Rental %s created: car %s for user %s", rental.id, car.id, user_id)
        return rental
