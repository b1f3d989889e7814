"""
rental/store.py -- SQLAlchemy-backed persistence layer for cars and rentals.

Uses SQLAlchemy Core (not ORM) so the dataclasses in rental/models.py remain
the authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change, not a rewrite.

Pattern: Repository + Data Mapper. CarRepository and RentalRepository are the
capability interfaces the routes and booking service depend on; RentalStore
implements both. The _row_to_* functions are the mappers.

Booking guard:
  create_if_available() re-runs the containment check and inserts inside one
  transaction while holding a per-car lock. On PostgreSQL the car row is also
  locked with SELECT ... FOR UPDATE, so two workers cannot both book the same
  car; SQLite ignores FOR UPDATE and relies on the in-process lock.

Datetimes are stored as naive UTC and returned timezone-aware.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = RentalStore()                                  # SQLite default
    store = RentalStore("postgresql://user:pw@host/db")    # PostgreSQL
    car = store.create_car(Car(name="Avanza", price=300000, size="MEDIUM"))
    rental = store.create_if_available(Rental(user_id=1, car_id=car.id, ...))
    store.close()
"""

from __future__ import annotations

import abc
import threading
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    exists,
    func,
    select,
)
from sqlalchemy.engine import Connection, Engine

from core.config import DEFAULT_DB_URL
from rental.models import Car, CarFilter, Rental

# ---------------------------------------------------------------------------
# Capability interfaces
# ---------------------------------------------------------------------------


class CarRepository(abc.ABC):
    @abc.abstractmethod
    def list_cars(self, car_filter: CarFilter, offset: int, limit: int) -> list[Car]: ...

    @abc.abstractmethod
    def count_cars(self, car_filter: CarFilter) -> int: ...

    @abc.abstractmethod
    def get_car(self, car_id: int) -> Optional[Car]: ...

    @abc.abstractmethod
    def create_car(self, car: Car) -> Car: ...

    @abc.abstractmethod
    def update_car(self, car_id: int, **fields) -> Optional[Car]:
        """Apply fields and return the updated car, or None if car_id does not exist."""

    @abc.abstractmethod
    def delete_car(self, car_id: int) -> bool: ...


class RentalRepository(abc.ABC):
    @abc.abstractmethod
    def find_contained(self, car_id: int, start: datetime, end: datetime) -> Optional[Rental]:
        """Return a rental of car_id lying entirely within [start, end], or None."""

    @abc.abstractmethod
    def create_if_available(self, rental: Rental) -> Optional[Rental]:
        """Atomically check for a contained rental and insert.

        Returns the stored rental, or None if a conflicting record exists.
        """

    @abc.abstractmethod
    def list_rentals(self, car_id: int) -> list[Rental]: ...


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_cars = Table(
    "cars",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("price", Integer, nullable=False),
    Column("size", String(10), nullable=False),
    Column("image", Text),
    Column("is_currently_rented", Boolean, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    # AUTOINCREMENT: a deleted car's id is never handed to a new car.
    sqlite_autoincrement=True,
)

_user_cars = Table(
    "user_cars",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False),
    Column("car_id", Integer, ForeignKey("cars.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("rent_started_at", DateTime, nullable=False),
    Column("rent_ended_at", DateTime, nullable=False),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """WAL for concurrent readers; foreign_keys so ON DELETE CASCADE removes a car's rentals.

    Both are per-connection settings in SQLite.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_db(value: datetime) -> datetime:
    """Normalize to naive UTC. Naive input is assumed to already be UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _from_db(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc)


def _apply_filter(query, car_filter: CarFilter):
    if car_filter.size:
        query = query.where(_cars.c.size == car_filter.size)
    if car_filter.available_at is not None:
        query = query.where(
            exists().where(
                (_user_cars.c.car_id == _cars.c.id) & (_user_cars.c.rent_ended_at >= _to_db(car_filter.available_at))
            )
        )
    return query


def _contained_query(car_id: int, start: datetime, end: datetime):
    return (
        _user_cars.select()
        .where(
            (_user_cars.c.car_id == car_id)
            & (_user_cars.c.rent_started_at >= _to_db(start))
            & (_user_cars.c.rent_ended_at <= _to_db(end))
        )
        .limit(1)
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class RentalStore(CarRepository, RentalRepository):
    def __init__(self, db_url: str = DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_sqlite_pragmas)
        metadata.create_all(self.engine)
        self._locks_guard = threading.Lock()
        self._car_locks: dict[int, threading.Lock] = {}

    # ------------------------------------------------------------------
    # Cars
    # ------------------------------------------------------------------

    def list_cars(self, car_filter: CarFilter, offset: int, limit: int) -> list[Car]:
        """Return one page of cars matching the filter, ordered by id."""
        query = _apply_filter(_cars.select(), car_filter).order_by(_cars.c.id).offset(offset).limit(limit)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_car(r) for r in rows]

    def count_cars(self, car_filter: CarFilter) -> int:
        query = _apply_filter(select(func.count()).select_from(_cars), car_filter)
        with self.engine.connect() as conn:
            return conn.execute(query).scalar() or 0

    def get_car(self, car_id: int) -> Optional[Car]:
        with self.engine.connect() as conn:
            row = conn.execute(_cars.select().where(_cars.c.id == car_id)).fetchone()
        return _row_to_car(row) if row is not None else None

    def create_car(self, car: Car) -> Car:
        now = _now_iso()
        with self.engine.begin() as conn:
            result = conn.execute(
                _cars.insert().values(
                    name=car.name,
                    price=car.price,
                    size=car.size,
                    image=car.image,
                    is_currently_rented=car.is_currently_rented,
                    created_at=now,
                    updated_at=now,
                )
            )
            car_id = result.inserted_primary_key[0]
        return self.get_car(car_id)

    def update_car(self, car_id: int, **fields) -> Optional[Car]:
        """Update mutable fields on a car.

        Accepted fields: name, price, size, image, is_currently_rented.
        """
        with self.engine.begin() as conn:
            result = conn.execute(
                _cars.update().where(_cars.c.id == car_id).values(updated_at=_now_iso(), **fields)
            )
        if result.rowcount == 0:
            return None
        return self.get_car(car_id)

    def delete_car(self, car_id: int) -> bool:
        with self.engine.begin() as conn:
            result = conn.execute(_cars.delete().where(_cars.c.id == car_id))
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Rentals
    # ------------------------------------------------------------------

    def find_contained(self, car_id: int, start: datetime, end: datetime) -> Optional[Rental]:
        with self.engine.connect() as conn:
            row = conn.execute(_contained_query(car_id, start, end)).fetchone()
        return _row_to_rental(row) if row is not None else None

    def create_if_available(self, rental: Rental) -> Optional[Rental]:
        with self._lock_for(rental.car_id):
            with self.engine.begin() as conn:
                self._lock_car_row(conn, rental.car_id)
                clash = conn.execute(
                    _contained_query(rental.car_id, rental.rent_started_at, rental.rent_ended_at)
                ).fetchone()
                if clash is not None:
                    return None
                result = conn.execute(
                    _user_cars.insert().values(
                        user_id=rental.user_id,
                        car_id=rental.car_id,
                        rent_started_at=_to_db(rental.rent_started_at),
                        rent_ended_at=_to_db(rental.rent_ended_at),
                        created_at=_now_iso(),
                    )
                )
                rental_id = result.inserted_primary_key[0]
                row = conn.execute(_user_cars.select().where(_user_cars.c.id == rental_id)).fetchone()
        return _row_to_rental(row)

    def list_rentals(self, car_id: int) -> list[Rental]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                _user_cars.select().where(_user_cars.c.car_id == car_id).order_by(_user_cars.c.rent_started_at)
            ).fetchall()
        return [_row_to_rental(r) for r in rows]

    def _lock_for(self, car_id: int) -> threading.Lock:
        with self._locks_guard:
            return self._car_locks.setdefault(car_id, threading.Lock())

    @staticmethod
    def _lock_car_row(conn: Connection, car_id: int) -> None:
        conn.execute(select(_cars.c.id).where(_cars.c.id == car_id).with_for_update())

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_car(row) -> Car:
    return Car(
        id=row.id,
        name=row.name,
        price=row.price,
        size=row.size,
        image=row.image,
        is_currently_rented=bool(row.is_currently_rented),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_rental(row) -> Rental:
    return Rental(
        id=row.id,
        user_id=row.user_id,
        car_id=row.car_id,
        rent_started_at=_from_db(row.rent_started_at),
        rent_ended_at=_from_db(row.rent_ended_at),
        created_at=row.created_at,
    )
