#!/usr/bin/env python3
"""
BCR API -- admin command line.

Self-registration through the API only ever creates CUSTOMER accounts, so the
first ADMIN has to be created here.

Usage:
  python main.py create-user --email admin@bcr.io --password s3cret --role ADMIN
  python main.py create-user --email jo@bcr.io --password s3cret --name "Jo"
  python main.py list-rentals --car-id 3
  python main.py serve --host 0.0.0.0 --port 8000

Environment variables:
  SECRET_KEY     Required unless DEBUG=true (see core/config.py).
  DATABASE_URL   SQLAlchemy URL. Defaults to a SQLite file at the repo root.
"""

from __future__ import annotations

import argparse
import sys
from typing import Optional

from auth.models import ROLE_NAMES, User
from auth.store import UserStore
from auth.tokens import BcryptPasswordHasher, PasswordHasher
from rental.models import Rental
from rental.store import RentalStore


def create_user(
    store: UserStore,
    hasher: PasswordHasher,
    email: str,
    password: str,
    role_name: str,
    name: Optional[str] = None,
) -> Optional[User]:
    """Create a user with the given role. Returns None (after printing why) on failure."""
    email = email.strip().lower()
    if store.get_by_email(email) is not None:
        print(f"  [!] {email} is already registered.")
        return None
    role = store.get_role_by_name(role_name)
    if role is None:
        print(f"  [!] Unknown role '{role_name}'. Expected one of: {', '.join(ROLE_NAMES)}")
        return None
    user = store.create_user(
        User(
            name=name,
            email=email,
            role_id=role.id,
            encrypted_password=hasher.hash(password),
        )
    )
    print(f"  Created {role.name} user {user.email} (id={user.id}).")
    return user


def list_rentals(store: RentalStore, car_id: int) -> Optional[list[Rental]]:
    """Print the bookings of one car, earliest first. Returns None if the car does not exist."""
    car = store.get_car(car_id)
    if car is None:
        print(f"  [!] Car {car_id} not found.")
        return None
    rentals = store.list_rentals(car_id)
    print(f"  {car.name} (id={car.id}): {len(rentals)} rental(s)")
    for rental in rentals:
        print(
            f"    #{rental.id}  user={rental.user_id}  "
            f"{rental.rent_started_at.isoformat()} -> {rental.rent_ended_at.isoformat()}"
        )
    return rentals


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bcr-api",
        description="Administrative commands for the BCR car rental API.",
    )
    sub = parser.add_subparsers(dest="command")

    create = sub.add_parser("create-user", help="Create a user account (e.g. the first ADMIN)")
    create.add_argument("--email", required=True)
    create.add_argument("--password", required=True)
    create.add_argument("--name", default=None)
    create.add_argument(
        "--role",
        choices=list(ROLE_NAMES),
        default="CUSTOMER",
        help="Role to assign (default: CUSTOMER)",
    )
    create.add_argument(
        "--database-url",
        default=None,
        metavar="URL",
        help="Override DATABASE_URL for this command",
    )

    rentals = sub.add_parser("list-rentals", help="Show the bookings of one car")
    rentals.add_argument("--car-id", type=int, required=True)
    rentals.add_argument(
        "--database-url",
        default=None,
        metavar="URL",
        help="Override DATABASE_URL for this command",
    )

    serve = sub.add_parser("serve", help="Run the API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command == "create-user":
        from core.config import get_settings

        db_url = args.database_url or get_settings().database_url
        store = UserStore(db_url=db_url)
        try:
            user = create_user(store, BcryptPasswordHasher(), args.email, args.password, args.role, name=args.name)
        finally:
            store.close()
        return 0 if user is not None else 1

    if args.command == "list-rentals":
        from core.config import get_settings

        rental_store = RentalStore(db_url=args.database_url or get_settings().database_url)
        try:
            rentals = list_rentals(rental_store, args.car_id)
        finally:
            rental_store.close()
        return 0 if rentals is not None else 1

    if args.command == "serve":
        import uvicorn

        uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
        return 0

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
