"""
tests/conftest.py -- Shared test fixtures for the car rental API tests.

This module provides:
  - FixedClock / make_token_service(): deterministic token issuing for unit tests
  - make_stores(): isolated in-memory DBs for users + cars/rentals
  - _patch_lifespan(): wires test stores and services into app.state
  - api_client: TestClient plus ADMIN and CUSTOMER tokens, one per module
  - fresh_api_client: same, but a brand-new database for every test

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

The DEBUG env var must be set before any api/core import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import NamedTuple, Optional

# CRITICAL: Set DEBUG before any api/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.models import ADMIN, CUSTOMER, Identity, User
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import BcryptPasswordHasher, Clock, JoseSigner, SystemClock, TokenService
from core.config import get_settings
from rental.booking import BookingService
from rental.store import RentalStore

TEST_SECRET = "test-secret-key-that-is-at-least-32-characters-long"

# bcrypt's minimum cost factor keeps the suite fast.
FAST_HASHER = BcryptPasswordHasher(rounds=4)

ADMIN_EMAIL = "admin@bcr.io"
CUSTOMER_EMAIL = "customer@bcr.io"
PASSWORD = "testpass123"

# Off by default: every request comes from the one TestClient address.
# test_rate_limits.py switches it back on per test.
limiter.enabled = False


# ---------------------------------------------------------------------------
# Token helpers
# ---------------------------------------------------------------------------


class FixedClock(Clock):
    def __init__(self, at: datetime) -> None:
        self.at = at

    def now(self) -> datetime:
        return self.at


def make_token_service(
    at: datetime = datetime(2026, 1, 1, tzinfo=timezone.utc),
    expire_seconds: int = 0,
    secret: str = TEST_SECRET,
) -> TokenService:
    return TokenService(JoseSigner(secret), FixedClock(at), expire_seconds=expire_seconds)


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def make_stores(db_suffix: str) -> tuple[UserStore, RentalStore]:
    """Create isolated named shared-memory SQLite stores.

    Args:
        db_suffix: Unique string appended to the DB names so fixtures never
                   share state.
    """
    auth_url = f"sqlite:///file:test_auth_{db_suffix}?mode=memory&cache=shared&uri=true"
    rental_url = f"sqlite:///file:test_rental_{db_suffix}?mode=memory&cache=shared&uri=true"
    return UserStore(db_url=auth_url), RentalStore(db_url=rental_url)


def create_account(store: UserStore, email: str, role_name: str, name: str = "Test User") -> User:
    role = store.get_role_by_name(role_name)
    return store.create_user(
        User(name=name, email=email, role_id=role.id, encrypted_password=FAST_HASHER.hash(PASSWORD))
    )


def _patch_lifespan(user_store: UserStore, rental_store: RentalStore, tokens: TokenService):
    """Return an async context manager that replaces the real lifespan.

    Mirrors the production composition root but with test stores, a fixed
    signing key and a cheap bcrypt cost factor.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = get_settings()
        app.state.user_store = user_store
        app.state.rental_store = rental_store
        app.state.token_service = tokens
        app.state.auth_service = AuthService(
            users=user_store,
            roles=user_store,
            tokens=tokens,
            hasher=FAST_HASHER,
        )
        app.state.booking_service = BookingService(rental_store, rental_store)
        yield

    return test_lifespan


class ApiContext(NamedTuple):
    client: TestClient
    admin_token: str
    customer_token: str
    user_store: UserStore
    rental_store: RentalStore


def _start_api(db_suffix: str) -> Generator[ApiContext, None, None]:
    user_store, rental_store = make_stores(f"{db_suffix}_{uuid.uuid4().hex[:8]}")
    tokens = TokenService(JoseSigner(TEST_SECRET), SystemClock())

    admin = create_account(user_store, ADMIN_EMAIL, ADMIN, name="Admin")
    customer = create_account(user_store, CUSTOMER_EMAIL, CUSTOMER, name="Customer")
    admin_token = tokens.issue(Identity.from_user(admin, user_store.get_role_by_name(ADMIN)))
    customer_token = tokens.issue(Identity.from_user(customer, user_store.get_role_by_name(CUSTOMER)))

    app.router.lifespan_context = _patch_lifespan(user_store, rental_store, tokens)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiContext(client, admin_token, customer_token, user_store, rental_store)

    user_store.close()
    rental_store.close()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client() -> Generator[ApiContext, None, None]:
    """Yield an ApiContext shared by every test in a module.

    The TestClient uses the real FastAPI app with a patched lifespan so tests
    hit real route handlers but use isolated in-memory stores. One ADMIN
    (admin@bcr.io) and one CUSTOMER (customer@bcr.io) exist up front, both
    with password "testpass123".
    """
    yield from _start_api("api")


@pytest.fixture
def fresh_api_client() -> Generator[ApiContext, None, None]:
    """Like api_client, but with an empty car inventory for every test."""
    yield from _start_api("fresh")


@pytest.fixture
def stores() -> Generator[tuple[UserStore, RentalStore], None, None]:
    user_store, rental_store = make_stores(f"unit_{uuid.uuid4().hex[:8]}")
    yield user_store, rental_store
    user_store.close()
    rental_store.close()


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def create_car(ctx: ApiContext, name: str = "Avanza", size: str = "MEDIUM", price: int = 300000) -> dict:
    """POST a car as the ADMIN and return the response body."""
    resp = ctx.client.post(
        "/v1/cars",
        json={"name": name, "price": price, "size": size, "image": "https://img.bcr.io/car.png"},
        headers=bearer(ctx.admin_token),
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


def rent_car(ctx: ApiContext, car_id: int, start: datetime, end: Optional[datetime] = None):
    """POST a rent request as the CUSTOMER and return the raw response."""
    body = {"rentStartedAt": start.isoformat()}
    if end is not None:
        body["rentEndedAt"] = end.isoformat()
    return ctx.client.post(f"/v1/cars/{car_id}/rent", json=body, headers=bearer(ctx.customer_token))
