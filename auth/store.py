"""
auth/store.py -- SQLAlchemy Core persistence layer for users and roles.

Pattern: Repository + Data Mapper (same as rental/store.py).
UserRepository / RoleRepository are the capability interfaces the auth
service depends on; UserStore implements both against SQLAlchemy Core.
_row_to_user / _row_to_role are the mappers. Route and service code never
touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

Seeding:
  The ADMIN and CUSTOMER roles are inserted on startup if missing, so a fresh
  database is immediately usable by POST /v1/auth/register.

Layer rule: no imports from api/ or rental/.
"""

from __future__ import annotations

import abc
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, ForeignKey, Integer, MetaData, String, Table, Text, create_engine, event, select
from sqlalchemy.engine import Engine

from auth.models import ROLE_NAMES, Role, User
from core.config import DEFAULT_DB_URL

# ---------------------------------------------------------------------------
# Capability interfaces
# ---------------------------------------------------------------------------


class UserRepository(abc.ABC):
    @abc.abstractmethod
    def get_by_email(self, email: str) -> Optional[User]:
        """Return the user with this email, role attached, or None."""

    @abc.abstractmethod
    def get_by_id(self, user_id: int) -> Optional[User]: ...

    @abc.abstractmethod
    def create_user(self, user: User) -> User:
        """Insert and return the stored user (id and timestamps filled in)."""


class RoleRepository(abc.ABC):
    @abc.abstractmethod
    def get_role_by_name(self, name: str) -> Optional[Role]: ...

    @abc.abstractmethod
    def get_role_by_id(self, role_id: int) -> Optional[Role]: ...


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_roles = Table(
    "roles",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(30), nullable=False, unique=True),
)

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255)),
    Column("email", String(255), nullable=False, unique=True),
    Column("encrypted_password", Text, nullable=False),
    Column("image", Text),
    Column("role_id", Integer, ForeignKey("roles.id"), nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers do not block during writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore(UserRepository, RoleRepository):
    """SQLAlchemy-backed users + roles repository.

    Usage:
        store = UserStore()
        customer = store.get_role_by_name("CUSTOMER")
        store.create_user(User(name="jo", email="jo@x.io", role_id=customer.id, encrypted_password=h))
        user = store.get_by_email("jo@x.io")
        store.close()
    """

    def __init__(self, db_url: str = DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)
        self._seed_roles()

    def _seed_roles(self) -> None:
        """Insert any missing role from ROLE_NAMES. Idempotent -- safe on every startup."""
        with self.engine.begin() as conn:
            existing = set(conn.execute(select(_roles.c.name)).scalars())
            for name in ROLE_NAMES:
                if name not in existing:
                    conn.execute(_roles.insert().values(name=name))

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    def get_role_by_name(self, name: str) -> Optional[Role]:
        with self.engine.connect() as conn:
            row = conn.execute(_roles.select().where(_roles.c.name == name)).fetchone()
        return _row_to_role(row) if row is not None else None

    def get_role_by_id(self, role_id: int) -> Optional[Role]:
        with self.engine.connect() as conn:
            row = conn.execute(_roles.select().where(_roles.c.id == role_id)).fetchone()
        return _row_to_role(row) if row is not None else None

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def get_by_email(self, email: str) -> Optional[User]:
        """Look up a user by exact email and attach its role (id, name)."""
        query = (
            select(_users, _roles.c.name.label("role_name"))
            .select_from(_users.outerjoin(_roles, _users.c.role_id == _roles.c.id))
            .where(_users.c.email == email)
        )
        with self.engine.connect() as conn:
            row = conn.execute(query).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> Optional[User]:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def create_user(self, user: User) -> User:
        """Insert a new user.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        The auth service checks first; the UNIQUE constraint catches the race.
        """
        now = _now_iso()
        with self.engine.begin() as conn:
            result = conn.execute(
                _users.insert().values(
                    name=user.name,
                    email=user.email,
                    encrypted_password=user.encrypted_password,
                    image=user.image,
                    role_id=user.role_id,
                    created_at=now,
                    updated_at=now,
                )
            )
            user_id = result.inserted_primary_key[0]
        return self.get_by_id(user_id)

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_role(row) -> Role:
    return Role(id=row.id, name=row.name)


def _row_to_user(row) -> User:
    # role_name is only present on rows fetched with the roles join.
    role_name = getattr(row, "role_name", None)
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        encrypted_password=row.encrypted_password,
        image=row.image,
        role_id=row.role_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
        role=Role(id=row.role_id, name=role_name) if role_name else None,
    )
