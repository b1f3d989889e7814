"""
auth/service.py -- Login, registration, and whoami use cases.

AuthService is constructed once in the API lifespan with its collaborators:

    AuthService(users=store, roles=store, tokens=token_service, hasher=BcryptPasswordHasher())

Every failure is raised as a core.errors exception; the API layer maps those
to HTTP responses. Unlike a single "bad credentials" answer, login reports
an unknown email (404) separately from a wrong password (401) -- clients of
this API rely on the distinction.

Layer rule: no imports from api/ or rental/.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError

from auth.models import CUSTOMER, Identity, Role, User
from auth.store import RoleRepository, UserRepository
from auth.tokens import PasswordHasher, TokenService
from core.errors import (
    DuplicateRegistrationError,
    InvalidCredentialsError,
    NotFoundRegistrationError,
    RecordNotFoundError,
    ValidationError,
)

logger = logging.getLogger("carrental.auth")


class AuthService:
    def __init__(
        self,
        users: UserRepository,
        roles: RoleRepository,
        tokens: TokenService,
        hasher: PasswordHasher,
    ) -> None:
        self.users = users
        self.roles = roles
        self.tokens = tokens
        self.hasher = hasher

    def login(self, email: Optional[str], password: Optional[str]) -> str:
        """Check credentials and return a freshly issued access token."""
        if not email or not password:
            raise ValidationError("Email and password are required.")
        email = email.lower()

        user = self.users.get_by_email(email)
        if user is None:
            logger.info("Login rejected: %s is not registered", email)
            raise NotFoundRegistrationError(email)
        if not self.hasher.verify(password, user.encrypted_password or ""):
            logger.info("Login rejected: wrong password for user %s", user.id)
            raise InvalidCredentialsError()

        role = user.role or self._role_by_id(user.role_id)
        return self.tokens.issue(Identity.from_user(user, role))

    def register(self, name: Optional[str], email: Optional[str], password: Optional[str]) -> str:
        """Create a CUSTOMER account and return its access token."""
        if not email or not password:
            raise ValidationError("Email and password are required.")
        email = email.lower()

        if self.users.get_by_email(email) is not None:
            raise DuplicateRegistrationError(email)

        role = self.roles.get_role_by_name(CUSTOMER)
        if role is None:
            raise RecordNotFoundError("Role")

        try:
            user = self.users.create_user(
                User(
                    name=name,
                    email=email,
                    role_id=role.id,
                    encrypted_password=self.hasher.hash(password),
                )
            )
        except IntegrityError as exc:
            # A concurrent registration won the UNIQUE(email) race.
            raise DuplicateRegistrationError(email) from exc

        logger.info("Registered user %s (%s)", user.id, role.name)
        return self.tokens.issue(Identity.from_user(user, role))

    def whoami(self, identity: Identity) -> tuple[User, Role]:
        """Reload the authoritative user and role records behind a token."""
        user = self.users.get_by_id(identity.id)
        if user is None:
            raise RecordNotFoundError("User")
        role = self._role_by_id(identity.role.id)
        return user, role

    def _role_by_id(self, role_id: int) -> Role:
        role = self.roles.get_role_by_id(role_id)
        if role is None:
            raise RecordNotFoundError("Role")
        return role
