"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic beyond claim mapping).
Mirrors the approach in rental/models.py -- dataclasses own domain shape;
stores and routes do the work.

Layer rule: no imports from api/ or rental/.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

ADMIN = "ADMIN"
CUSTOMER = "CUSTOMER"

ROLE_NAMES: tuple[str, ...] = (ADMIN, CUSTOMER)


@dataclass(frozen=True)
class Role:
    """A named permission level. Routes gate on name; users reference id."""

    name: str
    id: Optional[int] = None


@dataclass
class User:
    """A registered account as stored in the users table.

    encrypted_password is the bcrypt hash; the plaintext never reaches a store.
    role is filled in by lookups that join the roles table and left None by
    plain inserts.
    """

    name: Optional[str]
    email: str
    role_id: int
    id: Optional[int] = None
    image: Optional[str] = None
    encrypted_password: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""
    role: Optional[Role] = None


@dataclass(frozen=True)
class Identity:
    """The public profile plus role embedded in an access token.

    iat is None for an identity built from a User before it is signed and
    holds the issued-at epoch seconds once decoded from a token.
    """

    id: int
    name: Optional[str]
    email: str
    image: Optional[str]
    role: Role
    iat: Optional[int] = None

    @classmethod
    def from_user(cls, user: User, role: Role) -> Identity:
        return cls(id=user.id, name=user.name, email=user.email, image=user.image, role=role)

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> Identity:
        """Build an Identity from decoded token claims. Raises KeyError/TypeError on bad shape."""
        role = claims["role"]
        return cls(
            id=claims["id"],
            name=claims.get("name"),
            email=claims["email"],
            image=claims.get("image"),
            role=Role(id=role["id"], name=role["name"]),
            iat=claims.get("iat"),
        )

    def to_claims(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "image": self.image,
            "role": {"id": self.role.id, "name": self.role.name},
        }
