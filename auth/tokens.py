"""
auth/tokens.py -- Access tokens, signing, clocks, and password hashing.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry the user's public profile and
       role ({id, name, email, image, role: {id, name}}) plus iat. They carry
       no exp claim unless a positive lifetime is configured; with the default
       of 0 a token stays valid until SECRET_KEY is rotated.

  Verification failures of every kind (bad signature, malformed token, stray
       "Bearer " prefix, missing claims, expiry) raise the same
       InvalidTokenError so the response never reveals which check failed.

  Passwords: bcrypt directly (no passlib wrapper). passlib's wrap-bug
       detection builds a password longer than 72 bytes, which bcrypt 4.x
       rejects with an explicit error.

  SECRET_KEY: never read here. The composition root (api/main.py lifespan)
       builds JoseSigner(settings.secret_key) and hands it to TokenService.
       Tests construct their own signer with a fixed key.

Layer rule: no imports from api/ or rental/. Import from core/ is allowed.
"""

from __future__ import annotations

import abc
import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
from jose import JWTError, jwt

from auth.models import Identity
from core.errors import InvalidTokenError

logger = logging.getLogger("carrental.auth")

_ALGORITHM = "HS256"
_BCRYPT_MAX_BYTES = 72


# ---------------------------------------------------------------------------
# Capabilities
# ---------------------------------------------------------------------------


class Clock(abc.ABC):
    """Source of the current time. Injected so token iat is testable."""

    @abc.abstractmethod
    def now(self) -> datetime:
        """Return the current time as a timezone-aware UTC datetime."""


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class Signer(abc.ABC):
    """Turns a claims dict into a signed token string and back."""

    @abc.abstractmethod
    def sign(self, claims: dict[str, Any]) -> str: ...

    @abc.abstractmethod
    def unsign(self, token: str) -> dict[str, Any]:
        """Return the verified claims. Raises InvalidTokenError on any failure."""


class PasswordHasher(abc.ABC):
    @abc.abstractmethod
    def hash(self, plain: str) -> str: ...

    @abc.abstractmethod
    def verify(self, plain: str, hashed: str) -> bool: ...


# ---------------------------------------------------------------------------
# JWT signer (python-jose)
# ---------------------------------------------------------------------------


class JoseSigner(Signer):
    def __init__(self, secret_key: str, algorithm: str = _ALGORITHM) -> None:
        if not secret_key:
            raise ValueError("JoseSigner requires a non-empty secret key.")
        self._secret_key = secret_key
        self._algorithm = algorithm

    def sign(self, claims: dict[str, Any]) -> str:
        return jwt.encode(claims, self._secret_key, algorithm=self._algorithm)

    def unsign(self, token: str) -> dict[str, Any]:
        try:
            return jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
        except JWTError as exc:
            raise InvalidTokenError() from exc


# ---------------------------------------------------------------------------
# Token service
# ---------------------------------------------------------------------------


class TokenService:
    """Issues and verifies identity tokens.

    Usage:
        tokens = TokenService(JoseSigner(settings.secret_key), SystemClock())
        token = tokens.issue(identity)
        identity = tokens.verify(token)   # raises InvalidTokenError
    """

    def __init__(self, signer: Signer, clock: Clock, expire_seconds: int = 0) -> None:
        self._signer = signer
        self._clock = clock
        self._expire_seconds = expire_seconds

    def issue(self, identity: Identity) -> str:
        now = self._clock.now()
        claims = identity.to_claims()
        claims["iat"] = int(now.timestamp())
        if self._expire_seconds > 0:
            claims["exp"] = int((now + timedelta(seconds=self._expire_seconds)).timestamp())
        return self._signer.sign(claims)

    def verify(self, token: str) -> Identity:
        """Decode a raw token (no "Bearer " prefix) into an Identity."""
        if not token or token.startswith("Bearer "):
            raise InvalidTokenError()
        claims = self._signer.unsign(token)
        try:
            return Identity.from_claims(claims)
        except (KeyError, TypeError) as exc:
            logger.warning("Signed token with unexpected claim shape rejected")
            raise InvalidTokenError() from exc


# ---------------------------------------------------------------------------
# Password hashing (bcrypt)
# ---------------------------------------------------------------------------


class BcryptPasswordHasher(PasswordHasher):
    """bcrypt with a configurable cost factor.

    bcrypt only looks at the first 72 bytes of a password and recent releases
    raise on longer input, so both hash and verify truncate to 72 bytes.
    """

    def __init__(self, rounds: int = 12) -> None:
        self._rounds = rounds

    def hash(self, plain: str) -> str:
        salt = bcrypt.gensalt(rounds=self._rounds)
        return bcrypt.hashpw(plain.encode("utf-8")[:_BCRYPT_MAX_BYTES], salt).decode("utf-8")

    def verify(self, plain: str, hashed: str) -> bool:
        try:
            return bcrypt.checkpw(plain.encode("utf-8")[:_BCRYPT_MAX_BYTES], hashed.encode("utf-8"))
        except ValueError:
            # Malformed stored hash -- treat as a mismatch.
            return False
