"""
tests/test_tokens.py -- Unit tests for auth/tokens.py.

Covers:
  - issue/verify round-trip keeps the identity and role
  - iat comes from the injected clock; exp only when a lifetime is configured
  - tampered signature, wrong key, "Bearer " prefix and odd claim shapes all
    raise InvalidTokenError
  - bcrypt hashing and verification
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from conftest import TEST_SECRET, make_token_service
from jose import jwt

from auth.models import Identity, Role
from auth.tokens import BcryptPasswordHasher, JoseSigner
from core.errors import AuthenticationError, InvalidTokenError

ISSUED_AT = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def _identity(role_name: str = "ADMIN") -> Identity:
    return Identity(id=7, name="Jo", email="jo@bcr.io", image=None, role=Role(id=1, name=role_name))


def _tamper_signature(token: str) -> str:
    # Flip the first signature character; the last one carries base64 padding
    # bits and may decode to the same bytes.
    header, payload, signature = token.split(".")
    first = "A" if signature[0] != "A" else "B"
    return ".".join([header, payload, first + signature[1:]])


class TestRoundTrip:
    @pytest.mark.parametrize("role_name", ["ADMIN", "CUSTOMER"])
    def test_verify_returns_issued_identity(self, role_name):
        tokens = make_token_service(at=ISSUED_AT)
        identity = _identity(role_name)

        decoded = tokens.verify(tokens.issue(identity))

        assert decoded.role.name == role_name
        assert decoded.role.id == 1
        assert decoded.id == identity.id
        assert decoded.email == identity.email
        assert decoded.iat == int(ISSUED_AT.timestamp())

    def test_claim_shape(self):
        token = make_token_service(at=ISSUED_AT).issue(_identity())
        claims = jwt.get_unverified_claims(token)
        assert claims == {
            "id": 7,
            "name": "Jo",
            "email": "jo@bcr.io",
            "image": None,
            "role": {"id": 1, "name": "ADMIN"},
            "iat": int(ISSUED_AT.timestamp()),
        }

    def test_no_exp_by_default(self):
        token = make_token_service(at=ISSUED_AT).issue(_identity())
        assert "exp" not in jwt.get_unverified_claims(token)

    def test_exp_added_when_configured(self):
        token = make_token_service(at=ISSUED_AT, expire_seconds=3600).issue(_identity())
        claims = jwt.get_unverified_claims(token)
        assert claims["exp"] == claims["iat"] + 3600


class TestRejection:
    def test_tampered_signature(self):
        tokens = make_token_service()
        with pytest.raises(InvalidTokenError):
            tokens.verify(_tamper_signature(tokens.issue(_identity())))

    def test_tampered_payload(self):
        tokens = make_token_service()
        header, _payload, signature = tokens.issue(_identity("CUSTOMER")).split(".")
        forged_payload = jwt.encode(_identity("ADMIN").to_claims(), "x" * 32).split(".")[1]
        with pytest.raises(InvalidTokenError):
            tokens.verify(".".join([header, forged_payload, signature]))

    def test_wrong_key(self):
        token = make_token_service(secret="another-secret-key-of-32-characters!!").issue(_identity())
        with pytest.raises(InvalidTokenError):
            make_token_service(secret=TEST_SECRET).verify(token)

    def test_bearer_prefix_is_rejected(self):
        tokens = make_token_service()
        with pytest.raises(InvalidTokenError):
            tokens.verify("Bearer " + tokens.issue(_identity()))

    def test_empty_token(self):
        with pytest.raises(InvalidTokenError):
            make_token_service().verify("")

    def test_garbage(self):
        with pytest.raises(InvalidTokenError):
            make_token_service().verify("not-a-jwt")

    def test_missing_role_claim(self):
        token = JoseSigner(TEST_SECRET).sign({"id": 1, "email": "x@bcr.io"})
        with pytest.raises(InvalidTokenError):
            make_token_service().verify(token)

    def test_expired_token(self):
        # Issued in 2020 with a one-minute lifetime: long expired by now.
        tokens = make_token_service(at=datetime(2020, 1, 1, tzinfo=timezone.utc), expire_seconds=60)
        with pytest.raises(InvalidTokenError):
            tokens.verify(tokens.issue(_identity()))

    def test_invalid_token_is_an_authentication_error(self):
        assert issubclass(InvalidTokenError, AuthenticationError)
        assert InvalidTokenError().status_code == 401


def test_signer_requires_key():
    with pytest.raises(ValueError):
        JoseSigner("")


class TestBcryptPasswordHasher:
    hasher = BcryptPasswordHasher(rounds=4)

    def test_hash_and_verify(self):
        hashed = self.hasher.hash("s3cret!")
        assert hashed != "s3cret!"
        assert self.hasher.verify("s3cret!", hashed)
        assert not self.hasher.verify("wrong", hashed)

    def test_salted(self):
        assert self.hasher.hash("same") != self.hasher.hash("same")

    def test_malformed_hash_is_a_mismatch(self):
        assert self.hasher.verify("anything", "not-a-bcrypt-hash") is False

    def test_long_password(self):
        long_password = "p" * 100
        hashed = self.hasher.hash(long_password)
        assert self.hasher.verify(long_password, hashed)
