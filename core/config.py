"""
core/config.py -- Runtime settings for the car rental API (pydantic-settings).

Settings are read from the process environment and an optional .env file;
each field maps to the upper-cased env var of the same name (database_url ->
DATABASE_URL). get_settings() builds the object on first call and caches it.

Only the composition roots read settings: the lifespan in api/main.py, the
main.py CLI, and the login rate-limit callable in api/routes/v1/auth.py.
Everything else receives values through constructors; the token signer gets
the secret key that way and never looks it up itself.

SECRET_KEY rules:
  - fewer than 32 characters is refused, since HS256 tokens are only as
    strong as the key.
  - without DEBUG=true a missing key stops startup. Tokens do not expire by
    default, so the key is the only revocation lever; a key generated per
    process would invalidate every session on each restart.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, or rental/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("carrental.config")

DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'carrental.db'}"


class Settings(BaseSettings):
    """Environment-backed settings. Every field has a default except that
    secret_key must end up non-empty (see validate_secret_key)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # "" means unset; validate_secret_key replaces or rejects it.
    secret_key: str = ""
    database_url: str = DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    # 0 = tokens carry no "exp" claim and stay valid until SECRET_KEY rotates.
    token_expire_seconds: int = 0

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    allowed_hosts: list[str] = ["*"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]
    login_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    default_page_size: int = 10

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Fill in a throwaway key under DEBUG, otherwise require one; check lengths and expiry."""
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning(
                    "WARNING: Using auto-generated SECRET_KEY. " "Issued tokens will not survive a restart."
                )
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        if self.token_expire_seconds < 0:
            raise ValueError("TOKEN_EXPIRE_SECONDS must be 0 (no expiry) or a positive number of seconds.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the cached Settings. Tests that change env vars call get_settings.cache_clear()."""
    return Settings()
