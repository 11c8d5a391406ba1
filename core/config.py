"""
core/config.py -- RxAuth settings, read from the environment and .env.

Only the API lifespan reads get_settings(); it turns the values into plain
constructor arguments for the auth/ services, which never see this module.
Tests therefore build services with their own secrets and clocks and only
touch Settings in test_config.py.

Every field maps to an upper-case env var of the same name (jwt_secret ->
JWT_SECRET). get_settings() is cached, so the environment is read once per
process.

Signing-secret policy, enforced by validate_secrets() after all fields load:
  [S1] Signing secrets shorter than 32 chars are rejected outright.
  [S2] Access and refresh secrets must differ. Identical secrets would let a
       token of one class verify under the other's key; the type claim is the
       only remaining barrier in that case.
  [S3] Repository-visible placeholders ("secret-key-change-me" and friends)
       are rejected even when long enough, so a copied sample .env cannot
       reach production.
  With DEBUG=true, missing secrets are generated per process with a warning.
  Without it, a missing secret stops startup.

Layer rule: core/ imports nothing from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("rxauth.config")

# Lower-cased values that must never be used as signing secrets [S3].
_PLACEHOLDER_SECRETS = frozenset(
    {
        "secret",
        "changeme",
        "change-me",
        "secret-key-change-me",
        "refresh-key-change-me",
        "your-secret-key",
        "your-refresh-secret",
    }
)


class Settings(BaseSettings):
    """RxAuth settings. Every field has a default; only the two signing secrets
    must be supplied outside DEBUG mode.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured". The validator below
    # either generates a dev secret or raises, so callers never see "".
    jwt_secret: str = ""
    refresh_token_secret: str = ""
    # Compact duration strings ("30m", "24h", "7d"). Malformed values fall back
    # to 24h inside auth.tokens.parse_duration rather than failing here.
    jwt_expire: str = "24h"
    refresh_token_expire: str = "7d"

    # ------------------------------------------------------------------
    # Passwords and lockout
    # ------------------------------------------------------------------

    bcrypt_rounds: int = Field(default=10, ge=4, le=31)
    max_login_attempts: int = Field(default=5, ge=1)
    lockout_minutes: int = Field(default=15, ge=1)

    # ------------------------------------------------------------------
    # HTTP layer
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"

    # Empty means the volatile in-memory user store. Any SQLAlchemy URL selects
    # the SQL adapter in auth/store.py.
    database_url: str = ""

    @property
    def lockout_seconds(self) -> int:
        return self.lockout_minutes * 60

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secrets(self) -> "Settings":
        """Enforce the signing-secret policy.

        Dev mode (DEBUG=true): auto-generate random secrets with a warning.
            Issued tokens will not survive a restart -- acceptable for local dev.

        Production mode: refuse to start if either secret is missing.

        Both modes: reject short secrets [S1], identical secrets [S2] and
            known placeholders [S3].
        """
        for field_name in ("jwt_secret", "refresh_token_secret"):
            if getattr(self, field_name):
                continue
            if not self.debug:
                raise ValueError(
                    f"{field_name.upper()} is required in production mode. "
                    "Set it in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
            setattr(self, field_name, secrets.token_hex(32))
            logger.warning(
                "Using auto-generated %s. Tokens will not survive a restart.",
                field_name.upper(),
            )

        for field_name in ("jwt_secret", "refresh_token_secret"):
            value = getattr(self, field_name)
            if value.strip().lower() in _PLACEHOLDER_SECRETS:
                raise ValueError(f"{field_name.upper()} is a publicly known placeholder.")
            if len(value) < 32:
                raise ValueError(f"{field_name.upper()} must be at least 32 characters.")

        if self.jwt_secret == self.refresh_token_secret:
            raise ValueError("JWT_SECRET and REFRESH_TOKEN_SECRET must be different.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Process-wide Settings. Call get_settings.cache_clear() to re-read the env."""
    return Settings()
