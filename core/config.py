"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for CareAuth happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY). Type coercion and validation are built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved. Dev mode generates a SECRET_KEY with a warning, production
      mode refuses to start without one.

Security notes:
  [M6] SECRET_KEY shorter than 32 chars is rejected outright. Session tokens
       are HS256-signed with it -- a short key weakens every token.

  [M7] In production mode (DEBUG not set or false), a missing SECRET_KEY is a
       hard startup failure.

  [P1] bcrypt_rounds is floored at 10. Lower work factors are only reachable
       by calling auth.passwords.hash_password(rounds=...) directly.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("careauth.config")


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
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
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""

    # ------------------------------------------------------------------
    # Account store
    # ------------------------------------------------------------------

    database_url: str = "sqlite:///careauth.db"
    db_pool_size: int = Field(default=10, ge=1)
    db_pool_timeout_seconds: float = Field(default=5.0, gt=0)

    # ------------------------------------------------------------------
    # Credentials and sessions
    # ------------------------------------------------------------------

    bcrypt_rounds: int = Field(default=12, ge=10, le=31)
    session_ttl_seconds: int = Field(default=86400, ge=60)

    # ------------------------------------------------------------------
    # Rate limiting (per call site, not global)
    # ------------------------------------------------------------------

    login_rate_limit_attempts: int = Field(default=5, ge=1)
    login_rate_limit_window_ms: int = Field(default=60_000, ge=1)
    register_rate_limit_attempts: int = Field(default=10, ge=1)
    register_rate_limit_window_ms: int = Field(default=60_000, ge=1)
    # Only honour X-Forwarded-For behind a proxy that overwrites it. Otherwise
    # any client can pick its own rate-limit key.
    trust_forwarded_for: bool = False

    # ------------------------------------------------------------------
    # Seeding
    # ------------------------------------------------------------------

    seed_default_accounts: bool = False
    seed_admin_password: str = "Admin123456"
    seed_user_password: str = "Mehmet123456"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce SECRET_KEY policy [M7].

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Tokens will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters [M6].
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning(
                    "WARNING: Using auto-generated SECRET_KEY. " "Session tokens will not survive a restart."
                )
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
