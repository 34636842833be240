"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the identity service happen here. No module
should call os.getenv() or os.environ.get() directly -- import get_settings()
at wiring time and pass the values into the components that need them.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. access_token_secret -> ACCESS_TOKEN_SECRET).

  @model_validator(mode="after"): Cross-field validation of the three token
      secrets once every field is resolved.

Security notes:
  [S1] Each token class (invite, access, refresh) is signed with its own
       secret. Identical secrets would let an invite token pass as an access
       token, so duplicates are rejected at startup.

  [S2] Secrets shorter than 32 chars are rejected outright. HS256 signing
       relies on key entropy -- a short key weakens every token class.

  [S3] In production mode (DEBUG not set or false), a missing secret is a
       hard startup failure. Dev mode generates one and warns.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("identity.config")

_SECRET_FIELDS = ("invite_token_secret", "access_token_secret", "refresh_token_secret")


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    the secret policy at startup.
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
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # Token secrets -- empty string is the "not configured" sentinel
    # ------------------------------------------------------------------

    invite_token_secret: str = ""
    access_token_secret: str = ""
    refresh_token_secret: str = ""

    # bcrypt cost factor ("salt rounds"). 4 is bcrypt's floor; tests use it.
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    database_url: str = "sqlite:///identity.db"
    db_pool_size: int = Field(default=5, ge=1)

    # ------------------------------------------------------------------
    # Invitation mail
    # ------------------------------------------------------------------

    frontend_url: str = "http://localhost:3000"
    # Empty host means SMTP is not configured; invites are logged instead.
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = False
    mail_from: str = "no-reply@localhost"
    invite_subject: str = "Invitation to newsfeed"
    notification_timeout_seconds: float = Field(default=10.0, gt=0)

    # ------------------------------------------------------------------
    # HTTP transport
    # ------------------------------------------------------------------

    secure_cookies: bool = True
    refresh_cookie_path: str = "/api/identity/refresh"
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    rate_limit_enabled: bool = True
    login_rate_limit: str = "10/minute"
    invite_rate_limit: str = "5/minute"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_token_secrets(self) -> "Settings":
        """Enforce the token secret policy [S1][S2][S3].

        Dev mode (DEBUG=true): auto-generate each missing secret with a
            warning. Tokens will not survive a restart.

        Production mode: refuse to start if any secret is missing.

        Both modes: reject secrets shorter than 32 characters and reject
            secrets shared between token classes.
        """
        for name in _SECRET_FIELDS:
            value = getattr(self, name)
            if not value:
                if self.debug:
                    setattr(self, name, secrets.token_hex(32))
                    logger.warning("Using auto-generated %s. Issued tokens will not survive a restart.", name.upper())
                    continue
                raise ValueError(
                    f"{name.upper()} is required in production mode. "
                    "Set it in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
            if len(value) < 32:
                raise ValueError(f"{name.upper()} must be at least 32 characters.")
        if len({getattr(self, name) for name in _SECRET_FIELDS}) != len(_SECRET_FIELDS):
            raise ValueError("Invite, access and refresh token secrets must all be different.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
