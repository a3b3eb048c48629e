"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for Exploree Accounts happen here. No module
should call os.getenv() or os.environ.get() directly -- import get_settings()
instead, or better, receive an AuthConfig built from it at startup.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY). Type coercion and validation are built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved. DEBUG decides whether a missing SECRET_KEY is generated
      (dev) or fatal (production), and whether cookies default to Secure.

Security notes:
  SECRET_KEY shorter than 32 chars is rejected outright. It is the JWT
  signing key shared with every downstream property that verifies tokens
  locally; rotating it invalidates all issued tokens.

  SERVICE_API_KEY empty means "no trusted services". It is never treated as
  an open door.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, accounts/, or waitlist/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("exploree.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'exploree_accounts.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    app_name: str = "Exploree Accounts"
    version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Tokens and cookies
    # ------------------------------------------------------------------

    token_expire_seconds: int = 24 * 60 * 60
    cookie_name: str = "token"
    # None means "derive from DEBUG": Secure in production, plain in dev.
    secure_cookies: Optional[bool] = None
    bcrypt_rounds: int = 10

    # ------------------------------------------------------------------
    # Service-to-service trust
    # ------------------------------------------------------------------

    service_api_key: str = ""
    service_key_header: str = "X-Exploree-Service-Key"

    # Downstream property -> base URL used by the token hand-off redirect.
    # Set as JSON, e.g. SERVICE_URLS='{"jobs": "https://jobs.example.com"}'.
    service_urls: dict[str, str] = {}

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    allowed_hosts: list[str] = ["*"]
    cors_origins: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy and resolve the cookie Secure default.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Tokens will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing. Downstream properties verify tokens with
            the same key, so a random key would silently break them.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning(
                    "WARNING: Using auto-generated SECRET_KEY. " "Issued tokens will not persist across restarts."
                )
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        if self.secure_cookies is None:
            self.secure_cookies = not self.debug
        if self.token_expire_seconds <= 0:
            raise ValueError("TOKEN_EXPIRE_SECONDS must be positive.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Uses lru_cache so Settings() is instantiated exactly once -- at first call.
    This is the official FastAPI pattern for config (see FastAPI docs /advanced/settings/).

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
