"""
auth/config.py -- Immutable configuration handed to the auth components.

Settings (core/config.py) is the environment-facing layer; AuthConfig is the
narrow, frozen view the auth core is constructed with at startup. The token
codec, service authorizer and cookie helpers receive an AuthConfig
explicitly instead of looking up settings themselves, so tests can build
one with any secret and the business code never touches the environment.

Layer rule: no imports from api/, accounts/, or waitlist/. core/ is allowed.
"""

from __future__ import annotations

from dataclasses import dataclass

from core.config import Settings

ALGORITHM = "HS256"


@dataclass(frozen=True)
class AuthConfig:
    secret_key: str
    token_expire_seconds: int = 24 * 60 * 60
    algorithm: str = ALGORITHM
    cookie_name: str = "token"
    secure_cookies: bool = True
    bcrypt_rounds: int = 10
    service_api_key: str = ""
    service_key_header: str = "X-Exploree-Service-Key"

    @classmethod
    def from_settings(cls, settings: Settings) -> "AuthConfig":
        """Snapshot the auth-relevant fields of Settings. Called once in lifespan."""
        return cls(
            secret_key=settings.secret_key,
            token_expire_seconds=settings.token_expire_seconds,
            cookie_name=settings.cookie_name,
            secure_cookies=bool(settings.secure_cookies),
            bcrypt_rounds=settings.bcrypt_rounds,
            service_api_key=settings.service_api_key,
            service_key_header=settings.service_key_header,
        )
