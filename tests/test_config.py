"""Unit tests for core/config.py and auth/config.py.

Covers:
- production mode refuses to start without SECRET_KEY
- dev mode generates a key
- short keys are rejected in both modes
- secure_cookies follows DEBUG unless set explicitly
- AuthConfig.from_settings() snapshots the auth fields
"""

import pytest
from pydantic import ValidationError

from auth.config import AuthConfig
from core.config import Settings

_KEY = "0123456789abcdef0123456789abcdef"


class TestSecretKeyPolicy:
    def test_production_requires_secret_key(self):
        with pytest.raises(ValidationError, match="SECRET_KEY is required"):
            Settings(debug=False, secret_key="")

    def test_dev_generates_secret_key(self):
        settings = Settings(debug=True, secret_key="")
        assert len(settings.secret_key) >= 32

    def test_short_key_rejected(self):
        with pytest.raises(ValidationError, match="at least 32"):
            Settings(debug=True, secret_key="too-short")

    def test_non_positive_ttl_rejected(self):
        with pytest.raises(ValidationError):
            Settings(debug=True, secret_key=_KEY, token_expire_seconds=0)


class TestCookieDefaults:
    def test_secure_in_production(self):
        assert Settings(debug=False, secret_key=_KEY).secure_cookies is True

    def test_plain_in_dev(self):
        assert Settings(debug=True, secret_key=_KEY).secure_cookies is False

    def test_explicit_value_wins(self):
        assert Settings(debug=True, secret_key=_KEY, secure_cookies=True).secure_cookies is True


class TestAuthConfig:
    def test_from_settings(self):
        settings = Settings(
            debug=False,
            secret_key=_KEY,
            token_expire_seconds=900,
            cookie_name="sid",
            service_api_key="svc",
            bcrypt_rounds=12,
        )
        config = AuthConfig.from_settings(settings)
        assert config.secret_key == _KEY
        assert config.token_expire_seconds == 900
        assert config.cookie_name == "sid"
        assert config.secure_cookies is True
        assert config.service_api_key == "svc"
        assert config.service_key_header == "X-Exploree-Service-Key"
        assert config.bcrypt_rounds == 12
        assert config.algorithm == "HS256"

    def test_is_immutable(self):
        config = AuthConfig(secret_key=_KEY)
        with pytest.raises(AttributeError):
            config.secret_key = "other"
