"""Unit tests for auth/service_keys.py -- pre-shared service key checks.

Covers:
- matching key in the configured header is authorized
- wrong key, missing header and empty header are not
- an unconfigured key never authorizes anyone, even an empty header
- the header name comes from AuthConfig
"""

from __future__ import annotations

from starlette.requests import Request

from auth.config import AuthConfig
from auth.service_keys import ServiceAuthorizer

_KEY = "svc-key-0123456789abcdef"


def _request(headers: dict[str, str] | None = None) -> Request:
    raw = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    return Request({"type": "http", "method": "GET", "path": "/", "headers": raw, "query_string": b""})


def _authorizer(key: str = _KEY, header: str = "X-Exploree-Service-Key") -> ServiceAuthorizer:
    return ServiceAuthorizer(AuthConfig(secret_key="s" * 40, service_api_key=key, service_key_header=header))


class TestServiceAuthorizer:
    def test_matching_key(self):
        assert _authorizer().is_authorized(_request({"X-Exploree-Service-Key": _KEY}))

    def test_wrong_key(self):
        assert not _authorizer().is_authorized(_request({"X-Exploree-Service-Key": _KEY + "x"}))

    def test_missing_header(self):
        assert not _authorizer().is_authorized(_request())

    def test_empty_header(self):
        assert not _authorizer().is_authorized(_request({"X-Exploree-Service-Key": ""}))

    def test_unconfigured_key_trusts_nobody(self):
        authorizer = _authorizer(key="")
        assert not authorizer.is_authorized(_request({"X-Exploree-Service-Key": ""}))
        assert not authorizer.is_authorized(_request({"X-Exploree-Service-Key": "anything"}))

    def test_custom_header_name(self):
        authorizer = _authorizer(header="X-Internal-Key")
        assert authorizer.header_name == "X-Internal-Key"
        assert authorizer.is_authorized(_request({"X-Internal-Key": _KEY}))
        assert not authorizer.is_authorized(_request({"X-Exploree-Service-Key": _KEY}))
