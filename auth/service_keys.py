"""
auth/service_keys.py -- Service Authorization via a pre-shared key header.

Trusted backend callers (the downstream properties) present
`X-Exploree-Service-Key: <SERVICE_API_KEY>` to prove they are part of the
platform without holding a user token -- e.g. to check that the account
service is up, or to verify a user's token on the user's behalf.

Rules:
  - No configured key -> nobody is a trusted service. An empty secret is
    never "open".
  - No header -> unauthorized.
  - Otherwise exact match, compared with hmac.compare_digest so the check
    does not leak the key through timing.

Layer rule: no imports from api/, accounts/, or waitlist/.
"""

from __future__ import annotations

import hmac
import logging

from starlette.requests import Request

from auth.config import AuthConfig

logger = logging.getLogger("exploree.auth")


class ServiceAuthorizer:
    def __init__(self, config: AuthConfig) -> None:
        self._expected = config.service_api_key
        self._header = config.service_key_header
        if not self._expected:
            logger.info("SERVICE_API_KEY not set -- service-to-service trust disabled")

    @property
    def header_name(self) -> str:
        return self._header

    def is_authorized(self, request: Request) -> bool:
        """Return True only when the request carries the configured service key."""
        presented = request.headers.get(self._header, "")
        if not self._expected or not presented:
            return False
        return hmac.compare_digest(presented.encode("utf-8"), self._expected.encode("utf-8"))
