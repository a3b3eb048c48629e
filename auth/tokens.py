"""
auth/tokens.py -- Token Codec: sign and verify identity tokens.

Security design decisions:
  JWT: python-jose with HS256 and a single shared secret. Any process that
       holds SECRET_KEY (this service, a downstream property) can verify a
       token without a database round trip -- that is what makes the
       service-to-service trust model work.

  Claims: sub, email, name, role, iat, exp. Nothing else. The token is
       readable by whoever holds it, so it never carries the password hash,
       status or profile fields.

  Expiry: exp is embedded at issue time and checked at verify time against
       the codec's clock. There is no blacklist; a compromised token stays
       valid until it expires. Rotating SECRET_KEY is the only kill switch
       and it logs every user out.

  Verification returns None on any failure (bad signature, other
       algorithm, malformed token, missing claims, unknown role, expired).
       The dependency layer turns None into a 401.

  Clock: injected (defaults to time.time) so tests can move time forward
       without sleeping. jose never sees exp as required or verifiable:
       python-jose >= 3.4 turns require_exp back into a wall-clock check.
       Signature and algorithm checks stay with jose.

  Encoding: every segment must be canonical base64url. Trailing padding
       bits in the last character are otherwise ignored by the decoder, so
       two distinct strings would verify as the same token.

Layer rule: no imports from api/, accounts/, or waitlist/.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from jose import jwt
from jose.exceptions import JOSEError
from jose.utils import base64url_decode, base64url_encode

from auth.config import AuthConfig
from auth.models import Role, TokenClaims

logger = logging.getLogger("exploree.auth")

_DECODE_OPTIONS = {
    "verify_exp": False,  # checked below against the injected clock
    "require_iat": True,
    "require_sub": True,
}


def _is_canonical(token: str) -> bool:
    """True when the token is three segments that re-encode to themselves."""
    segments = token.split(".")
    if len(segments) != 3:
        return False
    try:
        for segment in segments:
            raw = segment.encode("ascii")
            if base64url_encode(base64url_decode(raw)) != raw:
                return False
    except ValueError:  # binascii.Error, UnicodeEncodeError
        return False
    return True


class TokenCodec:
    """Issue and verify HS256 identity tokens.

    Usage:
        codec = TokenCodec(AuthConfig(secret_key=...))
        token = codec.issue(TokenClaims(sub=user.id, email=..., name=..., role=Role.USER))
        claims = codec.verify(token)   # TokenClaims or None
    """

    def __init__(self, config: AuthConfig, clock: Callable[[], float] = time.time) -> None:
        self._config = config
        self._clock = clock

    @property
    def default_ttl(self) -> int:
        return self._config.token_expire_seconds

    def issue(self, claims: TokenClaims, ttl_seconds: Optional[int] = None) -> str:
        """Sign claims into a compact, URL-safe token.

        Args:
            claims:      Identity to embed. issued_at/expires_at on the input
                         are ignored and re-stamped from the clock.
            ttl_seconds: Lifetime in seconds. Defaults to the configured TTL
                         (24 hours unless TOKEN_EXPIRE_SECONDS says otherwise).
        """
        ttl = ttl_seconds if ttl_seconds is not None else self._config.token_expire_seconds
        now = int(self._clock())
        payload = {
            "sub": claims.sub,
            "email": claims.email,
            "name": claims.name,
            "role": claims.role.value,
            "iat": now,
            "exp": now + ttl,
        }
        return jwt.encode(payload, self._config.secret_key, algorithm=self._config.algorithm)

    def verify(self, token: str) -> TokenClaims | None:
        """Decode and verify a token. Returns the claims or None on any failure."""
        if not _is_canonical(token):
            logger.debug("Token rejected: non-canonical encoding")
            return None
        try:
            payload = jwt.decode(
                token,
                self._config.secret_key,
                algorithms=[self._config.algorithm],
                options=_DECODE_OPTIONS,
            )
        except JOSEError as exc:
            logger.debug("Token rejected: %s", exc)
            return None

        exp = payload.get("exp")
        if not isinstance(exp, int) or isinstance(exp, bool) or exp <= int(self._clock()):
            return None

        email = payload.get("email")
        name = payload.get("name")
        if not isinstance(email, str) or not isinstance(name, str):
            return None
        try:
            role = Role(payload.get("role"))
        except ValueError:
            return None

        return TokenClaims(
            sub=payload["sub"],
            email=email,
            name=name,
            role=role,
            issued_at=int(payload["iat"]),
            expires_at=exp,
        )
