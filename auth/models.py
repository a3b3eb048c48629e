"""
auth/models.py -- Domain types for the authentication core.

Pattern: Data class (pure data container, zero logic). Stores, codecs and
routes do the work.

Layer rule: no imports from api/, accounts/, or waitlist/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    USER = "USER"
    SYSTEM_ADMIN = "SYSTEM_ADMIN"


@dataclass(frozen=True)
class TokenClaims:
    """Identity facts embedded in a signed token.

    Transient: created at login/registration, signed into a token string,
    and rebuilt from the token on every authenticated request. Never stored
    server-side -- validity is purely signature + expiry.

    issued_at / expires_at are UNIX seconds. They are 0 on claims built for
    issuing; TokenCodec.issue() stamps the real values from its clock.
    """

    sub: str
    email: str
    name: str
    role: Role
    issued_at: int = 0
    expires_at: int = 0
