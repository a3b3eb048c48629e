"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Every protected request walks the same states:

  Unauthenticated -> TokenPresented -> TokenVerified -> RoleChecked -> Authorized
                          |                 |               |
                       no token          bad/expired     wrong role
                         401                401             403

Token lookup is delegated to auth.transport.resolve_token() (Bearer header
first, then cookie). Verification is delegated to the TokenCodec on
app.state. Role checks use the role claim in the token only -- the service is
stateless, so an admin demotion takes effect when the old token expires.

try_get_claims() is the soft variant (returns None on failure).
get_current_claims() raises 401 when unauthenticated.
require_roles(...) / require_admin add the 403 role check.

Layer rule: no imports from api/, accounts/, or waitlist/.
  auth/dependencies.py may import from fastapi/starlette because this module
  is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from typing import Callable

from fastapi import Request

from auth.config import AuthConfig
from auth.models import Role, TokenClaims
from auth.tokens import TokenCodec
from auth.transport import resolve_token
from core.errors import AuthenticationError, AuthorizationError


def _codec(request: Request) -> TokenCodec:
    return request.app.state.token_codec


def _config(request: Request) -> AuthConfig:
    return request.app.state.auth_config


def try_get_claims(request: Request) -> TokenClaims | None:
    """Return verified claims for the request, or None.

    Never raises -- callers that need a hard 401 should use get_current_claims().
    """
    token = resolve_token(request, _config(request))
    if not token:
        return None
    return _codec(request).verify(token)


def get_current_claims(request: Request) -> TokenClaims:
    """Require a valid token. Raises AuthenticationError (401) otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(claims: TokenClaims = Depends(get_current_claims)): ...
    """
    token = resolve_token(request, _config(request))
    if not token:
        raise AuthenticationError("Authentication required.")
    claims = _codec(request).verify(token)
    if claims is None:
        raise AuthenticationError("Invalid or expired token.", code="invalid_token")
    return claims


def require_roles(*roles: Role) -> Callable[[Request], TokenClaims]:
    """Build a dependency that allows only the given roles.

    Raises 401 if unauthenticated, 403 if the token's role is not listed.
    """
    allowed = frozenset(roles)

    def dependency(request: Request) -> TokenClaims:
        claims = get_current_claims(request)
        if claims.role not in allowed:
            raise AuthorizationError("Insufficient permissions.")
        return claims

    return dependency


require_admin = require_roles(Role.SYSTEM_ADMIN)
