"""
auth/transport.py -- Token Transport: where a token is read from and written to.

Reading: an ordered list of extractors, each returning an optional token.
The first non-empty result wins:
  1. Authorization: Bearer <token> header -- client-persisted tokens
     (local storage) and downstream services.
  2. HTTP-only cookie -- set by the browser login/registration flow.

The header wins over the cookie so a client that switched accounts in local
storage is not shadowed by a stale cookie from an earlier session.

Writing: login and registration set the cookie AND return the token in the
JSON body (with expiresIn) so the client may persist it itself. Hand-off to a
downstream property carries the token in the redirect URL query.

Logout only clears the cookie. Client-held copies cannot be revoked
server-side; they expire on their own.

Layer rule: no imports from api/, accounts/, or waitlist/.
"""

from __future__ import annotations

from typing import Callable, Optional, Sequence
from urllib.parse import urlencode

from starlette.requests import Request
from starlette.responses import Response

from auth.config import AuthConfig

TokenExtractor = Callable[[Request, AuthConfig], Optional[str]]


def bearer_token(request: Request, config: AuthConfig) -> str | None:
    """Return the token from an `Authorization: Bearer <token>` header, if any."""
    auth_header = request.headers.get("Authorization", "")
    scheme, _, value = auth_header.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return value.strip() or None


def cookie_token(request: Request, config: AuthConfig) -> str | None:
    """Return the token from the session cookie, if any."""
    return request.cookies.get(config.cookie_name) or None


DEFAULT_EXTRACTORS: tuple[TokenExtractor, ...] = (bearer_token, cookie_token)


def resolve_token(
    request: Request,
    config: AuthConfig,
    extractors: Sequence[TokenExtractor] = DEFAULT_EXTRACTORS,
) -> str | None:
    """Run the extractors in order and return the first token found."""
    for extract in extractors:
        token = extract(request, config)
        if token:
            return token
    return None


def set_token_cookie(response: Response, token: str, config: AuthConfig, max_age: int = 0) -> None:
    """Write the token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": sent on same-site requests and top-level GET navigations,
        not on cross-site POSTs.
    secure: only sent over HTTPS in production (AuthConfig.secure_cookies).
    max_age: matches the token TTL so cookie and token expire together.
    """
    response.set_cookie(
        config.cookie_name,
        value=token,
        httponly=True,
        samesite="lax",
        secure=config.secure_cookies,
        max_age=max_age if max_age > 0 else config.token_expire_seconds,
        path="/",
    )


def clear_token_cookie(response: Response, config: AuthConfig) -> None:
    response.delete_cookie(
        config.cookie_name,
        path="/",
        httponly=True,
        samesite="lax",
        secure=config.secure_cookies,
    )


def build_handoff_url(base_url: str, token: str) -> str:
    """Append token=<token> to a downstream property URL.

    Uses "&" when the URL already carries a query string, "?" otherwise.
    The token is URL-encoded even though JWTs are URL-safe today.
    """
    separator = "&" if "?" in base_url else "?"
    return f"{base_url}{separator}{urlencode({'token': token})}"
