"""
api/routes/auth.py -- Authentication and self-service profile endpoints.

Routes:
  POST   /api/auth/register            -- create account + profile; sets cookie, returns token
  POST   /api/auth/login               -- password login; sets cookie, returns token
  DELETE /api/auth/login               -- clears cookie (token itself stays valid)
  GET    /api/auth/me                  -- {authenticated, user} for the presented token
  GET    /api/auth/profile             -- account + profile of the caller
  PATCH  /api/auth/profile             -- update account + profile in one unit of work
  POST   /api/auth/verify              -- token check for downstream services (body)
  GET    /api/auth/verify              -- token check for downstream services (query)
  GET    /api/auth/handoff/{service}   -- redirect to a property with the token in the URL

Security:
  Login returns one generic message for unknown email and wrong password.
  Unknown emails still pay for a bcrypt round (PasswordHasher.burn) so the
  two cases cost the same.
  Account status is checked right after lookup, before the password: a
  SUSPENDED or INACTIVE account is refused with its own message and no
  hashing work is spent on it.
  Cache-Control: no-store on every login/registration response.
  Hand-off targets come from the SERVICE_URLS allowlist only -- never from
  a caller-supplied URL (open-redirect prevention).
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel

from accounts.activity import ActivityLog, client_info
from accounts.models import Account, AccountStatus, ActivityType, Profile
from accounts.store import AccountStore
from api.models import (
    AuthResponse,
    ErrorDetail,
    ErrorResponse,
    LoginRequest,
    MeResponse,
    ProfilePatch,
    RegisterRequest,
    SuccessResponse,
    UserDetail,
    UserEnvelope,
    UserSuccessResponse,
    UserSummary,
    VerifyRequest,
    VerifyResponse,
)
from auth.dependencies import get_current_claims, try_get_claims
from auth.models import TokenClaims
from auth.transport import build_handoff_url, clear_token_cookie, resolve_token, set_token_cookie
from core.errors import ConflictError, InternalError, NotFoundError, ValidationError
from core.properties import Property

logger = logging.getLogger("exploree.api.auth")

# Auth policy:
# - POST   /auth/register, /auth/login:  public
# - DELETE /auth/login:                  public -- clearing a cookie needs no prior auth
# - GET    /auth/me:                     soft auth -- 401 body {authenticated: false}
# - GET    /auth/profile, PATCH:         requires token (get_current_claims)
# - GET    /auth/handoff/{service}:      requires token (get_current_claims)
# - POST   /auth/verify, GET:            public; token in body/query or service key header
router = APIRouter()

_SUSPENDED_MESSAGE = "Your account has been suspended. Please contact support."
_INACTIVE_MESSAGE = "Your account is inactive. Please contact support to reactivate."


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _store(request: Request) -> AccountStore:
    return request.app.state.account_store


def _activity(request: Request) -> ActivityLog:
    return request.app.state.activity_log


def _json(model: BaseModel, status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=model.model_dump(mode="json", by_alias=True, exclude_none=True),
    )


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    resp = JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message)).model_dump(exclude_none=True),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


def _issue_session(request: Request, account: Account, status_code: int = 200) -> JSONResponse:
    """Sign a token for the account and hand it out via cookie and body."""
    codec = request.app.state.token_codec
    config = request.app.state.auth_config
    token = codec.issue(TokenClaims(sub=account.id, email=account.email, name=account.name, role=account.role))
    resp = _json(
        AuthResponse(user=UserSummary.from_account(account), token=token, expires_in=codec.default_ttl),
        status_code=status_code,
    )
    set_token_cookie(resp, token, config)
    resp.headers["Cache-Control"] = "no-store"
    return resp


def _load_detail(store: AccountStore, user_id: str) -> UserDetail:
    account = store.get_by_id(user_id)
    if account is None:
        raise NotFoundError("User not found.")
    return UserDetail.from_account(account, store.get_profile(user_id))


# ---------------------------------------------------------------------------
# Registration and login
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=AuthResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create an account and its profile in one unit of work, then sign in.

    The existence pre-check gives the common duplicate case a clean 400;
    the UNIQUE constraint (surfaced by the store as ConflictError) covers
    two registrations racing for the same email.
    """
    store = _store(request)
    if store.email_exists(body.email):
        raise ConflictError("User already exists.", code="email_exists")

    account = Account(
        email=body.email,
        name=body.name,
        password_hash=request.app.state.hasher.hash(body.password),
    )
    profile = Profile(full_name=body.name, email=body.email, phone_number=body.phone_number or "")
    user_id = store.create_account(account, profile)

    created = store.get_by_id(user_id)
    if created is None:
        raise InternalError("User not found after write.")

    _activity(request).record(user_id, ActivityType.REGISTER, "User registered", client_info(request))
    logger.info("Registered account %s", user_id)
    return _issue_session(request, created, status_code=201)


@router.post("/auth/login", response_model=AuthResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; set the token cookie and return the token."""
    store = _store(request)
    hasher = request.app.state.hasher

    account = store.get_by_email(body.email)
    if account is None:
        hasher.burn(body.password)
        return _error(401, "bad_credentials", "Invalid email or password.")

    # Status gate runs before the password check.
    if account.status is AccountStatus.SUSPENDED:
        return _error(403, "account_suspended", _SUSPENDED_MESSAGE)
    if account.status is AccountStatus.INACTIVE:
        return _error(403, "account_inactive", _INACTIVE_MESSAGE)

    if not hasher.verify(body.password, account.password_hash):
        return _error(401, "bad_credentials", "Invalid email or password.")

    store.update_last_login(account.id)
    _activity(request).record(account.id, ActivityType.LOGIN, "User logged in", client_info(request))
    return _issue_session(request, account)


@router.delete("/auth/login", response_model=SuccessResponse)
def logout(request: Request) -> JSONResponse:
    """Clear the token cookie.

    The token itself is not revoked -- any copy the client kept stays valid
    until it expires. LOGOUT is recorded only when the caller presented a
    valid token.
    """
    claims = try_get_claims(request)
    if claims is not None:
        _activity(request).record(claims.sub, ActivityType.LOGOUT, "User logged out", client_info(request))
    resp = _json(SuccessResponse())
    clear_token_cookie(resp, request.app.state.auth_config)
    return resp


# ---------------------------------------------------------------------------
# Current user and profile
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=MeResponse)
def me(request: Request) -> JSONResponse:
    """Return {authenticated: true, user} or 401 {authenticated: false}."""
    claims = try_get_claims(request)
    account = _store(request).get_by_id(claims.sub) if claims is not None else None
    if account is None:
        return _json(MeResponse(authenticated=False), status_code=401)
    return _json(MeResponse(authenticated=True, user=UserSummary.from_account(account)))


@router.get("/auth/profile", response_model=UserEnvelope)
def get_profile(request: Request, claims: TokenClaims = Depends(get_current_claims)) -> UserEnvelope:
    return UserEnvelope(user=_load_detail(_store(request), claims.sub))


@router.patch("/auth/profile", response_model=UserSuccessResponse)
def update_profile(
    request: Request,
    body: ProfilePatch,
    claims: TokenClaims = Depends(get_current_claims),
) -> UserSuccessResponse:
    """Update the caller's account and profile together.

    Either both rows change or neither does. A new password is re-hashed
    and recorded as PASSWORD_CHANGE; any other change is PROFILE_UPDATE.
    """
    store = _store(request)
    sent = body.model_fields_set
    account_fields: dict = {}
    profile_fields: dict = {}

    display_name = body.name or body.full_name
    if display_name:
        account_fields["name"] = display_name
        profile_fields["full_name"] = body.full_name or body.name
    if body.email:
        existing = store.get_by_email(body.email)
        if existing is not None and existing.id != claims.sub:
            raise ConflictError("A user with this email already exists.", code="email_exists")
        account_fields["email"] = body.email
        profile_fields["email"] = body.email
    if "phone_number" in sent:
        profile_fields["phone_number"] = body.phone_number or ""
    for optional_field in ("company", "bio", "avatar_url"):
        if optional_field in sent:
            profile_fields[optional_field] = getattr(body, optional_field)
    if body.password:
        account_fields["password_hash"] = request.app.state.hasher.hash(body.password)

    if not account_fields and not profile_fields:
        raise ValidationError("No fields to update.", code="no_changes")

    if not store.update_account(claims.sub, account_fields, profile_fields):
        raise NotFoundError("User not found.")

    client = client_info(request)
    activity = _activity(request)
    if "password_hash" in account_fields:
        activity.record(claims.sub, ActivityType.PASSWORD_CHANGE, "Password changed", client)
    changed = sorted((set(account_fields) | set(profile_fields)) - {"password_hash"})
    if changed:
        activity.record(claims.sub, ActivityType.PROFILE_UPDATE, "Profile updated", client, {"fields": changed})

    return UserSuccessResponse(user=_load_detail(store, claims.sub))


# ---------------------------------------------------------------------------
# Token verification for downstream services
# ---------------------------------------------------------------------------


def _verify(request: Request, token: Optional[str]) -> JSONResponse:
    trusted = request.app.state.service_authorizer.is_authorized(request)
    if not token:
        if trusted:
            return _json(VerifyResponse(valid=True, trusted_service=True))
        return _json(VerifyResponse(valid=False, error="Token is required"), status_code=400)

    claims = request.app.state.token_codec.verify(token)
    if claims is None:
        return _json(VerifyResponse(valid=False, error="Invalid or expired token"), status_code=401)

    account = _store(request).get_by_id(claims.sub)
    if account is None:
        return _json(VerifyResponse(valid=False, error="User not found"), status_code=404)

    return _json(
        VerifyResponse(
            valid=True,
            user=UserSummary.from_account(account),
            trusted_service=True if trusted else None,
        )
    )


@router.post("/auth/verify", response_model=VerifyResponse)
def verify_token_body(request: Request, body: Optional[VerifyRequest] = None) -> JSONResponse:
    """Verify a token sent as {"token": "..."}.

    A trusted service may call with only the service key header to confirm
    the account service is reachable and trusts it.
    """
    return _verify(request, body.token if body is not None else None)


@router.get("/auth/verify", response_model=VerifyResponse)
def verify_token_query(request: Request, token: Optional[str] = None) -> JSONResponse:
    """Verify a token sent as ?token=..."""
    return _verify(request, token)


# ---------------------------------------------------------------------------
# Hand-off to downstream properties
# ---------------------------------------------------------------------------


@router.get("/auth/handoff/{service}", status_code=302, response_class=RedirectResponse)
def handoff(
    request: Request,
    service: Property,
    claims: TokenClaims = Depends(get_current_claims),
) -> RedirectResponse:
    """Redirect the signed-in caller to a property with the token in the URL.

    The property reads ?token=..., stores it client-side and verifies it
    either locally (shared secret) or via /api/auth/verify.
    """
    base_url = request.app.state.settings.service_urls.get(service.value)
    if not base_url:
        raise NotFoundError(f"No URL configured for service '{service.value}'.")
    token = resolve_token(request, request.app.state.auth_config)
    logger.info("Handing off user %s to %s", claims.sub, service.value)
    return RedirectResponse(build_handoff_url(base_url, token), status_code=302)
