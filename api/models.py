"""
API request and response models for the Exploree Accounts REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in accounts/models.py and
waitlist/models.py, which own the internal domain representation. Route
handlers map between the two via the from_* factory methods below.

Wire format is camelCase (the browser front-end and the downstream properties
read `forcePasswordReset`, `totalPages`, ...). Python attributes stay
snake_case; the alias generator does the translation and populate_by_name
lets callers send either spelling.

No model here has a password_hash field. That is the boundary that keeps
digests from ever being serialized.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from accounts.models import Account, AccountStatus, ActivityLogEntry, Profile
from auth.models import Role
from core.properties import Property

_EMAIL_MAX = 255
# bcrypt ignores bytes past 72; the hasher truncates explicitly. 255 keeps
# request bodies bounded.
_PASSWORD_MAX = 255


def _normalize_email(value: Optional[str]) -> Optional[str]:
    """Lower-case and sanity-check an email address.

    Deliberately shallow: one "@" with something on both sides and no
    whitespace. Deliverability is not this service's concern.
    """
    if value is None:
        return None
    email = value.strip().lower()
    local, sep, domain = email.partition("@")
    if not sep or not local or not domain or "@" in domain or any(c.isspace() for c in email):
        raise ValueError("Invalid email address.")
    return email


class _ApiModel(BaseModel):
    # No str_strip_whitespace: it would silently alter passwords.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _ApiResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ---------------------------------------------------------------------------
# Request models -- auth
# ---------------------------------------------------------------------------


class RegisterRequest(_ApiModel):
    """Request body for POST /api/auth/register."""

    name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=_EMAIL_MAX)
    password: str = Field(min_length=1, max_length=_PASSWORD_MAX)
    phone_number: Optional[str] = Field(default=None, max_length=50)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return _normalize_email(value)


class LoginRequest(_ApiModel):
    """Request body for POST /api/auth/login.

    The email is not format-checked here: a malformed email simply fails
    lookup and gets the same generic 401 as any other bad credential.
    """

    email: str = Field(min_length=1, max_length=_EMAIL_MAX)
    password: str = Field(min_length=1, max_length=_PASSWORD_MAX)


class ProfilePatch(_ApiModel):
    """Request body for PATCH /api/auth/profile. Every field is optional.

    name and fullName both rename the account; fullName wins for the profile
    when both are sent.
    """

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    full_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[str] = Field(default=None, max_length=_EMAIL_MAX)
    phone_number: Optional[str] = Field(default=None, max_length=50)
    company: Optional[str] = Field(default=None, max_length=255)
    bio: Optional[str] = Field(default=None, max_length=2000)
    avatar_url: Optional[str] = Field(default=None, max_length=2048)
    password: Optional[str] = Field(default=None, min_length=1, max_length=_PASSWORD_MAX)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: Optional[str]) -> Optional[str]:
        return _normalize_email(value)


class VerifyRequest(_ApiModel):
    """Request body for POST /api/auth/verify. token is optional so a trusted
    service can call with the service key alone."""

    token: Optional[str] = None


# ---------------------------------------------------------------------------
# Request models -- admin
# ---------------------------------------------------------------------------


class AdminUserCreate(_ApiModel):
    """Request body for POST /api/admin/users."""

    name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=_EMAIL_MAX)
    password: str = Field(min_length=1, max_length=_PASSWORD_MAX)
    role: Role = Role.USER
    status: AccountStatus = AccountStatus.ACTIVE
    force_password_reset: bool = False
    phone_number: Optional[str] = Field(default=None, max_length=50)
    company: Optional[str] = Field(default=None, max_length=255)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return _normalize_email(value)


class AdminUserPatch(_ApiModel):
    """Request body for PATCH /api/admin/users/{id}. Every field is optional."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[str] = Field(default=None, max_length=_EMAIL_MAX)
    role: Optional[Role] = None
    status: Optional[AccountStatus] = None
    password: Optional[str] = Field(default=None, min_length=1, max_length=_PASSWORD_MAX)
    force_password_reset: Optional[bool] = None
    full_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    phone_number: Optional[str] = Field(default=None, max_length=50)
    company: Optional[str] = Field(default=None, max_length=255)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: Optional[str]) -> Optional[str]:
        return _normalize_email(value)


# ---------------------------------------------------------------------------
# Request models -- waitlist
# ---------------------------------------------------------------------------


class WaitlistJoin(_ApiModel):
    """Request body for POST /api/waitlist."""

    email: str = Field(min_length=3, max_length=_EMAIL_MAX)
    service: Property
    name: Optional[str] = Field(default=None, max_length=255)
    user_id: Optional[str] = Field(default=None, max_length=36)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return _normalize_email(value)


# ---------------------------------------------------------------------------
# Response models -- users
# ---------------------------------------------------------------------------


class UserSummary(_ApiResponse):
    """Public identity of an account -- what tokens and verify calls describe."""

    id: str
    name: str
    email: str
    role: Role
    status: AccountStatus
    force_password_reset: bool = False

    @classmethod
    def from_account(cls, account: Account) -> "UserSummary":
        return cls(
            id=account.id,
            name=account.name,
            email=account.email,
            role=account.role,
            status=account.status,
            force_password_reset=account.force_password_reset,
        )


class ProfileOut(_ApiResponse):
    full_name: str
    email: str
    phone_number: str
    company: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: str
    updated_at: str

    @classmethod
    def from_profile(cls, profile: Profile) -> "ProfileOut":
        return cls(
            full_name=profile.full_name,
            email=profile.email,
            phone_number=profile.phone_number,
            company=profile.company,
            bio=profile.bio,
            avatar_url=profile.avatar_url,
            created_at=profile.created_at,
            updated_at=profile.updated_at,
        )


class UserDetail(UserSummary):
    """Full account view for the owner and for admins."""

    last_login_at: Optional[str] = None
    created_at: str
    updated_at: str
    profile: Optional[ProfileOut] = None

    @classmethod
    def from_account(cls, account: Account, profile: Optional[Profile] = None) -> "UserDetail":
        return cls(
            id=account.id,
            name=account.name,
            email=account.email,
            role=account.role,
            status=account.status,
            force_password_reset=account.force_password_reset,
            last_login_at=account.last_login_at,
            created_at=account.created_at,
            updated_at=account.updated_at,
            profile=ProfileOut.from_profile(profile) if profile is not None else None,
        )


# ---------------------------------------------------------------------------
# Response models -- auth
# ---------------------------------------------------------------------------


class AuthResponse(_ApiResponse):
    """Response for register and login.

    token is also set as an httpOnly cookie; expires_in lets a client that
    persists the token itself track the same expiry.
    """

    success: bool = True
    user: UserSummary
    token: str
    expires_in: int


class MeResponse(_ApiResponse):
    authenticated: bool
    user: Optional[UserSummary] = None


class UserEnvelope(_ApiResponse):
    user: UserDetail


class UserSuccessResponse(_ApiResponse):
    success: bool = True
    user: UserDetail


class VerifyResponse(_ApiResponse):
    """Response for /api/auth/verify. Fields that do not apply are omitted."""

    valid: bool
    user: Optional[UserSummary] = None
    error: Optional[str] = None
    trusted_service: Optional[bool] = None


class SuccessResponse(_ApiResponse):
    success: bool = True
    message: Optional[str] = None


# ---------------------------------------------------------------------------
# Response models -- admin
# ---------------------------------------------------------------------------


class Pagination(_ApiResponse):
    page: int
    limit: int
    total: int
    total_pages: int


class UserListStats(_ApiResponse):
    total: int
    active: int
    inactive: int
    suspended: int
    admins: int
    new_today: int


class UserListResponse(_ApiResponse):
    users: list[UserDetail]
    pagination: Pagination
    stats: UserListStats


class ActivityUser(_ApiResponse):
    name: str
    email: str
    role: str


class ActivityLogOut(_ApiResponse):
    id: int
    user_id: str
    type: str
    description: str
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: str
    user: Optional[ActivityUser] = None

    @classmethod
    def from_entry(cls, entry: ActivityLogEntry) -> "ActivityLogOut":
        user = None
        if entry.user_email is not None:
            user = ActivityUser(name=entry.user_name or "", email=entry.user_email, role=entry.user_role or "")
        return cls(
            id=entry.id,
            user_id=entry.user_id,
            type=entry.type.value,
            description=entry.description,
            ip_address=entry.ip_address,
            user_agent=entry.user_agent,
            metadata=entry.metadata,
            created_at=entry.created_at,
            user=user,
        )


class ActivityLogListResponse(_ApiResponse):
    logs: list[ActivityLogOut]
    pagination: Pagination


class UserBreakdown(_ApiResponse):
    total: int
    active: int
    inactive: int
    suspended: int
    admins: int
    regular_users: int


class GrowthStats(_ApiResponse):
    today: int
    this_week: int
    this_month: int


class ActivityStats(_ApiResponse):
    logins_today: int
    logins_this_week: int
    recent_activities: list[ActivityLogOut]


class AlertStats(_ApiResponse):
    users_needing_password_reset: int


class AdminStatsResponse(_ApiResponse):
    """Response for GET /api/admin/stats."""

    users: UserBreakdown
    growth: GrowthStats
    activity: ActivityStats
    alerts: AlertStats


# ---------------------------------------------------------------------------
# Response models -- waitlist
# ---------------------------------------------------------------------------


class WaitlistJoinResponse(_ApiResponse):
    message: str
    id: Optional[int] = None
    already_exists: Optional[bool] = None


class WaitlistCountResponse(_ApiResponse):
    service: Property
    count: int


# ---------------------------------------------------------------------------
# Envelope and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[Any] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
