"""
api/routes/admin.py -- User management and reporting for SYSTEM_ADMIN accounts.

Routes:
  GET    /api/admin/users             -- search/filter/sort/paginate accounts + list stats
  POST   /api/admin/users             -- create account + profile (201)
  GET    /api/admin/users/{id}        -- one account with its profile
  PATCH  /api/admin/users/{id}        -- update account + profile in one unit of work
  DELETE /api/admin/users/{id}        -- delete account + profile
  GET    /api/admin/stats             -- dashboard counters and recent activity
  GET    /api/admin/activity-logs     -- paginated audit trail

Security:
  Every route depends on require_admin: 401 without a valid token, 403 for
  any role other than SYSTEM_ADMIN.
  An admin cannot delete their own account or change their own status
  (lock-out guard); both answer 400 before the target is even looked up.
  Every write is recorded as ADMIN_ACTION with the target id in metadata.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from accounts.activity import client_info
from accounts.models import Account, AccountStatus, ActivityType, Profile
from accounts.store import AccountStore
from api.models import (
    ActivityLogListResponse,
    ActivityLogOut,
    ActivityStats,
    AdminStatsResponse,
    AdminUserCreate,
    AdminUserPatch,
    AlertStats,
    GrowthStats,
    Pagination,
    SuccessResponse,
    UserBreakdown,
    UserDetail,
    UserEnvelope,
    UserListResponse,
    UserListStats,
    UserSuccessResponse,
)
from auth.dependencies import require_admin
from auth.models import Role, TokenClaims
from core.errors import AuthorizationError, ConflictError, InternalError, NotFoundError, ValidationError
from core.timestamps import to_iso

logger = logging.getLogger("exploree.api.admin")

router = APIRouter(prefix="/admin")

# camelCase sort keys accepted on the wire -> store column names.
_SORT_KEYS = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "lastLoginAt": "last_login_at",
    "name": "name",
    "email": "email",
    "role": "role",
    "status": "status",
}


def _store(request: Request) -> AccountStore:
    return request.app.state.account_store


def _parse_enum(enum_cls, value: Optional[str]):
    """Return enum_cls(value), or None for empty/unknown values (filter ignored)."""
    if not value:
        return None
    try:
        return enum_cls(value)
    except ValueError:
        return None


def _start_of_today() -> datetime:
    return datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)


def _record(request: Request, admin: TokenClaims, description: str, target_id: str, **extra) -> None:
    request.app.state.activity_log.record(
        admin.sub,
        ActivityType.ADMIN_ACTION,
        description,
        client_info(request),
        {"targetUserId": target_id, **extra},
    )


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@router.get("/users", response_model=UserListResponse)
def list_users(
    request: Request,
    search: str = "",
    role: Optional[str] = None,
    status: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
    sort_by: str = Query(default="createdAt", alias="sortBy"),
    sort_order: str = Query(default="desc", alias="sortOrder"),
    admin: TokenClaims = Depends(require_admin),
) -> UserListResponse:
    """Search accounts by name/email with optional role and status filters."""
    store = _store(request)
    result = store.search_accounts(
        search=search.strip(),
        role=_parse_enum(Role, role),
        status=_parse_enum(AccountStatus, status),
        sort_by=_SORT_KEYS.get(sort_by, "created_at"),
        descending=sort_order.lower() != "asc",
        page=page,
        limit=limit,
    )
    counts = store.status_counts()
    stats = UserListStats(
        total=sum(counts.values()),
        active=counts[AccountStatus.ACTIVE],
        inactive=counts[AccountStatus.INACTIVE],
        suspended=counts[AccountStatus.SUSPENDED],
        admins=store.count_accounts(role=Role.SYSTEM_ADMIN),
        new_today=store.count_accounts(created_since=to_iso(_start_of_today())),
    )
    return UserListResponse(
        users=[UserDetail.from_account(account, profile) for account, profile in result.accounts],
        pagination=Pagination(
            page=result.page,
            limit=result.limit,
            total=result.total,
            total_pages=result.total_pages,
        ),
        stats=stats,
    )


@router.post("/users", response_model=UserSuccessResponse, status_code=201)
def create_user(
    request: Request,
    body: AdminUserCreate,
    admin: TokenClaims = Depends(require_admin),
) -> UserSuccessResponse:
    """Create an account with any role/status. Account and profile are written together."""
    store = _store(request)
    if store.email_exists(body.email):
        raise ConflictError("A user with this email already exists.", code="email_exists")

    account = Account(
        email=body.email,
        name=body.name,
        password_hash=request.app.state.hasher.hash(body.password),
        role=body.role,
        status=body.status,
        force_password_reset=body.force_password_reset,
    )
    profile = Profile(
        full_name=body.name,
        email=body.email,
        phone_number=body.phone_number or "",
        company=body.company,
    )
    user_id = store.create_account(account, profile)
    created = store.get_by_id(user_id)
    if created is None:
        raise InternalError("User not found after write.")

    _record(request, admin, f"Created user {created.email}", user_id)
    logger.info("Admin %s created user %s", admin.sub, user_id)
    return UserSuccessResponse(user=UserDetail.from_account(created, store.get_profile(user_id)))


@router.get("/users/{user_id}", response_model=UserEnvelope)
def get_user(request: Request, user_id: str, admin: TokenClaims = Depends(require_admin)) -> UserEnvelope:
    store = _store(request)
    account = store.get_by_id(user_id)
    if account is None:
        raise NotFoundError("User not found.")
    return UserEnvelope(user=UserDetail.from_account(account, store.get_profile(user_id)))


@router.patch("/users/{user_id}", response_model=UserSuccessResponse)
def update_user(
    request: Request,
    user_id: str,
    body: AdminUserPatch,
    admin: TokenClaims = Depends(require_admin),
) -> UserSuccessResponse:
    """Update any account's fields.

    Guard: an admin may not change their own status (they could lock
    themselves out). Role/status changes apply to new tokens only; tokens
    already issued keep their claims until they expire.
    """
    if body.status is not None and user_id == admin.sub:
        raise AuthorizationError(
            "You cannot change your own account status.", code="self_status_change", status_code=400
        )

    store = _store(request)
    if store.get_by_id(user_id) is None:
        raise NotFoundError("User not found.")

    sent = body.model_fields_set
    account_fields: dict = {}
    profile_fields: dict = {}
    if body.name:
        account_fields["name"] = body.name
    if body.full_name:
        profile_fields["full_name"] = body.full_name
    if body.email:
        existing = store.get_by_email(body.email)
        if existing is not None and existing.id != user_id:
            raise ConflictError("A user with this email already exists.", code="email_exists")
        account_fields["email"] = body.email
        profile_fields["email"] = body.email
    if body.role is not None:
        account_fields["role"] = body.role
    if body.status is not None:
        account_fields["status"] = body.status
    if body.force_password_reset is not None:
        account_fields["force_password_reset"] = body.force_password_reset
    if body.password:
        account_fields["password_hash"] = request.app.state.hasher.hash(body.password)
    if "phone_number" in sent:
        profile_fields["phone_number"] = body.phone_number or ""
    if "company" in sent:
        profile_fields["company"] = body.company

    if not account_fields and not profile_fields:
        raise ValidationError("No fields to update.", code="no_changes")

    if not store.update_account(user_id, account_fields, profile_fields):
        raise NotFoundError("User not found.")

    changed = sorted(set(account_fields) | set(profile_fields))
    _record(request, admin, "Updated user", user_id, fields=changed)

    updated = store.get_by_id(user_id)
    if updated is None:
        raise NotFoundError("User not found.")
    return UserSuccessResponse(user=UserDetail.from_account(updated, store.get_profile(user_id)))


@router.delete("/users/{user_id}", response_model=SuccessResponse)
def delete_user(request: Request, user_id: str, admin: TokenClaims = Depends(require_admin)) -> SuccessResponse:
    if user_id == admin.sub:
        raise AuthorizationError("You cannot delete your own account.", code="self_deletion", status_code=400)

    store = _store(request)
    account = store.get_by_id(user_id)
    if account is None:
        raise NotFoundError("User not found.")
    if not store.delete_account(user_id):
        raise NotFoundError("User not found.")

    _record(request, admin, f"Deleted user {account.email}", user_id)
    logger.info("Admin %s deleted user %s", admin.sub, user_id)
    return SuccessResponse(message="User deleted successfully")


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------


@router.get("/stats", response_model=AdminStatsResponse)
def stats(request: Request, admin: TokenClaims = Depends(require_admin)) -> AdminStatsResponse:
    """Counters for the admin dashboard.

    "Today" starts at 00:00 UTC; "this week" and "this month" are rolling
    7 and 30 day windows.
    """
    store = _store(request)
    now = datetime.now(timezone.utc)
    today = to_iso(_start_of_today())
    week = to_iso(now - timedelta(days=7))
    month = to_iso(now - timedelta(days=30))

    counts = store.status_counts()
    total = sum(counts.values())
    admins = store.count_accounts(role=Role.SYSTEM_ADMIN)

    return AdminStatsResponse(
        users=UserBreakdown(
            total=total,
            active=counts[AccountStatus.ACTIVE],
            inactive=counts[AccountStatus.INACTIVE],
            suspended=counts[AccountStatus.SUSPENDED],
            admins=admins,
            regular_users=total - admins,
        ),
        growth=GrowthStats(
            today=store.count_accounts(created_since=today),
            this_week=store.count_accounts(created_since=week),
            this_month=store.count_accounts(created_since=month),
        ),
        activity=ActivityStats(
            logins_today=store.count_activity(activity_type=ActivityType.LOGIN, since=today),
            logins_this_week=store.count_activity(activity_type=ActivityType.LOGIN, since=week),
            recent_activities=[ActivityLogOut.from_entry(e) for e in store.recent_activity(10)],
        ),
        alerts=AlertStats(users_needing_password_reset=store.count_accounts(force_password_reset=True)),
    )


@router.get("/activity-logs", response_model=ActivityLogListResponse)
def activity_logs(
    request: Request,
    user_id: Optional[str] = Query(default=None, alias="userId"),
    activity_type: Optional[str] = Query(default=None, alias="type"),
    page: int = 1,
    limit: int = 50,
    admin: TokenClaims = Depends(require_admin),
) -> ActivityLogListResponse:
    """Audit trail, newest first. Unknown type filters are ignored."""
    page = max(1, page)
    limit = max(1, min(limit, 100))
    entries, total = _store(request).list_activity(
        user_id=user_id,
        activity_type=_parse_enum(ActivityType, activity_type),
        page=page,
        limit=limit,
    )
    return ActivityLogListResponse(
        logs=[ActivityLogOut.from_entry(e) for e in entries],
        pagination=Pagination(page=page, limit=limit, total=total, total_pages=(total + limit - 1) // limit),
    )
