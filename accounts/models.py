"""
accounts/models.py -- Domain dataclasses for accounts, profiles and the audit trail.

These are pure data containers with zero logic. All persistence lives in
accounts/store.py; the fire-and-forget recording policy lives in
accounts/activity.py.

Timestamps are ISO 8601 UTC strings set by the store on write.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from auth.models import Role


class AccountStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"


class ActivityType(str, Enum):
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    REGISTER = "REGISTER"
    PASSWORD_CHANGE = "PASSWORD_CHANGE"
    PROFILE_UPDATE = "PROFILE_UPDATE"
    ADMIN_ACTION = "ADMIN_ACTION"


@dataclass
class Account:
    """A login identity.

    email is the login email, unique across the service and stored
    lower-cased. password_hash never leaves the store/hasher boundary: API
    models do not have a field for it.

    id is None before the record is written to the database.
    """

    email: str
    name: str
    password_hash: str
    role: Role = Role.USER
    status: AccountStatus = AccountStatus.ACTIVE
    force_password_reset: bool = False
    id: Optional[str] = None
    last_login_at: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class Profile:
    """Extended contact details, one-to-one with Account (keyed by user_id).

    email here is the contact email and may differ from the login email.
    """

    full_name: str
    email: str
    phone_number: str = ""
    company: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    user_id: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class ActivityLogEntry:
    """An immutable audit record. Append-only: never updated or deleted."""

    user_id: str
    type: ActivityType
    description: str
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    id: Optional[int] = None
    created_at: str = ""
    # Joined from users for admin listings; None when the account was deleted.
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    user_role: Optional[str] = None


@dataclass
class AccountPage:
    """One page of an admin account search."""

    accounts: list[tuple[Account, Optional[Profile]]]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0
