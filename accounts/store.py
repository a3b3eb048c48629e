"""
accounts/store.py -- SQLAlchemy Core persistence for accounts, profiles and activity.

Pattern: Repository + Data Mapper. AccountStore is the repository;
_row_to_account / _row_to_profile / _row_to_activity are the mappers.
Route code never touches SQL directly.

Unit of work:
  Account and Profile are written together on registration, admin creation,
  profile edit and admin edit. Those pairs go through unit_of_work(), which
  wraps engine.begin(): commit when the block exits normally, rollback on
  any exception. No path can leave an account without its profile.

  Activity entries are written by append_activity() on their own connection,
  never inside a caller's unit of work, so a failed audit write cannot roll
  back the operation being audited (see accounts/activity.py).

Security:
  All queries use bound parameters. No f-strings in SQL.
  Sort columns come from a whitelist, never from raw user input.

DB URL: Settings.database_url (SQLite file by default; any SQLAlchemy URL).

Layer rule: no imports from api/ or waitlist/.
"""

from __future__ import annotations

import json
import logging
import uuid
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from sqlalchemy import (
    Column,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    func,
    or_,
    select,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from accounts.models import Account, AccountPage, AccountStatus, ActivityLogEntry, ActivityType, Profile
from auth.models import Role
from core.errors import ConflictError
from core.timestamps import now_iso

logger = logging.getLogger("exploree.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_users = Table(
    "users",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("name", String(255), nullable=False),
    Column("password_hash", Text, nullable=False),
    Column("role", String(20), nullable=False, server_default=Role.USER.value),
    Column("status", String(20), nullable=False, server_default=AccountStatus.ACTIVE.value),
    Column("force_password_reset", Integer, nullable=False, server_default="0"),
    Column("last_login_at", String(32)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_profiles = Table(
    "profiles",
    metadata,
    Column("user_id", String(36), primary_key=True),  # same id as users.id
    Column("full_name", String(255), nullable=False),
    Column("email", String(255), nullable=False),  # contact email
    Column("phone_number", String(50), nullable=False, server_default=""),
    Column("company", String(255)),
    Column("bio", Text),
    Column("avatar_url", Text),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_activity = Table(
    "activity_logs",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", String(36), nullable=False),
    Column("type", String(30), nullable=False),
    Column("description", Text, nullable=False),
    Column("ip_address", String(64)),
    Column("user_agent", Text),
    Column("metadata_json", Text),  # JSON object serialized as text
    Column("created_at", String(32), nullable=False),
    Index("ix_activity_logs_user_id", "user_id"),
    Index("ix_activity_logs_created_at", "created_at"),
)

# API sort keys are mapped to these column names by the route layer.
_SORTABLE_COLUMNS = {
    "created_at": _users.c.created_at,
    "updated_at": _users.c.updated_at,
    "last_login_at": _users.c.last_login_at,
    "name": _users.c.name,
    "email": _users.c.email,
    "role": _users.c.role,
    "status": _users.c.status,
}


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked by writers.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _db_value(value: Any) -> Any:
    """Convert domain values (enums, bools) to their column representation."""
    if isinstance(value, (Role, AccountStatus, ActivityType)):
        return value.value
    if isinstance(value, bool):
        return 1 if value else 0
    return value


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccountStore:
    """Repository for Account, Profile and ActivityLogEntry records.

    Usage:
        store = AccountStore("sqlite:///accounts.db")
        user_id = store.create_account(account, profile)
        account = store.get_by_email("someone@example.com")
        store.close()
    """

    # Fields the update path accepts. Anything else is a programming error.
    _ACCOUNT_FIELDS = {"email", "name", "password_hash", "role", "status", "force_password_reset"}
    _PROFILE_FIELDS = {"full_name", "email", "phone_number", "company", "bio", "avatar_url"}

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    @contextmanager
    def unit_of_work(self) -> Iterator[Connection]:
        """Yield a connection inside a transaction.

        Commits when the block exits normally; rolls back and re-raises on
        any exception, so either every write in the block lands or none does.
        """
        with self.engine.begin() as conn:
            yield conn

    def _insert_account(self, conn: Connection, user_id: str, account: Account, now: str) -> None:
        conn.execute(
            _users.insert().values(
                id=user_id,
                email=account.email,
                name=account.name,
                password_hash=account.password_hash,
                role=account.role.value,
                status=account.status.value,
                force_password_reset=1 if account.force_password_reset else 0,
                created_at=now,
                updated_at=now,
            )
        )

    def _insert_profile(self, conn: Connection, user_id: str, profile: Profile, now: str) -> None:
        conn.execute(
            _profiles.insert().values(
                user_id=user_id,
                full_name=profile.full_name,
                email=profile.email,
                phone_number=profile.phone_number or "",
                company=profile.company,
                bio=profile.bio,
                avatar_url=profile.avatar_url,
                created_at=now,
                updated_at=now,
            )
        )

    # ------------------------------------------------------------------
    # Account + profile writes (transactional)
    # ------------------------------------------------------------------

    def create_account(self, account: Account, profile: Profile) -> str:
        """Insert an account and its profile atomically. Returns the new id.

        Raises ConflictError if the email is already registered. Callers
        pre-check with email_exists() for a friendly message; the UNIQUE
        constraint is what actually guards against concurrent registrations.
        """
        user_id = str(uuid.uuid4())
        now = now_iso()
        try:
            with self.unit_of_work() as conn:
                self._insert_account(conn, user_id, account, now)
                self._insert_profile(conn, user_id, profile, now)
        except IntegrityError as exc:
            raise ConflictError("User already exists.", code="email_exists") from exc
        return user_id

    def update_account(
        self,
        user_id: str,
        account_fields: Optional[dict[str, Any]] = None,
        profile_fields: Optional[dict[str, Any]] = None,
    ) -> bool:
        """Update account and profile columns in one unit of work.

        Returns False if the account does not exist (nothing is written).
        Raises ConflictError if a new email collides with another account.
        """
        account_fields = dict(account_fields or {})
        profile_fields = dict(profile_fields or {})
        unknown = (set(account_fields) - self._ACCOUNT_FIELDS) | (set(profile_fields) - self._PROFILE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown account/profile fields: {unknown!r}")

        now = now_iso()
        try:
            with self.unit_of_work() as conn:
                result = conn.execute(
                    _users.update()
                    .where(_users.c.id == user_id)
                    .values(updated_at=now, **{k: _db_value(v) for k, v in account_fields.items()})
                )
                if result.rowcount == 0:
                    return False
                if profile_fields:
                    conn.execute(
                        _profiles.update()
                        .where(_profiles.c.user_id == user_id)
                        .values(updated_at=now, **{k: _db_value(v) for k, v in profile_fields.items()})
                    )
        except IntegrityError as exc:
            raise ConflictError("A user with this email already exists.", code="email_exists") from exc
        return True

    def delete_account(self, user_id: str) -> bool:
        """Delete an account and its profile. Returns False if not found.

        Activity entries referencing the account are kept -- the audit trail
        is append-only.
        """
        with self.unit_of_work() as conn:
            conn.execute(_profiles.delete().where(_profiles.c.user_id == user_id))
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
        return result.rowcount > 0

    def update_last_login(self, user_id: str) -> None:
        """Stamp the current UTC time as last_login_at."""
        with self.engine.connect() as conn:
            conn.execute(_users.update().where(_users.c.id == user_id).values(last_login_at=now_iso()))
            conn.commit()

    # ------------------------------------------------------------------
    # Account queries
    # ------------------------------------------------------------------

    def get_by_id(self, user_id: str) -> Account | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_account(row) if row is not None else None

    def get_by_email(self, email: str) -> Account | None:
        """Look up an account by login email (case-insensitive)."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email.strip().lower())).fetchone()
        return _row_to_account(row) if row is not None else None

    def email_exists(self, email: str) -> bool:
        return self.get_by_email(email) is not None

    def get_profile(self, user_id: str) -> Profile | None:
        with self.engine.connect() as conn:
            row = conn.execute(_profiles.select().where(_profiles.c.user_id == user_id)).fetchone()
        return _row_to_profile(row) if row is not None else None

    def search_accounts(
        self,
        *,
        search: str = "",
        role: Optional[Role] = None,
        status: Optional[AccountStatus] = None,
        sort_by: str = "created_at",
        descending: bool = True,
        page: int = 1,
        limit: int = 20,
    ) -> AccountPage:
        """Return one page of accounts (with profiles) matching the filters.

        search matches name or email, case-insensitive substring.
        Unknown sort_by values fall back to created_at.
        """
        page = max(1, page)
        limit = max(1, min(limit, 100))
        clauses = []
        if search:
            clauses.append(
                or_(
                    _users.c.name.icontains(search, autoescape=True),
                    _users.c.email.icontains(search, autoescape=True),
                )
            )
        if role is not None:
            clauses.append(_users.c.role == role.value)
        if status is not None:
            clauses.append(_users.c.status == status.value)

        sort_col = _SORTABLE_COLUMNS.get(sort_by, _users.c.created_at)
        order = (sort_col.desc(), _users.c.id.desc()) if descending else (sort_col.asc(), _users.c.id.asc())

        with self.engine.connect() as conn:
            total = conn.execute(select(func.count()).select_from(_users).where(*clauses)).scalar() or 0
            rows = conn.execute(
                _users.select().where(*clauses).order_by(*order).offset((page - 1) * limit).limit(limit)
            ).fetchall()
            ids = [r.id for r in rows]
            profile_rows = (
                conn.execute(_profiles.select().where(_profiles.c.user_id.in_(ids))).fetchall() if ids else []
            )

        profiles = {p.user_id: _row_to_profile(p) for p in profile_rows}
        return AccountPage(
            accounts=[(_row_to_account(r), profiles.get(r.id)) for r in rows],
            total=total,
            page=page,
            limit=limit,
        )

    def count_accounts(
        self,
        *,
        role: Optional[Role] = None,
        status: Optional[AccountStatus] = None,
        created_since: Optional[str] = None,
        force_password_reset: Optional[bool] = None,
    ) -> int:
        """Count accounts matching every given filter. created_since is an ISO timestamp."""
        clauses = []
        if role is not None:
            clauses.append(_users.c.role == role.value)
        if status is not None:
            clauses.append(_users.c.status == status.value)
        if created_since is not None:
            clauses.append(_users.c.created_at >= created_since)
        if force_password_reset is not None:
            clauses.append(_users.c.force_password_reset == (1 if force_password_reset else 0))
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users).where(*clauses)).scalar()
        return result or 0

    def status_counts(self) -> dict[AccountStatus, int]:
        """Return the number of accounts per status (every status present, 0 if none)."""
        with self.engine.connect() as conn:
            rows = conn.execute(select(_users.c.status, func.count()).group_by(_users.c.status)).fetchall()
        counts = {s: 0 for s in AccountStatus}
        for status, count in rows:
            counts[AccountStatus(status)] = count
        return counts

    # ------------------------------------------------------------------
    # Activity log
    # ------------------------------------------------------------------

    def append_activity(self, entry: ActivityLogEntry) -> int:
        """Insert an activity entry on its own connection. Returns its id."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _activity.insert().values(
                    user_id=entry.user_id,
                    type=entry.type.value,
                    description=entry.description,
                    ip_address=entry.ip_address,
                    user_agent=entry.user_agent,
                    metadata_json=json.dumps(entry.metadata, default=str) if entry.metadata else None,
                    created_at=now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def _activity_query(self):
        return select(
            _activity,
            _users.c.name.label("user_name"),
            _users.c.email.label("user_email"),
            _users.c.role.label("user_role"),
        ).select_from(_activity.outerjoin(_users, _activity.c.user_id == _users.c.id))

    def list_activity(
        self,
        *,
        user_id: Optional[str] = None,
        activity_type: Optional[ActivityType] = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[ActivityLogEntry], int]:
        """Return (entries newest first, total matching) for the filters."""
        page = max(1, page)
        limit = max(1, min(limit, 100))
        clauses = []
        if user_id:
            clauses.append(_activity.c.user_id == user_id)
        if activity_type is not None:
            clauses.append(_activity.c.type == activity_type.value)

        with self.engine.connect() as conn:
            total = conn.execute(select(func.count()).select_from(_activity).where(*clauses)).scalar() or 0
            rows = conn.execute(
                self._activity_query()
                .where(*clauses)
                .order_by(_activity.c.created_at.desc(), _activity.c.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            ).fetchall()
        return [_row_to_activity(r) for r in rows], total

    def count_activity(self, *, activity_type: Optional[ActivityType] = None, since: Optional[str] = None) -> int:
        clauses = []
        if activity_type is not None:
            clauses.append(_activity.c.type == activity_type.value)
        if since is not None:
            clauses.append(_activity.c.created_at >= since)
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_activity).where(*clauses)).scalar()
        return result or 0

    def recent_activity(self, limit: int = 10) -> list[ActivityLogEntry]:
        entries, _total = self.list_activity(page=1, limit=limit)
        return entries

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row) -> Account:
    return Account(
        id=row.id,
        email=row.email,
        name=row.name,
        password_hash=row.password_hash,
        role=Role(row.role),
        status=AccountStatus(row.status),
        force_password_reset=bool(row.force_password_reset),
        last_login_at=row.last_login_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_profile(row) -> Profile:
    return Profile(
        user_id=row.user_id,
        full_name=row.full_name,
        email=row.email,
        phone_number=row.phone_number or "",
        company=row.company,
        bio=row.bio,
        avatar_url=row.avatar_url,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_activity(row) -> ActivityLogEntry:
    return ActivityLogEntry(
        id=row.id,
        user_id=row.user_id,
        type=ActivityType(row.type),
        description=row.description,
        ip_address=row.ip_address,
        user_agent=row.user_agent,
        metadata=json.loads(row.metadata_json) if row.metadata_json else {},
        created_at=row.created_at,
        user_name=row.user_name,
        user_email=row.user_email,
        user_role=row.user_role,
    )
