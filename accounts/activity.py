"""
accounts/activity.py -- Best-effort audit trail for account events.

record() is fire-and-forget: it never raises. A login must still succeed
when the activity table is locked, the disk is full or the database is
briefly unreachable. Failures are written to the local log with the full
traceback and reported to the caller only as a False return value.

Entries are written on their own connection, outside any unit of work, so
an audit failure can never roll back the operation being audited.

Client info comes from proxy headers: the first address in X-Forwarded-For
(the original client; later hops are proxies), then X-Real-IP, then the
literal "unknown".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from starlette.requests import Request

from accounts.models import ActivityLogEntry, ActivityType
from accounts.store import AccountStore

logger = logging.getLogger("exploree.activity")

_UNKNOWN = "unknown"


@dataclass(frozen=True)
class ClientInfo:
    ip_address: str = _UNKNOWN
    user_agent: str = _UNKNOWN


def client_info(request: Request) -> ClientInfo:
    """Derive the caller's IP and user agent from proxy-forwarded headers."""
    forwarded = request.headers.get("x-forwarded-for", "")
    ip = forwarded.split(",")[0].strip() if forwarded else ""
    if not ip:
        ip = request.headers.get("x-real-ip", "").strip()
    return ClientInfo(
        ip_address=ip or _UNKNOWN,
        user_agent=request.headers.get("user-agent") or _UNKNOWN,
    )


class ActivityLog:
    """Records ActivityLogEntry rows without ever failing the caller."""

    def __init__(self, store: AccountStore) -> None:
        self._store = store

    def record(
        self,
        user_id: str,
        activity_type: ActivityType,
        description: str,
        client: Optional[ClientInfo] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> bool:
        """Append an entry. Returns True if written, False if the write failed."""
        entry = ActivityLogEntry(
            user_id=user_id,
            type=activity_type,
            description=description,
            ip_address=client.ip_address if client else None,
            user_agent=client.user_agent if client else None,
            metadata=dict(metadata or {}),
        )
        try:
            self._store.append_activity(entry)
        except Exception:
            logger.exception("Failed to record %s activity for user %s", activity_type.value, user_id)
            return False
        return True
