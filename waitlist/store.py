"""
waitlist/store.py -- SQLAlchemy Core persistence for waitlist sign-ups.

Pattern: Repository + Data Mapper (same as accounts/store.py).

Idempotency: join() is safe to call repeatedly for the same (email, service)
pair. The first call inserts; later calls return the existing entry with
created=False. The UNIQUE(email, service) constraint settles the race when
two requests for the same pair arrive together -- the loser catches the
IntegrityError and reports the winner's row.

Layer rule: no imports from api/, auth/, or accounts/.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import (
    Column,
    Integer,
    MetaData,
    String,
    Table,
    UniqueConstraint,
    create_engine,
    event,
    func,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from core.timestamps import now_iso
from core.properties import Property
from waitlist.models import WaitlistEntry

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_waitlist = Table(
    "service_waitlist",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False),
    Column("name", String(255)),
    Column("service", String(30), nullable=False),
    Column("user_id", String(36)),
    Column("created_at", String(32), nullable=False),
    UniqueConstraint("email", "service", name="uq_waitlist_email_service"),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


class WaitlistStore:
    """Repository for WaitlistEntry records.

    Usage:
        store = WaitlistStore("sqlite:///accounts.db")
        entry, created = store.join(WaitlistEntry(email="a@b.c", service=Property.JOBS))
        store.count(Property.JOBS)
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    def get(self, email: str, service: Property) -> WaitlistEntry | None:
        with self.engine.connect() as conn:
            row = conn.execute(
                _waitlist.select().where((_waitlist.c.email == email) & (_waitlist.c.service == service.value))
            ).fetchone()
        return _row_to_entry(row) if row is not None else None

    def join(self, entry: WaitlistEntry) -> tuple[WaitlistEntry, bool]:
        """Add the entry unless (email, service) is already present.

        Returns (stored entry, created). created is False when the pair was
        already on the list; nothing is written in that case.
        """
        existing = self.get(entry.email, entry.service)
        if existing is not None:
            return existing, False
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _waitlist.insert().values(
                        email=entry.email,
                        name=entry.name,
                        service=entry.service.value,
                        user_id=entry.user_id,
                        created_at=now_iso(),
                    )
                )
                conn.commit()
                new_id = result.inserted_primary_key[0]
        except IntegrityError:
            # Concurrent join for the same pair won the insert.
            winner = self.get(entry.email, entry.service)
            if winner is None:
                raise
            return winner, False
        stored = self.get_by_id(new_id)
        return (stored if stored is not None else entry), True

    def get_by_id(self, entry_id: int) -> WaitlistEntry | None:
        with self.engine.connect() as conn:
            row = conn.execute(_waitlist.select().where(_waitlist.c.id == entry_id)).fetchone()
        return _row_to_entry(row) if row is not None else None

    def count(self, service: Optional[Property] = None) -> int:
        """Number of sign-ups for one service, or for all services when None."""
        query = select(func.count()).select_from(_waitlist)
        if service is not None:
            query = query.where(_waitlist.c.service == service.value)
        with self.engine.connect() as conn:
            result = conn.execute(query).scalar()
        return result or 0

    def close(self) -> None:
        self.engine.dispose()


def _row_to_entry(row) -> WaitlistEntry:
    return WaitlistEntry(
        id=row.id,
        email=row.email,
        name=row.name,
        service=Property(row.service),
        user_id=row.user_id,
        created_at=row.created_at,
    )
