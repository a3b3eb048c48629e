"""
tests/conftest.py -- Shared test fixtures for Exploree Accounts integration tests.

This module provides:
  - make_test_stores(): creates isolated in-memory DBs for accounts + waitlist
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: TestClient with an admin token for API integration tests
  - issue_token(): signs a token with the app's key (custom TTL / clock)

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.

The DEBUG env var must be set before any core/auth import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import os
import time
from collections.abc import Generator
from contextlib import asynccontextmanager
from typing import Callable, Optional

# CRITICAL: Set DEBUG before any auth/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from accounts.models import Account, Profile
from accounts.store import AccountStore
from api.main import app, init_state
from auth.config import AuthConfig
from auth.models import Role, TokenClaims
from auth.passwords import PasswordHasher
from auth.tokens import TokenCodec
from core.config import Settings, get_settings
from waitlist.store import WaitlistStore

ADMIN_EMAIL = "admin@exploree.test"
ADMIN_PASSWORD = "adminpass123"
SERVICE_KEY = "test-service-key-0123456789"

# bcrypt's minimum cost keeps the suite fast; production uses 10.
FAST_ROUNDS = 4


def make_settings(**overrides) -> Settings:
    """Return the cached dev settings with test-friendly overrides applied."""
    values = {"bcrypt_rounds": FAST_ROUNDS, "service_api_key": SERVICE_KEY}
    values.update(overrides)
    return get_settings().model_copy(update=values)


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def make_test_stores(db_suffix: str) -> tuple[AccountStore, WaitlistStore]:
    """Create isolated named shared-memory SQLite stores for test isolation.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state (e.g. 'auth', 'admin').
    """
    accounts_url = f"sqlite:///file:test_accounts_{db_suffix}?mode=memory&cache=shared&uri=true"
    waitlist_url = f"sqlite:///file:test_waitlist_{db_suffix}?mode=memory&cache=shared&uri=true"
    return AccountStore(accounts_url), WaitlistStore(waitlist_url)


def create_user(
    store: AccountStore,
    email: str,
    password: str,
    name: str = "Test User",
    role: Role = Role.USER,
    **account_fields,
) -> str:
    """Insert an account + profile directly through the store. Returns the id."""
    hasher = PasswordHasher(rounds=FAST_ROUNDS)
    account = Account(email=email, name=name, password_hash=hasher.hash(password), role=role, **account_fields)
    return store.create_account(account, Profile(full_name=name, email=email))


def issue_token(
    user_id: str,
    email: str,
    role: Role = Role.USER,
    name: str = "Test User",
    ttl_seconds: Optional[int] = None,
    clock: Callable[[], float] = time.time,
) -> str:
    """Sign a token with the same key the app verifies against."""
    codec = TokenCodec(AuthConfig.from_settings(get_settings()), clock=clock)
    return codec.issue(TokenClaims(sub=user_id, email=email, name=name, role=role), ttl_seconds=ttl_seconds)


def _patch_lifespan(account_store: AccountStore, waitlist_store: WaitlistStore, settings: Settings):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state so TestClient routes see
    isolated test DBs rather than the configured database.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        init_state(app, settings, account_store=account_store, waitlist_store=waitlist_store)
        yield

    return test_lifespan


def start_client(
    db_suffix: str, settings: Optional[Settings] = None
) -> tuple[TestClient, AccountStore, WaitlistStore]:
    """Build stores + patched lifespan and return a not-yet-entered TestClient."""
    account_store, waitlist_store = make_test_stores(db_suffix)
    app.router.lifespan_context = _patch_lifespan(account_store, waitlist_store, settings or make_settings())
    return TestClient(app, raise_server_exceptions=True, follow_redirects=False), account_store, waitlist_store


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, str, str], None, None]:
    """Yield (client, admin_token, admin_id) for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so
    tests hit real route handlers but use isolated in-memory stores.
    The admin is created before the client starts. Each test module gets
    its own database, named after the module.
    """
    client, account_store, waitlist_store = start_client(request.module.__name__.rsplit(".", 1)[-1])
    admin_id = create_user(account_store, ADMIN_EMAIL, ADMIN_PASSWORD, name="Test Admin", role=Role.SYSTEM_ADMIN)
    token = issue_token(admin_id, ADMIN_EMAIL, role=Role.SYSTEM_ADMIN, name="Test Admin")

    with client:
        yield client, token, admin_id

    account_store.close()
    waitlist_store.close()


@pytest.fixture(autouse=True)
def _fresh_cookies(request) -> None:
    """Start every API test without cookies left over from an earlier login."""
    if "api_client" in request.fixturenames:
        client, _token, _uid = request.getfixturevalue("api_client")
        client.cookies.clear()
