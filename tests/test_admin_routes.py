"""
tests/test_admin_routes.py -- Integration tests for /api/admin/* endpoints.

Coverage:
  - access control: 401 without token, 401 with expired token, 403 for USER
  - user listing: stats block, pagination, search, ignored unknown filters, sorting
  - create/get/patch/delete with ADMIN_ACTION audit entries
  - lock-out guards: no self-deletion, no self status change (both 400)
  - stats and activity-log endpoints
"""

from __future__ import annotations

import time

import pytest
from conftest import ADMIN_EMAIL, create_user, issue_token

from accounts.models import AccountStatus, ActivityType
from auth.models import Role


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _admin_actions(client, admin_id: str) -> list:
    entries, _ = client.app.state.account_store.list_activity(
        user_id=admin_id, activity_type=ActivityType.ADMIN_ACTION, limit=100
    )
    return entries


# ---------------------------------------------------------------------------
# Access control
# ---------------------------------------------------------------------------


class TestAccessControl:
    """Every admin route rejects missing, expired and non-admin tokens."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/admin/users"),
            ("POST", "/api/admin/users"),
            ("GET", "/api/admin/users/some-id"),
            ("PATCH", "/api/admin/users/some-id"),
            ("DELETE", "/api/admin/users/some-id"),
            ("GET", "/api/admin/stats"),
            ("GET", "/api/admin/activity-logs"),
        ],
    )
    def test_no_token_is_401(self, api_client, method, path):
        client, _, _ = api_client
        resp = client.request(method, path)
        assert resp.status_code == 401, f"{method} {path} -> {resp.status_code}: {resp.text}"

    def test_expired_token_is_401(self, api_client):
        client, _, admin_id = api_client
        expired = issue_token(
            admin_id, ADMIN_EMAIL, role=Role.SYSTEM_ADMIN, ttl_seconds=60, clock=lambda: time.time() - 3600
        )
        resp = client.get("/api/admin/users", headers=_bearer(expired))
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "invalid_token"

    def test_user_role_is_403(self, api_client):
        client, _, _ = api_client
        user_id = create_user(client.app.state.account_store, "plain.user@example.com", "pw")
        resp = client.get("/api/admin/stats", headers=_bearer(issue_token(user_id, "plain.user@example.com")))
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "forbidden"


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class TestUserManagement:
    """CRUD on /api/admin/users."""

    def test_create_user(self, api_client):
        client, token, admin_id = api_client
        resp = client.post(
            "/api/admin/users",
            json={
                "name": "Created",
                "email": "Created@Example.com",
                "password": "pw-123",
                "role": "SYSTEM_ADMIN",
                "forcePasswordReset": True,
                "company": "Exploree",
            },
            headers=_bearer(token),
        )
        assert resp.status_code == 201, resp.text
        user = resp.json()["user"]
        assert user["email"] == "created@example.com"
        assert user["role"] == "SYSTEM_ADMIN"
        assert user["forcePasswordReset"] is True
        assert user["profile"]["company"] == "Exploree"
        targets = [e.metadata.get("targetUserId") for e in _admin_actions(client, admin_id)]
        assert user["id"] in targets

    def test_create_duplicate_email(self, api_client):
        client, token, _ = api_client
        resp = client.post(
            "/api/admin/users",
            json={"name": "Again", "email": ADMIN_EMAIL, "password": "pw"},
            headers=_bearer(token),
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "email_exists"

    def test_create_invalid_role(self, api_client):
        client, token, _ = api_client
        resp = client.post(
            "/api/admin/users",
            json={"name": "X", "email": "badrole@example.com", "password": "pw", "role": "ROOT"},
            headers=_bearer(token),
        )
        assert resp.status_code == 400

    def test_get_user(self, api_client):
        client, token, _ = api_client
        user_id = create_user(client.app.state.account_store, "get.me@example.com", "pw", name="Get Me")
        resp = client.get(f"/api/admin/users/{user_id}", headers=_bearer(token))
        assert resp.status_code == 200
        assert resp.json()["user"]["profile"]["fullName"] == "Get Me"

    def test_get_unknown_user(self, api_client):
        client, token, _ = api_client
        assert client.get("/api/admin/users/does-not-exist", headers=_bearer(token)).status_code == 404

    def test_patch_user(self, api_client):
        client, token, admin_id = api_client
        store = client.app.state.account_store
        user_id = create_user(store, "patch.target@example.com", "pw")
        resp = client.patch(
            f"/api/admin/users/{user_id}",
            json={"status": "SUSPENDED", "role": "SYSTEM_ADMIN", "phoneNumber": "+254711000000"},
            headers=_bearer(token),
        )
        assert resp.status_code == 200, resp.text
        user = resp.json()["user"]
        assert user["status"] == "SUSPENDED"
        assert user["role"] == "SYSTEM_ADMIN"
        assert user["profile"]["phoneNumber"] == "+254711000000"
        assert store.get_by_id(user_id).status is AccountStatus.SUSPENDED
        assert any(e.metadata.get("targetUserId") == user_id for e in _admin_actions(client, admin_id))

    def test_patch_password_then_login(self, api_client):
        client, token, _ = api_client
        user_id = create_user(client.app.state.account_store, "reset.me@example.com", "old")
        client.patch(
            f"/api/admin/users/{user_id}",
            json={"password": "fresh", "forcePasswordReset": True},
            headers=_bearer(token),
        )
        resp = client.post("/api/auth/login", json={"email": "reset.me@example.com", "password": "fresh"})
        assert resp.status_code == 200
        assert resp.json()["user"]["forcePasswordReset"] is True

    def test_patch_duplicate_email(self, api_client):
        client, token, _ = api_client
        user_id = create_user(client.app.state.account_store, "rename.me@example.com", "pw")
        resp = client.patch(f"/api/admin/users/{user_id}", json={"email": ADMIN_EMAIL}, headers=_bearer(token))
        assert resp.status_code == 400

    def test_patch_unknown_user(self, api_client):
        client, token, _ = api_client
        resp = client.patch("/api/admin/users/missing", json={"name": "X"}, headers=_bearer(token))
        assert resp.status_code == 404

    def test_cannot_change_own_status(self, api_client):
        client, token, admin_id = api_client
        resp = client.patch(f"/api/admin/users/{admin_id}", json={"status": "INACTIVE"}, headers=_bearer(token))
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "self_status_change"
        assert client.app.state.account_store.get_by_id(admin_id).status is AccountStatus.ACTIVE

    def test_can_change_own_name(self, api_client):
        client, token, admin_id = api_client
        resp = client.patch(f"/api/admin/users/{admin_id}", json={"name": "Test Admin"}, headers=_bearer(token))
        assert resp.status_code == 200

    def test_cannot_delete_self(self, api_client):
        client, token, admin_id = api_client
        resp = client.delete(f"/api/admin/users/{admin_id}", headers=_bearer(token))
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "self_deletion"
        assert client.app.state.account_store.get_by_id(admin_id) is not None

    def test_delete_user(self, api_client):
        client, token, admin_id = api_client
        store = client.app.state.account_store
        user_id = create_user(store, "delete.me@example.com", "pw")
        resp = client.delete(f"/api/admin/users/{user_id}", headers=_bearer(token))
        assert resp.status_code == 200
        assert resp.json()["success"] is True
        assert store.get_by_id(user_id) is None
        assert store.get_profile(user_id) is None
        assert any(e.metadata.get("targetUserId") == user_id for e in _admin_actions(client, admin_id))

    def test_delete_unknown_user(self, api_client):
        client, token, _ = api_client
        assert client.delete("/api/admin/users/missing", headers=_bearer(token)).status_code == 404


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


class TestUserListing:
    """GET /api/admin/users search, filters, sorting and stats."""

    def test_list_shape(self, api_client):
        client, token, _ = api_client
        resp = client.get("/api/admin/users", headers=_bearer(token))
        assert resp.status_code == 200
        data = resp.json()
        assert set(data) == {"users", "pagination", "stats"}
        assert set(data["pagination"]) == {"page", "limit", "total", "totalPages"}
        assert set(data["stats"]) == {"total", "active", "inactive", "suspended", "admins", "newToday"}
        assert data["stats"]["admins"] >= 1
        assert data["stats"]["newToday"] >= 1

    def test_search(self, api_client):
        client, token, _ = api_client
        create_user(client.app.state.account_store, "zebra.search@example.com", "pw", name="Zebra Search")
        resp = client.get("/api/admin/users", params={"search": "zebra"}, headers=_bearer(token))
        emails = [u["email"] for u in resp.json()["users"]]
        assert emails == ["zebra.search@example.com"]

    def test_unknown_filters_are_ignored(self, api_client):
        client, token, _ = api_client
        everyone = client.get("/api/admin/users", headers=_bearer(token)).json()["pagination"]["total"]
        resp = client.get("/api/admin/users", params={"role": "ROOT", "status": "GONE"}, headers=_bearer(token))
        assert resp.status_code == 200
        assert resp.json()["pagination"]["total"] == everyone

    def test_role_filter(self, api_client):
        client, token, _ = api_client
        resp = client.get("/api/admin/users", params={"role": "SYSTEM_ADMIN"}, headers=_bearer(token))
        assert all(u["role"] == "SYSTEM_ADMIN" for u in resp.json()["users"])

    def test_sort_and_limit(self, api_client):
        client, token, _ = api_client
        store = client.app.state.account_store
        create_user(store, "aaa.sort@example.com", "pw", name="Aaa Sort")
        create_user(store, "bbb.sort@example.com", "pw", name="Bbb Sort")
        resp = client.get(
            "/api/admin/users",
            params={"search": ".sort@", "sortBy": "name", "sortOrder": "asc", "limit": 1},
            headers=_bearer(token),
        )
        data = resp.json()
        assert [u["name"] for u in data["users"]] == ["Aaa Sort"]
        assert data["pagination"] == {"page": 1, "limit": 1, "total": 2, "totalPages": 2}

    def test_limit_clamped(self, api_client):
        client, token, _ = api_client
        resp = client.get("/api/admin/users", params={"limit": 5000}, headers=_bearer(token))
        assert resp.json()["pagination"]["limit"] == 100


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------


class TestReporting:
    """GET /api/admin/stats and /api/admin/activity-logs."""

    def test_stats_shape(self, api_client):
        client, token, _ = api_client
        create_user(client.app.state.account_store, "stats.login@example.com", "pw", force_password_reset=True)
        client.post("/api/auth/login", json={"email": "stats.login@example.com", "password": "pw"})
        resp = client.get("/api/admin/stats", headers=_bearer(token))
        assert resp.status_code == 200, resp.text
        data = resp.json()
        users = data["users"]
        assert users["total"] == users["active"] + users["inactive"] + users["suspended"]
        assert users["regularUsers"] == users["total"] - users["admins"]
        assert data["growth"]["today"] <= data["growth"]["thisWeek"] <= data["growth"]["thisMonth"]
        assert data["activity"]["loginsToday"] >= 1
        assert data["activity"]["loginsThisWeek"] >= data["activity"]["loginsToday"]
        assert len(data["activity"]["recentActivities"]) <= 10
        assert data["alerts"]["usersNeedingPasswordReset"] >= 1

    def test_activity_logs_embed_user(self, api_client):
        client, token, _ = api_client
        create_user(client.app.state.account_store, "logs.user@example.com", "pw", name="Logs User")
        client.post("/api/auth/login", json={"email": "logs.user@example.com", "password": "pw"})
        resp = client.get("/api/admin/activity-logs", params={"type": "LOGIN"}, headers=_bearer(token))
        assert resp.status_code == 200
        logs = resp.json()["logs"]
        assert logs
        assert all(log["type"] == "LOGIN" for log in logs)
        mine = [log for log in logs if log["user"] and log["user"]["email"] == "logs.user@example.com"]
        assert mine[0]["user"] == {"name": "Logs User", "email": "logs.user@example.com", "role": "USER"}

    def test_activity_logs_filter_by_user(self, api_client):
        client, token, admin_id = api_client
        resp = client.get(
            "/api/admin/activity-logs", params={"userId": admin_id, "limit": 5}, headers=_bearer(token)
        )
        data = resp.json()
        assert all(log["userId"] == admin_id for log in data["logs"])
        assert data["pagination"]["limit"] == 5
