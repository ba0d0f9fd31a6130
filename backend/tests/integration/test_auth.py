"""Integration tests: authentication endpoints."""
import pytest

from tests.conftest import PASSWORD, login_headers

pytestmark = pytest.mark.asyncio


# ─── POST /auth/register ──────────────────────────────────────────────────────

async def test_register_creates_pending_account(client):
    resp = await client.post(
        "/api/v1/auth/register", json={"username": "bravo", "password": "senha123"}
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    assert body["user"]["role"] == "pending"
    assert body["user"]["role_label"] == "Pendente"
    assert "password_hash" not in body["user"]


async def test_register_duplicate_returns_409(client):
    payload = {"username": "bravo", "password": "senha123"}
    await client.post("/api/v1/auth/register", json=payload)
    resp = await client.post("/api/v1/auth/register", json=payload)
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "AUTH_006"


async def test_register_rejects_short_username(client):
    resp = await client.post("/api/v1/auth/register", json={"username": "ab", "password": "x"})
    assert resp.status_code == 422


# ─── POST /auth/login ─────────────────────────────────────────────────────────

async def test_login_success(client, owner):
    resp = await client.post(
        "/api/v1/auth/login", json={"username": "owner", "password": PASSWORD}
    )
    assert resp.status_code == 200
    body = resp.json()
    assert "access_token" in body
    assert "refresh_token" in body
    assert body["token_type"] == "bearer"
    assert body["user"]["role"] == "admin"


async def test_login_wrong_password(client, owner):
    resp = await client.post(
        "/api/v1/auth/login", json={"username": "owner", "password": "wrongpassword"}
    )
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "AUTH_001"


async def test_login_unknown_user(client):
    resp = await client.post(
        "/api/v1/auth/login", json={"username": "ghost", "password": "irrelevant"}
    )
    assert resp.status_code == 401


async def test_login_pending_account_is_forbidden(client):
    await client.post("/api/v1/auth/register", json={"username": "bravo", "password": "senha123"})
    resp = await client.post(
        "/api/v1/auth/login", json={"username": "bravo", "password": "senha123"}
    )
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "AUTH_005"


# ─── Session lifecycle ────────────────────────────────────────────────────────

async def test_me_requires_token(client):
    resp = await client.get("/api/v1/auth/me")
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "AUTH_003"


async def test_me_rejects_garbage_token(client):
    resp = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


async def test_me_returns_profile(client, owner_headers):
    resp = await client.get("/api/v1/auth/me", headers=owner_headers)
    assert resp.status_code == 200
    assert resp.json()["username"] == "owner"
    assert resp.json()["role_label"] == "Administrador"


async def test_refresh_returns_new_access_token(client, owner):
    login = await client.post(
        "/api/v1/auth/login", json={"username": "owner", "password": PASSWORD}
    )
    refresh_token = login.json()["refresh_token"]

    resp = await client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token})
    assert resp.status_code == 200
    new_access = resp.json()["access_token"]
    me = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {new_access}"})
    assert me.status_code == 200


async def test_access_token_cannot_refresh(client, owner):
    login = await client.post(
        "/api/v1/auth/login", json={"username": "owner", "password": PASSWORD}
    )
    resp = await client.post(
        "/api/v1/auth/refresh", json={"refresh_token": login.json()["access_token"]}
    )
    assert resp.status_code == 401


async def test_logout_ends_session(client, owner):
    login = await client.post(
        "/api/v1/auth/login", json={"username": "owner", "password": PASSWORD}
    )
    tokens = login.json()
    headers = {"Authorization": f"Bearer {tokens['access_token']}"}

    assert (await client.post("/api/v1/auth/logout", headers=headers)).status_code == 204

    me = await client.get("/api/v1/auth/me", headers=headers)
    assert me.status_code == 401
    assert me.json()["error"]["code"] == "AUTH_007"
    refresh = await client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert refresh.status_code == 401


async def test_logout_leaves_other_sessions(client, owner):
    first = await login_headers(client, "owner")
    second = await login_headers(client, "owner")

    await client.post("/api/v1/auth/logout", headers=first)
    assert (await client.get("/api/v1/auth/me", headers=second)).status_code == 200


async def test_activity_heartbeat(client, owner_headers):
    resp = await client.post("/api/v1/auth/activity", headers=owner_headers)
    assert resp.status_code == 200
    assert resp.json()["last_activity"] is not None


# ─── GET /auth/permissions ────────────────────────────────────────────────────

async def test_permissions_for_oficial(client, oficial_headers):
    resp = await client.get("/api/v1/auth/permissions", headers=oficial_headers)
    assert resp.status_code == 200
    assert resp.json() == {
        "is_owner": False,
        "is_admin": False,
        "can_create_records": True,
        "can_edit_records": True,
        "can_delete_records": False,
        "can_view_all_records": True,
        "can_manage_users": False,
    }


# ─── Ambient endpoints ────────────────────────────────────────────────────────

async def test_responses_carry_correlation_id(client):
    resp = await client.get("/api/v1/auth/me", headers={"X-Correlation-ID": "abc-123"})
    assert resp.headers["X-Correlation-ID"] == "abc-123"
    assert resp.headers["X-Content-Type-Options"] == "nosniff"


async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["webhook"] == "disabled"


async def test_metrics(client):
    resp = await client.get("/metrics")
    assert resp.status_code == 200
    assert "http_request_duration_seconds" in resp.text
