"""
tests/test_auth_routes.py -- Integration tests for the auth HTTP surface.

These tests exercise the full stack: FastAPI routing -> gateway dependency ->
UserStore -> response serialization and cookie handling. Mocking the gateway
would confirm the mock works, not the cookie scoping or status mapping.

Coverage:
  - POST /register: 200, duplicate 400, missing field 400
  - POST /login: access token in body, refresh cookie httpOnly + path-scoped,
    stored refresh token equals the cookie; wrong password 401 without cookie
  - POST /protected: Bearer access token required; expired/refresh-class 401
  - POST /refresh_token: no cookie -> empty token; rotation; replay -> empty;
    expired refresh token -> empty
  - POST /logout: cookie cleared; stored token revoked when Bearer presented
  - CORS preflight allows credentialed requests from the configured origin
  - /login is rate-limited: 429 with Retry-After once the limit is spent
  - routing 404/405 use the same error envelope as the auth routes
"""

from __future__ import annotations

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from auth.models import TokenClass
from auth.store import UserStore
from auth.tokens import create_access_token, create_refresh_token, decode_token
from core.config import get_settings
from conftest import TEST_EMAIL, TEST_PASSWORD, register_and_login

COOKIE = "refreshtoken"


def _set_cookie_headers(resp) -> list[str]:
    return resp.headers.get_list("set-cookie")


def _refresh_with(client: TestClient, token: str):
    """POST /refresh_token presenting exactly this refresh token and nothing from the jar."""
    client.cookies.clear()
    return client.post("/refresh_token", headers={"Cookie": f"{COOKIE}={token}"})


class TestRegister:
    def test_register(self, client: tuple[TestClient, UserStore]) -> None:
        test_client, store = client
        resp = test_client.post("/register", json={"email": TEST_EMAIL, "password": TEST_PASSWORD})
        assert resp.status_code == 200
        assert resp.json() == {"message": "User created"}
        assert store.find_by_email(TEST_EMAIL) is not None

    def test_register_duplicate(self, client: tuple[TestClient, UserStore]) -> None:
        test_client, store = client
        body = {"email": TEST_EMAIL, "password": TEST_PASSWORD}
        assert test_client.post("/register", json=body).status_code == 200
        resp = test_client.post("/register", json=body)
        assert resp.status_code == 400
        data = resp.json()
        assert data["code"] == "validation"
        assert data["error"] == "User already exists"

    def test_register_missing_password(self, client: tuple[TestClient, UserStore]) -> None:
        test_client, store = client
        resp = test_client.post("/register", json={"email": TEST_EMAIL})
        assert resp.status_code == 400
        assert resp.json()["code"] == "validation"
        assert store.find_by_email(TEST_EMAIL) is None


class TestLogin:
    def test_login_delivers_both_tokens(self, client: tuple[TestClient, UserStore]) -> None:
        test_client, store = client
        resp = register_and_login(test_client)

        data = resp.json()
        assert data["email"] == TEST_EMAIL
        claims = decode_token(data["accesstoken"], TokenClass.access)
        assert claims is not None

        refresh = resp.cookies.get(COOKIE)
        assert refresh
        assert store.find_by_id(claims.user_id).refresh_token == refresh
        assert resp.headers["cache-control"] == "no-store"

        [header] = [h for h in _set_cookie_headers(resp) if h.startswith(f"{COOKIE}=")]
        lowered = header.lower()
        assert "httponly" in lowered
        assert "path=/refresh_token" in lowered

    def test_login_returns_normalized_email(self, client: tuple[TestClient, UserStore]) -> None:
        test_client, _store = client
        test_client.post("/register", json={"email": TEST_EMAIL, "password": TEST_PASSWORD})
        resp = test_client.post("/login", json={"email": "  Alice@Example.COM", "password": TEST_PASSWORD})
        assert resp.status_code == 200
        assert resp.json()["email"] == TEST_EMAIL

    def test_login_wrong_password(self, client: tuple[TestClient, UserStore]) -> None:
        test_client, store = client
        test_client.post("/register", json={"email": TEST_EMAIL, "password": TEST_PASSWORD})
        resp = test_client.post("/login", json={"email": TEST_EMAIL, "password": "not-the-password"})
        assert resp.status_code == 401
        assert resp.json()["code"] == "authentication"
        assert _set_cookie_headers(resp) == []
        assert store.find_by_email(TEST_EMAIL).refresh_token is None

    def test_login_unknown_user(self, client: tuple[TestClient, UserStore]) -> None:
        test_client, _store = client
        resp = test_client.post("/login", json={"email": "ghost@example.com", "password": "whatever"})
        assert resp.status_code == 401
        assert "error" in resp.json()


class TestProtected:
    def test_with_fresh_access_token(self, client: tuple[TestClient, UserStore]) -> None:
        test_client, _store = client
        token = register_and_login(test_client).json()["accesstoken"]
        resp = test_client.post("/protected", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200
        assert resp.json() == {"data": "This is protected data."}

    def test_without_token(self, client: tuple[TestClient, UserStore]) -> None:
        test_client, _store = client
        resp = test_client.post("/protected")
        assert resp.status_code == 401
        data = resp.json()
        assert data["code"] == "token"
        assert data["error"]

    def test_with_expired_access_token(self, client: tuple[TestClient, UserStore]) -> None:
        test_client, _store = client
        expired = create_access_token(1, expires_delta=timedelta(seconds=-60))
        resp = test_client.post("/protected", headers={"Authorization": f"Bearer {expired}"})
        assert resp.status_code == 401

    def test_refresh_token_not_accepted_as_bearer(self, client: tuple[TestClient, UserStore]) -> None:
        test_client, _store = client
        refresh = register_and_login(test_client).cookies.get(COOKIE)
        resp = test_client.post("/protected", headers={"Authorization": f"Bearer {refresh}"})
        assert resp.status_code == 401


class TestRefresh:
    def test_no_cookie_gives_empty_token(self, client: tuple[TestClient, UserStore]) -> None:
        test_client, _store = client
        resp = test_client.post("/refresh_token")
        assert resp.status_code == 200
        assert resp.json() == {"accesstoken": ""}

    def test_rotation_and_replay(self, client: tuple[TestClient, UserStore]) -> None:
        test_client, store = client
        login = register_and_login(test_client)
        old_refresh = login.cookies.get(COOKIE)

        # The jar holds the cookie from /login and sends it to /refresh_token.
        resp = test_client.post("/refresh_token")
        assert resp.status_code == 200
        new_access = resp.json()["accesstoken"]
        new_refresh = resp.cookies.get(COOKIE)
        claims = decode_token(new_access, TokenClass.access)
        assert claims is not None
        assert new_refresh and new_refresh != old_refresh
        assert store.find_by_id(claims.user_id).refresh_token == new_refresh

        replay = _refresh_with(test_client, old_refresh)
        assert replay.status_code == 200
        assert replay.json() == {"accesstoken": ""}

        # The live token still works after the failed replay.
        again = _refresh_with(test_client, new_refresh)
        assert again.json()["accesstoken"]

    def test_expired_refresh_token(self, client: tuple[TestClient, UserStore]) -> None:
        test_client, store = client
        register_and_login(test_client)
        user = store.find_by_email(TEST_EMAIL)
        expired = create_refresh_token(user.id, expires_delta=timedelta(seconds=-60))
        store.set_refresh_token(user.id, expired)

        resp = _refresh_with(test_client, expired)
        assert resp.status_code == 200
        assert resp.json() == {"accesstoken": ""}

    def test_garbage_cookie(self, client: tuple[TestClient, UserStore]) -> None:
        test_client, _store = client
        resp = _refresh_with(test_client, "garbage")
        assert resp.json() == {"accesstoken": ""}


class TestLogout:
    def test_logout_with_bearer_revokes_session(self, client: tuple[TestClient, UserStore]) -> None:
        test_client, store = client
        login = register_and_login(test_client)
        access = login.json()["accesstoken"]
        refresh = login.cookies.get(COOKIE)

        resp = test_client.post("/logout", headers={"Authorization": f"Bearer {access}"})
        assert resp.status_code == 200
        assert resp.json() == {"message": "Logged out", "session_revoked": True}
        cleared = [h.lower() for h in _set_cookie_headers(resp) if h.startswith(f"{COOKIE}=")]
        assert cleared and "max-age=0" in cleared[0]
        assert "path=/refresh_token" in cleared[0]

        assert store.find_by_email(TEST_EMAIL).refresh_token is None
        assert _refresh_with(test_client, refresh).json() == {"accesstoken": ""}

    def test_logout_without_bearer(self, client: tuple[TestClient, UserStore]) -> None:
        test_client, store = client
        refresh = register_and_login(test_client).cookies.get(COOKIE)

        resp = test_client.post("/logout")
        assert resp.status_code == 200
        assert resp.json() == {"message": "Logged out", "session_revoked": False}
        assert any(h.startswith(f"{COOKIE}=") for h in _set_cookie_headers(resp))
        assert store.find_by_email(TEST_EMAIL).refresh_token == refresh


def test_cors_preflight_allows_credentials(client: tuple[TestClient, UserStore]) -> None:
    test_client, _store = client
    resp = test_client.options(
        "/refresh_token",
        headers={
            "Origin": "http://localhost:3000",
            "Access-Control-Request-Method": "POST",
        },
    )
    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "http://localhost:3000"
    assert resp.headers["access-control-allow-credentials"] == "true"


@pytest.fixture
def tight_login_limit(monkeypatch: pytest.MonkeyPatch):
    """Lower LOGIN_RATE_LIMIT to 3/minute with fresh counters."""
    monkeypatch.setattr(get_settings(), "login_rate_limit", "3/minute")
    limiter.reset()
    yield
    limiter.reset()


def test_login_rate_limited(client: tuple[TestClient, UserStore], tight_login_limit) -> None:
    test_client, _store = client
    test_client.post("/register", json={"email": TEST_EMAIL, "password": TEST_PASSWORD})
    body = {"email": TEST_EMAIL, "password": "not-the-password"}

    statuses = [test_client.post("/login", json=body).status_code for _ in range(3)]
    assert statuses == [401, 401, 401]

    resp = test_client.post("/login", json=body)
    assert resp.status_code == 429
    assert resp.json()["code"] == "rate_limited"
    assert int(resp.headers["Retry-After"]) > 0


def test_unknown_route_uses_error_envelope(client: tuple[TestClient, UserStore]) -> None:
    test_client, _store = client
    resp = test_client.get("/no-such-route")
    assert resp.status_code == 404
    assert resp.json() == {"error": "Not Found", "code": "http_404"}


def test_wrong_method_uses_error_envelope(client: tuple[TestClient, UserStore]) -> None:
    test_client, _store = client
    resp = test_client.get("/login")
    assert resp.status_code == 405
    assert resp.json()["code"] == "http_405"
