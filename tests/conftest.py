"""
tests/conftest.py -- Shared test fixtures for TokenGate.

This module provides:
  - memory_store / gateway: in-process CredentialStore and an AuthGateway over it
  - sql_store: UserStore on a private in-memory SQLite database
  - client: TestClient over the real app with the lifespan patched to use an
    isolated named shared-memory SQLite UserStore

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
the client fixture because TestClient runs sync route handlers in a thread
pool. Plain :memory: DBs are per-connection and would present a blank schema
to each worker thread.

Environment must be set before any application import: DEBUG=true makes
get_settings() generate throwaway signing secrets, ALLOWED_HOSTS admits the
TestClient's "testserver" host, and the login rate limit is raised so the
suite never trips it.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver"]')
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.memory_store import InMemoryUserStore
from auth.service import AuthGateway
from auth.store import UserStore

TEST_EMAIL = "alice@example.com"
TEST_PASSWORD = "correct horse battery"


# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def memory_store() -> InMemoryUserStore:
    return InMemoryUserStore()


@pytest.fixture
def gateway(memory_store: InMemoryUserStore) -> AuthGateway:
    return AuthGateway(memory_store)


@pytest.fixture
def sql_store() -> Generator[UserStore, None, None]:
    store = UserStore("sqlite:///:memory:")
    yield store
    store.close()


# ---------------------------------------------------------------------------
# Integration fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(store: UserStore):
    """Return a lifespan that wires the given store into app.state instead of the real DB."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = store
        app.state.gateway = AuthGateway(store)
        yield

    return test_lifespan


@pytest.fixture
def client() -> Generator[tuple[TestClient, UserStore], None, None]:
    """Yield (client, store) backed by a fresh shared-memory database per test."""
    store = UserStore(f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true")
    app.router.lifespan_context = _patch_lifespan(store)

    with TestClient(app, raise_server_exceptions=True) as test_client:
        yield test_client, store

    store.close()


def register_and_login(test_client: TestClient, email: str = TEST_EMAIL, password: str = TEST_PASSWORD):
    """Register a user and log in. Returns the /login response."""
    resp = test_client.post("/register", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    resp = test_client.post("/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return resp
