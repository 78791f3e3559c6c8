"""
tests/conftest.py -- Shared test fixtures for the risk register integration tests.

This module provides:
  - _make_test_stores(): creates isolated in-memory DBs for risks + users
  - _patch_lifespan(): wires test stores and a mocked advisor into app.state,
    bypassing real startup
  - api_client: TestClient plus one JWT per role for API integration tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

Environment must be set before any project import: DEBUG so get_settings()
auto-generates SECRET_KEY, a low bcrypt cost so hashing is fast, and rate
limiting off so repeated logins are never throttled.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from unittest.mock import MagicMock

# CRITICAL: Set before any auth/core import -- get_settings() is cached on first call.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ["RATE_LIMIT_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.store import UserStore
from auth.tokens import create_access_token, hash_password
from core.advisor import RiskAdvisor
from register.store import RiskStore

PASSWORD = "testpass123"

# role -> username of the account the api_client fixture creates
TEST_USERS = {
    "Admin": "testadmin",
    "Analyst": "testanalyst",
    "Viewer": "testviewer",
}


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def memory_url(name: str) -> str:
    """Return a named shared-memory SQLite URL unique to this call."""
    return f"sqlite:///file:test_{name}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


def _make_test_stores(db_suffix: str) -> tuple[RiskStore, UserStore]:
    """Create isolated named shared-memory SQLite stores for test isolation.

    Args:
        db_suffix: Label included in the DB names (e.g. 'api', 'client').
    """
    return RiskStore(db_url=memory_url(f"risks_{db_suffix}")), UserStore(db_url=memory_url(f"users_{db_suffix}"))


def _patch_lifespan(risk_store: RiskStore, user_store: UserStore, advisor):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state so TestClient routes see
    isolated test DBs rather than the real database file. The advisor is a
    mock so no test ever calls the real provider.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.risk_store = risk_store
        app.state.user_store = user_store
        app.state.advisor = advisor
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, dict[str, str], MagicMock], None, None]:
    """Yield (client, tokens, advisor) for API integration tests.

    tokens maps each role ("Admin", "Analyst", "Viewer") to a JWT for the
    matching TEST_USERS account; every account's password is PASSWORD.
    advisor is a MagicMock with RiskAdvisor's interface; tests set its
    return values and side effects.
    """
    risk_store, user_store = _make_test_stores("api")

    tokens: dict[str, str] = {}
    for role, username in TEST_USERS.items():
        user = user_store.insert_user(username, hash_password(PASSWORD), role)
        tokens[role] = create_access_token(user.id, user.username, user.role, expire_seconds=3600)

    advisor = MagicMock(spec=RiskAdvisor)
    advisor.configured = True

    app.router.lifespan_context = _patch_lifespan(risk_store, user_store, advisor)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, tokens, advisor

    risk_store.close()
    user_store.close()


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
