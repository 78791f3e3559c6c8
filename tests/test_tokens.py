"""
tests/test_tokens.py -- Unit tests for auth/tokens.py, auth/accounts.py and
the role checks in auth/dependencies.py.

Coverage:
  - bcrypt hash / verify, malformed hashes
  - JWT issue / decode, tampering, expiry, unknown role claim
  - verify_token(): missing vs invalid credentials
  - register(): validation, duplicate usernames
  - login(): uniform failure for unknown user and wrong password
  - authorize(): role allow-list
"""

from __future__ import annotations

from collections.abc import Generator
from datetime import datetime, timedelta, timezone

import pytest
from conftest import memory_url
from jose import jwt

from auth import accounts
from auth.dependencies import authorize
from auth.models import TokenClaims
from auth.store import UserStore
from auth.tokens import (
    authenticate_user,
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
    verify_token,
)
from core.config import get_settings
from core.errors import (
    InvalidCredentialsError,
    InvalidTokenError,
    MissingTokenError,
    PermissionDeniedError,
    UsernameTakenError,
    ValidationError,
)


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = UserStore(db_url=memory_url("tokens"))
    yield s
    s.close()


def _forge(**claims) -> str:
    now = datetime.now(timezone.utc)
    payload = {"sub": "mallory", "user_id": "u-1", "role": "Admin", "iat": now, "exp": now + timedelta(hours=1)}
    payload.update(claims)
    return jwt.encode(payload, get_settings().secret_key, algorithm="HS256")


class TestPasswords:
    def test_round_trip(self) -> None:
        hashed = hash_password("pw123")
        assert hashed != "pw123"
        assert verify_password("pw123", hashed)
        assert not verify_password("pw124", hashed)

    def test_salted(self) -> None:
        assert hash_password("same") != hash_password("same")

    def test_malformed_hash(self) -> None:
        assert verify_password("pw", "not-a-bcrypt-hash") is False


class TestJwt:
    def test_claims_round_trip(self) -> None:
        token = create_access_token("u-42", "alice", "Analyst")
        claims = verify_token(f"Bearer {token}")
        assert claims == TokenClaims(user_id="u-42", username="alice", role="Analyst", expires_at=claims.expires_at)

    def test_default_lifetime_is_24_hours(self) -> None:
        token = create_access_token("u-1", "alice", "Viewer")
        payload = decode_access_token(token)
        assert payload["exp"] - payload["iat"] == 24 * 60 * 60

    def test_custom_lifetime(self) -> None:
        payload = decode_access_token(create_access_token("u-1", "alice", "Viewer", expire_seconds=60))
        assert payload["exp"] - payload["iat"] == 60

    def test_tampered_token(self) -> None:
        viewer = create_access_token("u-1", "alice", "Viewer")
        admin = create_access_token("u-1", "alice", "Admin")
        head, _, sig = viewer.split(".")
        forged = ".".join([head, admin.split(".")[1], sig])
        assert decode_access_token(forged) is None

    def test_wrong_key(self) -> None:
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {"sub": "a", "user_id": "u", "role": "Admin", "exp": now + timedelta(hours=1)},
            "x" * 40,
            algorithm="HS256",
        )
        assert decode_access_token(token) is None

    def test_expired(self) -> None:
        past = datetime.now(timezone.utc) - timedelta(hours=1)
        assert decode_access_token(_forge(exp=past)) is None

    def test_unknown_role_rejected(self) -> None:
        assert decode_access_token(_forge(role="Root")) is None

    def test_missing_user_id_rejected(self) -> None:
        token = _forge()
        payload = jwt.decode(token, get_settings().secret_key, algorithms=["HS256"])
        del payload["user_id"]
        assert decode_access_token(jwt.encode(payload, get_settings().secret_key, algorithm="HS256")) is None


class TestVerifyToken:
    @pytest.mark.parametrize("header", [None, "", "Bearer", "Bearer   ", "Basic dXNlcjpwYXNz", "token-without-scheme"])
    def test_missing(self, header) -> None:
        with pytest.raises(MissingTokenError):
            verify_token(header)

    def test_invalid(self) -> None:
        with pytest.raises(InvalidTokenError):
            verify_token("Bearer not.a.jwt")

    def test_expired(self) -> None:
        with pytest.raises(InvalidTokenError):
            verify_token(f"Bearer {_forge(exp=datetime.now(timezone.utc) - timedelta(seconds=5))}")

    def test_scheme_is_case_insensitive(self) -> None:
        token = create_access_token("u-1", "alice", "Admin")
        assert verify_token(f"bearer {token}").username == "alice"


class TestAccounts:
    def test_register_then_login(self, store: UserStore) -> None:
        user, token = accounts.register(store, "alice", "pw123", "Admin")
        assert verify_token(f"Bearer {token}").user_id == user.id

        same, token2 = accounts.login(store, "alice", "pw123")
        assert same.id == user.id
        assert verify_token(f"Bearer {token2}").role == "Admin"

    def test_password_is_hashed(self, store: UserStore) -> None:
        accounts.register(store, "alice", "pw123", "Viewer")
        assert store.get_by_username("alice").hashed_password != "pw123"

    def test_unknown_role_rejected(self, store: UserStore) -> None:
        with pytest.raises(ValidationError):
            accounts.register(store, "alice", "pw123", "Superuser")
        assert store.count_users() == 0

    @pytest.mark.parametrize("username,password,role", [("", "pw", "Admin"), ("  ", "pw", "Admin"), ("a", "", "Admin"), ("a", "pw", "")])
    def test_blank_fields_rejected(self, store: UserStore, username: str, password: str, role: str) -> None:
        with pytest.raises(ValidationError):
            accounts.register(store, username, password, role)

    def test_duplicate_username(self, store: UserStore) -> None:
        accounts.register(store, "alice", "pw123", "Admin")
        with pytest.raises(UsernameTakenError):
            accounts.register(store, "alice", "other", "Viewer")
        assert store.count_users() == 1

    def test_password_limit_counts_bytes(self, store: UserStore) -> None:
        with pytest.raises(ValidationError):
            accounts.register(store, "alice", "é" * 37, "Viewer")
        assert store.count_users() == 0
        accounts.register(store, "bob", "é" * 36, "Viewer")
        assert accounts.login(store, "bob", "é" * 36)[0].username == "bob"

    def test_login_failures_are_uniform(self, store: UserStore) -> None:
        accounts.register(store, "alice", "pw123", "Admin")
        with pytest.raises(InvalidCredentialsError) as wrong_password:
            accounts.login(store, "alice", "wrong")
        with pytest.raises(InvalidCredentialsError) as unknown_user:
            accounts.login(store, "bob", "pw123")
        assert wrong_password.value.message == unknown_user.value.message
        assert wrong_password.value.code == unknown_user.value.code

    def test_authenticate_user(self, store: UserStore) -> None:
        accounts.register(store, "alice", "pw123", "Analyst")
        assert authenticate_user(store, "alice", "pw123").role == "Analyst"
        assert authenticate_user(store, "alice", "nope") is None
        assert authenticate_user(store, "nobody", "pw123") is None


class TestAuthorize:
    def _claims(self, role: str) -> TokenClaims:
        return TokenClaims(user_id="u", username="x", role=role, expires_at=0)

    def test_allowed(self) -> None:
        claims = self._claims("Analyst")
        assert authorize(claims, {"Admin", "Analyst"}) is claims

    @pytest.mark.parametrize("role", ["Viewer", "Analyst"])
    def test_denied(self, role: str) -> None:
        with pytest.raises(PermissionDeniedError):
            authorize(self._claims(role), {"Admin"})
