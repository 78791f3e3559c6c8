"""
auth/tokens.py -- Password hashing, bearer token issue and verification.

Tokens are HS256 JWTs (python-jose) signed with SECRET_KEY. The payload holds
sub (username), user_id, role, iat and exp. Nothing is kept server-side, so
a token keeps the role it was issued with until exp passes; the lifetime is
TOKEN_EXPIRE_SECONDS.

Passwords are hashed with bcrypt at BCRYPT_ROUNDS. Login always pays for one
bcrypt comparison, against _DUMMY_HASH when the username is unknown, so the
response time does not tell a caller which usernames exist.

Imports only auth.models and core/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

from auth.models import ROLES, TokenClaims
from core.config import get_settings
from core.errors import InvalidTokenError, MissingTokenError

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("riskregister.auth")

# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"

# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    Callers keep plain within MAX_PASSWORD_BYTES of UTF-8; recent bcrypt
    releases raise ValueError past that.
    """
    salt = bcrypt.gensalt(rounds=_settings.bcrypt_rounds)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed hash or an over-long password on newer bcrypt releases.
        return False


# Hashed at import so the first unknown-user login costs the same as later ones.
_DUMMY_HASH: str = hash_password("riskregister_timing_dummy")


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


def create_access_token(user_id: str, username: str, role: str, expire_seconds: int = 0) -> str:
    """Encode a signed JWT asserting (user_id, username, role).

    Args:
        user_id:        User id stored in the DB.
        username:       Stored as the JWT subject claim.
        role:           "Admin", "Analyst" or "Viewer".
        expire_seconds: Lifetime in seconds. If 0 (default), uses
                        Settings.token_expire_seconds (24 hours).
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    issued = datetime.now(timezone.utc)
    payload = {
        "sub": username,
        "user_id": user_id,
        "role": role,
        "iat": issued,
        "exp": issued + timedelta(seconds=duration),
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def decode_access_token(token: str) -> dict | None:
    """Decode and verify a JWT. Returns the payload dict or None on any failure.

    Signature and expiry are checked by python-jose. A token whose role is
    not one of the known roles is rejected as well.
    """
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    if "user_id" not in payload or "sub" not in payload or "exp" not in payload:
        return None
    if payload.get("role") not in ROLES:
        return None
    return payload


def verify_token(authorization: str | None) -> TokenClaims:
    """Verify an Authorization header value and return the asserted claims.

    Raises:
        MissingTokenError: no header, or not a Bearer credential.
        InvalidTokenError: bad signature, malformed token, or expired.
    """
    scheme, _, credentials = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not credentials.strip():
        raise MissingTokenError()
    payload = decode_access_token(credentials.strip())
    if payload is None:
        raise InvalidTokenError()
    return TokenClaims(
        user_id=str(payload["user_id"]),
        username=str(payload["sub"]),
        role=payload["role"],
        expires_at=int(payload["exp"]),
    )


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


def authenticate_user(store: UserStore, username: str, password: str) -> User | None:
    """Return the User whose password matches, else None.

    Unknown usernames are checked against _DUMMY_HASH so both failure paths
    run bcrypt once.
    """
    user = store.get_by_username(username)
    if user is None:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user
