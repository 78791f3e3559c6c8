"""
auth/accounts.py -- Registration and login.

Both operations return (User, token) so the API can hand the caller a usable
session in one round trip. They raise core.errors exceptions; the route layer
does no error translation of its own.

Login failures are deliberately uniform: an unknown username and a wrong
password produce the same InvalidCredentialsError with the same message, and
authenticate_user() equalizes their timing.

Layer rule: no imports from api/, register/, or client/.
"""

from __future__ import annotations

import logging

from auth.models import MAX_PASSWORD_BYTES, ROLES, User
from auth.store import UserStore
from auth.tokens import authenticate_user, create_access_token, hash_password
from core.errors import InvalidCredentialsError, ValidationError

logger = logging.getLogger("riskregister.auth")


def register(store: UserStore, username: str, password: str, role: str) -> tuple[User, str]:
    """Create an account and issue its first token.

    Raises:
        ValidationError:    a blank field, a role outside ROLES, or a password
                            longer than MAX_PASSWORD_BYTES.
        UsernameTakenError: the username is already registered (no row written).
    """
    if not username or not username.strip() or not password or not role:
        raise ValidationError("username, password and role are required.")
    if role not in ROLES:
        raise ValidationError(f"role must be one of: {', '.join(ROLES)}")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"password must be at most {MAX_PASSWORD_BYTES} bytes.")

    user = store.insert_user(username, hash_password(password), role)
    logger.info("Registered user %s with role %s", user.username, user.role)
    return user, create_access_token(user.id, user.username, user.role)


def login(store: UserStore, username: str, password: str) -> tuple[User, str]:
    """Check credentials and issue a fresh token.

    Raises InvalidCredentialsError for any failure. No token is issued.
    """
    user = authenticate_user(store, username, password)
    if user is None:
        logger.info("Failed login for %r", username[:64])
        raise InvalidCredentialsError()
    return user, create_access_token(user.id, user.username, user.role)
