"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in register/models.py -- dataclasses own domain shape; stores and routes do
the work.

Layer rule: no imports from api/, register/, or client/.
"""

from __future__ import annotations

from dataclasses import dataclass

# Closed set; registration rejects anything else.
ROLES: tuple[str, ...] = ("Admin", "Analyst", "Viewer")

# bcrypt rejects (or silently truncates) anything past 72 bytes of UTF-8.
MAX_PASSWORD_BYTES = 72


@dataclass
class User:
    """An account that can sign in to the register.

    username is unique and case-sensitive. hashed_password is a bcrypt hash;
    the plaintext is never stored or returned. Accounts are created by
    registration and never updated or deleted.
    """

    id: str
    username: str
    role: str  # "Admin", "Analyst", "Viewer"
    hashed_password: str
    created_at: str = ""


@dataclass(frozen=True)
class TokenClaims:
    """The identity asserted by a verified bearer token.

    role is taken from the token, not re-read from the store. A role change
    only takes effect once the user signs in again and receives a new token;
    until then the old token keeps its old role for at most its lifetime.
    """

    user_id: str
    username: str
    role: str
    expires_at: int  # Unix timestamp (JWT "exp")
