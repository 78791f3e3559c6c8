"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication and roles.

One auth method: the Authorization: Bearer <token> header. The token is
verified statelessly (signature + expiry); the store is not consulted, so the
role in the token is the role used for authorization.

get_current_claims() raises MissingTokenError / InvalidTokenError (401).
authorize() raises PermissionDeniedError (403).
require_roles(...) combines both into a dependency for a route.

Role matrix for the risk API:
    list risks, dashboard, AI suggestions   any authenticated role
    create / update risk                    Admin, Analyst
    delete risk                             Admin

Layer rule: no imports from api/, register/, or client/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

from fastapi import Request

from auth.models import TokenClaims
from auth.tokens import verify_token
from core.errors import PermissionDeniedError


def get_current_claims(request: Request) -> TokenClaims:
    """Require a valid bearer token and return its claims.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(claims: TokenClaims = Depends(get_current_claims)): ...
    """
    return verify_token(request.headers.get("Authorization"))


def authorize(claims: TokenClaims, allowed_roles: Iterable[str]) -> TokenClaims:
    """Return claims unchanged if their role is allowed, else raise PermissionDeniedError."""
    if claims.role not in set(allowed_roles):
        raise PermissionDeniedError()
    return claims


def require_roles(*roles: str) -> Callable[[Request], TokenClaims]:
    """Build a dependency that admits only the given roles.

    Raises 401 before 403: a request without a valid token never learns
    which roles the route accepts.

        @router.delete("/risks/{risk_id}")
        def route(claims: TokenClaims = Depends(require_roles("Admin"))): ...
    """

    def dependency(request: Request) -> TokenClaims:
        return authorize(get_current_claims(request), roles)

    return dependency
