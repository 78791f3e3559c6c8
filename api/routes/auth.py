"""
api/routes/auth.py -- Registration, login and identity endpoints.

Routes:
  POST /api/auth/register   -- create an account; 201 {user, token}
  POST /api/auth/login      -- password login; 200 {user, token}
  GET  /api/auth/me         -- claims of the presented token (requires auth)

Security:
  register and login are rate-limited per client address (LOGIN_RATE_LIMIT).
  Login failures are uniform: same status, code and message whether the
  username or the password was wrong. See auth/accounts.py.
  Cache-Control: no-store on every response that carries a token.
  SELF_REGISTRATION_ENABLED=false closes registration (403).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.limiter import limiter
from api.models import AuthResponse, LoginRequest, MeResponse, RegisterRequest, UserOut
from auth import accounts
from auth.dependencies import get_current_claims
from auth.models import TokenClaims
from auth.store import UserStore
from core.config import get_settings
from core.errors import PermissionDeniedError

_settings = get_settings()

# Auth policy:
# - POST /api/auth/register: public (unless self-registration is disabled)
# - POST /api/auth/login:    public
# - GET  /api/auth/me:       any authenticated role
router = APIRouter()


@limiter.limit(_settings.login_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/register", response_model=AuthResponse, status_code=201)
def register(request: Request, response: Response, body: RegisterRequest) -> AuthResponse:
    """Create an account with the given role and return a token for it.

    A taken username is a 400 and leaves the user table unchanged.
    """
    if not _settings.self_registration_enabled:
        raise PermissionDeniedError("Self-registration is disabled on this server.")
    user_store: UserStore = request.app.state.user_store
    user, token = accounts.register(user_store, body.username, body.password, body.role.value)
    response.headers["Cache-Control"] = "no-store"
    return AuthResponse(user=UserOut.from_user(user), token=token)


@limiter.limit(_settings.login_rate_limit)
@router.post("/auth/login", response_model=AuthResponse)
def login(request: Request, response: Response, body: LoginRequest) -> AuthResponse:
    """Authenticate with username and password and return a fresh token.

    Uses accounts.login(), which goes through authenticate_user() and its
    timing equalization. Do NOT inline get_by_username() + verify_password().
    """
    user_store: UserStore = request.app.state.user_store
    user, token = accounts.login(user_store, body.username, body.password)
    response.headers["Cache-Control"] = "no-store"
    return AuthResponse(user=UserOut.from_user(user), token=token)


@router.get("/auth/me", response_model=MeResponse)
def me(claims: TokenClaims = Depends(get_current_claims)) -> MeResponse:
    """Return the identity asserted by the caller's token."""
    return MeResponse.from_claims(claims)
