"""
api/main.py -- FastAPI application entry point for the risk register.

Serves the JSON API the browser front end and the CLI client talk to. Every
route lives under /api.

Run with:      python main.py serve
               uvicorn api.main:app --host 0.0.0.0 --port 3001

Host checking (ALLOWED_HOSTS), CORS for the browser origins in CORS_ORIGINS
and slowapi rate limits wrap every route; see the Middleware section.

Lifespan opens the risk store, the user store and the AI advisor on startup
and closes them on shutdown.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.openapi.docs import get_redoc_html, get_swagger_ui_html
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorResponse, HealthResponse
from api.routes.ai import router as ai_router
from api.routes.auth import router as auth_router
from api.routes.dashboard import router as dashboard_router
from api.routes.risks import router as risks_router
from auth.dependencies import get_current_claims
from auth.models import TokenClaims
from auth.store import UserStore
from core.advisor import RiskAdvisor
from core.config import get_settings
from core.errors import RiskRegisterError
from register.store import RiskStore

API_VERSION = "1.0.0"

_settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.DEBUG if _settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("riskregister.api")


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the stores and the advisor on startup and close them on shutdown.

    tests/conftest.py swaps this for a lifespan with in-memory stores and a
    mocked advisor.
    """
    logger.info("Risk register API starting up")
    app.state.risk_store = RiskStore()
    app.state.user_store = UserStore()
    app.state.advisor = RiskAdvisor()
    logger.info(
        "Stores initialized (%d users registered)",
        app.state.user_store.count_users(),
    )
    if not app.state.advisor.configured:
        logger.warning("GEMINI_API_KEY is empty; /api/ai routes will answer 500")

    yield

    app.state.advisor.close()
    app.state.risk_store.close()
    app.state.user_store.close()
    logger.info("Risk register API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Risk Register API",
    description="ISMS risk register: risk assessments, dashboard figures and AI-assisted suggestions.",
    version=API_VERSION,
    lifespan=lifespan,
    # Built-in /docs and /redoc are replaced by token-protected routes below.
    docs_url=None,
    redoc_url=None,
)

# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPIMiddleware reads the limiter from app.state.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Access log: one line per request with status and latency.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api", tags=["Auth"])
app.include_router(risks_router, prefix="/api", tags=["Risks"])
app.include_router(dashboard_router, prefix="/api", tags=["Dashboard"])
app.include_router(ai_router, prefix="/api", tags=["AI"])


# ---------------------------------------------------------------------------
# API docs (bearer token required)
# ---------------------------------------------------------------------------


@app.get("/docs", include_in_schema=False)
async def docs(claims: TokenClaims = Depends(get_current_claims)):
    """Swagger UI -- requires a bearer token."""
    return get_swagger_ui_html(openapi_url="/openapi.json", title="Risk Register API")


@app.get("/redoc", include_in_schema=False)
async def redoc(claims: TokenClaims = Depends(get_current_claims)):
    """ReDoc UI -- requires a bearer token."""
    return get_redoc_html(openapi_url="/openapi.json", title="Risk Register API")


# ---------------------------------------------------------------------------
# Exception handlers
#
# All of them answer with ErrorResponse: {"error": message, "code": code}.
# ---------------------------------------------------------------------------


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message, code=code).model_dump(),
    )


@app.exception_handler(RiskRegisterError)
async def domain_error_handler(request: Request, exc: RiskRegisterError) -> JSONResponse:
    """Translate a domain exception into its HTTP status and code."""
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    response = _error(exc.status_code, exc.code, exc.message)
    if exc.status_code == 401:
        response.headers["WWW-Authenticate"] = "Bearer"
    return response


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 plus a Retry-After header."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error(429, "rate_limited", "Too many requests.")
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 naming the first offending field.

    Missing or malformed input is a 400 across the API, the same status
    build_risk() produces for out-of-range values.
    """
    errors = exc.errors()
    message = "Request validation failed."
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg', 'invalid value')}" if field else first.get("msg", message)
    return _error(400, "validation_error", message)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Wrap framework HTTP errors (unknown route, wrong method) in the envelope."""
    return _error(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """A database failure fails the request, never the process."""
    logger.exception("Storage failure on %s %s", request.method, request.url.path)
    return _error(500, "storage_error", "The database is unavailable.")


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything else is a 500; the traceback goes to the log, not the client."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health
#
# Unauthenticated and not rate limited.
# ---------------------------------------------------------------------------


def _check(store) -> str:
    try:
        return "ok" if store.ping() else "error"
    except SQLAlchemyError as e:
        logger.warning("Health check failed for %s: %s", type(store).__name__, e)
        return "error"


@app.get("/api/health", response_model=HealthResponse, tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness, version and a per-component check."""
    components = {
        "risk_store": _check(request.app.state.risk_store),
        "user_store": _check(request.app.state.user_store),
        "ai": "configured" if request.app.state.advisor.configured else "not_configured",
    }
    degraded = "error" in components.values()
    return HealthResponse(status="degraded" if degraded else "ok", version=API_VERSION, components=components)
