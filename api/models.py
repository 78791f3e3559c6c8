"""
API request and response models for the risk register REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in register/models.py and
auth/models.py, which own the internal domain representation. Route handlers
map between the two.

JSON field names are camelCase (treatmentPlan, createdAt, updatedAt), the
names the browser front end has always used. populate_by_name lets Python
callers and tests use the snake_case attribute names as well.

Separation of concerns: register/ models = domain truth; api/ models = API contract.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from auth.models import MAX_PASSWORD_BYTES, TokenClaims, User
from register.models import Risk

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

RISK_ID_PATTERN = r"^[A-Za-z0-9_-]{1,64}$"


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RoleEnum(str, Enum):
    Admin = "Admin"
    Analyst = "Analyst"
    Viewer = "Viewer"


class RiskStatusEnum(str, Enum):
    Open = "Open"
    Mitigated = "Mitigated"
    Accepted = "Accepted"
    Transferred = "Transferred"
    Avoided = "Avoided"


class RiskLevelEnum(str, Enum):
    Low = "Low"
    Medium = "Medium"
    High = "High"
    Critical = "Critical"


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


def _strip(value):
    return value.strip() if isinstance(value, str) else value


def _password_fits_bcrypt(value: str) -> str:
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"must be at most {MAX_PASSWORD_BYTES} bytes of UTF-8")
    return value


class RegisterRequest(BaseModel):
    """Request body for POST /api/auth/register.

    role must be one of the three known roles. Anything else is a 400.
    The username is trimmed; the password is taken exactly as sent.
    """

    username: str = Field(min_length=1, max_length=64)
    password: str = Field(min_length=1)
    role: RoleEnum

    @field_validator("username", mode="before")
    @classmethod
    def trim_username(cls, value):
        return _strip(value)

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        return _password_fits_bcrypt(value)


class LoginRequest(BaseModel):
    """Request body for POST /api/auth/login. Normalized like RegisterRequest."""

    username: str = Field(min_length=1, max_length=64)
    password: str = Field(min_length=1)

    @field_validator("username", mode="before")
    @classmethod
    def trim_username(cls, value):
        return _strip(value)

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        return _password_fits_bcrypt(value)



class UserOut(BaseModel):
    """Public view of a user account. The password hash is never included."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str
    username: str
    role: str
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserOut":
        return cls(id=user.id, username=user.username, role=user.role, created_at=user.created_at)


class AuthResponse(BaseModel):
    """Response body for register and login: the account plus a bearer token."""

    model_config = ConfigDict(frozen=True)

    user: UserOut
    token: str


class MeResponse(BaseModel):
    """Response body for GET /api/auth/me -- the claims carried by the token."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    user_id: str
    username: str
    role: str
    expires_at: int

    @classmethod
    def from_claims(cls, claims: TokenClaims) -> "MeResponse":
        return cls(
            user_id=claims.user_id,
            username=claims.username,
            role=claims.role,
            expires_at=claims.expires_at,
        )


# ---------------------------------------------------------------------------
# Risks
# ---------------------------------------------------------------------------


class RiskCreate(BaseModel):
    """Request body for POST /api/risks.

    id is optional; the server assigns one when absent. score, level and the
    timestamps are accepted for compatibility with older clients but ignored:
    the server always derives them. Unknown fields are dropped.

    likelihood and impact are not range-checked here. Missing, null and zero
    mean "bottom of the scale"; build_risk() applies that and rejects values
    outside 1-5.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    id: Optional[str] = Field(default=None, pattern=RISK_ID_PATTERN)
    title: str = Field(max_length=200)
    asset: str = Field(default="", max_length=200)
    threat: str = Field(default="", max_length=2000)
    vulnerability: str = Field(default="", max_length=2000)
    likelihood: Optional[int] = None
    impact: Optional[int] = None
    owner: str = Field(default="", max_length=100)
    status: Optional[RiskStatusEnum] = None
    treatment_plan: str = Field(default="", max_length=5000)

    def editable_fields(self) -> dict:
        """Return the fields build_risk() consumes, with enums as plain strings."""
        return self.model_dump(mode="json", exclude={"id"})


class RiskUpdate(BaseModel):
    """Request body for PUT /api/risks/{id}.

    Every field is optional. Only fields present (and non-null) in the body
    are changed; see editable_fields().
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    title: Optional[str] = Field(default=None, max_length=200)
    asset: Optional[str] = Field(default=None, max_length=200)
    threat: Optional[str] = Field(default=None, max_length=2000)
    vulnerability: Optional[str] = Field(default=None, max_length=2000)
    likelihood: Optional[int] = None
    impact: Optional[int] = None
    owner: Optional[str] = Field(default=None, max_length=100)
    status: Optional[RiskStatusEnum] = None
    treatment_plan: Optional[str] = Field(default=None, max_length=5000)

    def editable_fields(self) -> dict:
        """Return only the fields the caller actually supplied."""
        return self.model_dump(mode="json", exclude_unset=True, exclude_none=True)


class RiskOut(BaseModel):
    """A risk as returned by every /api/risks endpoint."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str
    title: str
    asset: str
    threat: str
    vulnerability: str
    likelihood: int
    impact: int
    score: int
    level: RiskLevelEnum
    owner: str
    status: RiskStatusEnum
    treatment_plan: str
    created_at: str
    updated_at: str

    @classmethod
    def from_risk(cls, risk: Risk) -> "RiskOut":
        """Build a RiskOut from a register Risk dataclass.

        Factory Method: the mapping lives here, colocated with the output
        model, rather than scattered across route handlers.
        """
        return cls(
            id=risk.id,
            title=risk.title,
            asset=risk.asset,
            threat=risk.threat,
            vulnerability=risk.vulnerability,
            likelihood=risk.likelihood,
            impact=risk.impact,
            score=risk.score,
            level=risk.level,
            owner=risk.owner,
            status=risk.status,
            treatment_plan=risk.treatment_plan,
            created_at=risk.created_at,
            updated_at=risk.updated_at,
        )


class DeleteResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True


class DashboardResponse(BaseModel):
    """Response body for GET /api/dashboard.

    matrix is 5x5: matrix[impact - 1][likelihood - 1] is the number of risks
    in that cell of the heat map.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    total: int
    critical: int
    high: int
    mitigated: int
    by_level: dict[str, int]
    by_status: dict[str, int]
    matrix: list[list[int]]


# ---------------------------------------------------------------------------
# AI suggestions
# ---------------------------------------------------------------------------


class SuggestRequest(BaseModel):
    """Request body for POST /api/ai/suggest."""

    model_config = ConfigDict(str_strip_whitespace=True)

    asset: str = Field(min_length=1, max_length=200)
    context: str = Field(default="", max_length=2000)


class SuggestResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    threats: list[str]
    vulnerabilities: list[str]


class TreatmentRequest(BaseModel):
    """Request body for POST /api/ai/treatment."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=200)
    threat: str = Field(default="", max_length=2000)
    vulnerability: str = Field(default="", max_length=2000)


class TreatmentResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    plan: str


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Body of every non-2xx response: {"error": message, "code": code}."""

    model_config = ConfigDict(frozen=True)

    error: str
    code: str


class HealthResponse(BaseModel):
    """Response body for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str
    version: str
    components: dict[str, str] = Field(default_factory=dict)
