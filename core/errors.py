"""
core/errors.py -- Error taxonomy shared by the stores, the auth layer and the API.

Every domain failure is an exception carrying the HTTP status and the machine
code the API should answer with. Stores and services raise them; api/main.py
has one exception handler that turns any RiskRegisterError into the
{"error": message, "code": code} envelope. Nothing below api/ imports FastAPI.

    ValidationError          400  missing or malformed input
    InvalidCredentialsError  400  login failed (uniform for user and password)
    ConflictError            400  duplicate entity
      DuplicateKeyError             risk id already present
      UsernameTakenError            username already registered
    AuthError                401  no usable bearer token
      MissingTokenError             no Authorization: Bearer header
      InvalidTokenError             bad signature, malformed or expired
    PermissionDeniedError    403  valid token, role not allowed
    NotFoundError            404  entity absent
    UpstreamError            500  AI provider failure

Database failures stay SQLAlchemyError; api/main.py maps them to 500
storage_error.

Layer rule: core/ is the kernel. No imports from api/, auth/, register/, client/.
"""

from __future__ import annotations


class RiskRegisterError(Exception):
    """Base class for all expected, per-request failures."""

    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(RiskRegisterError):
    status_code = 400
    code = "validation_error"
    default_message = "Request validation failed."


class InvalidCredentialsError(RiskRegisterError):
    status_code = 400
    code = "invalid_credentials"
    default_message = "Invalid username or password."


class ConflictError(RiskRegisterError):
    status_code = 400
    code = "conflict"
    default_message = "The entity already exists."


class DuplicateKeyError(ConflictError):
    code = "duplicate_key"
    default_message = "A risk with that id already exists."


class UsernameTakenError(ConflictError):
    code = "username_taken"
    default_message = "A user with that username already exists."


class AuthError(RiskRegisterError):
    status_code = 401
    code = "unauthorized"
    default_message = "Authentication required."


class MissingTokenError(AuthError):
    code = "missing_token"
    default_message = "Authentication required."


class InvalidTokenError(AuthError):
    code = "invalid_token"
    default_message = "Invalid or expired token."


class PermissionDeniedError(RiskRegisterError):
    status_code = 403
    code = "forbidden"
    default_message = "Your role does not permit this action."


class NotFoundError(RiskRegisterError):
    status_code = 404
    code = "not_found"
    default_message = "Not found."


class UpstreamError(RiskRegisterError):
    status_code = 500
    code = "upstream_error"
    default_message = "The AI provider is unavailable."
