"""
client/api.py -- One function per risk register endpoint.

Failures are raised as one of three exceptions so callers can react by kind
rather than by status code:

    ConnectionFailed     the server could not be reached (retryable)
    AuthorizationFailed  401 or 403 -- token missing, expired or role too low
    RequestFailed        any other non-2xx; .message is the server's "error"

Risks come back as register.models.Risk dataclasses, so the client and the
server share one definition of a risk and one scoring module.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

import requests

from client.session import ApiSession
from register.models import Risk

logger = logging.getLogger("riskregister.client")

# snake_case attribute -> camelCase JSON name, for the fields that differ.
_WIRE_NAMES = {
    "treatment_plan": "treatmentPlan",
    "created_at": "createdAt",
    "updated_at": "updatedAt",
}


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ClientError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class ConnectionFailed(ClientError):
    pass


class AuthorizationFailed(ClientError):
    pass


class RequestFailed(ClientError):
    pass


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


def _error_message(resp) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or f"HTTP {resp.status_code}"
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return f"HTTP {resp.status_code}"


def _call(session: ApiSession, method: str, path: str, body: Optional[dict] = None) -> Any:
    try:
        resp = session.request(method, path, body)
    except requests.RequestException as e:
        logger.warning("%s %s failed: %s", method, path, e)
        raise ConnectionFailed(f"Cannot reach the risk register at {session.base_url}.") from e

    if resp.status_code in (401, 403):
        raise AuthorizationFailed(_error_message(resp), resp.status_code)
    if resp.status_code >= 400:
        raise RequestFailed(_error_message(resp), resp.status_code)
    return resp.json()


def to_wire(fields: Mapping[str, Any]) -> dict:
    """Rename snake_case risk fields to the JSON names the API uses."""
    return {_WIRE_NAMES.get(k, k): v for k, v in fields.items()}


def risk_from_json(data: Mapping[str, Any]) -> Risk:
    return Risk(
        id=data["id"],
        title=data["title"],
        likelihood=int(data["likelihood"]),
        impact=int(data["impact"]),
        score=int(data["score"]),
        level=data["level"],
        created_at=data["createdAt"],
        updated_at=data["updatedAt"],
        asset=data.get("asset", ""),
        threat=data.get("threat", ""),
        vulnerability=data.get("vulnerability", ""),
        owner=data.get("owner", ""),
        status=data.get("status", "Open"),
        treatment_plan=data.get("treatmentPlan", ""),
    )


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


def register(session: ApiSession, username: str, password: str, role: str) -> dict:
    """Create an account and sign the session in as it. Returns the user."""
    data = _call(session, "POST", "auth/register", {"username": username, "password": password, "role": role})
    session.sign_in(data["user"], data["token"])
    return data["user"]


def login(session: ApiSession, username: str, password: str) -> dict:
    """Sign the session in. Returns the user."""
    data = _call(session, "POST", "auth/login", {"username": username, "password": password})
    session.sign_in(data["user"], data["token"])
    return data["user"]


def me(session: ApiSession) -> dict:
    return _call(session, "GET", "auth/me")


# ---------------------------------------------------------------------------
# Risks
# ---------------------------------------------------------------------------


def list_risks(session: ApiSession) -> list[Risk]:
    return [risk_from_json(r) for r in _call(session, "GET", "risks")]


def create_risk(session: ApiSession, fields: Mapping[str, Any]) -> Risk:
    return risk_from_json(_call(session, "POST", "risks", to_wire(fields)))


def update_risk(session: ApiSession, risk_id: str, fields: Mapping[str, Any]) -> Risk:
    return risk_from_json(_call(session, "PUT", f"risks/{risk_id}", to_wire(fields)))


def delete_risk(session: ApiSession, risk_id: str) -> None:
    _call(session, "DELETE", f"risks/{risk_id}")


def dashboard(session: ApiSession) -> dict:
    return _call(session, "GET", "dashboard")


# ---------------------------------------------------------------------------
# AI suggestions and health
# ---------------------------------------------------------------------------


def suggest(session: ApiSession, asset: str, context: str = "") -> dict:
    """Return {"threats": [...], "vulnerabilities": [...]}."""
    return _call(session, "POST", "ai/suggest", {"asset": asset, "context": context})


def treatment_plan(session: ApiSession, title: str, threat: str = "", vulnerability: str = "") -> str:
    data = _call(session, "POST", "ai/treatment", {"title": title, "threat": threat, "vulnerability": vulnerability})
    return data["plan"]


def health(session: ApiSession) -> dict:
    return _call(session, "GET", "health")
