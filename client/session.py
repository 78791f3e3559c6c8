"""
client/session.py -- An explicit, per-user connection to the risk register API.

The bearer token lives on the ApiSession instance, never in module state, so
any number of sessions (one per signed-in user, one per test) coexist without
seeing each other's credentials. Every function in client/api.py takes the
session as its first argument.

The HTTP transport is injectable: a requests.Session by default, or anything
with the same request(method, url, json=..., headers=...) call -- the test
suite passes a FastAPI TestClient to drive the real app in-process.
"""

from __future__ import annotations

from typing import Any, Optional

import requests

DEFAULT_URL = "http://localhost:3001"


class ApiSession:
    def __init__(self, base_url: str = DEFAULT_URL, http: Any = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.http = http if http is not None else requests.Session()
        self.token: Optional[str] = None
        self.user: Optional[dict] = None

    @property
    def authenticated(self) -> bool:
        return self.token is not None

    @property
    def role(self) -> Optional[str]:
        return self.user.get("role") if self.user else None

    def sign_in(self, user: dict, token: str) -> None:
        self.user = user
        self.token = token

    def sign_out(self) -> None:
        self.user = None
        self.token = None

    def url(self, path: str) -> str:
        return f"{self.base_url}/api/{path.lstrip('/')}"

    def request(self, method: str, path: str, body: Optional[dict] = None):
        """Send one request, attaching the bearer token when signed in.

        Transport errors propagate unchanged; client/api.py classifies them.
        """
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return self.http.request(method, self.url(path), json=body, headers=headers)

    def close(self) -> None:
        close = getattr(self.http, "close", None)
        if close is not None:
            close()
