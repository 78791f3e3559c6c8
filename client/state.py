"""
client/state.py -- The client's single source of truth.

RegisterState holds what a front end renders: the signed-in session, the
in-memory risk list, the current view, a connectivity banner and a loading
flag. Views call its methods; nothing else talks to client/api.py.

Rules:
  - Signed out and signed in are mutually exclusive. While signed out the
    view is AUTH, the list is empty and nothing is fetched.
  - The list is replaced wholesale on login and on refresh(). A successful
    create or update patches it locally; a successful delete removes the
    entry. A failed mutation leaves the list untouched.
  - refresh() never raises: an unreachable server sets the retryable banner,
    and a 401/403 signs the user out.
  - save_risk() and delete_risk() raise their failure to the caller, which
    shows it as a blocking alert.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum
from typing import Any, Mapping, Optional

from client import api
from client.api import AuthorizationFailed, ConnectionFailed
from client.session import ApiSession
from register.models import RISK_LEVELS, Risk
from register.scoring import summarize


class View(str, Enum):
    AUTH = "auth"
    DASHBOARD = "dashboard"
    REGISTER = "register"


SESSION_EXPIRED = "Your session has expired. Please sign in again."


class RegisterState:
    def __init__(self, session: ApiSession) -> None:
        self.session = session
        self.risks: list[Risk] = []
        self.view = View.AUTH
        self.banner: Optional[str] = None
        self.loading = False
        self.search = ""
        self.level_filter: Optional[str] = None

    @property
    def authenticated(self) -> bool:
        return self.session.authenticated

    @property
    def user(self) -> Optional[dict]:
        return self.session.user

    @contextmanager
    def _busy(self) -> Iterator[None]:
        self.loading = True
        try:
            yield
        finally:
            self.loading = False

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def login(self, username: str, password: str) -> None:
        """Sign in, open the dashboard and load the register.

        Bad credentials raise RequestFailed and leave the state signed out.
        """
        with self._busy():
            api.login(self.session, username, password)
        self._enter()

    def register(self, username: str, password: str, role: str) -> None:
        """Create an account, sign in as it and load the register."""
        with self._busy():
            api.register(self.session, username, password, role)
        self._enter()

    def _enter(self) -> None:
        self.banner = None
        self.view = View.DASHBOARD
        self.refresh()

    def logout(self) -> None:
        self.session.sign_out()
        self.risks = []
        self.view = View.AUTH
        self.banner = None
        self.search = ""
        self.level_filter = None

    def navigate(self, view: View) -> View:
        """Switch view. Signed out, every view resolves to AUTH."""
        if not self.authenticated:
            self.view = View.AUTH
        elif view is not View.AUTH:
            self.view = view
        return self.view

    # ------------------------------------------------------------------
    # Data
    # ------------------------------------------------------------------

    def refresh(self) -> bool:
        """Reload the risk list from the server. Returns True on success."""
        if not self.authenticated:
            return False
        with self._busy():
            try:
                risks = api.list_risks(self.session)
            except ConnectionFailed as e:
                self.banner = e.message
                return False
            except AuthorizationFailed:
                self.logout()
                self.banner = SESSION_EXPIRED
                return False
        self.risks = risks
        self.banner = None
        return True

    def save_risk(self, fields: Mapping[str, Any], risk_id: Optional[str] = None) -> Risk:
        """Create (risk_id None) or update a risk and patch the local list."""
        with self._busy():
            if risk_id is None:
                saved = api.create_risk(self.session, fields)
            else:
                saved = api.update_risk(self.session, risk_id, fields)
        for i, existing in enumerate(self.risks):
            if existing.id == saved.id:
                self.risks[i] = saved
                break
        else:
            self.risks.insert(0, saved)
        return saved

    def delete_risk(self, risk_id: str) -> None:
        with self._busy():
            api.delete_risk(self.session, risk_id)
        self.risks = [r for r in self.risks if r.id != risk_id]

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    def set_filter(self, search: str = "", level: Optional[str] = None) -> None:
        if level is not None and level not in RISK_LEVELS:
            raise ValueError(f"level must be one of: {', '.join(RISK_LEVELS)}")
        self.search = search
        self.level_filter = level

    def filtered(self) -> list[Risk]:
        """The register view: risks matching the search text and level filter.

        Search is a case-insensitive substring match on title and asset.
        """
        needle = self.search.strip().lower()
        return [
            r
            for r in self.risks
            if (not needle or needle in r.title.lower() or needle in r.asset.lower())
            and (self.level_filter is None or r.level == self.level_filter)
        ]

    def summary(self) -> dict:
        """Dashboard figures over the loaded list."""
        return summarize(self.risks)

    # ------------------------------------------------------------------
    # AI suggestions (pass-through)
    # ------------------------------------------------------------------

    def suggest(self, asset: str, context: str = "") -> dict:
        with self._busy():
            return api.suggest(self.session, asset, context)

    def treatment_plan(self, title: str, threat: str = "", vulnerability: str = "") -> str:
        with self._busy():
            return api.treatment_plan(self.session, title, threat, vulnerability)
