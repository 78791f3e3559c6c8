"""
tests/test_client_state.py -- Tests for client/session.py, client/api.py and client/state.py.

The client is driven against the real app in-process: ApiSession accepts the
FastAPI TestClient as its HTTP transport. Connectivity failures use a
MagicMock transport that raises requests exceptions.

Coverage:
  - signed-out gate: no fetch, every view resolves to AUTH
  - login / register load the register and open the dashboard
  - local patch on create/update, removal on delete
  - refresh(): connection failure -> banner, auth failure -> logout
  - mutation failures propagate and leave the list untouched
  - independent sessions, search/level filter, summary, AI pass-through
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests
from conftest import PASSWORD, TEST_USERS

from client import api
from client.api import AuthorizationFailed, ConnectionFailed, RequestFailed
from client.session import ApiSession
from client.state import SESSION_EXPIRED, RegisterState, View


@pytest.fixture
def state(api_client) -> RegisterState:
    client, _tokens, _ = api_client
    return RegisterState(ApiSession("http://testserver", http=client))


def _signed_in(api_client, role: str = "Admin") -> RegisterState:
    client, _tokens, _ = api_client
    s = RegisterState(ApiSession("http://testserver", http=client))
    s.login(TEST_USERS[role], PASSWORD)
    return s


class TestSignedOut:
    def test_initial_state(self, state: RegisterState) -> None:
        assert state.view is View.AUTH
        assert state.risks == []
        assert not state.authenticated

    def test_refresh_fetches_nothing(self) -> None:
        http = MagicMock()
        s = RegisterState(ApiSession("http://testserver", http=http))
        assert s.refresh() is False
        http.request.assert_not_called()

    @pytest.mark.parametrize("view", [View.DASHBOARD, View.REGISTER])
    def test_navigation_is_gated(self, state: RegisterState, view: View) -> None:
        assert state.navigate(view) is View.AUTH


class TestLogin:
    def test_login_loads_register(self, api_client) -> None:
        s = _signed_in(api_client, "Viewer")
        assert s.authenticated
        assert s.user["role"] == "Viewer"
        assert s.view is View.DASHBOARD
        assert s.banner is None
        assert s.loading is False
        assert s.navigate(View.REGISTER) is View.REGISTER

    def test_bad_credentials(self, state: RegisterState) -> None:
        with pytest.raises(RequestFailed) as exc:
            state.login(TEST_USERS["Admin"], "wrong-password")
        assert exc.value.message == "Invalid username or password."
        assert exc.value.status_code == 400
        assert not state.authenticated
        assert state.view is View.AUTH

    def test_register_signs_in(self, state: RegisterState) -> None:
        state.register("client-new-user", "pw123", "Analyst")
        assert state.authenticated
        assert state.user["username"] == "client-new-user"
        assert state.view is View.DASHBOARD

    def test_logout_clears_everything(self, api_client) -> None:
        s = _signed_in(api_client)
        s.save_risk({"title": "before logout"})
        s.logout()
        assert s.risks == []
        assert s.view is View.AUTH
        assert s.session.token is None


class TestMutations:
    def test_create_is_patched_in_front(self, api_client) -> None:
        s = _signed_in(api_client, "Analyst")
        risk = s.save_risk({"title": "Client created", "likelihood": 3, "impact": 4, "treatment_plan": "Plan A"})
        assert s.risks[0] == risk
        assert risk.score == 12
        assert risk.level == "High"
        assert risk.treatment_plan == "Plan A"

    def test_update_replaces_in_place(self, api_client) -> None:
        s = _signed_in(api_client, "Analyst")
        risk = s.save_risk({"title": "To update"})
        s.save_risk({"title": "Padding"})
        updated = s.save_risk({"status": "Accepted", "impact": 5}, risk_id=risk.id)
        assert [r for r in s.risks if r.id == risk.id] == [updated]
        assert updated.status == "Accepted"
        assert updated.score == 5
        assert updated.created_at == risk.created_at

    def test_delete_removes_locally(self, api_client) -> None:
        s = _signed_in(api_client, "Admin")
        risk = s.save_risk({"title": "To delete"})
        s.delete_risk(risk.id)
        assert risk.id not in [r.id for r in s.risks]
        s.refresh()
        assert risk.id not in [r.id for r in s.risks]

    def test_forbidden_save_propagates(self, api_client) -> None:
        s = _signed_in(api_client, "Viewer")
        before = list(s.risks)
        with pytest.raises(AuthorizationFailed) as exc:
            s.save_risk({"title": "Viewer attempt"})
        assert exc.value.status_code == 403
        assert s.risks == before
        assert s.loading is False

    def test_invalid_save_propagates(self, api_client) -> None:
        s = _signed_in(api_client, "Admin")
        with pytest.raises(RequestFailed) as exc:
            s.save_risk({"title": "x", "likelihood": 9})
        assert exc.value.status_code == 400

    def test_update_missing_risk(self, api_client) -> None:
        s = _signed_in(api_client, "Admin")
        with pytest.raises(RequestFailed) as exc:
            s.save_risk({"title": "x"}, risk_id="gone")
        assert exc.value.status_code == 404


class TestRefresh:
    def test_connection_failure_sets_banner(self) -> None:
        http = MagicMock()
        http.request.side_effect = requests.ConnectionError("refused")
        s = RegisterState(ApiSession("http://unreachable.test", http=http))
        s.session.sign_in({"username": "x", "role": "Admin"}, "token")
        assert s.refresh() is False
        assert "unreachable.test" in s.banner
        assert s.authenticated
        assert s.loading is False

    def test_rejected_token_forces_logout(self, state: RegisterState) -> None:
        state.session.sign_in({"username": "x", "role": "Admin"}, "expired-or-forged")
        state.view = View.REGISTER
        assert state.refresh() is False
        assert not state.authenticated
        assert state.view is View.AUTH
        assert state.banner == SESSION_EXPIRED

    def test_successful_refresh_clears_banner(self, api_client) -> None:
        s = _signed_in(api_client)
        s.banner = "stale"
        assert s.refresh() is True
        assert s.banner is None


def test_sessions_are_independent(api_client) -> None:
    admin = _signed_in(api_client, "Admin")
    viewer = _signed_in(api_client, "Viewer")
    assert admin.session.token != viewer.session.token
    assert admin.user["role"] == "Admin"
    assert viewer.user["role"] == "Viewer"
    viewer.logout()
    assert admin.authenticated
    assert admin.refresh() is True


def test_filter_and_summary(api_client) -> None:
    s = _signed_in(api_client, "Admin")
    s.save_risk({"title": "Zebra laptop loss", "asset": "Laptops", "likelihood": 5, "impact": 5})
    s.save_risk({"title": "Other", "asset": "Zebra printers", "likelihood": 1, "impact": 1})

    s.set_filter("zebra")
    assert {r.title for r in s.filtered()} >= {"Zebra laptop loss", "Other"}

    s.set_filter("zebra", "Critical")
    assert all(r.level == "Critical" for r in s.filtered())
    assert "Zebra laptop loss" in [r.title for r in s.filtered()]

    with pytest.raises(ValueError):
        s.set_filter(level="Severe")

    summary = s.summary()
    assert summary["total"] == len(s.risks)
    assert summary["critical"] == sum(1 for r in s.risks if r.level == "Critical")


def test_client_summary_matches_server_dashboard(api_client) -> None:
    s = _signed_in(api_client, "Viewer")
    server = api.dashboard(s.session)
    local = s.summary()
    assert server["total"] == local["total"]
    assert server["byLevel"] == local["by_level"]
    assert server["matrix"] == local["matrix"]


def test_ai_pass_through(api_client) -> None:
    _client, _tokens, advisor = api_client
    advisor.suggest.side_effect = None
    advisor.suggest.return_value = {"threats": ["Theft"], "vulnerabilities": ["No lock"]}
    advisor.treatment_plan.side_effect = None
    advisor.treatment_plan.return_value = "Buy locks."
    s = _signed_in(api_client, "Viewer")
    assert s.suggest("Laptop") == {"threats": ["Theft"], "vulnerabilities": ["No lock"]}
    assert s.treatment_plan("Laptop theft") == "Buy locks."


def test_health(api_client) -> None:
    s = _signed_in(api_client)
    assert api.health(s.session)["status"] == "ok"


def test_me_reports_signed_in_claims(api_client) -> None:
    s = _signed_in(api_client, "Analyst")
    claims = api.me(s.session)
    assert claims["username"] == TEST_USERS["Analyst"]
    assert claims["role"] == "Analyst"
    assert claims["userId"] == s.user["id"]
