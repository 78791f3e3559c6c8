"""
tests/test_cli.py -- Tests for the argparse front end in main.py and the
terminal renderers in client/formatter.py.

Parsing and rendering need no server; whoami runs against the in-process app.
"""

from __future__ import annotations

import json

import pytest
from conftest import PASSWORD, TEST_USERS

import main
from client import formatter
from client.session import ApiSession
from register.scoring import build_risk, summarize


@pytest.fixture(autouse=True)
def _no_color():
    formatter.disable_color()


def test_add_collects_only_given_fields() -> None:
    args = main.build_parser().parse_args(["-u", "alice", "add", "Laptop theft", "-l", "4", "--plan", "Encrypt disks"])
    assert args.command == "add"
    assert main._risk_fields(args) == {"title": "Laptop theft", "likelihood": 4, "treatment_plan": "Encrypt disks"}


def test_update_requires_risk_id() -> None:
    with pytest.raises(SystemExit):
        main.build_parser().parse_args(["update"])


def test_scale_out_of_range_rejected() -> None:
    with pytest.raises(SystemExit):
        main.build_parser().parse_args(["add", "x", "--impact", "6"])


def test_register_role_is_closed() -> None:
    with pytest.raises(SystemExit):
        main.build_parser().parse_args(["register", "bob", "--role", "Root"])


def test_url_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("RISKREG_URL", "http://10.0.0.5:3001")
    assert main.build_parser().parse_args(["list"]).url == "http://10.0.0.5:3001"


def test_print_register(capsys) -> None:
    risks = [build_risk({"title": "Phishing", "asset": "Mail", "likelihood": 5, "impact": 4})]
    formatter.print_register(risks)
    out = capsys.readouterr().out
    assert "Phishing" in out
    assert "Critical" in out
    assert "\033[" not in out


def test_print_register_empty(capsys) -> None:
    formatter.print_register([])
    assert "No risks recorded" in capsys.readouterr().out


def test_print_dashboard(capsys) -> None:
    formatter.print_dashboard(summarize([build_risk({"title": "a", "likelihood": 2, "impact": 3})]))
    out = capsys.readouterr().out
    assert "RISK DASHBOARD" in out
    assert "3 Moderate" in out


def test_to_json() -> None:
    risk = build_risk({"title": "a"})
    assert json.loads(formatter.to_json([risk]))[0]["id"] == risk.id


def test_whoami_against_app(api_client, monkeypatch, capsys) -> None:
    client, _tokens, _ = api_client
    monkeypatch.setattr(main, "ApiSession", lambda url: ApiSession(url, http=client))
    monkeypatch.setenv("RISKREG_PASSWORD", PASSWORD)
    main.main(["--url", "http://testserver", "-u", TEST_USERS["Analyst"], "whoami"])
    out = capsys.readouterr().out
    assert f"{TEST_USERS['Analyst']} (Analyst)" in out
    assert "token valid until" in out
