#!/usr/bin/env python3
"""
Risk Register -- ISMS risk assessment from the terminal.

Runs the API server, or acts as a client of a running one.

Usage:
  python main.py serve
  python main.py register alice --role Admin
  python main.py --username alice list
  python main.py --username alice list --level Critical --search laptop
  python main.py --username alice dashboard
  python main.py --username alice whoami
  python main.py --username alice add "Ransomware on file server" --asset "File server" -l 4 -i 5
  python main.py --username alice update RISK-ID --status Mitigated
  python main.py --username alice delete RISK-ID
  python main.py --username alice suggest "Payroll database" --context "hosted on-prem"
  python main.py --username alice treatment "Phishing" --threat "credential theft"

Environment variables:
  RISKREG_URL       Server base URL (default http://localhost:3001).
  RISKREG_PASSWORD  Password for --username. Prompted for when unset.
  SECRET_KEY etc.   Server settings, see core/config.py (serve only).
"""

import argparse
import getpass
import os
import sys
from datetime import datetime, timezone
from typing import Optional

from auth.models import ROLES
from client import api
from client.api import ClientError
from client.formatter import disable_color, print_dashboard, print_register, print_risk, to_json
from client.session import DEFAULT_URL, ApiSession
from client.state import RegisterState
from register.models import RISK_LEVELS, RISK_STATUSES


def _password(prompt: str = "Password: ") -> str:
    return os.environ.get("RISKREG_PASSWORD") or getpass.getpass(prompt)


def _risk_fields(args: argparse.Namespace) -> dict:
    """Collect the risk fields given on the command line, skipping unset ones."""
    names = ("title", "asset", "threat", "vulnerability", "likelihood", "impact", "owner", "status", "treatment_plan")
    return {name: getattr(args, name) for name in names if getattr(args, name, None) is not None}


def _serve(args: argparse.Namespace) -> None:
    import uvicorn

    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)


def _signed_in(args: argparse.Namespace, parser: argparse.ArgumentParser) -> RegisterState:
    if not args.username:
        parser.error("--username is required for this command")
    state = RegisterState(ApiSession(args.url))
    state.login(args.username, _password())
    if state.banner:
        raise ClientError(state.banner)
    return state


def _run(args: argparse.Namespace, parser: argparse.ArgumentParser) -> None:
    if args.command == "register":
        session = ApiSession(args.url)
        user = api.register(session, args.new_username, _password("New password: "), args.role)
        print(f"  Registered {user['username']} ({user['role']}).")
        return

    state = _signed_in(args, parser)

    if args.command == "list":
        state.set_filter(args.search or "", args.level)
        risks = state.filtered()
        if args.json:
            print(to_json(risks))
        else:
            print_register(risks)

    elif args.command == "show":
        matches = [r for r in state.risks if r.id == args.risk_id]
        if not matches:
            print(f"  [!] No risk with id {args.risk_id}.")
            sys.exit(1)
        if args.json:
            print(to_json(matches))
        else:
            print_risk(matches[0])

    elif args.command == "whoami":
        claims = api.me(state.session)
        expires = datetime.fromtimestamp(claims["expiresAt"], tz=timezone.utc)
        print(f"  {claims['username']} ({claims['role']}), token valid until {expires:%Y-%m-%d %H:%M} UTC")

    elif args.command == "dashboard":
        print_dashboard(state.summary())

    elif args.command == "add":
        risk = state.save_risk(_risk_fields(args))
        print_risk(risk)

    elif args.command == "update":
        fields = _risk_fields(args)
        if not fields:
            parser.error("update needs at least one field to change")
        print_risk(state.save_risk(fields, risk_id=args.risk_id))

    elif args.command == "delete":
        state.delete_risk(args.risk_id)
        print(f"  Deleted {args.risk_id}.")

    elif args.command == "suggest":
        result = state.suggest(args.asset, args.context or "")
        print("\n  Threats:")
        for t in result["threats"]:
            print(f"    - {t}")
        print("\n  Vulnerabilities:")
        for v in result["vulnerabilities"]:
            print(f"    - {v}")
        print()

    elif args.command == "treatment":
        print()
        print(state.treatment_plan(args.title, args.threat or "", args.vulnerability or ""))
        print()


def _add_risk_arguments(p: argparse.ArgumentParser, title_required: bool) -> None:
    if title_required:
        p.add_argument("title", help="Short risk title")
    else:
        p.add_argument("--title", help="New title")
    p.add_argument("--asset", help="Affected asset")
    p.add_argument("--threat", help="Threat description")
    p.add_argument("--vulnerability", help="Vulnerability description")
    p.add_argument("-l", "--likelihood", type=int, choices=range(1, 6), metavar="1-5", help="Likelihood (1-5)")
    p.add_argument("-i", "--impact", type=int, choices=range(1, 6), metavar="1-5", help="Impact (1-5)")
    p.add_argument("--owner", help="Risk owner (free text)")
    p.add_argument("--status", choices=RISK_STATUSES, help="Treatment status")
    p.add_argument("--plan", dest="treatment_plan", help="Treatment plan")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="risk-register",
        description="ISMS risk register: serve the API or work with a running server.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--url",
        default=os.environ.get("RISKREG_URL", DEFAULT_URL),
        help=f"Server base URL (default: $RISKREG_URL or {DEFAULT_URL})",
    )
    parser.add_argument("--username", "-u", help="Sign in as this user")
    parser.add_argument("--no-color", action="store_true", help="Disable ANSI color codes in terminal output")
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    p = sub.add_parser("serve", help="Run the API server")
    p.add_argument("--host", default="0.0.0.0", help="Bind address (default: all interfaces)")
    p.add_argument("--port", type=int, default=3001, help="Port (default: 3001)")
    p.add_argument("--reload", action="store_true", help="Reload on code changes (development)")

    p = sub.add_parser("register", help="Create an account")
    p.add_argument("new_username", metavar="USERNAME")
    p.add_argument("--role", choices=ROLES, required=True)

    p = sub.add_parser("list", help="List risks, newest first")
    p.add_argument("--search", help="Match text in title or asset")
    p.add_argument("--level", choices=RISK_LEVELS, help="Only risks at this level")
    p.add_argument("--json", action="store_true", help="Output JSON")

    p = sub.add_parser("show", help="Show one risk in full")
    p.add_argument("risk_id", metavar="RISK-ID")
    p.add_argument("--json", action="store_true", help="Output JSON")

    sub.add_parser("dashboard", help="Show dashboard figures")
    sub.add_parser("whoami", help="Show the signed-in account and token expiry")

    p = sub.add_parser("add", help="Create a risk (Admin, Analyst)")
    _add_risk_arguments(p, title_required=True)

    p = sub.add_parser("update", help="Change fields of a risk (Admin, Analyst)")
    p.add_argument("risk_id", metavar="RISK-ID")
    _add_risk_arguments(p, title_required=False)

    p = sub.add_parser("delete", help="Delete a risk (Admin)")
    p.add_argument("risk_id", metavar="RISK-ID")

    p = sub.add_parser("suggest", help="AI: threats and vulnerabilities for an asset")
    p.add_argument("asset")
    p.add_argument("--context", help="Extra context for the model")

    p = sub.add_parser("treatment", help="AI: draft a treatment plan")
    p.add_argument("title")
    p.add_argument("--threat")
    p.add_argument("--vulnerability")

    return parser


def main(argv: Optional[list[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.no_color:
        disable_color()

    if args.command is None:
        parser.print_help()
        return
    if args.command == "serve":
        _serve(args)
        return

    try:
        _run(args, parser)
    except ClientError as e:
        print(f"  [!] {e.message}")
        sys.exit(1)


if __name__ == "__main__":
    main()
