"""
formatter.py -- Renders risks and dashboard figures for the terminal or as JSON.
"""

import json
import os
import sys
import textwrap
from dataclasses import asdict
from typing import Optional

from register.models import IMPACT_SCALE, LIKELIHOOD_SCALE, RISK_LEVELS, RISK_STATUSES, SCALE_MAX, Risk

W = 78  # output width

# ---------------------------------------------------------------------------
# ANSI color control
# ---------------------------------------------------------------------------

def _use_color() -> bool:
    """Return True if stdout is a TTY and color has not been disabled.

    Respects NO_COLOR env var (https://no-color.org) and checks sys.stdout.isatty().
    """
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("FORCE_COLOR"):
        return True
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


_color_enabled: Optional[bool] = None  # None = auto-detect


def disable_color() -> None:
    """Force-disable color output (called when --no-color flag is set)."""
    global _color_enabled
    _color_enabled = False


def _color_active() -> bool:
    if _color_enabled is not None:
        return _color_enabled
    return _use_color()


LEVEL_COLORS = {
    "Critical": "\033[91m",  # red
    "High": "\033[93m",  # yellow
    "Medium": "\033[94m",  # blue
    "Low": "\033[92m",  # green
}


def _reset() -> str:
    return "\033[0m" if _color_active() else ""


def _bold() -> str:
    return "\033[1m" if _color_active() else ""


def _dim() -> str:
    return "\033[2m" if _color_active() else ""


def _l_color(level: str) -> str:
    return LEVEL_COLORS.get(level, "") if _color_active() else ""


# ---------------------------------------------------------------------------
# Layout helpers
# ---------------------------------------------------------------------------


def _bar(char: str = "═") -> str:
    return char * W


def _section(title: str) -> str:
    return f"\n  {_bold()}{title}{_reset()}\n  {'─' * (W - 2)}"


def _clip(text: str, width: int) -> str:
    return text if len(text) <= width else text[: width - 1] + "…"


def _wrap(text: str, indent: int = 4, width: int = W) -> str:
    pad = " " * indent
    return textwrap.fill(text, width=width, initial_indent=pad, subsequent_indent=pad)


# ---------------------------------------------------------------------------
# Terminal renderers
# ---------------------------------------------------------------------------


def print_risk(risk: Risk) -> None:
    """Full detail for one risk."""
    bold = _bold()
    reset = _reset()
    color = _l_color(risk.level)

    print(f"\n{bold}{_bar()}{reset}")
    print(f"  {bold}{risk.title}{reset}  │  {color}{bold}{risk.level} ({risk.score}){reset}  │  {risk.status}")
    print(f"{bold}{_bar()}{reset}")
    print(f"    Id           {risk.id}")
    print(f"    Asset        {risk.asset or '-'}")
    print(f"    Owner        {risk.owner}")
    print(f"    Likelihood   {risk.likelihood} {LIKELIHOOD_SCALE.get(risk.likelihood, '')}")
    print(f"    Impact       {risk.impact} {IMPACT_SCALE.get(risk.impact, '')}")
    print(f"    Created      {risk.created_at}")
    print(f"    Updated      {risk.updated_at}")

    for heading, body in (
        ("THREAT", risk.threat),
        ("VULNERABILITY", risk.vulnerability),
        ("TREATMENT PLAN", risk.treatment_plan),
    ):
        if body:
            print(_section(heading))
            print(_wrap(body))
    print()


def print_register(risks: list[Risk]) -> None:
    """One line per risk, in the order given."""
    if not risks:
        print("\n  No risks recorded.\n")
        return
    bold = _bold()
    reset = _reset()
    dim = _dim()
    print(f"\n  {bold}{'LEVEL':<9}{'SCORE':>5}  {'TITLE':<30} {'ASSET':<16} {'STATUS':<11}{reset}")
    print(f"  {'─' * (W - 2)}")
    for r in risks:
        color = _l_color(r.level)
        print(
            f"  {color}{r.level:<9}{reset}{r.score:>5}  {_clip(r.title, 30):<30} "
            f"{_clip(r.asset or '-', 16):<16} {r.status:<11}"
        )
        print(f"  {dim}{'':<16}{r.id}  owner: {r.owner}{reset}")
    print(f"\n  {len(risks)} risk(s)\n")


def print_dashboard(summary: dict) -> None:
    """Headline counts, level and status breakdowns, and the 5x5 heat map."""
    bold = _bold()
    reset = _reset()

    print(f"\n{bold}{_bar()}{reset}")
    print(f"  {bold}RISK DASHBOARD{reset}")
    print(f"{bold}{_bar()}{reset}")
    print(
        f"    Total {summary['total']}   "
        f"{_l_color('Critical')}Critical {summary['critical']}{reset}   "
        f"{_l_color('High')}High {summary['high']}{reset}   "
        f"Mitigated {summary['mitigated']}"
    )

    by_level = summary.get("by_level") or summary.get("byLevel") or {}
    by_status = summary.get("by_status") or summary.get("byStatus") or {}

    print(_section("BY LEVEL"))
    for level in reversed(RISK_LEVELS):
        print(f"    {_l_color(level)}{level:<10}{reset} {by_level.get(level, 0):>4}")

    print(_section("BY STATUS"))
    for status in RISK_STATUSES:
        print(f"    {status:<12} {by_status.get(status, 0):>4}")

    print(_section("HEAT MAP (impact down, likelihood across)"))
    matrix = summary["matrix"]
    print("    " + " " * 14 + "".join(f"{i:>5}" for i in range(1, SCALE_MAX + 1)))
    for impact in range(SCALE_MAX, 0, -1):
        row = matrix[impact - 1]
        label = f"{impact} {IMPACT_SCALE[impact]}"
        print(f"    {label:<14}" + "".join(f"{n or '.':>5}" for n in row))
    print()


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------


def to_json(risks: list[Risk]) -> str:
    return json.dumps([asdict(r) for r in risks], indent=2)
