"""
register/scoring.py -- Risk scoring, classification and normalization.

Pure functions, no I/O. Both the store (on every write) and the client (for
dashboard figures) call into this module, so the banding rules exist exactly
once.

Bands over score = likelihood * impact:
    1-4   Low
    5-11  Medium
    12-19 High
    20-25 Critical
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Mapping
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from core.errors import ValidationError
from register.models import (
    DEFAULT_OWNER,
    DEFAULT_STATUS,
    RISK_LEVELS,
    RISK_STATUSES,
    SCALE_MAX,
    SCALE_MIN,
    Risk,
)

# Fields a caller may supply. id, score, level and timestamps are owned by
# build_risk() and the store.
EDITABLE_FIELDS: tuple[str, ...] = (
    "title",
    "asset",
    "threat",
    "vulnerability",
    "likelihood",
    "impact",
    "owner",
    "status",
    "treatment_plan",
)

_TEXT_FIELDS = ("asset", "threat", "vulnerability", "treatment_plan")


def classify(score: int) -> str:
    """Return the qualitative level for a numeric score.

    Total over all integers: anything below 5 (including zero and negatives)
    is Low, anything from 20 up is Critical.
    """
    if score >= 20:
        return "Critical"
    if score >= 12:
        return "High"
    if score >= 5:
        return "Medium"
    return "Low"


def new_id() -> str:
    """Return a fresh risk/user identifier (UUID4, 122 random bits)."""
    return str(uuid.uuid4())


def now_iso() -> str:
    """UTC ISO 8601 with microseconds always present, so stored stamps sort as text."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def next_timestamp(previous: Optional[str]) -> str:
    """Return the current UTC time, nudged forward past previous if needed.

    updated_at must strictly increase on every mutation. Two updates inside
    the same clock tick would otherwise produce identical stamps.
    """
    now = datetime.now(timezone.utc)
    if previous:
        try:
            prior = datetime.fromisoformat(previous)
        except ValueError:
            return now.isoformat(timespec="microseconds")
        if prior.tzinfo is None:
            prior = prior.replace(tzinfo=timezone.utc)
        if now <= prior:
            now = prior + timedelta(microseconds=1)
    return now.isoformat(timespec="microseconds")


def _scale_value(data: Mapping[str, Any], name: str) -> int:
    raw = data.get(name)
    # Missing, null and zero all fall back to the bottom of the scale.
    if raw in (None, "", 0):
        return SCALE_MIN
    if isinstance(raw, bool):
        raise ValidationError(f"{name} must be an integer between {SCALE_MIN} and {SCALE_MAX}.")
    try:
        value = int(raw)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{name} must be an integer between {SCALE_MIN} and {SCALE_MAX}.") from exc
    if value != raw and not isinstance(raw, str):
        raise ValidationError(f"{name} must be an integer between {SCALE_MIN} and {SCALE_MAX}.")
    if not SCALE_MIN <= value <= SCALE_MAX:
        raise ValidationError(f"{name} must be an integer between {SCALE_MIN} and {SCALE_MAX}.")
    return value


def build_risk(
    data: Mapping[str, Any],
    risk_id: Optional[str] = None,
    created_at: Optional[str] = None,
    now: Optional[str] = None,
) -> Risk:
    """Normalize user-supplied fields into a complete, consistent Risk.

    Args:
        data:       Editable fields (see EDITABLE_FIELDS). Anything else,
                    including a client-computed score or level, is ignored.
        risk_id:    Existing identifier. A new one is generated when None.
        created_at: Original creation stamp, preserved on update.
        now:        Stamp to use for updated_at (and created_at on create).

    Raises ValidationError for a blank title, an out-of-range likelihood or
    impact, or a status outside the closed set.
    """
    title = str(data.get("title") or "").strip()
    if not title:
        raise ValidationError("title is required.")

    likelihood = _scale_value(data, "likelihood")
    impact = _scale_value(data, "impact")
    score = likelihood * impact

    status = data.get("status") or DEFAULT_STATUS
    if status not in RISK_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(RISK_STATUSES)}")

    stamp = now or now_iso()
    texts = {name: str(data.get(name) or "") for name in _TEXT_FIELDS}
    return Risk(
        id=risk_id or new_id(),
        title=title,
        likelihood=likelihood,
        impact=impact,
        score=score,
        level=classify(score),
        created_at=created_at or stamp,
        updated_at=stamp,
        owner=str(data.get("owner") or "").strip() or DEFAULT_OWNER,
        status=status,
        **texts,
    )


def summarize(risks: Iterable[Risk]) -> dict:
    """Aggregate a risk list into the figures the dashboard shows.

    Returns:
        total       -- number of risks
        critical    -- risks at Critical level
        high        -- risks at High level
        mitigated   -- risks with status Mitigated
        by_level    -- {"Low": n, "Medium": n, "High": n, "Critical": n}
        by_status   -- count per status, every status present
        matrix      -- 5x5 counts; matrix[impact - 1][likelihood - 1]
    """
    by_level = {level: 0 for level in RISK_LEVELS}
    by_status = {status: 0 for status in RISK_STATUSES}
    matrix = [[0] * SCALE_MAX for _ in range(SCALE_MAX)]
    total = 0
    for risk in risks:
        total += 1
        by_level[risk.level] = by_level.get(risk.level, 0) + 1
        by_status[risk.status] = by_status.get(risk.status, 0) + 1
        if SCALE_MIN <= risk.impact <= SCALE_MAX and SCALE_MIN <= risk.likelihood <= SCALE_MAX:
            matrix[risk.impact - 1][risk.likelihood - 1] += 1
    return {
        "total": total,
        "critical": by_level["Critical"],
        "high": by_level["High"],
        "mitigated": by_status["Mitigated"],
        "by_level": by_level,
        "by_status": by_status,
        "matrix": matrix,
    }
