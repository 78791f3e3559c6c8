"""
register/models.py -- Domain dataclasses and vocabularies for the risk register.

These are pure data containers with zero logic. Scoring and normalization live
in register/scoring.py; persistence lives in register/store.py.

Separation of concerns: this dataclass is the register's domain truth. The API
layer has its own Pydantic models (api/models.py) and maps between the two.
"""

from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Closed vocabularies
# ---------------------------------------------------------------------------

RISK_LEVELS: tuple[str, ...] = ("Low", "Medium", "High", "Critical")
RISK_STATUSES: tuple[str, ...] = ("Open", "Mitigated", "Accepted", "Transferred", "Avoided")

DEFAULT_STATUS = "Open"
DEFAULT_OWNER = "Unassigned"

SCALE_MIN = 1
SCALE_MAX = 5

LIKELIHOOD_SCALE: dict[int, str] = {
    1: "Rare",
    2: "Unlikely",
    3: "Possible",
    4: "Likely",
    5: "Certain",
}

IMPACT_SCALE: dict[int, str] = {
    1: "Negligible",
    2: "Minor",
    3: "Moderate",
    4: "Major",
    5: "Catastrophic",
}


@dataclass
class Risk:
    """A single risk assessment entry.

    score and level are derived: score == likelihood * impact and level is
    the classification of score. They are recomputed by build_risk() on every
    create and update and are never set independently.

    owner is a free-text label, not a reference to a user account.
    """

    id: str
    title: str
    likelihood: int  # 1-5
    impact: int  # 1-5
    score: int  # likelihood * impact, 1-25
    level: str  # "Low" | "Medium" | "High" | "Critical"
    created_at: str  # ISO 8601, set once
    updated_at: str  # ISO 8601, restamped on every mutation
    asset: str = ""
    threat: str = ""
    vulnerability: str = ""
    owner: str = DEFAULT_OWNER
    status: str = DEFAULT_STATUS  # "Open" | "Mitigated" | "Accepted" | "Transferred" | "Avoided"
    treatment_plan: str = ""
