"""
register/store.py -- SQLAlchemy-backed persistence layer for risk records.

Uses SQLAlchemy Core (not ORM) so the Risk dataclass in register/models.py
remains the authoritative domain representation. Swapping SQLite for
PostgreSQL is a connection string change, not a rewrite.

Pattern: Repository + Data Mapper. RiskStore is the repository; _row_to_risk
is the mapper. Route handlers never touch SQL directly.

Durability: every write commits before the method returns. SQLite runs in WAL
mode with synchronous=FULL, so a write that returned survives an immediate
process kill. Concurrent writers are serialized by SQLite itself; there is no
application-level locking and no in-memory cache -- every list re-reads.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = RiskStore()                               # SQLite default
    store = RiskStore("postgresql://user:pw@host/db") # PostgreSQL
    store.insert_risk(build_risk({"title": "Phishing", "likelihood": 4, "impact": 3}))
    risks = store.list_risks()
    store.update_risk(risk_id, {"status": "Mitigated"})
    store.delete_risk(risk_id)
    store.close()
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from core.config import get_settings
from core.errors import DuplicateKeyError, NotFoundError
from register.models import Risk
from register.scoring import EDITABLE_FIELDS, build_risk, next_timestamp

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_risks = Table(
    "risks",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("title", Text, nullable=False),
    Column("asset", Text, nullable=False, server_default=""),
    Column("threat", Text, nullable=False, server_default=""),
    Column("vulnerability", Text, nullable=False, server_default=""),
    Column("likelihood", Integer, nullable=False),
    Column("impact", Integer, nullable=False),
    Column("score", Integer, nullable=False),
    Column("level", String(10), nullable=False),
    Column("owner", String(255), nullable=False, server_default="Unassigned"),
    Column("status", String(20), nullable=False, server_default="Open"),
    Column("treatment_plan", Text, nullable=False, server_default=""),
    Column("created_at", String(40), nullable=False, index=True),
    Column("updated_at", String(40), nullable=False),
)


# ---------------------------------------------------------------------------
# SQLite connection setup
# ---------------------------------------------------------------------------


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and full fsync on commit.

    WAL lets readers proceed without blocking during writes. synchronous=FULL
    makes a returned commit durable. Set per-connection because SQLite PRAGMAs
    are not inherited by new connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA synchronous=FULL")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class RiskStore:
    def __init__(self, db_url: Optional[str] = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            # FastAPI runs sync route handlers in a thread pool, so the same
            # pooled connection may be used from more than one thread.
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_sqlite_pragmas)
        metadata.create_all(self.engine)

    def list_risks(self) -> list[Risk]:
        """Return every risk, newest first. An empty store yields []."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _risks.select().order_by(_risks.c.created_at.desc(), _risks.c.id.desc())
            ).fetchall()
        return [_row_to_risk(r) for r in rows]

    def get_risk(self, risk_id: str) -> Optional[Risk]:
        """Fetch a single risk by id. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_risks.select().where(_risks.c.id == risk_id)).fetchone()
        return _row_to_risk(row) if row is not None else None

    def insert_risk(self, risk: Risk) -> Risk:
        """Persist a new, already-normalized risk and return it.

        Raises DuplicateKeyError if a risk with the same id already exists.
        """
        try:
            with self.engine.begin() as conn:
                conn.execute(_risks.insert().values(**_risk_to_row(risk)))
        except IntegrityError as exc:
            raise DuplicateKeyError(f"A risk with id {risk.id} already exists.") from exc
        return risk

    def update_risk(self, risk_id: str, fields: Mapping[str, Any]) -> Risk:
        """Apply a partial update and return the resulting risk.

        Only keys in EDITABLE_FIELDS are honoured; anything else (score,
        level, id, timestamps) is dropped. Score and level are recomputed from
        the merged likelihood/impact, created_at is preserved, and updated_at
        is restamped with a value strictly greater than the previous one.

        Raises NotFoundError if risk_id is absent, ValidationError if the
        merged record is invalid.
        """
        with self.engine.begin() as conn:
            row = conn.execute(_risks.select().where(_risks.c.id == risk_id)).fetchone()
            if row is None:
                raise NotFoundError(f"Risk {risk_id} not found.")
            current = _row_to_risk(row)
            merged = {name: getattr(current, name) for name in EDITABLE_FIELDS}
            merged.update({k: v for k, v in fields.items() if k in EDITABLE_FIELDS})
            updated = build_risk(
                merged,
                risk_id=current.id,
                created_at=current.created_at,
                now=next_timestamp(current.updated_at),
            )
            values = _risk_to_row(updated)
            del values["id"]
            conn.execute(_risks.update().where(_risks.c.id == risk_id).values(**values))
        return updated

    def delete_risk(self, risk_id: str) -> bool:
        """Delete a risk. Returns True if a row was removed.

        Deleting an id that does not exist is not an error; callers report
        success either way.
        """
        with self.engine.begin() as conn:
            result = conn.execute(_risks.delete().where(_risks.c.id == risk_id))
        return result.rowcount > 0

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _risk_to_row(risk: Risk) -> dict:
    return {
        "id": risk.id,
        "title": risk.title,
        "asset": risk.asset,
        "threat": risk.threat,
        "vulnerability": risk.vulnerability,
        "likelihood": risk.likelihood,
        "impact": risk.impact,
        "score": risk.score,
        "level": risk.level,
        "owner": risk.owner,
        "status": risk.status,
        "treatment_plan": risk.treatment_plan,
        "created_at": risk.created_at,
        "updated_at": risk.updated_at,
    }


def _row_to_risk(row) -> Risk:
    return Risk(
        id=row.id,
        title=row.title,
        asset=row.asset or "",
        threat=row.threat or "",
        vulnerability=row.vulnerability or "",
        likelihood=row.likelihood,
        impact=row.impact,
        score=row.score,
        level=row.level,
        owner=row.owner,
        status=row.status,
        treatment_plan=row.treatment_plan or "",
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
