"""
api/routes/risks.py -- CRUD routes over the risk register.

Routes:
  GET    /api/risks            -- list, newest first (any role)
  POST   /api/risks            -- create (Admin, Analyst); 201
  PUT    /api/risks/{risk_id}  -- partial update (Admin, Analyst)
  DELETE /api/risks/{risk_id}  -- delete (Admin); idempotent

Every mutating route follows the same steps: verify the token, check the
role (both in the require_roles dependency), normalize the payload through
register.scoring.build_risk(), make one store call, return the entity.
score and level are always recomputed here; values sent by the client are
ignored.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Path, Request

from api.models import RISK_ID_PATTERN, DeleteResponse, RiskCreate, RiskOut, RiskUpdate
from auth.dependencies import get_current_claims, require_roles
from auth.models import TokenClaims
from register.scoring import build_risk
from register.store import RiskStore

logger = logging.getLogger("riskregister.api")

# Auth policy:
# - GET    /api/risks:       any authenticated role
# - POST   /api/risks:       Admin, Analyst
# - PUT    /api/risks/{id}:  Admin, Analyst
# - DELETE /api/risks/{id}:  Admin
router = APIRouter()

_can_edit = require_roles("Admin", "Analyst")
_can_delete = require_roles("Admin")

_RiskId = Annotated[str, Path(pattern=RISK_ID_PATTERN)]


@router.get("/risks", response_model=list[RiskOut])
def list_risks(request: Request, claims: TokenClaims = Depends(get_current_claims)) -> list[RiskOut]:
    """Return every risk, ordered by creation time descending."""
    store: RiskStore = request.app.state.risk_store
    return [RiskOut.from_risk(r) for r in store.list_risks()]


@router.post("/risks", response_model=RiskOut, status_code=201)
def create_risk(request: Request, body: RiskCreate, claims: TokenClaims = Depends(_can_edit)) -> RiskOut:
    """Create a risk. A client-supplied id is kept; a duplicate id is a 400."""
    store: RiskStore = request.app.state.risk_store
    risk = store.insert_risk(build_risk(body.editable_fields(), risk_id=body.id))
    logger.info("Risk %s created by %s (score %d, %s)", risk.id, claims.username, risk.score, risk.level)
    return RiskOut.from_risk(risk)


@router.put("/risks/{risk_id}", response_model=RiskOut)
def update_risk(
    request: Request,
    body: RiskUpdate,
    risk_id: _RiskId,
    claims: TokenClaims = Depends(_can_edit),
) -> RiskOut:
    """Apply the supplied fields to an existing risk.

    created_at is preserved; updated_at is restamped by the store. 404 when
    the id does not exist.
    """
    store: RiskStore = request.app.state.risk_store
    risk = store.update_risk(risk_id, body.editable_fields())
    logger.info("Risk %s updated by %s", risk.id, claims.username)
    return RiskOut.from_risk(risk)


@router.delete("/risks/{risk_id}", response_model=DeleteResponse)
def delete_risk(
    request: Request,
    risk_id: _RiskId,
    claims: TokenClaims = Depends(_can_delete),
) -> DeleteResponse:
    """Delete a risk. Deleting an id that does not exist still succeeds."""
    store: RiskStore = request.app.state.risk_store
    if store.delete_risk(risk_id):
        logger.info("Risk %s deleted by %s", risk_id, claims.username)
    return DeleteResponse(success=True)
