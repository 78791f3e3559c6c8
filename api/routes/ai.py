"""
api/routes/ai.py -- AI suggestion proxy.

Routes:
  POST /api/ai/suggest    -- threats and vulnerabilities for an asset
  POST /api/ai/treatment  -- a short treatment plan for a risk

Both require any authenticated role and are rate-limited per client address
(AI_RATE_LIMIT). The provider key stays on the server. Provider failures
surface as 500 {"error": ..., "code": "upstream_error"}.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.limiter import limiter
from api.models import SuggestRequest, SuggestResponse, TreatmentRequest, TreatmentResponse
from auth.dependencies import get_current_claims
from core.advisor import RiskAdvisor
from core.config import get_settings

_settings = get_settings()

router = APIRouter(dependencies=[Depends(get_current_claims)])


@limiter.limit(_settings.ai_rate_limit)
@router.post("/ai/suggest", response_model=SuggestResponse)
def suggest(request: Request, body: SuggestRequest) -> SuggestResponse:
    advisor: RiskAdvisor = request.app.state.advisor
    return SuggestResponse(**advisor.suggest(body.asset, body.context))


@limiter.limit(_settings.ai_rate_limit)
@router.post("/ai/treatment", response_model=TreatmentResponse)
def treatment(request: Request, body: TreatmentRequest) -> TreatmentResponse:
    advisor: RiskAdvisor = request.app.state.advisor
    return TreatmentResponse(plan=advisor.treatment_plan(body.title, body.threat, body.vulnerability))
