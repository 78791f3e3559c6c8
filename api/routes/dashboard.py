"""
api/routes/dashboard.py -- GET /api/dashboard.

Aggregates the current register with register.scoring.summarize(). Nothing is
cached; every call re-reads the store.
"""

from fastapi import APIRouter, Depends, Request

from api.models import DashboardResponse
from auth.dependencies import get_current_claims
from register.scoring import summarize
from register.store import RiskStore

router = APIRouter(dependencies=[Depends(get_current_claims)])


@router.get("/dashboard", response_model=DashboardResponse)
def dashboard(request: Request) -> DashboardResponse:
    store: RiskStore = request.app.state.risk_store
    return DashboardResponse(**summarize(store.list_risks()))
