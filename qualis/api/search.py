from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from qualis.api.deps import get_db, get_scope
from qualis.schemas.search import DashboardMetrics, SearchResponse
from qualis.services.access import AccessScope
from qualis.services.dashboard import dashboard
from qualis.services.search import search_service

router = APIRouter(tags=["search"])


@router.get("/search", response_model=SearchResponse)
def search(
    q: str = "",
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> dict:
    return {"query": q, "results": search_service.search(db, scope, q)}


@router.get("/dashboard/metrics", response_model=DashboardMetrics)
def dashboard_metrics(
    scope: AccessScope = Depends(get_scope), db: Session = Depends(get_db)
) -> dict:
    return dashboard.metrics(db, scope)
