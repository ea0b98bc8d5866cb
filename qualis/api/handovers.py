from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from qualis.api.deps import get_db, get_scope
from qualis.schemas.common import ListResponse
from qualis.schemas.handover import HandoverCreate, HandoverRead, HandoverUpdate
from qualis.services import handovers as handover_service
from qualis.services.access import AccessScope
from qualis.services.inflight import mutation_guard

router = APIRouter(prefix="/handovers", tags=["handovers"])


@router.post("", response_model=HandoverRead, status_code=status.HTTP_201_CREATED)
def create_handover(
    payload: HandoverCreate,
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> HandoverRead:
    with mutation_guard.hold(scope.actor_id, "handovers.create", payload.care_home_id):
        handover = handover_service.handovers.create(db, scope, payload)
        db.commit()
    return handover


@router.get("", response_model=ListResponse[HandoverRead])
def list_handovers(
    search: str | None = None,
    date_range: str | None = Query(default=None, pattern="^(today|week|month|all)$"),
    shift_type: str | None = None,
    status: str | None = Query(default=None, pattern="^(completed|pending|all)$"),
    care_home_id: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=12, ge=1, le=200),
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> dict:
    return handover_service.handovers.list(
        db, scope, search, date_range, shift_type, status, care_home_id, page, limit
    )


@router.get("/{handover_id}", response_model=HandoverRead)
def get_handover(
    handover_id: str,
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> HandoverRead:
    return handover_service.handovers.get(db, scope, handover_id)


@router.patch("/{handover_id}", response_model=HandoverRead)
def update_handover(
    handover_id: str,
    payload: HandoverUpdate,
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> HandoverRead:
    return handover_service.handovers.update(db, scope, handover_id, payload)
