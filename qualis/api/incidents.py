from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from qualis.api.deps import get_db, get_scope
from qualis.schemas.common import ListResponse, StatusUpdate
from qualis.schemas.incident import (
    IncidentActionCreate,
    IncidentActionRead,
    IncidentCreate,
    IncidentDetail,
    IncidentFollowupCreate,
    IncidentFollowupRead,
    IncidentRead,
    IncidentStatusUpdate,
)
from qualis.services import incidents as incident_service
from qualis.services.access import AccessScope
from qualis.services.inflight import mutation_guard

router = APIRouter(tags=["incidents"])


@router.post(
    "/incidents", response_model=IncidentRead, status_code=status.HTTP_201_CREATED
)
def create_incident(
    payload: IncidentCreate,
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> IncidentRead:
    with mutation_guard.hold(scope.actor_id, "incidents.create", payload.care_home_id):
        incident = incident_service.incidents.create(db, scope, payload)
        db.commit()
    return incident


@router.get("/incidents", response_model=ListResponse[IncidentRead])
def list_incidents(
    search: str | None = None,
    severity: str | None = None,
    status: str | None = None,
    exclude_status: list[str] | None = Query(default=None),
    care_home_id: str | None = None,
    client_id: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=200),
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> dict:
    return incident_service.incidents.list(
        db,
        scope,
        search,
        severity,
        status,
        exclude_status,
        care_home_id,
        client_id,
        page,
        limit,
    )


@router.get("/incidents/{incident_id}", response_model=IncidentDetail)
def get_incident(
    incident_id: str,
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> dict:
    return incident_service.incidents.detail(db, scope, incident_id)


@router.patch("/incidents/{incident_id}/status", response_model=IncidentRead)
def update_incident_status(
    incident_id: str,
    payload: IncidentStatusUpdate,
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> IncidentRead:
    return incident_service.incidents.update_status(db, scope, incident_id, payload)


@router.post(
    "/incidents/{incident_id}/actions",
    response_model=IncidentActionRead,
    status_code=status.HTTP_201_CREATED,
)
def create_incident_action(
    incident_id: str,
    payload: IncidentActionCreate,
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> dict:
    with mutation_guard.hold(scope.actor_id, "incident_actions.create", incident_id):
        action = incident_service.incident_actions.create(
            db, scope, incident_id, payload
        )
        db.commit()
    return incident_service.action_view(action)


@router.patch(
    "/incident-actions/{action_id}/status", response_model=IncidentActionRead
)
def update_incident_action_status(
    action_id: str,
    payload: StatusUpdate,
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> dict:
    action = incident_service.incident_actions.update_status(
        db, scope, action_id, payload.status
    )
    return incident_service.action_view(action)


@router.post(
    "/incidents/{incident_id}/followups",
    response_model=IncidentFollowupRead,
    status_code=status.HTTP_201_CREATED,
)
def create_incident_followup(
    incident_id: str,
    payload: IncidentFollowupCreate,
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> IncidentFollowupRead:
    with mutation_guard.hold(scope.actor_id, "incident_followups.create", incident_id):
        followup = incident_service.incident_followups.create(
            db, scope, incident_id, payload
        )
        db.commit()
    return followup
