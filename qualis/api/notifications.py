from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from qualis.api.deps import get_db, get_scope
from qualis.schemas.common import ListResponse, StatusUpdate
from qualis.schemas.notification import AuditEventRead, NotificationRead
from qualis.services.access import AccessScope
from qualis.services.audit import audit_events
from qualis.services.notifications import notifications

router = APIRouter(tags=["notifications"])


@router.get("/notifications", response_model=ListResponse[NotificationRead])
def list_notifications(
    status: str | None = "active",
    channel: str | None = None,
    search: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=200),
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> dict:
    return notifications.list(db, scope, status, channel, search, page, limit)


@router.patch(
    "/notifications/{notification_id}/status", response_model=NotificationRead
)
def update_notification_status(
    notification_id: str,
    payload: StatusUpdate,
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> NotificationRead:
    return notifications.update_status(db, scope, notification_id, payload.status)


@router.get("/audit-events", response_model=ListResponse[AuditEventRead])
def list_audit_events(
    search: str | None = None,
    entity_type: str | None = None,
    care_home_id: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=15, ge=1, le=200),
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> dict:
    return audit_events.list(db, scope, search, entity_type, care_home_id, page, limit)
