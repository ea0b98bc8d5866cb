import logging
from datetime import datetime

from fastapi import HTTPException
from sqlalchemy.orm import Session

from qualis.models.care_home import Client
from qualis.models.incident import (
    Incident,
    IncidentAction,
    IncidentActionStatus,
    IncidentFollowup,
    IncidentSeverity,
    IncidentStatus,
)
from qualis.models.profile import Profile
from qualis.schemas.incident import (
    IncidentActionCreate,
    IncidentCreate,
    IncidentFollowupCreate,
    IncidentStatusUpdate,
)
from qualis.services.access import AccessScope
from qualis.services.audit import audit_events
from qualis.services.care_homes import load_care_home
from qualis.services.clients import load_client
from qualis.services.common import apply_search, coerce_uuid, paginate, parse_enum
from qualis.services.dates import DateUrgency, as_utc, classify_by_date, utcnow
from qualis.services.lifecycle import LifecycleEntity, ensure_transition
from qualis.services.workflow_events import EventType, publish_event

logger = logging.getLogger(__name__)

ACTION_STATUS_ORDER = {
    IncidentActionStatus.pending: 0,
    IncidentActionStatus.in_progress: 1,
    IncidentActionStatus.overdue: 2,
    IncidentActionStatus.completed: 3,
    IncidentActionStatus.cancelled: 4,
}
_CLOSED_ACTION = (IncidentActionStatus.completed, IncidentActionStatus.cancelled)
_RESOLVED = (IncidentStatus.resolved, IncidentStatus.closed)


def _split_statuses(values) -> list[IncidentStatus]:
    """Accepts repeated values, comma-separated values, or both."""
    if not values:
        return []
    if isinstance(values, str):
        values = [values]
    return [
        parse_enum(IncidentStatus, part.strip())
        for value in values
        for part in value.split(",")
        if part.strip()
    ]


def load_incident(db: Session, scope: AccessScope, incident_id) -> Incident:
    incident = db.get(Incident, coerce_uuid(incident_id))
    if not incident or not scope.allows(incident.care_home_id):
        raise HTTPException(status_code=404, detail="Incident not found")
    return incident


def action_is_overdue(action: IncidentAction, now: datetime | None = None) -> bool:
    if action.status in _CLOSED_ACTION:
        return False
    if action.status == IncidentActionStatus.overdue:
        return True
    return classify_by_date(action.due_at, now) == DateUrgency.overdue


def action_view(action: IncidentAction, now: datetime | None = None) -> dict:
    return {
        "id": action.id,
        "incident_id": action.incident_id,
        "title": action.title,
        "description": action.description,
        "status": action.status,
        "assigned_to": action.assigned_to,
        "due_at": action.due_at,
        "created_by": action.created_by,
        "completed_at": action.completed_at,
        "created_at": action.created_at,
        "updated_at": action.updated_at,
        "is_overdue": action_is_overdue(action, now),
    }


def _action_sort_key(action: IncidentAction):
    due = as_utc(action.due_at) if action.due_at else None
    return (
        ACTION_STATUS_ORDER.get(action.status, len(ACTION_STATUS_ORDER)),
        due is None,
        due.timestamp() if due else 0.0,
    )


class Incidents:
    @staticmethod
    def create(db: Session, scope: AccessScope, payload: IncidentCreate) -> Incident:
        scope.require("incidents:report")
        home = load_care_home(db, scope, payload.care_home_id)
        if payload.client_id is not None:
            client = load_client(db, scope, payload.client_id)
            if client.care_home_id != home.id:
                raise HTTPException(
                    status_code=400,
                    detail="Client does not belong to the selected care home",
                )
        data = payload.model_dump()
        data["severity"] = parse_enum(IncidentSeverity, data["severity"], "severity")
        if not data["follow_up_required"]:
            data["follow_up_notes"] = None
        incident = Incident(
            **data, status=IncidentStatus.open, reported_by=scope.actor_id
        )
        db.add(incident)
        db.flush()
        db.refresh(incident)
        logger.info("Created incident %s in care home %s", incident.id, home.id)
        publish_event(db, EventType.incident_created, incident, scope.actor_id)
        return incident

    @staticmethod
    def get(db: Session, scope: AccessScope, incident_id: str) -> Incident:
        scope.require("incidents:read")
        return load_incident(db, scope, incident_id)

    @staticmethod
    def detail(
        db: Session, scope: AccessScope, incident_id: str, now: datetime | None = None
    ) -> dict:
        """Incident with its action plan and followup timeline."""
        incident = Incidents.get(db, scope, incident_id)
        data = {
            column.key: getattr(incident, column.key)
            for column in Incident.__table__.columns
        }
        data["client_name"] = incident.client.full_name if incident.client else None
        data["care_home_name"] = incident.care_home.name
        actions = (
            db.query(IncidentAction)
            .filter(IncidentAction.incident_id == incident.id)
            .all()
        )
        followups = (
            db.query(IncidentFollowup)
            .filter(IncidentFollowup.incident_id == incident.id)
            .all()
        )
        data["actions"] = [
            action_view(action, now) for action in sorted(actions, key=_action_sort_key)
        ]
        data["followups"] = sorted(
            followups, key=lambda f: as_utc(f.recorded_at), reverse=True
        )
        return data

    @staticmethod
    def list(
        db: Session,
        scope: AccessScope,
        search: str | None = None,
        severity: str | None = None,
        status: str | None = None,
        exclude_status: str | list[str] | None = None,
        care_home_id: str | None = None,
        client_id: str | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> dict:
        scope.require("incidents:read")
        query = db.query(Incident).outerjoin(Client, Incident.client_id == Client.id)
        query = scope.apply(query, Incident.care_home_id)
        if severity and severity != "all":
            query = query.filter(
                Incident.severity == parse_enum(IncidentSeverity, severity, "severity")
            )
        if status and status != "all":
            query = query.filter(Incident.status == parse_enum(IncidentStatus, status))
        excluded = _split_statuses(exclude_status)
        if excluded:
            query = query.filter(Incident.status.notin_(excluded))
        if care_home_id and care_home_id != "all":
            query = query.filter(Incident.care_home_id == coerce_uuid(care_home_id))
        if client_id:
            query = query.filter(Incident.client_id == coerce_uuid(client_id))
        query = apply_search(
            query,
            search,
            [
                Incident.title,
                Incident.description,
                Incident.incident_type,
                Client.first_name,
                Client.last_name,
            ],
        )
        query = query.order_by(Incident.incident_date.desc())
        return paginate(query, page, limit)

    @staticmethod
    def update_status(
        db: Session, scope: AccessScope, incident_id: str, payload: IncidentStatusUpdate
    ) -> Incident:
        scope.require("incidents:manage")
        incident = load_incident(db, scope, incident_id)
        target = parse_enum(IncidentStatus, payload.status)
        previous = incident.status
        changed = ensure_transition(LifecycleEntity.incident, previous, target)
        if payload.investigation_notes is not None:
            incident.investigation_notes = payload.investigation_notes
        if payload.preventive_measures is not None:
            incident.preventive_measures = payload.preventive_measures
        if changed:
            incident.status = target
            if target in _RESOLVED and incident.resolved_date is None:
                incident.resolved_date = utcnow()
            audit_events.record(
                db,
                actor_id=scope.actor_id,
                entity_type="incident",
                entity_id=incident.id,
                action="status_changed",
                description=f"Incident {previous.value} -> {target.value}",
                care_home_id=incident.care_home_id,
                metadata={"from": previous.value, "to": target.value},
            )
        db.flush()
        db.refresh(incident)
        logger.info("Incident %s status %s", incident.id, incident.status.value)
        return incident


class IncidentActions:
    @staticmethod
    def create(
        db: Session, scope: AccessScope, incident_id: str, payload: IncidentActionCreate
    ) -> IncidentAction:
        scope.require("incidents:manage")
        incident = load_incident(db, scope, incident_id)
        if payload.assigned_to and not db.get(Profile, payload.assigned_to):
            raise HTTPException(status_code=404, detail="Assignee not found")
        action = IncidentAction(
            incident_id=incident.id,
            title=payload.title,
            description=payload.description,
            assigned_to=payload.assigned_to,
            due_at=payload.due_at,
            status=IncidentActionStatus.pending,
            created_by=scope.actor_id,
        )
        db.add(action)
        db.flush()
        db.refresh(action)
        logger.info("Created action %s on incident %s", action.id, incident.id)
        return action

    @staticmethod
    def update_status(
        db: Session, scope: AccessScope, action_id: str, status: str
    ) -> IncidentAction:
        scope.require("incidents:manage")
        action = db.get(IncidentAction, coerce_uuid(action_id))
        if not action or not scope.allows(action.incident.care_home_id):
            raise HTTPException(status_code=404, detail="Incident action not found")
        target = parse_enum(IncidentActionStatus, status)
        if not ensure_transition(LifecycleEntity.incident_action, action.status, target):
            return action
        action.status = target
        action.completed_at = (
            utcnow() if target == IncidentActionStatus.completed else None
        )
        db.flush()
        db.refresh(action)
        logger.info("Incident action %s moved to %s", action.id, target.value)
        return action


class IncidentFollowups:
    @staticmethod
    def create(
        db: Session,
        scope: AccessScope,
        incident_id: str,
        payload: IncidentFollowupCreate,
    ) -> IncidentFollowup:
        scope.require("incident_followups:write")
        incident = load_incident(db, scope, incident_id)
        followup = IncidentFollowup(
            incident_id=incident.id,
            note=payload.note,
            next_review_at=payload.next_review_at,
            recorded_by=scope.actor_id,
            recorded_at=utcnow(),
        )
        db.add(followup)
        db.flush()
        db.refresh(followup)
        logger.info("Recorded followup %s on incident %s", followup.id, incident.id)
        return followup


incidents = Incidents()
incident_actions = IncidentActions()
incident_followups = IncidentFollowups()
