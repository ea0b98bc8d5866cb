import enum
import logging
import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from qualis.models.care_home import CareHome, Client
from qualis.models.care_plan import CarePlan
from qualis.models.incident import Incident
from qualis.models.notification import (
    NotificationChannel,
    NotificationQueueEntry,
    NotificationStatus,
)
from qualis.models.profile import ManagerCareHome, Profile, UserRole
from qualis.services.audit import audit_events

logger = logging.getLogger(__name__)

DEFAULT_CHANNELS = (NotificationChannel.in_app, NotificationChannel.email)


class EventType(enum.Enum):
    incident_created = "incident.created"
    care_plan_created = "care_plan.created"


def resolve_recipients(
    db: Session, care_home_id: uuid.UUID, actor_id: uuid.UUID | None
) -> list[uuid.UUID]:
    """Managers of the home plus every active business owner, minus the actor."""
    manager_ids = db.scalars(
        select(ManagerCareHome.manager_id).where(
            ManagerCareHome.care_home_id == care_home_id
        )
    ).all()
    owner_ids = db.scalars(
        select(Profile.id).where(
            Profile.role == UserRole.business_owner, Profile.is_active.is_(True)
        )
    ).all()
    recipients: list[uuid.UUID] = []
    for recipient_id in [*manager_ids, *owner_ids]:
        if recipient_id == actor_id or recipient_id in recipients:
            continue
        recipients.append(recipient_id)
    return recipients


def queue_notifications(
    db: Session,
    recipient_ids: list[uuid.UUID],
    actor_id: uuid.UUID | None,
    subject: str,
    body: str,
    payload: dict,
    channels=DEFAULT_CHANNELS,
) -> list[NotificationQueueEntry]:
    entries = []
    related_id = payload.get("entityId")
    for recipient_id in recipient_ids:
        for channel in channels:
            entry = NotificationQueueEntry(
                recipient_id=recipient_id,
                channel=channel,
                status=NotificationStatus.queued,
                subject=subject,
                payload={
                    **payload,
                    "subject": subject,
                    "body": body,
                    "channel": channel.value,
                },
                related_entity_type=payload.get("entityType"),
                related_entity_id=uuid.UUID(related_id) if related_id else None,
                created_by=actor_id,
            )
            db.add(entry)
            entries.append(entry)
    db.flush()
    return entries


def _person_name(db: Session, profile_id) -> str | None:
    if profile_id is None:
        return None
    profile = db.get(Profile, profile_id)
    return profile.full_name if profile else None


def _incident_created(db: Session, incident: Incident, actor_id) -> None:
    care_home = db.get(CareHome, incident.care_home_id)
    care_home_name = care_home.name if care_home else "Care Home"
    client = db.get(Client, incident.client_id) if incident.client_id else None
    client_name = client.full_name if client else "Resident"
    severity = incident.severity.value

    subject = f"Incident logged: {client_name}"
    body = (
        f"{incident.incident_type} ({severity}) recorded for {client_name} "
        f"at {care_home_name}."
    )
    payload = {
        "type": EventType.incident_created.value,
        "entityType": "incident",
        "entityId": str(incident.id),
        "severity": severity,
        "incidentType": incident.incident_type,
        "incidentDate": incident.incident_date.isoformat(),
        "clientName": client_name,
        "reporterName": _person_name(db, incident.reported_by),
        "careHomeId": str(incident.care_home_id),
        "careHomeName": care_home_name,
        "link": f"/incidents/{incident.id}",
    }
    _fan_out(db, incident.care_home_id, actor_id, subject, body, payload)


def _care_plan_created(db: Session, care_plan: CarePlan, actor_id) -> None:
    client = db.get(Client, care_plan.client_id)
    care_home = db.get(CareHome, client.care_home_id) if client else None
    if care_home is None:
        logger.warning("Care plan %s has no care home context", care_plan.id)
        return
    client_name = client.full_name

    subject = f"Care plan created: {client_name}"
    body = f"{care_plan.title} drafted for {client_name} at {care_home.name}."
    payload = {
        "type": EventType.care_plan_created.value,
        "entityType": "care_plan",
        "entityId": str(care_plan.id),
        "title": care_plan.title,
        "clientId": str(client.id),
        "clientName": client_name,
        "startDate": care_plan.start_date.isoformat(),
        "reviewDate": (
            care_plan.review_date.isoformat() if care_plan.review_date else None
        ),
        "creatorName": _person_name(db, care_plan.created_by),
        "careHomeId": str(care_home.id),
        "careHomeName": care_home.name,
        "link": f"/care-plans/{care_plan.id}",
    }
    _fan_out(db, care_home.id, actor_id, subject, body, payload)


def _fan_out(db: Session, care_home_id, actor_id, subject, body, payload) -> None:
    recipients = resolve_recipients(db, care_home_id, actor_id)
    queue_notifications(db, recipients, actor_id, subject, body, payload)
    audit_events.record(
        db,
        actor_id=actor_id,
        entity_type=payload["entityType"],
        entity_id=payload["entityId"],
        action="created",
        description=body,
        care_home_id=care_home_id,
        metadata=payload,
    )


_HANDLERS = {
    EventType.incident_created: _incident_created,
    EventType.care_plan_created: _care_plan_created,
}


def publish_event(db: Session, event_type: EventType, entity, actor_id) -> None:
    """Fan an entity event out to notifications and the audit trail.

    Runs in a savepoint of the caller's transaction. Never raises: a failure
    is logged and rolled back without touching the entity that triggered it.
    """
    try:
        with db.begin_nested():
            _HANDLERS[event_type](db, entity, actor_id)
        logger.debug("Published event %s for %s", event_type.value, entity.id)
    except Exception as e:
        logger.exception("Failed to publish event %s: %s", event_type.value, e)
