import logging

from sqlalchemy.orm import Session

from qualis.models.audit import AuditEvent
from qualis.services.access import AccessScope
from qualis.services.common import apply_search, coerce_uuid, paginate

logger = logging.getLogger(__name__)


class AuditEvents:
    @staticmethod
    def record(
        db: Session,
        actor_id,
        entity_type: str,
        entity_id,
        action: str,
        description: str | None = None,
        care_home_id=None,
        metadata: dict | None = None,
    ) -> AuditEvent:
        event = AuditEvent(
            actor_id=coerce_uuid(actor_id),
            care_home_id=coerce_uuid(care_home_id),
            entity_type=entity_type,
            entity_id=coerce_uuid(entity_id),
            action=action,
            description=description,
            metadata_=metadata or {},
        )
        db.add(event)
        db.flush()
        logger.info("Recorded audit event %s %s %s", entity_type, action, entity_id)
        return event

    @staticmethod
    def list(
        db: Session,
        scope: AccessScope,
        search: str | None = None,
        entity_type: str | None = None,
        care_home_id: str | None = None,
        page: int = 1,
        limit: int = 15,
    ) -> dict:
        scope.require("audit:read")
        query = scope.apply(db.query(AuditEvent), AuditEvent.care_home_id)
        if entity_type and entity_type != "all":
            query = query.filter(AuditEvent.entity_type == entity_type)
        if care_home_id and care_home_id != "all":
            query = query.filter(AuditEvent.care_home_id == coerce_uuid(care_home_id))
        query = apply_search(
            query,
            search,
            [
                AuditEvent.action,
                AuditEvent.description,
                AuditEvent.metadata_["clientName"].as_string(),
            ],
        )
        query = query.order_by(AuditEvent.created_at.desc())
        return paginate(query, page, limit)


audit_events = AuditEvents()
