import logging
from datetime import datetime

from fastapi import HTTPException
from sqlalchemy.orm import Session

from qualis.models.notification import (
    NotificationChannel,
    NotificationQueueEntry,
    NotificationStatus,
)
from qualis.services.access import AccessScope
from qualis.services.audit import audit_events
from qualis.services.common import apply_search, coerce_uuid, paginate, parse_enum
from qualis.services.dates import utcnow
from qualis.services.lifecycle import LifecycleEntity, ensure_transition

logger = logging.getLogger(__name__)

_FINISHED = (NotificationStatus.sent, NotificationStatus.cancelled)

_STATUS_ACTIONS = {
    NotificationStatus.queued: "retried",
    NotificationStatus.sent: "marked_sent",
    NotificationStatus.cancelled: "cancelled",
}


def apply_status(
    entry: NotificationQueueEntry,
    target: NotificationStatus,
    error_message: str | None = None,
    now: datetime | None = None,
) -> bool:
    """Move a queue entry through its lifecycle, stamping delivery fields."""
    if not ensure_transition(LifecycleEntity.notification, entry.status, target):
        return False
    entry.status = target
    if target == NotificationStatus.sent:
        entry.sent_at = now or utcnow()
        entry.error_message = None
    elif target == NotificationStatus.failed:
        entry.error_message = error_message
    elif target == NotificationStatus.queued:
        entry.error_message = None
        entry.sent_at = None
    return True


class Notifications:
    @staticmethod
    def get(db: Session, scope: AccessScope, notification_id: str) -> NotificationQueueEntry:
        scope.require("notifications:read")
        entry = db.get(NotificationQueueEntry, coerce_uuid(notification_id))
        if not entry or (
            not scope.can("notifications:manage") and entry.recipient_id != scope.actor_id
        ):
            raise HTTPException(status_code=404, detail="Notification not found")
        return entry

    @staticmethod
    def list(
        db: Session,
        scope: AccessScope,
        status: str | None = "active",
        channel: str | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> dict:
        scope.require("notifications:read")
        query = db.query(NotificationQueueEntry)
        if not scope.can("notifications:manage"):
            query = query.filter(NotificationQueueEntry.recipient_id == scope.actor_id)
        if status == "active":
            query = query.filter(NotificationQueueEntry.status.notin_(_FINISHED))
        elif status and status != "all":
            query = query.filter(
                NotificationQueueEntry.status == parse_enum(NotificationStatus, status)
            )
        if channel and channel != "all":
            query = query.filter(
                NotificationQueueEntry.channel
                == parse_enum(NotificationChannel, channel, "channel")
            )
        query = apply_search(
            query,
            search,
            [NotificationQueueEntry.subject, NotificationQueueEntry.related_entity_type],
        )
        query = query.order_by(NotificationQueueEntry.created_at.desc())
        return paginate(query, page, limit)

    @staticmethod
    def update_status(
        db: Session, scope: AccessScope, notification_id: str, status: str
    ) -> NotificationQueueEntry:
        """Retry, mark sent or cancel a queue entry (business owners only)."""
        scope.require("notifications:manage")
        target = parse_enum(NotificationStatus, status)
        if target not in _STATUS_ACTIONS:
            raise HTTPException(
                status_code=400, detail=f"Cannot set notification status to {status}"
            )
        entry = db.get(NotificationQueueEntry, coerce_uuid(notification_id))
        if not entry:
            raise HTTPException(status_code=404, detail="Notification not found")
        previous = entry.status
        if not apply_status(entry, target):
            return entry
        audit_events.record(
            db,
            actor_id=scope.actor_id,
            entity_type="notification",
            entity_id=entry.id,
            action=_STATUS_ACTIONS[target],
            description=f"Notification {previous.value} -> {target.value}",
            metadata={"channel": entry.channel.value, "subject": entry.subject},
        )
        db.flush()
        db.refresh(entry)
        logger.info("Notification %s moved to %s", entry.id, target.value)
        return entry


notifications = Notifications()
