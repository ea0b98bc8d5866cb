import json
import logging
from datetime import datetime, timedelta, timezone

import httpx

from qualis.celery_app import celery_app
from qualis.config import settings

logger = logging.getLogger(__name__)

DEFAULT_SUBJECT = "Qualis Digital update"
# Claimed rows still in ``sending`` after this long belong to a dead run.
SENDING_TIMEOUT = timedelta(minutes=15)


@celery_app.task(
    name="qualis.tasks.notifications.send_queued_emails", ignore_result=True
)
def send_queued_emails(batch_size: int | None = None) -> dict | None:
    """Deliver queued e-mail notifications through Resend.

    Claims a batch of queued rows, sends each one, and records the outcome
    on the row (sent or failed with the provider's error).
    """
    from qualis.db import SessionLocal

    db = SessionLocal()
    try:
        return _send(db, batch_size or settings.notification_batch_size)
    except Exception as e:
        logger.exception("Failed to send queued e-mails: %s", e)
        db.rollback()
        return None
    finally:
        db.close()


def _release_stale(
    db: "Session",  # type: ignore[name-defined]  # noqa: F821
    now: datetime,
) -> int:
    from qualis.models.notification import (
        NotificationChannel,
        NotificationQueueEntry,
        NotificationStatus,
    )
    from qualis.services.notifications import apply_status

    stale = (
        db.query(NotificationQueueEntry)
        .filter(
            NotificationQueueEntry.channel == NotificationChannel.email,
            NotificationQueueEntry.status == NotificationStatus.sending,
            NotificationQueueEntry.updated_at < now - SENDING_TIMEOUT,
        )
        .with_for_update(skip_locked=True)
        .all()
    )
    for entry in stale:
        apply_status(entry, NotificationStatus.failed, "Delivery was interrupted")
    if stale:
        logger.warning("Marked %d interrupted e-mails as failed", len(stale))
    return len(stale)


def _claim(
    db: "Session",  # type: ignore[name-defined]  # noqa: F821
    batch_size: int,
    now: datetime,
) -> list:
    from sqlalchemy import or_

    from qualis.models.notification import (
        NotificationChannel,
        NotificationQueueEntry,
        NotificationStatus,
    )
    from qualis.services.notifications import apply_status

    _release_stale(db, now)
    entries = (
        db.query(NotificationQueueEntry)
        .filter(
            NotificationQueueEntry.channel == NotificationChannel.email,
            NotificationQueueEntry.status == NotificationStatus.queued,
            or_(
                NotificationQueueEntry.send_after.is_(None),
                NotificationQueueEntry.send_after <= now,
            ),
        )
        .order_by(NotificationQueueEntry.created_at.asc())
        .limit(batch_size)
        .with_for_update(skip_locked=True)
        .all()
    )
    for entry in entries:
        apply_status(entry, NotificationStatus.sending)
    db.commit()
    return entries


def _render(entry) -> tuple[str, str, str]:
    payload = entry.payload or {}
    subject = entry.subject or payload.get("subject") or DEFAULT_SUBJECT
    text = payload.get("body") or json.dumps(payload, indent=2, default=str)
    html = payload.get("htmlBody") or text.replace("\n", "<br />")
    return subject, text, html


def _deliver(client: httpx.Client, entry, email: str) -> None:
    subject, text, html = _render(entry)
    response = client.post(
        settings.resend_api_url,
        headers={"Authorization": f"Bearer {settings.resend_api_key}"},
        json={
            "from": settings.notification_email_from,
            "to": [email],
            "subject": subject,
            "text": text,
            "html": html,
        },
    )
    response.raise_for_status()


def _send(
    db: "Session",  # type: ignore[name-defined]  # noqa: F821
    batch_size: int,
    http_client: httpx.Client | None = None,
) -> dict:
    from qualis.models.notification import NotificationStatus
    from qualis.models.profile import Profile
    from qualis.services.notifications import apply_status

    summary = {"processed": 0, "sent": 0, "failed": 0}
    if not settings.resend_api_key:
        logger.warning("RESEND_API_KEY is not set; skipping e-mail delivery")
        return summary

    now = datetime.now(timezone.utc)
    entries = _claim(db, batch_size, now)
    if not entries:
        return summary

    recipient_ids = {entry.recipient_id for entry in entries}
    emails = dict(
        db.query(Profile.id, Profile.email).filter(Profile.id.in_(recipient_ids)).all()
    )

    client = http_client or httpx.Client(timeout=10.0)
    try:
        for entry in entries:
            summary["processed"] += 1
            email = emails.get(entry.recipient_id)
            error = None
            if not email:
                error = "Recipient e-mail not found"
            else:
                try:
                    _deliver(client, entry, email)
                except httpx.HTTPError as e:
                    logger.warning("E-mail %s to %s failed: %s", entry.id, email, e)
                    error = str(e)
                except Exception as e:
                    logger.exception("E-mail %s to %s crashed", entry.id, email)
                    error = f"Unexpected delivery error: {e}"
            if error:
                apply_status(entry, NotificationStatus.failed, error)
                summary["failed"] += 1
            else:
                apply_status(
                    entry, NotificationStatus.sent, now=datetime.now(timezone.utc)
                )
                summary["sent"] += 1
            # Each outcome is durable before the next row is attempted.
            db.commit()
    finally:
        if http_client is None:
            client.close()

    logger.info(
        "Processed %d e-mails: %d sent, %d failed",
        summary["processed"],
        summary["sent"],
        summary["failed"],
    )
    return summary
