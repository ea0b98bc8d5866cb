from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest

from qualis.models.notification import (
    NotificationChannel,
    NotificationQueueEntry,
    NotificationStatus,
)
from qualis.models.profile import Profile, UserRole
from tests.mocks import FakeEmailClient, FakeHTTPXResponse


@pytest.fixture()
def mail_settings():
    with patch("qualis.tasks.notifications.settings") as mock_settings:
        mock_settings.resend_api_key = "re_test"
        mock_settings.resend_api_url = "https://api.resend.test/emails"
        mock_settings.notification_email_from = "Qualis <noreply@qualis.test>"
        yield mock_settings


def _queue(db_session, recipient, channel=NotificationChannel.email, **kwargs):
    entry = NotificationQueueEntry(
        recipient_id=recipient.id,
        channel=channel,
        status=kwargs.pop("status", NotificationStatus.queued),
        subject="Incident logged: Ada Lovelace",
        payload={"body": "fall (high) recorded for Ada Lovelace at Willow House."},
        **kwargs,
    )
    db_session.add(entry)
    db_session.commit()
    db_session.refresh(entry)
    return entry


class TestSendQueuedEmails:
    def test_sends_and_marks_sent(self, db_session, owner, mail_settings):
        from qualis.tasks.notifications import _send

        entry = _queue(db_session, owner)
        http = FakeEmailClient()

        summary = _send(db_session, batch_size=10, http_client=http)

        assert summary == {"processed": 1, "sent": 1, "failed": 0}
        db_session.refresh(entry)
        assert entry.status == NotificationStatus.sent
        assert entry.sent_at is not None
        request = http.sent[0]
        assert request["url"] == "https://api.resend.test/emails"
        assert request["headers"]["Authorization"] == "Bearer re_test"
        assert request["json"]["to"] == [owner.email]
        assert request["json"]["subject"] == "Incident logged: Ada Lovelace"

    def test_provider_error_marks_failed(self, db_session, owner, mail_settings):
        from qualis.tasks.notifications import _send

        entry = _queue(db_session, owner)
        summary = _send(
            db_session, batch_size=10, http_client=FakeEmailClient([owner.email])
        )
        assert summary["failed"] == 1
        db_session.refresh(entry)
        assert entry.status == NotificationStatus.failed
        assert "422" in entry.error_message

    def test_skips_in_app_and_future_rows(self, db_session, owner, mail_settings):
        from qualis.tasks.notifications import _send

        in_app = _queue(db_session, owner, channel=NotificationChannel.in_app)
        later = _queue(
            db_session,
            owner,
            send_after=datetime.now(timezone.utc) + timedelta(hours=1),
        )
        summary = _send(db_session, batch_size=10, http_client=FakeEmailClient())
        assert summary["processed"] == 0
        db_session.refresh(in_app)
        db_session.refresh(later)
        assert in_app.status == NotificationStatus.queued
        assert later.status == NotificationStatus.queued

    def test_unexpected_error_fails_only_that_row(
        self, db_session, owner, manager, mail_settings
    ):
        from qualis.tasks.notifications import _send

        first = _queue(db_session, owner)
        second = _queue(db_session, manager)
        http = MagicMock()
        http.post.side_effect = [RuntimeError("socket closed"), FakeHTTPXResponse()]

        summary = _send(db_session, batch_size=10, http_client=http)

        assert summary == {"processed": 2, "sent": 1, "failed": 1}
        db_session.refresh(first)
        db_session.refresh(second)
        assert first.status == NotificationStatus.failed
        assert "socket closed" in first.error_message
        assert second.status == NotificationStatus.sent

    def test_interrupted_rows_are_released(self, db_session, owner, mail_settings):
        from qualis.tasks.notifications import _send

        stuck = _queue(
            db_session,
            owner,
            status=NotificationStatus.sending,
            updated_at=datetime.now(timezone.utc) - timedelta(hours=1),
        )
        recent = _queue(db_session, owner, status=NotificationStatus.sending)

        summary = _send(db_session, batch_size=10, http_client=FakeEmailClient())

        assert summary["processed"] == 0
        db_session.refresh(stuck)
        db_session.refresh(recent)
        assert stuck.status == NotificationStatus.failed
        assert stuck.error_message == "Delivery was interrupted"
        assert recent.status == NotificationStatus.sending

    def test_batch_size_limits_claim(self, db_session, owner, mail_settings):
        from qualis.tasks.notifications import _send

        for _ in range(3):
            _queue(db_session, owner)
        summary = _send(db_session, batch_size=2, http_client=FakeEmailClient())
        assert summary["processed"] == 2
        remaining = (
            db_session.query(NotificationQueueEntry)
            .filter(NotificationQueueEntry.status == NotificationStatus.queued)
            .count()
        )
        assert remaining == 1

    def test_missing_email_marks_failed(self, db_session, mail_settings):
        from qualis.tasks.notifications import _send

        ghost = Profile(email="", role=UserRole.manager)
        db_session.add(ghost)
        db_session.commit()
        entry = _queue(db_session, ghost)

        summary = _send(db_session, batch_size=10, http_client=FakeEmailClient())
        assert summary == {"processed": 1, "sent": 0, "failed": 1}
        db_session.refresh(entry)
        assert entry.error_message == "Recipient e-mail not found"

    def test_no_api_key_is_a_no_op(self, db_session, owner):
        from qualis.tasks.notifications import _send

        entry = _queue(db_session, owner)
        with patch("qualis.tasks.notifications.settings") as mock_settings:
            mock_settings.resend_api_key = ""
            summary = _send(db_session, batch_size=10, http_client=FakeEmailClient())
        assert summary["processed"] == 0
        db_session.refresh(entry)
        assert entry.status == NotificationStatus.queued

    def test_render_falls_back_to_payload(self):
        from qualis.tasks.notifications import DEFAULT_SUBJECT, _render

        entry = NotificationQueueEntry(subject=None, payload={"body": "line1\nline2"})
        subject, text, html = _render(entry)
        assert subject == DEFAULT_SUBJECT
        assert text == "line1\nline2"
        assert html == "line1<br />line2"
