from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException

from qualis.models.audit import AuditEvent
from qualis.models.incident import (
    IncidentAction,
    IncidentActionStatus,
    IncidentStatus,
)
from qualis.models.profile import UserRole
from qualis.schemas.incident import (
    IncidentActionCreate,
    IncidentCreate,
    IncidentFollowupCreate,
    IncidentStatusUpdate,
)
from qualis.services import incidents as incident_service
from qualis.services.access import AccessScope

NOW = datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc)


def _payload(care_home_id, client_id=None, **overrides):
    data = {
        "care_home_id": care_home_id,
        "client_id": client_id,
        "incident_type": "medication",
        "severity": "medium",
        "title": "Missed dose",
        "description": "Evening dose was not given.",
        "incident_date": NOW,
    }
    data.update(overrides)
    return IncidentCreate(**data)


class TestIncidents:
    def test_carer_reports_incident(self, db_session, carer_scope, care_home, resident):
        incident = incident_service.incidents.create(
            db_session, carer_scope, _payload(care_home.id, resident.id)
        )
        assert incident.status == IncidentStatus.open
        assert incident.reported_by == carer_scope.actor_id

    def test_follow_up_notes_dropped_when_not_required(
        self, db_session, carer_scope, care_home
    ):
        incident = incident_service.incidents.create(
            db_session,
            carer_scope,
            _payload(care_home.id, follow_up_required=False, follow_up_notes="x"),
        )
        assert incident.follow_up_notes is None

    def test_client_must_belong_to_home(
        self, db_session, owner_scope, care_home, other_resident
    ):
        with pytest.raises(HTTPException) as exc:
            incident_service.incidents.create(
                db_session, owner_scope, _payload(care_home.id, other_resident.id)
            )
        assert exc.value.status_code == 400

    def test_invalid_severity(self, db_session, owner_scope, care_home):
        with pytest.raises(HTTPException) as exc:
            incident_service.incidents.create(
                db_session, owner_scope, _payload(care_home.id, severity="extreme")
            )
        assert exc.value.status_code == 400

    def test_resolve_stamps_date_and_audits(self, db_session, manager_scope, incident):
        updated = incident_service.incidents.update_status(
            db_session,
            manager_scope,
            str(incident.id),
            IncidentStatusUpdate(status="resolved", investigation_notes="Reviewed"),
        )
        assert updated.status == IncidentStatus.resolved
        assert updated.resolved_date is not None
        assert updated.investigation_notes == "Reviewed"
        event = (
            db_session.query(AuditEvent)
            .filter(AuditEvent.entity_id == incident.id)
            .one()
        )
        assert event.action == "status_changed"
        assert event.metadata_ == {"from": "open", "to": "resolved"}

    def test_status_cannot_go_backwards(self, db_session, owner_scope, incident):
        incident_service.incidents.update_status(
            db_session, owner_scope, str(incident.id), IncidentStatusUpdate(status="closed")
        )
        with pytest.raises(HTTPException) as exc:
            incident_service.incidents.update_status(
                db_session,
                owner_scope,
                str(incident.id),
                IncidentStatusUpdate(status="investigating"),
            )
        assert exc.value.detail["code"] == "invalid_transition"

    def test_carer_cannot_change_status(self, db_session, carer_scope, incident):
        with pytest.raises(HTTPException) as exc:
            incident_service.incidents.update_status(
                db_session,
                carer_scope,
                str(incident.id),
                IncidentStatusUpdate(status="investigating"),
            )
        assert exc.value.status_code == 403

    def test_list_filters(self, db_session, owner_scope, incident):
        assert incident_service.incidents.list(db_session, owner_scope)["total"] == 1
        assert (
            incident_service.incidents.list(db_session, owner_scope, severity="low")[
                "total"
            ]
            == 0
        )
        assert (
            incident_service.incidents.list(
                db_session, owner_scope, exclude_status="open"
            )["total"]
            == 0
        )
        assert (
            incident_service.incidents.list(
                db_session, owner_scope, exclude_status=["closed", "resolved,open"]
            )["total"]
            == 0
        )
        assert (
            incident_service.incidents.list(
                db_session, owner_scope, exclude_status="closed, resolved"
            )["total"]
            == 1
        )
        found = incident_service.incidents.list(db_session, owner_scope, search="ada")
        assert [row.id for row in found["items"]] == [incident.id]

    def test_list_hides_other_homes(self, db_session, manager, incident, other_home):
        scope = AccessScope(
            actor_id=manager.id,
            role=UserRole.manager,
            care_home_ids=frozenset({other_home.id}),
        )
        assert incident_service.incidents.list(db_session, scope)["items"] == []
        with pytest.raises(HTTPException) as exc:
            incident_service.incidents.get(db_session, scope, str(incident.id))
        assert exc.value.status_code == 404


class TestIncidentActions:
    def test_detail_orders_actions(self, db_session, owner, owner_scope, incident):
        rows = [
            ("Later", IncidentActionStatus.pending, NOW + timedelta(days=5)),
            ("Working", IncidentActionStatus.in_progress, None),
            ("Done", IncidentActionStatus.completed, NOW - timedelta(days=5)),
            ("Sooner", IncidentActionStatus.pending, NOW - timedelta(days=1)),
        ]
        for title, action_status, due in rows:
            db_session.add(
                IncidentAction(
                    incident_id=incident.id,
                    title=title,
                    status=action_status,
                    due_at=due,
                    created_by=owner.id,
                )
            )
        db_session.commit()

        detail = incident_service.incidents.detail(
            db_session, owner_scope, str(incident.id), now=NOW
        )
        assert [a["title"] for a in detail["actions"]] == [
            "Sooner",
            "Later",
            "Working",
            "Done",
        ]
        assert detail["actions"][0]["is_overdue"] is True
        assert detail["actions"][3]["is_overdue"] is False
        assert detail["client_name"] == "Ada Lovelace"
        assert detail["care_home_name"] == "Willow House"

    def test_complete_action(self, db_session, manager_scope, incident):
        action = incident_service.incident_actions.create(
            db_session,
            manager_scope,
            str(incident.id),
            IncidentActionCreate(title="Retrain staff"),
        )
        with pytest.raises(HTTPException) as exc:
            incident_service.incident_actions.update_status(
                db_session, manager_scope, str(action.id), "completed"
            )
        assert exc.value.detail["code"] == "invalid_transition"
        incident_service.incident_actions.update_status(
            db_session, manager_scope, str(action.id), "in_progress"
        )
        done = incident_service.incident_actions.update_status(
            db_session, manager_scope, str(action.id), "completed"
        )
        assert done.status == IncidentActionStatus.completed
        assert done.completed_at is not None

    def test_carer_cannot_add_action(self, db_session, carer_scope, incident):
        with pytest.raises(HTTPException) as exc:
            incident_service.incident_actions.create(
                db_session,
                carer_scope,
                str(incident.id),
                IncidentActionCreate(title="Nope"),
            )
        assert exc.value.status_code == 403


class TestIncidentFollowups:
    def test_followups_newest_first(self, db_session, carer_scope, owner_scope, incident):
        for note in ("first", "second"):
            incident_service.incident_followups.create(
                db_session, carer_scope, str(incident.id), IncidentFollowupCreate(note=note)
            )
        detail = incident_service.incidents.detail(
            db_session, owner_scope, str(incident.id)
        )
        notes = [f.note for f in detail["followups"]]
        assert sorted(notes) == ["first", "second"]
        recorded = [f.recorded_at for f in detail["followups"]]
        assert recorded == sorted(recorded, reverse=True)
