import pytest
from fastapi import HTTPException

from qualis.models.care_plan import CarePlanTaskStatus, CarePlanVersionStatus
from qualis.models.incident import IncidentActionStatus, IncidentStatus
from qualis.models.notification import NotificationStatus
from qualis.services.lifecycle import (
    LifecycleEntity,
    allowed_targets,
    can_transition,
    ensure_transition,
    precondition_failed,
)


class TestTransitions:
    def test_version_draft_can_activate(self):
        assert can_transition(
            LifecycleEntity.care_plan_version,
            CarePlanVersionStatus.draft,
            CarePlanVersionStatus.active,
        )

    def test_archived_version_is_terminal(self):
        assert allowed_targets(
            LifecycleEntity.care_plan_version, CarePlanVersionStatus.archived
        ) == frozenset()

    def test_incident_is_forward_only(self):
        assert can_transition(
            LifecycleEntity.incident, IncidentStatus.open, IncidentStatus.closed
        )
        assert not can_transition(
            LifecycleEntity.incident, IncidentStatus.resolved, IncidentStatus.open
        )

    def test_failed_notification_can_be_retried(self):
        assert can_transition(
            LifecycleEntity.notification,
            NotificationStatus.failed,
            NotificationStatus.queued,
        )
        assert not can_transition(
            LifecycleEntity.notification,
            NotificationStatus.sent,
            NotificationStatus.queued,
        )

    def test_work_is_started_before_completion(self):
        for entity, status_cls in (
            (LifecycleEntity.care_plan_task, CarePlanTaskStatus),
            (LifecycleEntity.incident_action, IncidentActionStatus),
        ):
            assert not can_transition(
                entity, status_cls.pending, status_cls.completed
            )
            assert can_transition(entity, status_cls.in_progress, status_cls.completed)
        assert not can_transition(
            LifecycleEntity.incident_action,
            IncidentActionStatus.overdue,
            IncidentActionStatus.completed,
        )

    def test_same_state_is_a_no_op(self):
        assert (
            ensure_transition(
                LifecycleEntity.care_plan_task,
                CarePlanTaskStatus.completed,
                CarePlanTaskStatus.completed,
            )
            is False
        )

    def test_illegal_transition_raises(self):
        with pytest.raises(HTTPException) as exc:
            ensure_transition(
                LifecycleEntity.care_plan_task,
                CarePlanTaskStatus.completed,
                CarePlanTaskStatus.pending,
            )
        assert exc.value.status_code == 400
        assert exc.value.detail["code"] == "invalid_transition"
        assert exc.value.detail["details"]["from"] == "completed"
        assert exc.value.detail["details"]["allowed"] == []

    def test_precondition_failed_shape(self):
        exc = precondition_failed("Care plan has no active version")
        assert exc.status_code == 400
        assert exc.detail["code"] == "precondition_failed"
