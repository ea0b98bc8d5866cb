"""Status transition tables for every entity with a lifecycle.

Mutating services call :func:`ensure_transition` before they change a status.
Asking for the status a row already has is a successful no-op, and the
caller is told so through the boolean return value.
"""

import enum

from fastapi import HTTPException

from qualis.models.care_plan import (
    CarePlanReviewStatus,
    CarePlanTaskStatus,
    CarePlanVersionStatus,
)
from qualis.models.incident import IncidentActionStatus, IncidentStatus
from qualis.models.notification import NotificationStatus


class LifecycleEntity(enum.Enum):
    care_plan_version = "care_plan_version"
    care_plan_task = "care_plan_task"
    care_plan_review = "care_plan_review"
    incident = "incident"
    incident_action = "incident_action"
    notification = "notification"


_V = CarePlanVersionStatus
_T = CarePlanTaskStatus
_R = CarePlanReviewStatus
_I = IncidentStatus
_A = IncidentActionStatus
_N = NotificationStatus

TRANSITIONS: dict[LifecycleEntity, dict[enum.Enum, frozenset]] = {
    LifecycleEntity.care_plan_version: {
        _V.draft: frozenset({_V.active, _V.archived}),
        _V.active: frozenset({_V.archived}),
        _V.archived: frozenset(),
    },
    # Work is started before it can be completed.
    LifecycleEntity.care_plan_task: {
        _T.pending: frozenset({_T.in_progress, _T.cancelled}),
        _T.in_progress: frozenset({_T.completed, _T.cancelled}),
        _T.completed: frozenset(),
        _T.cancelled: frozenset(),
    },
    # overdue is derived from the schedule, so it is never a target.
    LifecycleEntity.care_plan_review: {
        _R.scheduled: frozenset({_R.in_progress, _R.completed, _R.cancelled}),
        _R.overdue: frozenset({_R.in_progress, _R.completed, _R.cancelled}),
        _R.in_progress: frozenset({_R.completed, _R.cancelled}),
        _R.completed: frozenset(),
        _R.cancelled: frozenset(),
    },
    # Forward only; stages may be skipped.
    LifecycleEntity.incident: {
        _I.open: frozenset({_I.investigating, _I.resolved, _I.closed}),
        _I.investigating: frozenset({_I.resolved, _I.closed}),
        _I.resolved: frozenset({_I.closed}),
        _I.closed: frozenset(),
    },
    LifecycleEntity.incident_action: {
        _A.pending: frozenset({_A.in_progress, _A.cancelled}),
        _A.overdue: frozenset({_A.in_progress, _A.cancelled}),
        _A.in_progress: frozenset({_A.completed, _A.cancelled}),
        _A.completed: frozenset(),
        _A.cancelled: frozenset(),
    },
    LifecycleEntity.notification: {
        _N.queued: frozenset({_N.sending, _N.sent, _N.cancelled}),
        _N.sending: frozenset({_N.sent, _N.failed, _N.cancelled}),
        _N.failed: frozenset({_N.queued, _N.sent, _N.cancelled}),
        _N.sent: frozenset(),
        _N.cancelled: frozenset(),
    },
}


def allowed_targets(entity: LifecycleEntity, current: enum.Enum) -> frozenset:
    return TRANSITIONS[entity].get(current, frozenset())


def can_transition(
    entity: LifecycleEntity, current: enum.Enum, target: enum.Enum
) -> bool:
    return current == target or target in allowed_targets(entity, current)


def ensure_transition(
    entity: LifecycleEntity, current: enum.Enum, target: enum.Enum
) -> bool:
    """Validate ``current -> target``; return False when nothing would change."""
    if current == target:
        return False
    if target not in allowed_targets(entity, current):
        raise HTTPException(
            status_code=400,
            detail={
                "code": "invalid_transition",
                "message": (
                    f"Cannot move {entity.value} from {current.value} "
                    f"to {target.value}"
                ),
                "details": {
                    "entity": entity.value,
                    "from": current.value,
                    "to": target.value,
                    "allowed": sorted(
                        t.value for t in allowed_targets(entity, current)
                    ),
                },
            },
        )
    return True


def precondition_failed(message: str) -> HTTPException:
    return HTTPException(
        status_code=400,
        detail={"code": "precondition_failed", "message": message, "details": None},
    )
