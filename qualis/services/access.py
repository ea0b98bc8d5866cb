"""Role-scoped visibility.

Every read and write goes through an :class:`AccessScope` resolved once per
request from the acting profile. The scope answers two questions:

* may this role perform the operation at all (``require``), and
* which care homes' rows may it see (``apply`` / ``ensure_care_home``).

Managers are limited to the homes assigned to them in ``manager_care_homes``.
Business owners and carers are unrestricted, which is represented by
``care_home_ids is None``. An empty set is a real answer (no homes) and
narrows every query to nothing.
"""

import logging
import uuid
from dataclasses import dataclass

from fastapi import HTTPException
from sqlalchemy import false, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from qualis.models.profile import ManagerCareHome, Profile, UserRole

logger = logging.getLogger(__name__)


ALL_PERMISSIONS = frozenset(
    {
        "care_homes:read",
        "care_homes:write",
        "clients:read",
        "clients:write",
        "care_plans:read",
        "care_plans:write",
        "care_plan_tasks:update_status",
        "incidents:read",
        "incidents:report",
        "incidents:manage",
        "incident_followups:write",
        "handovers:read",
        "handovers:write",
        "notifications:read",
        "notifications:manage",
        "audit:read",
        "users:manage",
        "documents:read",
        "documents:write",
        "dashboard:read",
    }
)

ROLE_PERMISSIONS: dict[UserRole, frozenset[str]] = {
    UserRole.business_owner: ALL_PERMISSIONS,
    UserRole.manager: ALL_PERMISSIONS
    - {"care_homes:write", "notifications:manage", "users:manage"},
    UserRole.carer: frozenset(
        {
            "care_homes:read",
            "clients:read",
            "care_plans:read",
            "care_plan_tasks:update_status",
            "incidents:read",
            "incidents:report",
            "incident_followups:write",
            "handovers:read",
            "handovers:write",
            "notifications:read",
            "documents:read",
            "documents:write",
        }
    ),
}


def has_permission(role: UserRole, permission: str) -> bool:
    return permission in ROLE_PERMISSIONS.get(role, frozenset())


@dataclass(frozen=True)
class AccessScope:
    actor_id: uuid.UUID
    role: UserRole
    care_home_ids: frozenset[uuid.UUID] | None = None

    @property
    def is_unrestricted(self) -> bool:
        return self.care_home_ids is None

    def can(self, permission: str) -> bool:
        return has_permission(self.role, permission)

    def require(self, permission: str) -> None:
        if not self.can(permission):
            raise HTTPException(status_code=403, detail="Not permitted")

    def allows(self, care_home_id) -> bool:
        if self.care_home_ids is None:
            return True
        return care_home_id in self.care_home_ids

    def apply(self, query, care_home_column):
        """Narrow ``query`` to rows whose ``care_home_column`` is in scope."""
        if self.care_home_ids is None:
            return query
        if not self.care_home_ids:
            return query.filter(false())
        return query.filter(care_home_column.in_(self.care_home_ids))

    def ensure_care_home(self, care_home_id, not_found: str) -> None:
        """Out-of-scope rows are reported exactly like missing rows."""
        if not self.allows(care_home_id):
            raise HTTPException(status_code=404, detail=not_found)


def resolve_scope(db: Session, actor: Profile) -> AccessScope:
    if actor.role != UserRole.manager:
        return AccessScope(actor_id=actor.id, role=actor.role)
    try:
        rows = db.scalars(
            select(ManagerCareHome.care_home_id).where(
                ManagerCareHome.manager_id == actor.id
            )
        ).all()
    except SQLAlchemyError as exc:
        logger.error("Failed to load care home assignments for %s: %s", actor.id, exc)
        raise HTTPException(
            status_code=503,
            detail={
                "code": "scope_unavailable",
                "message": "Unable to resolve care home assignments",
                "details": {"retryable": True},
            },
        )
    return AccessScope(
        actor_id=actor.id, role=actor.role, care_home_ids=frozenset(rows)
    )
