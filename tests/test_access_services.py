import uuid
from unittest.mock import MagicMock

import pytest
from fastapi import HTTPException
from sqlalchemy.exc import OperationalError

from qualis.models.care_home import Client
from qualis.models.profile import Profile, UserRole
from qualis.services.access import AccessScope, has_permission, resolve_scope


class TestPermissionTable:
    def test_owner_has_everything(self):
        assert has_permission(UserRole.business_owner, "users:manage")
        assert has_permission(UserRole.business_owner, "notifications:manage")

    def test_manager_cannot_manage_users_or_homes(self):
        assert not has_permission(UserRole.manager, "users:manage")
        assert not has_permission(UserRole.manager, "care_homes:write")
        assert has_permission(UserRole.manager, "care_plans:write")

    def test_carer_is_read_mostly(self):
        assert has_permission(UserRole.carer, "incidents:report")
        assert has_permission(UserRole.carer, "care_plan_tasks:update_status")
        assert not has_permission(UserRole.carer, "clients:write")
        assert not has_permission(UserRole.carer, "incidents:manage")
        assert not has_permission(UserRole.carer, "dashboard:read")

    def test_require_raises_forbidden(self, carer_scope):
        with pytest.raises(HTTPException) as exc:
            carer_scope.require("audit:read")
        assert exc.value.status_code == 403


class TestAccessScope:
    def test_unrestricted_allows_any_home(self, owner_scope):
        assert owner_scope.is_unrestricted
        assert owner_scope.allows(uuid.uuid4())

    def test_manager_scope_limits_homes(self, manager_scope, care_home, other_home):
        assert manager_scope.allows(care_home.id)
        assert not manager_scope.allows(other_home.id)

    def test_apply_filters_rows(
        self, db_session, manager_scope, resident, other_resident
    ):
        rows = manager_scope.apply(db_session.query(Client), Client.care_home_id).all()
        assert [row.id for row in rows] == [resident.id]

    def test_empty_assignment_sees_nothing(self, db_session, manager, resident):
        scope = AccessScope(
            actor_id=manager.id, role=UserRole.manager, care_home_ids=frozenset()
        )
        query = scope.apply(db_session.query(Client), Client.care_home_id)
        assert query.count() == 0

    def test_ensure_care_home_reports_not_found(self, manager_scope, other_home):
        with pytest.raises(HTTPException) as exc:
            manager_scope.ensure_care_home(other_home.id, "Care home not found")
        assert exc.value.status_code == 404


class TestResolveScope:
    def test_owner_is_unrestricted(self, db_session, owner):
        scope = resolve_scope(db_session, owner)
        assert scope.care_home_ids is None
        assert scope.role == UserRole.business_owner

    def test_carer_is_unrestricted(self, db_session, carer):
        assert resolve_scope(db_session, carer).care_home_ids is None

    def test_manager_gets_assigned_homes(self, db_session, manager, care_home):
        scope = resolve_scope(db_session, manager)
        assert scope.care_home_ids == frozenset({care_home.id})

    def test_manager_without_homes_gets_empty_set(self, db_session, manager):
        scope = resolve_scope(db_session, manager)
        assert scope.care_home_ids == frozenset()

    def test_lookup_failure_is_service_unavailable(self):
        db = MagicMock()
        db.scalars.side_effect = OperationalError("SELECT", {}, Exception("down"))
        actor = Profile(id=uuid.uuid4(), email="m@example.com", role=UserRole.manager)
        with pytest.raises(HTTPException) as exc:
            resolve_scope(db, actor)
        assert exc.value.status_code == 503
        assert exc.value.detail["code"] == "scope_unavailable"
