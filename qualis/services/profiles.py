import logging

from fastapi import HTTPException
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from qualis.models.care_home import CareHome
from qualis.models.profile import ManagerCareHome, Profile, UserRole
from qualis.schemas.profile import (
    CareHomeAssignmentUpdate,
    ProfileSelfUpdate,
    UserAdminUpdate,
)
from qualis.services.access import AccessScope
from qualis.services.common import apply_search, coerce_uuid, paginate, parse_enum

logger = logging.getLogger(__name__)


def _assigned_home_ids(db: Session, profile_id) -> list:
    return list(
        db.scalars(
            select(ManagerCareHome.care_home_id).where(
                ManagerCareHome.manager_id == profile_id
            )
        ).all()
    )


def user_view(db: Session, profile: Profile) -> dict:
    return {
        "id": profile.id,
        "email": profile.email,
        "first_name": profile.first_name,
        "last_name": profile.last_name,
        "phone": profile.phone,
        "avatar_url": profile.avatar_url,
        "role": profile.role,
        "is_active": profile.is_active,
        "created_at": profile.created_at,
        "updated_at": profile.updated_at,
        "care_home_ids": _assigned_home_ids(db, profile.id),
    }


class Profiles:
    @staticmethod
    def me(db: Session, scope: AccessScope) -> Profile:
        profile = db.get(Profile, scope.actor_id)
        if not profile:
            raise HTTPException(status_code=404, detail="Profile not found")
        return profile

    @staticmethod
    def update_me(db: Session, scope: AccessScope, payload: ProfileSelfUpdate) -> Profile:
        profile = Profiles.me(db, scope)
        for key, value in payload.model_dump(exclude_unset=True).items():
            setattr(profile, key, value)
        db.flush()
        db.refresh(profile)
        logger.info("Updated own profile %s", profile.id)
        return profile


class Users:
    """User administration, limited to business owners."""

    @staticmethod
    def get(db: Session, scope: AccessScope, user_id: str) -> Profile:
        scope.require("users:manage")
        profile = db.get(Profile, coerce_uuid(user_id))
        if not profile:
            raise HTTPException(status_code=404, detail="User not found")
        return profile

    @staticmethod
    def list(
        db: Session,
        scope: AccessScope,
        role: str | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = 25,
    ) -> dict:
        scope.require("users:manage")
        query = db.query(Profile)
        if role and role != "all":
            query = query.filter(Profile.role == parse_enum(UserRole, role, "role"))
        query = apply_search(
            query, search, [Profile.first_name, Profile.last_name, Profile.email]
        )
        query = query.order_by(Profile.last_name.asc(), Profile.email.asc())
        result = paginate(query, page, limit)
        result["items"] = [user_view(db, profile) for profile in result["items"]]
        return result

    @staticmethod
    def update(
        db: Session, scope: AccessScope, user_id: str, payload: UserAdminUpdate
    ) -> Profile:
        profile = Users.get(db, scope, user_id)
        data = payload.model_dump(exclude_unset=True)
        if profile.id == scope.actor_id and data:
            raise HTTPException(
                status_code=400, detail="Cannot change your own role or status"
            )
        if "role" in data and data["role"] is not None:
            profile.role = parse_enum(UserRole, data["role"], "role")
            if profile.role != UserRole.manager:
                db.execute(
                    delete(ManagerCareHome).where(
                        ManagerCareHome.manager_id == profile.id
                    )
                )
        if "is_active" in data and data["is_active"] is not None:
            profile.is_active = data["is_active"]
        db.flush()
        db.refresh(profile)
        logger.info("Updated user %s role=%s", profile.id, profile.role.value)
        return profile

    @staticmethod
    def set_care_homes(
        db: Session, scope: AccessScope, user_id: str, payload: CareHomeAssignmentUpdate
    ) -> Profile:
        """Replace a manager's care home assignments with ``payload``."""
        profile = Users.get(db, scope, user_id)
        if profile.role != UserRole.manager:
            raise HTTPException(
                status_code=400, detail="Care homes can only be assigned to managers"
            )
        home_ids = list(dict.fromkeys(payload.care_home_ids))
        if home_ids:
            found = set(
                db.scalars(select(CareHome.id).where(CareHome.id.in_(home_ids))).all()
            )
            missing = [str(home_id) for home_id in home_ids if home_id not in found]
            if missing:
                raise HTTPException(
                    status_code=404,
                    detail={
                        "code": "care_home_not_found",
                        "message": "Care home not found",
                        "details": {"care_home_ids": missing},
                    },
                )
        db.execute(delete(ManagerCareHome).where(ManagerCareHome.manager_id == profile.id))
        for home_id in home_ids:
            db.add(
                ManagerCareHome(
                    manager_id=profile.id,
                    care_home_id=home_id,
                    assigned_by=scope.actor_id,
                )
            )
        db.flush()
        logger.info("Assigned %d care homes to manager %s", len(home_ids), profile.id)
        return profile


profiles = Profiles()
users = Users()
