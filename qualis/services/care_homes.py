import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session

from qualis.models.care_home import CareHome, CareHomeType
from qualis.models.profile import Profile
from qualis.schemas.care_home import CareHomeCreate, CareHomeUpdate
from qualis.services.access import AccessScope
from qualis.services.common import apply_search, coerce_uuid, paginate, parse_enum

logger = logging.getLogger(__name__)

_NON_NULLABLE = {"name", "care_home_type", "capacity", "current_occupancy", "is_active"}


def _validate_occupancy(capacity: int, current_occupancy: int) -> None:
    if current_occupancy > capacity:
        raise HTTPException(
            status_code=400,
            detail="current_occupancy cannot exceed capacity",
        )


def load_care_home(db: Session, scope: AccessScope, care_home_id) -> CareHome:
    """Fetch a home the actor may see; anything else is 'not found'."""
    home = db.get(CareHome, coerce_uuid(care_home_id))
    if not home or not scope.allows(home.id):
        raise HTTPException(status_code=404, detail="Care home not found")
    return home


class CareHomes:
    @staticmethod
    def create(db: Session, scope: AccessScope, payload: CareHomeCreate) -> CareHome:
        scope.require("care_homes:write")
        data = payload.model_dump()
        data["care_home_type"] = parse_enum(
            CareHomeType, data["care_home_type"], "care_home_type"
        )
        _validate_occupancy(data["capacity"], data["current_occupancy"])
        if data.get("manager_id") and not db.get(Profile, data["manager_id"]):
            raise HTTPException(status_code=404, detail="Manager not found")
        home = CareHome(**data)
        db.add(home)
        db.flush()
        db.refresh(home)
        logger.info("Created care home %s", home.id)
        return home

    @staticmethod
    def get(db: Session, scope: AccessScope, care_home_id: str) -> CareHome:
        scope.require("care_homes:read")
        return load_care_home(db, scope, care_home_id)

    @staticmethod
    def list(
        db: Session,
        scope: AccessScope,
        search: str | None = None,
        is_active: bool | None = True,
        page: int = 1,
        limit: int = 12,
    ) -> dict:
        scope.require("care_homes:read")
        query = scope.apply(db.query(CareHome), CareHome.id)
        if is_active is not None:
            query = query.filter(CareHome.is_active == is_active)
        query = apply_search(query, search, [CareHome.name, CareHome.postcode])
        query = query.order_by(CareHome.name.asc())
        return paginate(query, page, limit)

    @staticmethod
    def update(
        db: Session, scope: AccessScope, care_home_id: str, payload: CareHomeUpdate
    ) -> CareHome:
        scope.require("care_homes:write")
        home = load_care_home(db, scope, care_home_id)
        data = {
            key: value
            for key, value in payload.model_dump(exclude_unset=True).items()
            if value is not None or key not in _NON_NULLABLE
        }
        if "care_home_type" in data:
            data["care_home_type"] = parse_enum(
                CareHomeType, data["care_home_type"], "care_home_type"
            )
        _validate_occupancy(
            data.get("capacity", home.capacity),
            data.get("current_occupancy", home.current_occupancy),
        )
        for key, value in data.items():
            setattr(home, key, value)
        db.flush()
        db.refresh(home)
        logger.info("Updated care home %s", home.id)
        return home


care_homes = CareHomes()
