import logging
from datetime import datetime, timedelta

from fastapi import HTTPException
from sqlalchemy.orm import Session

from qualis.models.care_home import Handover, ShiftType
from qualis.models.profile import Profile
from qualis.schemas.handover import HandoverCreate, HandoverUpdate
from qualis.services.access import AccessScope
from qualis.services.care_homes import load_care_home
from qualis.services.common import apply_search, coerce_uuid, paginate, parse_enum
from qualis.services.dates import as_utc, utcnow

logger = logging.getLogger(__name__)

DATE_WINDOWS = {"today": 0, "week": 7, "month": 30}


def load_handover(db: Session, scope: AccessScope, handover_id) -> Handover:
    handover = db.get(Handover, coerce_uuid(handover_id))
    if not handover or not scope.allows(handover.care_home_id):
        raise HTTPException(status_code=404, detail="Handover not found")
    return handover


class Handovers:
    @staticmethod
    def create(db: Session, scope: AccessScope, payload: HandoverCreate) -> Handover:
        scope.require("handovers:write")
        load_care_home(db, scope, payload.care_home_id)
        if payload.handover_to and not db.get(Profile, payload.handover_to):
            raise HTTPException(status_code=404, detail="Receiving staff member not found")
        data = payload.model_dump()
        data["shift_type"] = parse_enum(ShiftType, data["shift_type"], "shift_type")
        handover = Handover(**data, handover_from=scope.actor_id)
        db.add(handover)
        db.flush()
        db.refresh(handover)
        logger.info("Created handover %s", handover.id)
        return handover

    @staticmethod
    def get(db: Session, scope: AccessScope, handover_id: str) -> Handover:
        scope.require("handovers:read")
        return load_handover(db, scope, handover_id)

    @staticmethod
    def list(
        db: Session,
        scope: AccessScope,
        search: str | None = None,
        date_range: str | None = None,
        shift_type: str | None = None,
        status: str | None = None,
        care_home_id: str | None = None,
        page: int = 1,
        limit: int = 12,
        now: datetime | None = None,
    ) -> dict:
        scope.require("handovers:read")
        query = scope.apply(db.query(Handover), Handover.care_home_id)
        if date_range and date_range != "all":
            if date_range not in DATE_WINDOWS:
                raise HTTPException(
                    status_code=400, detail=f"Invalid date range: {date_range}"
                )
            today = as_utc(now or utcnow()).date()
            if date_range == "today":
                query = query.filter(Handover.shift_date == today)
            else:
                since = today - timedelta(days=DATE_WINDOWS[date_range])
                query = query.filter(Handover.shift_date >= since)
        if shift_type and shift_type != "all":
            query = query.filter(
                Handover.shift_type == parse_enum(ShiftType, shift_type, "shift_type")
            )
        if status == "completed":
            query = query.filter(Handover.is_completed.is_(True))
        elif status == "pending":
            query = query.filter(Handover.is_completed.is_(False))
        elif status not in (None, "all"):
            raise HTTPException(status_code=400, detail=f"Invalid status: {status}")
        if care_home_id and care_home_id != "all":
            query = query.filter(Handover.care_home_id == coerce_uuid(care_home_id))
        query = apply_search(
            query,
            search,
            [Handover.general_notes, Handover.key_points, Handover.follow_up_actions],
        )
        query = query.order_by(Handover.shift_date.desc(), Handover.created_at.desc())
        return paginate(query, page, limit)

    @staticmethod
    def update(
        db: Session, scope: AccessScope, handover_id: str, payload: HandoverUpdate
    ) -> Handover:
        scope.require("handovers:write")
        handover = load_handover(db, scope, handover_id)
        data = payload.model_dump(exclude_unset=True)
        if data.get("is_completed") is None:
            data.pop("is_completed", None)
        if data.get("handover_to") and not db.get(Profile, data["handover_to"]):
            raise HTTPException(status_code=404, detail="Receiving staff member not found")
        for key, value in data.items():
            setattr(handover, key, value)
        db.flush()
        db.refresh(handover)
        logger.info("Updated handover %s", handover.id)
        return handover


handovers = Handovers()
