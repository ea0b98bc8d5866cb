import logging
from datetime import date

from fastapi import HTTPException
from sqlalchemy.orm import Session

from qualis.models.care_home import Client, ClientType, Gender
from qualis.schemas.care_home import ClientCreate, ClientUpdate
from qualis.services.access import AccessScope
from qualis.services.care_homes import load_care_home
from qualis.services.common import apply_search, coerce_uuid, paginate, parse_enum
from qualis.services.dates import utcnow

logger = logging.getLogger(__name__)

ADULT_AGE = 18


def age_on(date_of_birth: date, today: date) -> int:
    years = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        years -= 1
    return years


def derive_client_type(date_of_birth: date, today: date | None = None) -> ClientType:
    today = today or utcnow().date()
    if age_on(date_of_birth, today) < ADULT_AGE:
        return ClientType.child
    return ClientType.adult


def load_client(db: Session, scope: AccessScope, client_id) -> Client:
    client = db.get(Client, coerce_uuid(client_id))
    if not client or not scope.allows(client.care_home_id):
        raise HTTPException(status_code=404, detail="Client not found")
    return client


class Clients:
    @staticmethod
    def create(db: Session, scope: AccessScope, payload: ClientCreate) -> Client:
        scope.require("clients:write")
        data = payload.model_dump()
        load_care_home(db, scope, data["care_home_id"])
        if data["date_of_birth"] > utcnow().date():
            raise HTTPException(
                status_code=400, detail="date_of_birth cannot be in the future"
            )
        if data.get("client_type"):
            data["client_type"] = parse_enum(
                ClientType, data["client_type"], "client_type"
            )
        else:
            data["client_type"] = derive_client_type(data["date_of_birth"])
        if data["client_type"] == ClientType.child and not data.get(
            "emergency_contact_relationship"
        ):
            raise HTTPException(
                status_code=400,
                detail="Guardian relationship is required for children",
            )
        if data.get("gender"):
            data["gender"] = parse_enum(Gender, data["gender"], "gender")
        client = Client(**data)
        db.add(client)
        db.flush()
        db.refresh(client)
        logger.info("Created client %s in care home %s", client.id, client.care_home_id)
        return client

    @staticmethod
    def get(db: Session, scope: AccessScope, client_id: str) -> Client:
        scope.require("clients:read")
        return load_client(db, scope, client_id)

    @staticmethod
    def list(
        db: Session,
        scope: AccessScope,
        search: str | None = None,
        status: str | None = "active",
        care_home_id: str | None = None,
        page: int = 1,
        limit: int = 12,
    ) -> dict:
        scope.require("clients:read")
        query = scope.apply(db.query(Client), Client.care_home_id)
        if status == "active":
            query = query.filter(Client.is_active.is_(True))
        elif status == "inactive":
            query = query.filter(Client.is_active.is_(False))
        elif status not in (None, "all"):
            raise HTTPException(status_code=400, detail=f"Invalid status: {status}")
        if care_home_id and care_home_id != "all":
            query = query.filter(Client.care_home_id == coerce_uuid(care_home_id))
        query = apply_search(
            query,
            search,
            [Client.first_name, Client.last_name, Client.nhs_number, Client.room_number],
        )
        query = query.order_by(Client.last_name.asc(), Client.first_name.asc())
        return paginate(query, page, limit)

    @staticmethod
    def update(
        db: Session, scope: AccessScope, client_id: str, payload: ClientUpdate
    ) -> Client:
        scope.require("clients:write")
        client = load_client(db, scope, client_id)
        data = payload.model_dump(exclude_unset=True)
        if data.get("care_home_id") and data["care_home_id"] != client.care_home_id:
            load_care_home(db, scope, data["care_home_id"])
        if "gender" in data and data["gender"] is not None:
            data["gender"] = parse_enum(Gender, data["gender"], "gender")
        for key in ("care_home_id", "first_name", "last_name", "is_active"):
            if key in data and data[key] is None:
                data.pop(key)
        for key, value in data.items():
            setattr(client, key, value)
        db.flush()
        db.refresh(client)
        logger.info("Updated client %s", client.id)
        return client


clients = Clients()
