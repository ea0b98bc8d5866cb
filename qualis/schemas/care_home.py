from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from qualis.models.care_home import CareHomeType, ClientType, Gender


# ---------------------------------------------------------------------------
# CareHome
# ---------------------------------------------------------------------------


class CareHomeBase(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    address: str | None = None
    postcode: str | None = None
    phone: str | None = None
    email: str | None = None
    care_home_type: str = "residential"
    capacity: int = Field(default=0, ge=0)
    current_occupancy: int = Field(default=0, ge=0)
    cqc_rating: str | None = None
    cqc_registration_number: str | None = None
    manager_id: UUID | None = None


class CareHomeCreate(CareHomeBase):
    pass


class CareHomeUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    address: str | None = None
    postcode: str | None = None
    phone: str | None = None
    email: str | None = None
    care_home_type: str | None = None
    capacity: int | None = Field(default=None, ge=0)
    current_occupancy: int | None = Field(default=None, ge=0)
    cqc_rating: str | None = None
    cqc_registration_number: str | None = None
    manager_id: UUID | None = None
    is_active: bool | None = None


class CareHomeRead(CareHomeBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    care_home_type: CareHomeType
    is_active: bool
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class ClientBase(BaseModel):
    care_home_id: UUID
    nhs_number: str | None = None
    first_name: str = Field(min_length=1, max_length=80)
    last_name: str = Field(min_length=1, max_length=80)
    date_of_birth: date
    gender: str | None = None
    room_number: str | None = None
    admission_date: date | None = None
    emergency_contact_name: str | None = None
    emergency_contact_phone: str | None = None
    emergency_contact_relationship: str | None = None
    gp_name: str | None = None
    gp_practice: str | None = None
    gp_phone: str | None = None
    dietary_requirements: str | None = None
    allergies: str | None = None
    medical_conditions: str | None = None
    medications: str | None = None
    mobility_needs: str | None = None
    communication_needs: str | None = None


class ClientCreate(ClientBase):
    client_type: str | None = None


class ClientUpdate(BaseModel):
    care_home_id: UUID | None = None
    nhs_number: str | None = None
    first_name: str | None = Field(default=None, min_length=1, max_length=80)
    last_name: str | None = Field(default=None, min_length=1, max_length=80)
    gender: str | None = None
    room_number: str | None = None
    admission_date: date | None = None
    discharge_date: date | None = None
    emergency_contact_name: str | None = None
    emergency_contact_phone: str | None = None
    emergency_contact_relationship: str | None = None
    gp_name: str | None = None
    gp_practice: str | None = None
    gp_phone: str | None = None
    dietary_requirements: str | None = None
    allergies: str | None = None
    medical_conditions: str | None = None
    medications: str | None = None
    mobility_needs: str | None = None
    communication_needs: str | None = None
    is_active: bool | None = None


class ClientRead(ClientBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    gender: Gender | None = None
    client_type: ClientType
    discharge_date: date | None = None
    is_active: bool
    created_at: datetime
    updated_at: datetime
