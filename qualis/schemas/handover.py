from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from qualis.models.care_home import ShiftType


class HandoverCreate(BaseModel):
    care_home_id: UUID
    shift_date: date
    shift_type: str
    handover_to: UUID | None = None
    general_notes: str | None = None
    key_points: str | None = None
    follow_up_actions: str | None = None


class HandoverUpdate(BaseModel):
    handover_to: UUID | None = None
    general_notes: str | None = None
    key_points: str | None = None
    follow_up_actions: str | None = None
    is_completed: bool | None = None


class HandoverRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    care_home_id: UUID
    shift_date: date
    shift_type: ShiftType
    handover_from: UUID
    handover_to: UUID | None = None
    general_notes: str | None = None
    key_points: str | None = None
    follow_up_actions: str | None = None
    is_completed: bool
    created_at: datetime
    updated_at: datetime
