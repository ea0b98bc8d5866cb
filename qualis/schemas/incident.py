from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from qualis.models.incident import (
    IncidentActionStatus,
    IncidentSeverity,
    IncidentStatus,
)


# ---------------------------------------------------------------------------
# Incident
# ---------------------------------------------------------------------------


class IncidentCreate(BaseModel):
    care_home_id: UUID
    client_id: UUID | None = None
    incident_type: str = Field(min_length=1, max_length=80)
    severity: str
    title: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1)
    location: str | None = None
    incident_date: datetime
    injuries_sustained: str | None = None
    witnesses: str | None = None
    immediate_action_taken: str | None = None
    follow_up_required: bool = False
    follow_up_notes: str | None = None


class IncidentStatusUpdate(BaseModel):
    status: str
    investigation_notes: str | None = None
    preventive_measures: str | None = None


class IncidentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    care_home_id: UUID
    client_id: UUID | None = None
    reported_by: UUID
    incident_type: str
    severity: IncidentSeverity
    status: IncidentStatus
    title: str
    description: str
    location: str | None = None
    incident_date: datetime
    injuries_sustained: str | None = None
    witnesses: str | None = None
    immediate_action_taken: str | None = None
    investigation_notes: str | None = None
    preventive_measures: str | None = None
    follow_up_required: bool
    follow_up_notes: str | None = None
    resolved_date: datetime | None = None
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# IncidentAction
# ---------------------------------------------------------------------------


class IncidentActionCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    assigned_to: UUID | None = None
    due_at: datetime | None = None


class IncidentActionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    incident_id: UUID
    title: str
    description: str | None = None
    status: IncidentActionStatus
    assigned_to: UUID | None = None
    due_at: datetime | None = None
    created_by: UUID
    completed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    is_overdue: bool = False


# ---------------------------------------------------------------------------
# IncidentFollowup
# ---------------------------------------------------------------------------


class IncidentFollowupCreate(BaseModel):
    note: str = Field(min_length=1)
    next_review_at: datetime | None = None


class IncidentFollowupRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    incident_id: UUID
    note: str
    recorded_by: UUID
    recorded_at: datetime
    next_review_at: datetime | None = None


class IncidentDetail(IncidentRead):
    client_name: str | None = None
    care_home_name: str
    actions: list[IncidentActionRead] = []
    followups: list[IncidentFollowupRead] = []
