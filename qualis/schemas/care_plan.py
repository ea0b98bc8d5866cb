from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from qualis.models.care_plan import (
    CarePlanReviewStatus,
    CarePlanTaskStatus,
    CarePlanVersionStatus,
    Priority,
)
from qualis.services.dates import DateUrgency


# ---------------------------------------------------------------------------
# CarePlan
# ---------------------------------------------------------------------------


class CarePlanBase(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    goals: str | None = None
    interventions: str | None = None
    start_date: date
    end_date: date | None = None
    review_date: date | None = None


class CarePlanCreate(CarePlanBase):
    client_id: UUID


class CarePlanUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    goals: str | None = None
    interventions: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    review_date: date | None = None
    is_active: bool | None = None


class CarePlanRead(CarePlanBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    client_id: UUID
    created_by: UUID
    is_active: bool
    created_at: datetime
    updated_at: datetime


class CarePlanListItem(CarePlanRead):
    client_name: str
    care_home_id: UUID
    review_urgency: DateUrgency


# ---------------------------------------------------------------------------
# CarePlanVersion
# ---------------------------------------------------------------------------


class CarePlanVersionCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    summary: str | None = None
    effective_from: date | None = None
    make_active: bool = False


class CarePlanVersionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    care_plan_id: UUID
    version_number: int
    status: CarePlanVersionStatus
    title: str
    summary: str | None = None
    effective_from: date | None = None
    created_by: UUID
    approved_by: UUID | None = None
    approved_at: datetime | None = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# CarePlanTask
# ---------------------------------------------------------------------------


class CarePlanTaskCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    priority: str | None = "medium"
    due_date: date | None = None
    assigned_to: UUID | None = None


class CarePlanTaskRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    care_plan_version_id: UUID
    title: str
    description: str | None = None
    priority: Priority | None = None
    status: CarePlanTaskStatus
    due_date: date | None = None
    assigned_to: UUID | None = None
    created_by: UUID
    completed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class CarerTaskRead(CarePlanTaskRead):
    care_plan_id: UUID
    care_plan_title: str
    client_id: UUID
    client_name: str
    due_urgency: DateUrgency


# ---------------------------------------------------------------------------
# CarePlanReview
# ---------------------------------------------------------------------------


class CarePlanReviewCreate(BaseModel):
    scheduled_for: date
    notes: str | None = None


class CarePlanReviewStatusUpdate(BaseModel):
    status: str
    notes: str | None = None


class CarePlanReviewRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    care_plan_id: UUID
    scheduled_for: date
    status: CarePlanReviewStatus
    notes: str | None = None
    created_by: UUID
    completed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    urgency: DateUrgency = DateUrgency.normal


class CarePlanDetail(CarePlanRead):
    client_name: str
    care_home_id: UUID
    active_version_id: UUID | None = None
    versions: list[CarePlanVersionRead] = []
    tasks: list[CarePlanTaskRead] = []
    reviews: list[CarePlanReviewRead] = []
