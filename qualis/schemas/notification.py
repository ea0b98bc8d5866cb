from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from qualis.models.notification import NotificationChannel, NotificationStatus


class NotificationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    recipient_id: UUID
    channel: NotificationChannel
    status: NotificationStatus
    subject: str | None = None
    payload: dict[str, Any]
    related_entity_type: str | None = None
    related_entity_id: UUID | None = None
    send_after: datetime | None = None
    sent_at: datetime | None = None
    error_message: str | None = None
    created_at: datetime
    updated_at: datetime


class AuditEventRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    actor_id: UUID | None = None
    care_home_id: UUID | None = None
    entity_type: str
    entity_id: UUID | None = None
    action: str
    description: str | None = None
    metadata: dict[str, Any] | None = Field(
        default=None, validation_alias=AliasChoices("metadata_", "metadata")
    )
    created_at: datetime
