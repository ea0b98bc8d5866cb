from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class DocumentItem(BaseModel):
    name: str
    path: str
    type: Literal["file", "dir"]
    size: int | None = None
    mime_type: str | None = None
    updated_at: datetime | None = None


class DocumentListResponse(BaseModel):
    entity_type: str
    entity_id: str
    path: str
    items: list[DocumentItem]


class DocumentContent(BaseModel):
    name: str
    path: str
    relative_path: str
    media_type: str
    size: int
    content: str
    signed_url: str | None = None
    kind: Literal["text", "image", "pdf", "office", "binary"]
    viewer_url: str | None = None


class FolderCreateRequest(BaseModel):
    parent_path: str = ""
    name: str = Field(min_length=1, max_length=255)
