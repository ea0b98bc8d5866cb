from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel


class SearchResult(BaseModel):
    id: UUID
    type: str
    title: str
    subtitle: str | None = None
    href: str


class SearchResponse(BaseModel):
    query: str
    results: list[SearchResult]


class DashboardMetrics(BaseModel):
    care_home_count: int
    average_occupancy: float
    total_clients: int
    new_clients_this_month: int
    open_incidents: int
    attention_incidents: int
    overdue_reviews: int
    upcoming_reviews: int
