# backend/apollo_service/schemas/records.py
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import field_serializer

from .base import CamelModel


class SearchRecordOut(CamelModel):
    id: UUID
    org_id: str
    run_id: str
    app_id: str
    brand_id: str
    campaign_id: str
    request_params: dict[str, Any] | None = None
    people_count: int
    total_entries: int
    response_raw: dict[str, Any] | None = None
    created_at: datetime


class EnrichmentRecordOut(CamelModel):
    id: UUID
    org_id: str
    run_id: str
    search_id: UUID | None = None
    app_id: str
    brand_id: str
    campaign_id: str
    apollo_person_id: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    email_status: str | None = None
    title: str | None = None
    linkedin_url: str | None = None
    organization_name: str | None = None
    organization_domain: str | None = None
    organization_industry: str | None = None
    organization_size: str | None = None
    organization_revenue_usd: Decimal | None = None
    response_raw: dict[str, Any] | None = None
    enrichment_run_id: str | None = None
    created_at: datetime

    @field_serializer("organization_revenue_usd")
    def _revenue_as_string(self, v: Decimal | None) -> str | None:
        return None if v is None else str(v)


class SearchesResponse(CamelModel):
    searches: list[SearchRecordOut]


class EnrichmentsResponse(CamelModel):
    enrichments: list[EnrichmentRecordOut]


class StatsRequest(CamelModel):
    run_ids: list[str] | None = None
    app_id: str | None = None
    brand_id: str | None = None
    campaign_id: str | None = None


class StatsOut(CamelModel):
    enriched_leads_count: int
    search_count: int
    fetched_people_count: int
    total_matching_people: int


class StatsResponse(CamelModel):
    stats: StatsOut
