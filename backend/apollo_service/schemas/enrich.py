# backend/apollo_service/schemas/enrich.py
from pydantic import Field, field_validator

from .base import CamelModel
from .person import PersonOut
from .search import RunScope

MAX_BULK_MATCH_ITEMS = 10


class EnrichRequest(RunScope):
    apollo_person_id: str = Field(min_length=1)


class EnrichResponse(CamelModel):
    enrichment_id: str | None
    person: PersonOut | None


class MatchItem(CamelModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    organization_domain: str = Field(min_length=1)

    @field_validator("first_name", "last_name", "organization_domain")
    @classmethod
    def _strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class MatchRequest(RunScope, MatchItem):
    pass


class MatchBulkRequest(RunScope):
    items: list[MatchItem] = Field(min_length=1, max_length=MAX_BULK_MATCH_ITEMS)


class MatchResult(CamelModel):
    enrichment_id: str | None
    person: PersonOut | None
    cached: bool


class MatchBulkResponse(CamelModel):
    results: list[MatchResult]
