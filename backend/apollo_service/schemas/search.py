# backend/apollo_service/schemas/search.py
from typing import Literal

from pydantic import ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .base import CamelModel
from .person import PersonOut

EmployeeRange = Literal[
    "1,10",
    "11,20",
    "21,50",
    "51,100",
    "101,200",
    "201,500",
    "501,1000",
    "1001,2000",
    "2001,5000",
    "5001,10000",
    "10001,",
]

Seniority = Literal[
    "entry",
    "senior",
    "manager",
    "director",
    "vp",
    "c_suite",
    "owner",
    "founder",
    "partner",
]

EmailStatus = Literal[
    "verified",
    "guessed",
    "unavailable",
    "bounced",
    "pending_manual_fulfillment",
]

MAX_PAGE = 500
MAX_PER_PAGE = 100
MAX_KEYWORDS_LEN = 1000


class SearchFilters(CamelModel):
    """
    People search filters in the caller's camelCase vocabulary.

    Between fields Apollo ANDs, within a list field it ORs. Unknown fields are
    rejected so a typo cannot silently widen a search.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    # person filters
    person_titles: list[str] | None = None
    person_locations: list[str] | None = None
    person_seniorities: list[Seniority] | None = None
    contact_email_status: list[EmailStatus] | None = None

    # organization filters
    organization_locations: list[str] | None = None
    q_organization_industry_tag_ids: list[str] | None = None
    organization_num_employees_ranges: list[EmployeeRange] | None = None
    q_organization_keyword_tags: list[str] | None = None
    q_organization_domains: list[str] | None = None
    organization_ids: list[str] | None = None
    revenue_range: list[str] | None = None
    currently_using_any_of_technology_uids: list[str] | None = None

    # free text
    q_keywords: str | None = Field(default=None, max_length=MAX_KEYWORDS_LEN)

    @field_validator(
        "person_titles",
        "person_locations",
        "organization_locations",
        "q_organization_industry_tag_ids",
        "q_organization_keyword_tags",
        "q_organization_domains",
        "organization_ids",
        "revenue_range",
        "currently_using_any_of_technology_uids",
    )
    @classmethod
    def _no_blank_entries(cls, v: list[str] | None) -> list[str] | None:
        if v is None:
            return None
        if any(not isinstance(item, str) or not item.strip() for item in v):
            raise ValueError("entries must be non-empty strings")
        return v

    def to_stored(self) -> dict:
        """camelCase dict with unset fields dropped, as persisted on the cursor."""
        return self.model_dump(by_alias=True, exclude_none=True)


class RunScope(CamelModel):
    """Fields every billable request carries to scope its child run."""

    run_id: str = Field(min_length=1)
    app_id: str = Field(min_length=1)
    brand_id: str = Field(min_length=1)
    campaign_id: str = Field(min_length=1)
    workflow_name: str | None = None


class SearchNextRequest(RunScope):
    search_params: SearchFilters | None = None


class SearchNextResponse(CamelModel):
    people: list[PersonOut]
    done: bool
    total_entries: int


class SearchRequest(RunScope, SearchFilters):
    """Explicit-page search: filters inline with the run scope."""

    page: int = Field(default=1, ge=1, le=MAX_PAGE)
    per_page: int = Field(default=25, ge=1, le=MAX_PER_PAGE)

    def filters(self) -> SearchFilters:
        return SearchFilters.model_validate(
            self.model_dump(include=set(SearchFilters.model_fields), exclude_none=True)
        )


class PaginationOut(CamelModel):
    page: int
    per_page: int
    total_entries: int
    total_pages: int


class SearchResponse(CamelModel):
    search_id: str | None
    people_count: int
    total_entries: int
    people: list[PersonOut]
    pagination: PaginationOut


class SearchParamsRequest(RunScope):
    context: str = Field(min_length=1)
    key_source: Literal["byok", "app"]


class SearchAttemptOut(CamelModel):
    search_params: dict
    total_results: int


class SearchParamsResponse(CamelModel):
    search_params: dict
    total_results: int
    attempts: int
    attempt_history: list[SearchAttemptOut]
