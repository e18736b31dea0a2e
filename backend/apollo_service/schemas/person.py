# backend/apollo_service/schemas/person.py
from typing import Any

from .base import CamelModel


class EmploymentHistoryOut(CamelModel):
    title: str | None = None
    organization_name: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    description: str | None = None
    current: bool | None = None


class PersonOut(CamelModel):
    """
    Person as returned to callers. Mirrors the Apollo person plus the
    flattened organization profile; everything past the identity fields is
    optional because Apollo omits what it does not know.
    """

    id: str
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    email_status: str | None = None
    title: str | None = None
    linkedin_url: str | None = None

    photo_url: str | None = None
    headline: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    seniority: str | None = None
    departments: list[str] | None = None
    subdepartments: list[str] | None = None
    functions: list[str] | None = None
    twitter_url: str | None = None
    github_url: str | None = None
    facebook_url: str | None = None
    employment_history: list[EmploymentHistoryOut] | None = None

    organization_name: str | None = None
    organization_domain: str | None = None
    organization_industry: str | None = None
    organization_size: str | None = None
    organization_revenue_usd: str | None = None
    organization_website_url: str | None = None
    organization_logo_url: str | None = None
    organization_short_description: str | None = None
    organization_seo_description: str | None = None
    organization_linkedin_url: str | None = None
    organization_twitter_url: str | None = None
    organization_facebook_url: str | None = None
    organization_blog_url: str | None = None
    organization_crunchbase_url: str | None = None
    organization_angellist_url: str | None = None
    organization_founded_year: int | None = None
    organization_primary_phone: str | None = None
    organization_publicly_traded_symbol: str | None = None
    organization_publicly_traded_exchange: str | None = None
    organization_annual_revenue_printed: str | None = None
    organization_total_funding: str | None = None
    organization_total_funding_printed: str | None = None
    organization_latest_funding_round_date: str | None = None
    organization_latest_funding_stage: str | None = None
    organization_funding_events: list[dict[str, Any]] | None = None
    organization_city: str | None = None
    organization_state: str | None = None
    organization_country: str | None = None
    organization_street_address: str | None = None
    organization_postal_code: str | None = None
    organization_technology_names: list[str] | None = None
    organization_current_technologies: list[dict[str, Any]] | None = None
    organization_keywords: list[str] | None = None
    organization_industries: list[str] | None = None
    organization_secondary_industries: list[str] | None = None
    organization_num_suborganizations: int | None = None
    organization_retail_location_count: int | None = None
    organization_alexa_ranking: int | None = None
