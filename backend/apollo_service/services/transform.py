# backend/apollo_service/services/transform.py
"""
Apollo person JSON <-> our shapes.

- `transform_apollo_person`: Apollo person -> PersonOut-compatible dict.
- `to_enrichment_values`: Apollo person -> PeopleEnrichment column values.
- `transform_cached_enrichment`: PeopleEnrichment row -> PersonOut-compatible
  dict, so cache hits answer with the same shape as live calls.
"""
from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

# (person/org key in Apollo JSON, our field suffix). Shared by the live and
# DB mappings so both stay in step.
_PERSON_FIELDS = (
    ("photo_url", "photo_url"),
    ("headline", "headline"),
    ("city", "city"),
    ("state", "state"),
    ("country", "country"),
    ("seniority", "seniority"),
    ("departments", "departments"),
    ("subdepartments", "subdepartments"),
    ("functions", "functions"),
    ("twitter_url", "twitter_url"),
    ("github_url", "github_url"),
    ("facebook_url", "facebook_url"),
)

_ORG_FIELDS = (
    ("name", "name"),
    ("primary_domain", "domain"),
    ("industry", "industry"),
    ("website_url", "website_url"),
    ("logo_url", "logo_url"),
    ("short_description", "short_description"),
    ("seo_description", "seo_description"),
    ("linkedin_url", "linkedin_url"),
    ("twitter_url", "twitter_url"),
    ("facebook_url", "facebook_url"),
    ("blog_url", "blog_url"),
    ("crunchbase_url", "crunchbase_url"),
    ("angellist_url", "angellist_url"),
    ("founded_year", "founded_year"),
    ("publicly_traded_symbol", "publicly_traded_symbol"),
    ("publicly_traded_exchange", "publicly_traded_exchange"),
    ("annual_revenue_printed", "annual_revenue_printed"),
    ("total_funding_printed", "total_funding_printed"),
    ("latest_funding_round_date", "latest_funding_round_date"),
    ("latest_funding_stage", "latest_funding_stage"),
    ("funding_events", "funding_events"),
    ("city", "city"),
    ("state", "state"),
    ("country", "country"),
    ("street_address", "street_address"),
    ("postal_code", "postal_code"),
    ("technology_names", "technology_names"),
    ("current_technologies", "current_technologies"),
    ("keywords", "keywords"),
    ("industries", "industries"),
    ("secondary_industries", "secondary_industries"),
    ("num_suborganizations", "num_suborganizations"),
    ("retail_location_count", "retail_location_count"),
    ("alexa_ranking", "alexa_ranking"),
)

# Numeric org values that we expose as strings
_ORG_NUMERIC_AS_TEXT = (
    ("estimated_num_employees", "size"),
    ("annual_revenue", "revenue_usd"),
    ("total_funding", "total_funding"),
)


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (float, Decimal)) and value == int(value):
        value = int(value)
    return str(value)


def _as_decimal(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def _organization(person: Dict[str, Any]) -> Dict[str, Any]:
    org = person.get("organization")
    return org if isinstance(org, dict) else {}


def _primary_phone(org: Dict[str, Any]) -> Optional[str]:
    phone = org.get("primary_phone")
    if isinstance(phone, dict):
        return phone.get("number")
    return phone or None


def _employment_history(raw: Any) -> Optional[List[Dict[str, Any]]]:
    if not isinstance(raw, list):
        return None
    return [
        {
            "title": item.get("title"),
            "organization_name": item.get("organization_name"),
            "start_date": item.get("start_date"),
            "end_date": item.get("end_date"),
            "description": item.get("description"),
            "current": item.get("current"),
        }
        for item in raw
        if isinstance(item, dict)
    ]


def _base_person(person: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "first_name": person.get("first_name"),
        "last_name": person.get("last_name"),
        "email": person.get("email") or None,
        "email_status": person.get("email_status") or None,
        "title": person.get("title"),
        "linkedin_url": person.get("linkedin_url"),
    }
    for src, dest in _PERSON_FIELDS:
        out[dest] = person.get(src)
    return out


def transform_apollo_person(person: Dict[str, Any]) -> Dict[str, Any]:
    org = _organization(person)
    out = {"id": person.get("id") or "", **_base_person(person)}
    out["employment_history"] = _employment_history(person.get("employment_history"))

    for src, dest in _ORG_FIELDS:
        out[f"organization_{dest}"] = org.get(src)
    for src, dest in _ORG_NUMERIC_AS_TEXT:
        out[f"organization_{dest}"] = _as_text(org.get(src))
    out["organization_primary_phone"] = _primary_phone(org)
    return out


def to_enrichment_values(person: Dict[str, Any]) -> Dict[str, Any]:
    """
    Column values for a PeopleEnrichment row.

    `response_raw["organization"]` is forced to a dict so downstream readers
    can probe `organization.primary_domain` without a None check.
    """
    org = _organization(person)
    values: Dict[str, Any] = {"apollo_person_id": person.get("id"), **_base_person(person)}
    values["employment_history"] = person.get("employment_history")

    for src, dest in _ORG_FIELDS:
        values[f"organization_{dest}"] = org.get(src)
    values["organization_size"] = _as_text(org.get("estimated_num_employees"))
    values["organization_revenue_usd"] = _as_decimal(org.get("annual_revenue"))
    values["organization_total_funding"] = _as_decimal(org.get("total_funding"))
    values["organization_primary_phone"] = _primary_phone(org)

    values["response_raw"] = {**person, "organization": org}
    return values


def transform_cached_enrichment(apollo_person_id: str, row: Any) -> Dict[str, Any]:
    out: Dict[str, Any] = {"id": apollo_person_id or row.apollo_person_id or ""}
    for field in (
        "first_name",
        "last_name",
        "email",
        "email_status",
        "title",
        "linkedin_url",
    ):
        out[field] = getattr(row, field)
    for _, dest in _PERSON_FIELDS:
        out[dest] = getattr(row, dest)
    out["employment_history"] = _employment_history(row.employment_history)

    for _, dest in _ORG_FIELDS:
        out[f"organization_{dest}"] = getattr(row, f"organization_{dest}")
    out["organization_size"] = row.organization_size
    out["organization_revenue_usd"] = _as_text(row.organization_revenue_usd)
    out["organization_total_funding"] = _as_text(row.organization_total_funding)
    out["organization_primary_phone"] = row.organization_primary_phone
    return out
