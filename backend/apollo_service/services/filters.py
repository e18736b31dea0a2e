# backend/apollo_service/services/filters.py
from __future__ import annotations

import json
from typing import Any, Dict, Mapping

# camelCase caller field -> Apollo api_search parameter
_APOLLO_PARAM_NAMES: Dict[str, str] = {
    "personTitles": "person_titles",
    "personLocations": "person_locations",
    "personSeniorities": "person_seniorities",
    "contactEmailStatus": "contact_email_status",
    "organizationLocations": "organization_locations",
    "qOrganizationIndustryTagIds": "q_organization_industry_tag_ids",
    "organizationNumEmployeesRanges": "organization_num_employees_ranges",
    "qOrganizationKeywordTags": "q_organization_keyword_tags",
    "qOrganizationDomains": "q_organization_domains",
    "organizationIds": "organization_ids",
    "revenueRange": "revenue_range",
    "currentlyUsingAnyOfTechnologyUids": "currently_using_any_of_technology_uids",
    "qKeywords": "q_keywords",
}


def canonical_filters(filters: Mapping[str, Any] | None) -> str:
    """
    Stable serialisation of a filter object: sorted keys, no whitespace.

    Two filter objects describe the same search iff their canonical forms are
    equal. Key order is ignored; list order and every value are significant.
    """
    return json.dumps(filters or {}, sort_keys=True, separators=(",", ":"), default=str)


def filters_equal(a: Mapping[str, Any] | None, b: Mapping[str, Any] | None) -> bool:
    return canonical_filters(a) == canonical_filters(b)


def to_apollo_params(
    filters: Mapping[str, Any],
    *,
    page: int,
    per_page: int,
) -> Dict[str, Any]:
    """
    Translate stored camelCase filters into the snake_case body Apollo expects.

    Empty values are dropped: Apollo treats an empty list as "match nothing"
    for some fields.
    """
    params: Dict[str, Any] = {}
    for key, value in filters.items():
        apollo_key = _APOLLO_PARAM_NAMES.get(key)
        if apollo_key is None:
            continue
        if value is None or value == [] or value == "":
            continue
        params[apollo_key] = value
    params["page"] = page
    params["per_page"] = per_page
    return params
