from __future__ import annotations

import json
import textwrap
from dataclasses import dataclass
from typing import Any, Dict, Sequence, get_args

from ..schemas.search import EmailStatus, EmployeeRange, Seniority

MAX_CONTEXT_CHARS = 100_000


@dataclass
class SearchAttempt:
    search_params: Dict[str, Any]
    total_results: int


def _enum_block(title: str, field: str, values: Sequence[str]) -> str:
    lines = "\n".join(f'- "{v}"' for v in values)
    return f"### {title} (use exact values for {field})\n{lines}"


def get_system_prompt() -> str:
    enums = "\n\n".join(
        [
            _enum_block("Employee ranges", "organizationNumEmployeesRanges", get_args(EmployeeRange)),
            _enum_block("Seniority levels", "personSeniorities", get_args(Seniority)),
            _enum_block("Email statuses", "contactEmailStatus", get_args(EmailStatus)),
        ]
    )

    return f"""
You transform context about a company into Apollo.io people search parameters.

Output ONLY a JSON object matching the fields below. No explanation, no markdown.

## Available fields

### Person filters
- personTitles: string[] (job titles, e.g. ["VP Sales", "Head of Marketing"])
- personLocations: string[] (the person's own location)
- personSeniorities: string[] (exact values from the lists below)
- contactEmailStatus: string[] (exact values from the lists below)

### Organization filters
- organizationLocations: string[] (HQ location, e.g. ["California, US"])
- qOrganizationIndustryTagIds: string[] (Apollo industry names, e.g. ["Computer Software"])
- organizationNumEmployeesRanges: string[] (exact values from the lists below)
- qOrganizationKeywordTags: string[] (keyword tags, e.g. ["SaaS", "fintech"])
- qOrganizationDomains: string[] (company domains, e.g. ["stripe.com"])
- organizationIds: string[] (Apollo organization ids)
- revenueRange: string[] (e.g. ["1000000,10000000"])
- currentlyUsingAnyOfTechnologyUids: string[] (Apollo technology uids)

### General
- qKeywords: string (free-text search across person and organization fields)

## How filters combine
- Different fields are ANDed: every extra field narrows the result set.
- Values inside one field are ORed: ["CEO", "CTO"] matches either.

## Strategy
1. Start broad: one or two filters.
2. List many title variations in personTitles.
3. For niche topics prefer a single qKeywords with OR syntax ("web3 OR crypto").
4. Do not combine qKeywords with qOrganizationIndustryTagIds.
5. Do not combine qOrganizationKeywordTags with qOrganizationIndustryTagIds.
6. Only use organizationLocations when location is explicitly required.

## Valid enum values

{enums}

## Rules
- Only include fields relevant to the context.
- Never invent enum values.
- Never use more than 3 filters.
- Output raw JSON only.
""".strip()


def build_user_message(context: str, previous_attempts: Sequence[SearchAttempt]) -> str:
    context_block = context[:MAX_CONTEXT_CHARS]
    if not previous_attempts:
        return context_block

    history = "\n".join(
        f"Attempt {i}: {json.dumps(a.search_params, sort_keys=True)} -> {a.total_results} results"
        for i, a in enumerate(previous_attempts, start=1)
    )

    return textwrap.dedent(
        """
        {context}

        ---

        IMPORTANT: your previous searches returned 0 results:
        {history}

        Broaden the filters to get at least 1 result while staying close to the original intent.
        Remove a filter, add title variations, use broader keywords or widen geography.
        Do NOT repeat a combination that already failed.
        Output ONLY valid JSON.
        """
    ).strip().format(context=context_block, history=history)
