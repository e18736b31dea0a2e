# backend/apollo_service/services/enrichment.py
"""
Enrich (by Apollo person id) and match (by name + company domain).

Both read the enrichment cache first. On a miss the upstream result is
persisted and billed in this order, each step committed before the next:

    persist record -> open run -> attach run id -> post cost -> complete run

A person is billable only when Apollo returned an email for them.

Session work runs in a worker thread via `asyncio.to_thread` so a slow
database round-trip does not stall the event loop.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from .connectors.apollo import ApolloClient
from .enrichment_cache import find_cached_by_person_id, find_cached_match, find_cached_matches
from .enrichment_writer import attach_run_id, persist_matched_people, persist_person
from .keys import CallerContext, KeysClient
from .pagination import APOLLO_KEY_PROVIDER
from .runs import (
    ENRICHMENT_CREDIT,
    PERSON_MATCH_CREDIT,
    TASK_ENRICHMENT,
    TASK_PERSON_MATCH,
    TASK_PERSON_MATCH_BULK,
    CostLine,
    CostReporter,
    RunContext,
)
from .transform import transform_apollo_person, transform_cached_enrichment

logger = logging.getLogger(__name__)


def _billable(person: Optional[Dict[str, Any]]) -> bool:
    return bool(person and person.get("email"))


async def _persist_and_bill(
    db: Session,
    ctx: RunContext,
    person: Dict[str, Any],
    *,
    reporter: CostReporter,
    task_name: str,
    cost_name: str,
) -> str:
    record = await asyncio.to_thread(persist_person, db, ctx, person)
    run_id = await reporter.open_run(ctx, task_name)
    await asyncio.to_thread(attach_run_id, db, record, run_id)
    if _billable(person):
        await reporter.charge(run_id, [CostLine(cost_name, 1)])
    await reporter.complete(run_id)
    return str(record.id)


async def enrich_person(
    db: Session,
    ctx: RunContext,
    apollo_person_id: str,
    *,
    apollo: ApolloClient,
    keys: KeysClient,
    reporter: CostReporter,
    caller: CallerContext,
) -> Dict[str, Any]:
    """Returns `{"enrichment_id", "person"}`; a cache hit has no enrichment id."""
    cached = await asyncio.to_thread(find_cached_by_person_id, db, apollo_person_id)
    if cached is not None:
        logger.info(
            "Enrichment cache hit",
            extra={"org_id": ctx.org_id, "apollo_person_id": apollo_person_id, "step": "enrich"},
        )
        return {"enrichment_id": None, "person": transform_cached_enrichment(apollo_person_id, cached)}

    api_key = await keys.get_byok_key(ctx.org_id, APOLLO_KEY_PROVIDER, caller)
    person = await apollo.enrich_person(api_key, apollo_person_id)
    if person is None:
        logger.info(
            "Apollo has no person for id",
            extra={"org_id": ctx.org_id, "apollo_person_id": apollo_person_id, "step": "enrich"},
        )
        return {"enrichment_id": None, "person": None}

    enrichment_id = await _persist_and_bill(
        db,
        ctx,
        person,
        reporter=reporter,
        task_name=TASK_ENRICHMENT,
        cost_name=ENRICHMENT_CREDIT,
    )
    return {"enrichment_id": enrichment_id, "person": transform_apollo_person(person)}


async def match_person(
    db: Session,
    ctx: RunContext,
    first_name: str,
    last_name: str,
    organization_domain: str,
    *,
    apollo: ApolloClient,
    keys: KeysClient,
    reporter: CostReporter,
    caller: CallerContext,
) -> Dict[str, Any]:
    """Returns `{"enrichment_id", "person", "cached"}`."""
    cached = await asyncio.to_thread(find_cached_match, db, first_name, last_name, organization_domain)
    if cached is not None:
        # Zero-cost run so the parent run tree still shows the lookup.
        await reporter.bill(ctx, TASK_PERSON_MATCH, [])
        return {
            "enrichment_id": None,
            "person": transform_cached_enrichment(cached.apollo_person_id or "", cached),
            "cached": True,
        }

    api_key = await keys.get_byok_key(ctx.org_id, APOLLO_KEY_PROVIDER, caller)
    person = await apollo.match_person(api_key, first_name, last_name, organization_domain)

    if person is None:
        await reporter.bill(ctx, TASK_PERSON_MATCH, [])
        return {"enrichment_id": None, "person": None, "cached": False}

    enrichment_id = await _persist_and_bill(
        db,
        ctx,
        person,
        reporter=reporter,
        task_name=TASK_PERSON_MATCH,
        cost_name=PERSON_MATCH_CREDIT,
    )
    return {"enrichment_id": enrichment_id, "person": transform_apollo_person(person), "cached": False}


async def bulk_match(
    db: Session,
    ctx: RunContext,
    items: Sequence[Dict[str, str]],
    *,
    apollo: ApolloClient,
    keys: KeysClient,
    reporter: CostReporter,
    caller: CallerContext,
) -> List[Dict[str, Any]]:
    """
    `items` are `{"first_name", "last_name", "organization_domain"}` dicts.

    Every item is looked up in the cache on its own; all misses go to Apollo
    in a single bulk call. One run covers the whole batch and is charged one
    match credit per matched person with an email. Results come back in the
    order of `items`.
    """
    keys_in_order = [(i["first_name"], i["last_name"], i["organization_domain"]) for i in items]
    cache_hits = await asyncio.to_thread(find_cached_matches, db, keys_in_order)
    miss_indices = [idx for idx, hit in enumerate(cache_hits) if hit is None]

    upstream: List[Optional[Dict[str, Any]]] = []
    if miss_indices:
        api_key = await keys.get_byok_key(ctx.org_id, APOLLO_KEY_PROVIDER, caller)
        upstream = await apollo.bulk_match_people(
            api_key,
            [
                {
                    "first_name": items[idx]["first_name"],
                    "last_name": items[idx]["last_name"],
                    "domain": items[idx]["organization_domain"],
                }
                for idx in miss_indices
            ],
        )
    upstream_by_index = dict(zip(miss_indices, upstream))
    matched = {idx: person for idx, person in upstream_by_index.items() if person is not None}

    # Persist before opening the run: Apollo has already charged for these,
    # so a runs-service failure must not lose them.
    records = await asyncio.to_thread(persist_matched_people, db, ctx, matched)
    run_id = await reporter.open_run(ctx, TASK_PERSON_MATCH_BULK)
    for record in records.values():
        await asyncio.to_thread(attach_run_id, db, record, run_id)

    results: List[Dict[str, Any]] = []
    for idx, hit in enumerate(cache_hits):
        if hit is not None:
            results.append(
                {
                    "enrichment_id": None,
                    "person": transform_cached_enrichment(hit.apollo_person_id or "", hit),
                    "cached": True,
                }
            )
        elif idx in records:
            results.append(
                {
                    "enrichment_id": str(records[idx].id),
                    "person": transform_apollo_person(matched[idx]),
                    "cached": False,
                }
            )
        else:
            results.append({"enrichment_id": None, "person": None, "cached": False})

    credits = sum(1 for person in matched.values() if _billable(person))
    await reporter.charge(run_id, [CostLine(PERSON_MATCH_CREDIT, credits)])
    await reporter.complete(run_id)

    logger.info(
        "Bulk match: %s items, %s cache hits, %s billable",
        len(items),
        len(items) - len(miss_indices),
        credits,
        extra={"org_id": ctx.org_id, "campaign_id": ctx.campaign_id, "run_id": run_id, "step": "match_bulk"},
    )
    return results
