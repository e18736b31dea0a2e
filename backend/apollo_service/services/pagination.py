# backend/apollo_service/services/pagination.py
"""
Search execution: explicit-page search and cursor-driven "fetch next".

`fetch_next_page` lets a stateless caller walk a campaign's result set one
page per call. The cursor (org + campaign) remembers the filters, the next
page and whether the set is exhausted; this module decides, per call, whether
to create, reset, resume or short-circuit it, and is the only writer of
cursor state.

Side-effect order for a fetched page:

    Apollo search -> cursor advance -> search + enrichment rows -> bill

Billing is mandatory: if runs-service fails, the request fails and the page
is not delivered. The cursor has already moved by then; the caller retries
and gets the following page.

Session work runs through `asyncio.to_thread`; the event loop only awaits
the HTTP calls and the cursor lock.
"""
from __future__ import annotations

import asyncio
import logging
import math
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..errors import CursorConflictError, NoCursorError
from ..models.people_search import PeopleSearch
from ..models.search_cursor import SearchCursor
from . import cursor_store
from .connectors.apollo import ApolloClient
from .cursor_lock import CursorLock
from .enrichment_cache import find_cached_emails
from .enrichment_writer import persist_search_people, record_search
from .filters import filters_equal, to_apollo_params
from .keys import CallerContext, KeysClient
from .runs import SEARCH_CREDIT, TASK_SEARCH, TASK_SEARCH_NEXT, CostLine, CostReporter, RunContext
from .transform import transform_apollo_person

logger = logging.getLogger(__name__)

PAGE_SIZE = 25
MAX_PAGE = 500
APOLLO_KEY_PROVIDER = "apollo"


def compute_done(people_count: int, next_page: int, total_entries: int) -> bool:
    """
    True when there is nothing left to fetch after the page just returned.

    Apollo will not serve past page 500 regardless of the total.
    """
    if people_count == 0:
        return True
    if next_page > math.ceil(total_entries / PAGE_SIZE):
        return True
    return next_page > MAX_PAGE


def backfill_emails(db: Session, people: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Fill missing emails from fresh cached enrichments of the same person."""
    missing = [p["id"] for p in people if not p.get("email") and p.get("id")]
    if not missing:
        return people

    cache = find_cached_emails(db, missing)
    for person in people:
        if person.get("email") or person.get("id") not in cache:
            continue
        email, email_status = cache[person["id"]]
        person["email"] = email
        person["email_status"] = person.get("email_status") or email_status
    return people


def _record_page(
    db: Session,
    ctx: RunContext,
    apollo_params: Dict[str, Any],
    result: Dict[str, Any],
) -> PeopleSearch:
    search = record_search(db, ctx, apollo_params, result)
    persist_search_people(db, ctx, result["people"], search.id)
    return search


def _resolve_cursor(
    db: Session,
    ctx: RunContext,
    search_params: Optional[Dict[str, Any]],
) -> SearchCursor:
    cursor = cursor_store.get_cursor(db, ctx.org_id, ctx.campaign_id)

    if search_params is None:
        if cursor is None:
            raise NoCursorError(ctx.campaign_id)
        return cursor

    if cursor is None:
        return cursor_store.create_cursor(
            db,
            org_id=ctx.org_id,
            campaign_id=ctx.campaign_id,
            app_id=ctx.app_id,
            brand_id=ctx.brand_id,
            search_params=search_params,
        )

    if not filters_equal(cursor.search_params, search_params):
        logger.info(
            "Search filters changed; resetting cursor to page 1",
            extra={"org_id": ctx.org_id, "campaign_id": ctx.campaign_id, "step": "cursor_reset"},
        )
        return cursor_store.reset_cursor(db, cursor, search_params)

    return cursor


async def fetch_next_page(
    db: Session,
    ctx: RunContext,
    search_params: Optional[Dict[str, Any]],
    *,
    apollo: ApolloClient,
    keys: KeysClient,
    reporter: CostReporter,
    lock: CursorLock,
    caller: CallerContext,
) -> Dict[str, Any]:
    """
    Returns `{"people": [...], "done": bool, "total_entries": int}`.

    `search_params` is the caller's camelCase filter object, or None to
    continue the stored search.
    """
    async with lock.hold(ctx.org_id, ctx.campaign_id):
        cursor = await asyncio.to_thread(_resolve_cursor, db, ctx, search_params)
        log_extra = {"org_id": ctx.org_id, "campaign_id": ctx.campaign_id, "page": cursor.current_page}

        if cursor.exhausted:
            logger.info("Cursor exhausted; nothing to fetch", extra={**log_extra, "step": "search_next"})
            return {"people": [], "done": True, "total_entries": cursor.total_entries}

        api_key = await keys.get_byok_key(ctx.org_id, APOLLO_KEY_PROVIDER, caller)
        page = cursor.current_page
        apollo_params = to_apollo_params(cursor.search_params, page=page, per_page=PAGE_SIZE)
        result = await apollo.search_people(api_key, apollo_params)

        people_raw: List[Dict[str, Any]] = result["people"]
        total = result["total_entries"] if people_raw else cursor.total_entries
        next_page = page + 1
        done = compute_done(len(people_raw), next_page, total)

        try:
            await asyncio.to_thread(
                cursor_store.advance_cursor,
                db,
                cursor,
                next_page=next_page,
                total_entries=total,
                exhausted=done,
            )
        except CursorConflictError:
            # The upstream call happened and is billable even though our
            # page lost the race.
            await reporter.bill(ctx, TASK_SEARCH_NEXT, [CostLine(SEARCH_CREDIT, 1)])
            raise

        await asyncio.to_thread(_record_page, db, ctx, apollo_params, result)
        run_id = await reporter.bill(ctx, TASK_SEARCH_NEXT, [CostLine(SEARCH_CREDIT, 1)])

        logger.info(
            "Fetched page %s: %s people, total=%s, done=%s",
            page,
            len(people_raw),
            total,
            done,
            extra={**log_extra, "run_id": run_id, "step": "search_next"},
        )

    people = await asyncio.to_thread(backfill_emails, db, [transform_apollo_person(p) for p in people_raw])
    return {"people": people, "done": done, "total_entries": total}


async def search_page(
    db: Session,
    ctx: RunContext,
    filters: Dict[str, Any],
    *,
    page: int,
    per_page: int,
    apollo: ApolloClient,
    keys: KeysClient,
    reporter: CostReporter,
    caller: CallerContext,
) -> Dict[str, Any]:
    """One explicit page, no cursor involved. Always billed as one search."""
    api_key = await keys.get_byok_key(ctx.org_id, APOLLO_KEY_PROVIDER, caller)
    apollo_params = to_apollo_params(filters, page=page, per_page=per_page)
    result = await apollo.search_people(api_key, apollo_params)

    people_raw: List[Dict[str, Any]] = result["people"]
    total = result["total_entries"]
    if not people_raw:
        logger.warning(
            "Apollo returned 0 people",
            extra={"org_id": ctx.org_id, "campaign_id": ctx.campaign_id, "page": page, "step": "search"},
        )

    search = await asyncio.to_thread(_record_page, db, ctx, apollo_params, result)
    await reporter.bill(ctx, TASK_SEARCH, [CostLine(SEARCH_CREDIT, 1)])

    people = await asyncio.to_thread(backfill_emails, db, [transform_apollo_person(p) for p in people_raw])
    return {
        "search_id": str(search.id),
        "people_count": len(people_raw),
        "total_entries": total,
        "people": people,
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total_entries": total,
            "total_pages": math.ceil(total / per_page),
        },
    }
