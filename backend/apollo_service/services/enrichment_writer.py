# backend/apollo_service/services/enrichment_writer.py
"""
Persistence for search audit rows and enrichment records.

Each function commits on its own. The enrich/match flow is a sequence of
independently observable steps (persist -> attach run id -> post cost ->
complete run); a later failure must not roll back an earlier write, because
the run id on the record is what billing reconciliation starts from.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from ..models.people_enrichment import PeopleEnrichment
from ..models.people_search import PeopleSearch
from .runs import RunContext
from .transform import to_enrichment_values

logger = logging.getLogger(__name__)


def record_search(
    db: Session,
    ctx: RunContext,
    request_params: Dict[str, Any],
    result: Dict[str, Any],
) -> PeopleSearch:
    search = PeopleSearch(
        org_id=ctx.org_id,
        run_id=ctx.parent_run_id,
        app_id=ctx.app_id,
        brand_id=ctx.brand_id,
        campaign_id=ctx.campaign_id,
        request_params=request_params,
        people_count=len(result.get("people") or []),
        total_entries=int(result.get("total_entries") or 0),
        response_raw=result,
    )
    db.add(search)
    db.commit()
    db.refresh(search)
    return search


def _new_record(
    ctx: RunContext,
    person: Dict[str, Any],
    search_id: Optional[UUID],
    enrichment_run_id: Optional[str],
) -> PeopleEnrichment:
    return PeopleEnrichment(
        org_id=ctx.org_id,
        run_id=ctx.parent_run_id,
        search_id=search_id,
        app_id=ctx.app_id,
        brand_id=ctx.brand_id,
        campaign_id=ctx.campaign_id,
        enrichment_run_id=enrichment_run_id,
        **to_enrichment_values(person),
    )


def persist_person(
    db: Session,
    ctx: RunContext,
    person: Dict[str, Any],
    *,
    search_id: Optional[UUID] = None,
    enrichment_run_id: Optional[str] = None,
) -> PeopleEnrichment:
    record = _new_record(ctx, person, search_id, enrichment_run_id)
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def persist_search_people(
    db: Session,
    ctx: RunContext,
    people: Sequence[Dict[str, Any]],
    search_id: UUID,
) -> List[PeopleEnrichment]:
    """One record per person in a search page, committed together."""
    records = [_new_record(ctx, person, search_id, None) for person in people]
    if not records:
        return []
    db.add_all(records)
    db.commit()
    return records


def persist_matched_people(
    db: Session,
    ctx: RunContext,
    people: Dict[int, Dict[str, Any]],
) -> Dict[int, PeopleEnrichment]:
    """Bulk-match hits keyed by input position, committed together, not yet linked to a run."""
    records = {idx: _new_record(ctx, person, None, None) for idx, person in people.items()}
    if not records:
        return {}
    db.add_all(records.values())
    db.commit()
    return records


def attach_run_id(db: Session, record: PeopleEnrichment, run_id: str) -> None:
    """
    Link the billing run to the record. Only a NULL run id is ever replaced,
    so a record keeps pointing at the first run that tried to charge for it.
    """
    updated = (
        db.query(PeopleEnrichment)
        .filter(
            PeopleEnrichment.id == record.id,
            PeopleEnrichment.enrichment_run_id.is_(None),
        )
        .update({PeopleEnrichment.enrichment_run_id: run_id}, synchronize_session=False)
    )
    db.commit()
    if updated:
        record.enrichment_run_id = run_id
    else:
        logger.warning(
            "Enrichment record already linked to a run; keeping original link",
            extra={"run_id": run_id, "step": "attach_run_id"},
        )
