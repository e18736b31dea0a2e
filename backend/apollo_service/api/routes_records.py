import logging

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.db import get_db
from ..models.people_enrichment import PeopleEnrichment
from ..models.people_search import PeopleSearch
from ..schemas.records import (
    EnrichmentRecordOut,
    EnrichmentsResponse,
    SearchesResponse,
    SearchRecordOut,
    StatsOut,
    StatsRequest,
    StatsResponse,
)
from .deps import get_org_id, verify_api_key

router = APIRouter(tags=["records"], dependencies=[Depends(verify_api_key)])
logger = logging.getLogger(__name__)


@router.get("/searches/{run_id}", response_model=SearchesResponse)
def list_searches(
    run_id: str,
    org_id: str = Depends(get_org_id),
    db: Session = Depends(get_db),
):
    searches = (
        db.query(PeopleSearch)
        .filter(PeopleSearch.run_id == run_id, PeopleSearch.org_id == org_id)
        .order_by(PeopleSearch.created_at.asc())
        .all()
    )
    return SearchesResponse(searches=[SearchRecordOut.model_validate(s) for s in searches])


@router.get("/enrichments/{run_id}", response_model=EnrichmentsResponse)
def list_enrichments(
    run_id: str,
    org_id: str = Depends(get_org_id),
    db: Session = Depends(get_db),
):
    enrichments = (
        db.query(PeopleEnrichment)
        .filter(PeopleEnrichment.run_id == run_id, PeopleEnrichment.org_id == org_id)
        .order_by(PeopleEnrichment.created_at.asc())
        .all()
    )
    if not enrichments:
        logger.warning(
            "No enrichments stored for run",
            extra={"org_id": org_id, "run_id": run_id, "step": "list_enrichments"},
        )
    return EnrichmentsResponse(enrichments=[EnrichmentRecordOut.model_validate(e) for e in enrichments])


def _scoped(query, model, org_id: str, payload: StatsRequest):
    query = query.filter(model.org_id == org_id)
    if payload.run_ids is not None:
        query = query.filter(model.run_id.in_(payload.run_ids))
    if payload.app_id:
        query = query.filter(model.app_id == payload.app_id)
    if payload.brand_id:
        query = query.filter(model.brand_id == payload.brand_id)
    if payload.campaign_id:
        query = query.filter(model.campaign_id == payload.campaign_id)
    return query


@router.post("/stats", response_model=StatsResponse)
def stats(
    payload: StatsRequest,
    org_id: str = Depends(get_org_id),
    db: Session = Depends(get_db),
):
    """
    Aggregates over the caller's searches and enrichment records.

    `totalMatchingPeople` is the largest reported total per campaign, summed
    across campaigns: every page of one campaign repeats the same total.
    """
    if payload.run_ids == []:
        return StatsResponse(
            stats=StatsOut(
                enriched_leads_count=0,
                search_count=0,
                fetched_people_count=0,
                total_matching_people=0,
            )
        )

    enriched = _scoped(db.query(func.count(PeopleEnrichment.id)), PeopleEnrichment, org_id, payload).scalar()

    search_count, fetched = _scoped(
        db.query(func.count(PeopleSearch.id), func.coalesce(func.sum(PeopleSearch.people_count), 0)),
        PeopleSearch,
        org_id,
        payload,
    ).one()

    per_campaign = (
        _scoped(
            db.query(func.max(PeopleSearch.total_entries).label("total")),
            PeopleSearch,
            org_id,
            payload,
        )
        .group_by(PeopleSearch.campaign_id)
        .subquery()
    )
    total_matching = db.query(func.coalesce(func.sum(per_campaign.c.total), 0)).scalar()

    logger.info(
        "Stats computed",
        extra={"org_id": org_id, "campaign_id": payload.campaign_id, "step": "stats"},
    )
    return StatsResponse(
        stats=StatsOut(
            enriched_leads_count=int(enriched or 0),
            search_count=int(search_count or 0),
            fetched_people_count=int(fetched or 0),
            total_matching_people=int(total_matching or 0),
        )
    )
