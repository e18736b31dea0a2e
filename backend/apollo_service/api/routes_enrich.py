from uuid import uuid4
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.db import get_db
from ..schemas.enrich import (
    EnrichRequest,
    EnrichResponse,
    MatchBulkRequest,
    MatchBulkResponse,
    MatchRequest,
    MatchResult,
)
from ..services.connectors import ApolloClient, get_apollo_client
from ..services.enrichment import bulk_match, enrich_person, match_person
from ..services.keys import CallerContext, KeysClient
from ..services.runs import CostReporter
from .deps import (
    get_caller,
    get_cost_reporter,
    get_keys_client,
    get_org_id,
    run_context,
    verify_api_key,
)

router = APIRouter(tags=["enrich"], dependencies=[Depends(verify_api_key)])
logger = logging.getLogger(__name__)


@router.post("/enrich", response_model=EnrichResponse)
async def enrich(
    payload: EnrichRequest,
    org_id: str = Depends(get_org_id),
    db: Session = Depends(get_db),
    apollo: ApolloClient = Depends(get_apollo_client),
    keys: KeysClient = Depends(get_keys_client),
    reporter: CostReporter = Depends(get_cost_reporter),
    caller: CallerContext = Depends(get_caller),
):
    logger.info(
        "Enrich requested",
        extra={
            "request_id": str(uuid4()),
            "org_id": org_id,
            "run_id": payload.run_id,
            "apollo_person_id": payload.apollo_person_id,
        },
    )
    result = await enrich_person(
        db,
        run_context(org_id, payload),
        payload.apollo_person_id,
        apollo=apollo,
        keys=keys,
        reporter=reporter,
        caller=caller,
    )
    return EnrichResponse.model_validate(result)


@router.post("/match", response_model=MatchResult)
async def match(
    payload: MatchRequest,
    org_id: str = Depends(get_org_id),
    db: Session = Depends(get_db),
    apollo: ApolloClient = Depends(get_apollo_client),
    keys: KeysClient = Depends(get_keys_client),
    reporter: CostReporter = Depends(get_cost_reporter),
    caller: CallerContext = Depends(get_caller),
):
    logger.info(
        "Match requested",
        extra={"request_id": str(uuid4()), "org_id": org_id, "run_id": payload.run_id},
    )
    result = await match_person(
        db,
        run_context(org_id, payload),
        payload.first_name,
        payload.last_name,
        payload.organization_domain,
        apollo=apollo,
        keys=keys,
        reporter=reporter,
        caller=caller,
    )
    return MatchResult.model_validate(result)


@router.post("/match/bulk", response_model=MatchBulkResponse)
async def match_bulk(
    payload: MatchBulkRequest,
    org_id: str = Depends(get_org_id),
    db: Session = Depends(get_db),
    apollo: ApolloClient = Depends(get_apollo_client),
    keys: KeysClient = Depends(get_keys_client),
    reporter: CostReporter = Depends(get_cost_reporter),
    caller: CallerContext = Depends(get_caller),
):
    logger.info(
        "Bulk match requested",
        extra={"request_id": str(uuid4()), "org_id": org_id, "run_id": payload.run_id},
    )
    results = await bulk_match(
        db,
        run_context(org_id, payload),
        [item.model_dump() for item in payload.items],
        apollo=apollo,
        keys=keys,
        reporter=reporter,
        caller=caller,
    )
    return MatchBulkResponse(results=[MatchResult.model_validate(r) for r in results])
