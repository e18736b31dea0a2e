from uuid import uuid4
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.db import get_db
from ..schemas.search import (
    SearchNextRequest,
    SearchNextResponse,
    SearchParamsRequest,
    SearchParamsResponse,
    SearchRequest,
    SearchResponse,
)
from ..services.connectors import ApolloClient, get_apollo_client
from ..services.cursor_lock import CursorLock
from ..services.keys import CallerContext, KeysClient
from ..services.llm import LLMClient
from ..services.pagination import fetch_next_page, search_page
from ..services.runs import CostReporter
from ..services.search_params import generate_search_params
from .deps import (
    get_caller,
    get_cost_reporter,
    get_cursor_lock,
    get_keys_client,
    get_llm,
    get_org_id,
    run_context,
    verify_api_key,
)

router = APIRouter(tags=["search"], dependencies=[Depends(verify_api_key)])
logger = logging.getLogger(__name__)


@router.post("/search", response_model=SearchResponse)
async def search(
    payload: SearchRequest,
    org_id: str = Depends(get_org_id),
    db: Session = Depends(get_db),
    apollo: ApolloClient = Depends(get_apollo_client),
    keys: KeysClient = Depends(get_keys_client),
    reporter: CostReporter = Depends(get_cost_reporter),
    caller: CallerContext = Depends(get_caller),
):
    request_id = str(uuid4())
    logger.info(
        "Search requested",
        extra={
            "request_id": request_id,
            "org_id": org_id,
            "campaign_id": payload.campaign_id,
            "run_id": payload.run_id,
            "page": payload.page,
        },
    )

    result = await search_page(
        db,
        run_context(org_id, payload),
        payload.filters().to_stored(),
        page=payload.page,
        per_page=payload.per_page,
        apollo=apollo,
        keys=keys,
        reporter=reporter,
        caller=caller,
    )
    return SearchResponse.model_validate(result)


@router.post("/search/next", response_model=SearchNextResponse)
async def search_next(
    payload: SearchNextRequest,
    org_id: str = Depends(get_org_id),
    db: Session = Depends(get_db),
    apollo: ApolloClient = Depends(get_apollo_client),
    keys: KeysClient = Depends(get_keys_client),
    reporter: CostReporter = Depends(get_cost_reporter),
    lock: CursorLock = Depends(get_cursor_lock),
    caller: CallerContext = Depends(get_caller),
):
    """
    Next page of the campaign's search.

    Supplying `searchParams` starts (or, if they differ from the stored ones,
    restarts) the search; omitting them continues where the last call left
    off.
    """
    request_id = str(uuid4())
    logger.info(
        "Search next requested",
        extra={
            "request_id": request_id,
            "org_id": org_id,
            "campaign_id": payload.campaign_id,
            "run_id": payload.run_id,
        },
    )

    search_params = payload.search_params.to_stored() if payload.search_params is not None else None
    result = await fetch_next_page(
        db,
        run_context(org_id, payload),
        search_params,
        apollo=apollo,
        keys=keys,
        reporter=reporter,
        lock=lock,
        caller=caller,
    )
    return SearchNextResponse.model_validate(result)


@router.post("/search/params", response_model=SearchParamsResponse)
async def search_params(
    payload: SearchParamsRequest,
    org_id: str = Depends(get_org_id),
    apollo: ApolloClient = Depends(get_apollo_client),
    keys: KeysClient = Depends(get_keys_client),
    reporter: CostReporter = Depends(get_cost_reporter),
    llm: LLMClient = Depends(get_llm),
    caller: CallerContext = Depends(get_caller),
):
    request_id = str(uuid4())
    logger.info(
        "Search params generation requested",
        extra={
            "request_id": request_id,
            "org_id": org_id,
            "campaign_id": payload.campaign_id,
            "run_id": payload.run_id,
        },
    )

    result = await generate_search_params(
        run_context(org_id, payload),
        payload.context,
        payload.key_source,
        apollo=apollo,
        keys=keys,
        reporter=reporter,
        llm=llm,
        caller=caller,
    )
    return SearchParamsResponse.model_validate(result)
