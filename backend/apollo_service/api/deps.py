from __future__ import annotations

from functools import lru_cache

from fastapi import Depends, Header, HTTPException, Request, Security
from fastapi.security.api_key import APIKeyHeader

from ..core.config import get_settings
from ..services.cursor_lock import CursorLock
from ..services.keys import CallerContext, KeysClient
from ..services.llm import LLMClient
from ..services.runs import CostReporter, RunContext, RunsClient

settings = get_settings()
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def verify_api_key(api_key: str | None = Security(api_key_header)) -> None:
    """
    Simple header-based API key authentication.

    - In dev, if API_AUTH_KEY is not set, auth is skipped.
    - Otherwise, require X-API-Key == API_AUTH_KEY.
    """
    expected = settings.API_AUTH_KEY

    # In dev with no configured key, skip auth for convenience
    if settings.ENV == "dev" and not expected:
        return

    if not expected:
        # In non-dev environments, missing config is treated as misconfiguration
        raise HTTPException(status_code=401, detail="API key not configured")

    if api_key != expected:
        raise HTTPException(status_code=401, detail="Invalid API key")


def get_org_id(x_org_id: str | None = Header(default=None, alias="X-Org-Id")) -> str:
    """Caller's organization; every record and run is scoped to it."""
    if not x_org_id or not x_org_id.strip():
        raise HTTPException(status_code=400, detail="X-Org-Id header is required")
    return x_org_id.strip()


def get_caller(request: Request) -> CallerContext:
    return CallerContext(method=request.method, path=request.url.path)


@lru_cache(maxsize=1)
def get_keys_client() -> KeysClient:
    return KeysClient()


@lru_cache(maxsize=1)
def get_runs_client() -> RunsClient:
    return RunsClient()


def get_cost_reporter(runs: RunsClient = Depends(get_runs_client)) -> CostReporter:
    return CostReporter(runs)


@lru_cache(maxsize=1)
def get_cursor_lock() -> CursorLock:
    return CursorLock()


@lru_cache(maxsize=1)
def get_llm() -> LLMClient:
    return LLMClient()


def run_context(org_id: str, payload) -> RunContext:
    """Child-run scoping from a request body carrying run/app/brand/campaign ids."""
    return RunContext(
        org_id=org_id,
        parent_run_id=payload.run_id,
        app_id=payload.app_id,
        brand_id=payload.brand_id,
        campaign_id=payload.campaign_id,
        workflow_name=payload.workflow_name,
    )
