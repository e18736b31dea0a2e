# backend/apollo_service/services/runs.py
"""
Cost tracking against runs-service.

Every billable unit of work gets a child run under the caller's run:

    open_run -> add_costs (0..n lines) -> complete_run

Cost tracking is mandatory. Any failure here raises RunsServiceError and the
request fails; nothing in this module swallows errors. The one exception is
`fail_run`, which is used while already propagating another error and must
not mask it.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import httpx

from ..core.config import get_settings
from ..errors import RunsServiceError

logger = logging.getLogger(__name__)

# Cost names registered in runs-service
SEARCH_CREDIT = "apollo-search-credit"
ENRICHMENT_CREDIT = "apollo-enrichment-credit"
PERSON_MATCH_CREDIT = "apollo-person-match-credit"

# Task names for child runs
TASK_SEARCH = "people-search"
TASK_SEARCH_NEXT = "people-search-next"
TASK_ENRICHMENT = "enrichment"
TASK_PERSON_MATCH = "person-match"
TASK_PERSON_MATCH_BULK = "person-match-bulk"
TASK_SEARCH_PARAMS = "search-params-generation"


@dataclass(frozen=True)
class CostLine:
    cost_name: str
    quantity: int


@dataclass(frozen=True)
class RunContext:
    """Scoping copied onto every child run created for one request."""

    org_id: str
    parent_run_id: str
    app_id: str
    brand_id: str
    campaign_id: str
    workflow_name: Optional[str] = None


class RunsClient:
    """HTTP client for runs-service (`/v1/runs`)."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self.base_url = (base_url or settings.RUNS_SERVICE_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.RUNS_SERVICE_API_KEY
        self.timeout = settings.RUNS_SERVICE_TIMEOUT_SECONDS
        self._transport = transport

    async def _request(self, method: str, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                resp = await client.request(
                    method,
                    f"{self.base_url}{path}",
                    json=payload,
                    headers={"X-API-Key": self.api_key},
                )
            except httpx.HTTPError as exc:
                raise RunsServiceError(f"runs-service {method} {path} failed: {exc}") from exc

        if resp.status_code >= 400:
            raise RunsServiceError(
                f"runs-service {method} {path} failed: {resp.status_code} - {resp.text[:500]}"
            )
        if not resp.content:
            return {}
        return resp.json() or {}

    async def create_run(
        self,
        *,
        organization_id: str,
        parent_run_id: str,
        service_name: str,
        task_name: str,
        app_id: str,
        brand_id: str,
        campaign_id: str,
        workflow_name: str | None = None,
    ) -> str:
        payload: Dict[str, Any] = {
            "organizationId": organization_id,
            "parentRunId": parent_run_id,
            "serviceName": service_name,
            "taskName": task_name,
            "appId": app_id,
            "brandId": brand_id,
            "campaignId": campaign_id,
        }
        if workflow_name:
            payload["workflowName"] = workflow_name

        data = await self._request("POST", "/v1/runs", payload)
        run_id = data.get("id")
        if not run_id:
            raise RunsServiceError("runs-service POST /v1/runs returned no run id")
        return str(run_id)

    async def add_costs(self, run_id: str, items: Sequence[CostLine]) -> None:
        await self._request(
            "POST",
            f"/v1/runs/{run_id}/costs",
            {"items": [{"costName": c.cost_name, "quantity": c.quantity} for c in items]},
        )

    async def update_run(self, run_id: str, status: str) -> None:
        await self._request("PATCH", f"/v1/runs/{run_id}", {"status": status})


class CostReporter:
    """
    Sequences the run protocol for one request.

    The steps are exposed individually (open / charge / complete) because
    enrich and match must attach the run id to the persisted record between
    opening the run and posting costs.
    """

    def __init__(self, runs: RunsClient, service_name: str | None = None) -> None:
        self.runs = runs
        self.service_name = service_name or get_settings().SERVICE_NAME

    async def open_run(self, ctx: RunContext, task_name: str) -> str:
        run_id = await self.runs.create_run(
            organization_id=ctx.org_id,
            parent_run_id=ctx.parent_run_id,
            service_name=self.service_name,
            task_name=task_name,
            app_id=ctx.app_id,
            brand_id=ctx.brand_id,
            campaign_id=ctx.campaign_id,
            workflow_name=ctx.workflow_name,
        )
        logger.info(
            "Opened %s run",
            task_name,
            extra={"run_id": run_id, "org_id": ctx.org_id, "campaign_id": ctx.campaign_id, "step": "open_run"},
        )
        return run_id

    async def charge(self, run_id: str, lines: Sequence[CostLine]) -> None:
        billable: List[CostLine] = [line for line in lines if line.quantity > 0]
        if not billable:
            return
        await self.runs.add_costs(run_id, billable)

    async def complete(self, run_id: str) -> None:
        await self.runs.update_run(run_id, "completed")

    async def fail(self, run_id: str) -> None:
        """Best-effort: called while another error is already propagating."""
        try:
            await self.runs.update_run(run_id, "failed")
        except RunsServiceError:
            logger.exception("Failed to mark run as failed", extra={"run_id": run_id, "step": "fail_run"})

    async def bill(self, ctx: RunContext, task_name: str, lines: Sequence[CostLine]) -> str:
        """open -> charge -> complete in one call, for work with nothing to link."""
        run_id = await self.open_run(ctx, task_name)
        await self.charge(run_id, lines)
        await self.complete(run_id)
        return run_id
