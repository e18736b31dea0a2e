# backend/apollo_service/services/connectors/apollo.py

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from ...core.config import get_settings
from ...errors import ApolloAPIError

settings = get_settings()
logger = logging.getLogger(__name__)


class ApolloClient:
    """
    Thin async wrapper around the Apollo.io people endpoints.

    Responsibilities:
    - People API Search (`mixed_people/api_search`) for paginated discovery.
    - Single-person enrichment by Apollo id and match by name + domain
      (`people/match`).
    - Bulk match by name + domain (`people/bulk_match`, max 10 per call).

    The client is stateless: the caller's (BYOK or app) API key is passed per
    call. Every operation is attempted exactly once; a non-2xx response, a
    transport error or an unreadable body is raised as ApolloAPIError so the
    route can surface it. Raw Apollo JSON is returned unchanged; normalisation lives
    in services/transform.py.
    """

    name = "apollo"

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.APOLLO_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.APOLLO_TIMEOUT_SECONDS
        self._transport = transport

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _auth_headers(self, api_key: str) -> Dict[str, str]:
        return {
            "X-Api-Key": api_key,
            "Content-Type": "application/json",
            "accept": "application/json",
        }

    async def _post(
        self,
        operation: str,
        path: str,
        api_key: str,
        payload: Dict[str, Any],
    ) -> Dict[str, Any]:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                resp = await client.post(
                    f"{self.base_url}/{path}",
                    headers=self._auth_headers(api_key),
                    json=payload,
                )
            except httpx.HTTPError as exc:
                logger.error(
                    "Apollo %s request failed: %r",
                    path,
                    exc,
                    extra={"step": f"apollo_{operation}"},
                )
                raise ApolloAPIError(operation, None, f"{type(exc).__name__}: {exc}") from exc

        if resp.status_code >= 400:
            logger.error(
                "Apollo %s returned %s: %s",
                path,
                resp.status_code,
                resp.text[:500],
                extra={"step": f"apollo_{operation}", "status_code": resp.status_code},
            )
            raise ApolloAPIError(operation, resp.status_code, resp.text)

        try:
            data = resp.json()
        except ValueError as exc:
            logger.error(
                "Apollo %s returned a non-JSON body: %s",
                path,
                resp.text[:500],
                extra={"step": f"apollo_{operation}", "status_code": resp.status_code},
            )
            raise ApolloAPIError(operation, resp.status_code, f"invalid JSON body: {resp.text}") from exc

        return data or {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def search_people(self, api_key: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        Returns `{"people": [...], "total_entries": int}`.

        Older responses carried the total under `pagination.total_entries`;
        it is lifted to the top level so callers only read one key.
        """
        payload = {
            **params,
            "page": params.get("page") or 1,
            "per_page": params.get("per_page") or 25,
        }
        data = await self._post("search", "mixed_people/api_search", api_key, payload)

        people = data.get("people") or []
        total = data.get("total_entries")
        if total is None:
            total = (data.get("pagination") or {}).get("total_entries", 0)

        return {**data, "people": people, "total_entries": int(total or 0)}

    async def enrich_person(self, api_key: str, apollo_person_id: str) -> Optional[Dict[str, Any]]:
        data = await self._post(
            "enrich",
            "people/match",
            api_key,
            {"id": apollo_person_id, "reveal_personal_emails": False},
        )
        return data.get("person") or None

    async def match_person(
        self,
        api_key: str,
        first_name: str,
        last_name: str,
        domain: str,
    ) -> Optional[Dict[str, Any]]:
        data = await self._post(
            "match",
            "people/match",
            api_key,
            {
                "first_name": first_name,
                "last_name": last_name,
                "domain": domain,
                "reveal_personal_emails": False,
            },
        )
        return data.get("person") or None

    async def bulk_match_people(
        self,
        api_key: str,
        details: List[Dict[str, str]],
    ) -> List[Optional[Dict[str, Any]]]:
        """
        `details` items are `{"first_name", "last_name", "domain"}`.

        Returns one entry per input item, in input order; a miss is None.
        """
        if not details:
            return []

        data = await self._post(
            "bulk_match",
            "people/bulk_match",
            api_key,
            {"details": details, "reveal_personal_emails": False},
        )
        matches = list(data.get("matches") or [])

        # Apollo answers positionally; pad so a short answer can't shift items.
        if len(matches) < len(details):
            matches.extend([None] * (len(details) - len(matches)))
        return [m or None for m in matches[: len(details)]]
