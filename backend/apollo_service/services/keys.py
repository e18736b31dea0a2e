# backend/apollo_service/services/keys.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict

import httpx

from ..core.config import get_settings
from ..errors import KeyNotConfiguredError, KeyServiceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallerContext:
    """Which of our endpoints is asking; forwarded to key-service for auditing."""

    method: str
    path: str


class KeysClient:
    """
    Fetches decrypted provider keys from key-service.

    - BYOK keys are scoped to the caller's organization.
    - App keys are scoped to the calling app (platform-paid usage).

    404 means "not configured" and is a caller problem (KeyNotConfiguredError);
    anything else non-2xx is a KeyServiceError.
    """

    caller_service = "apollo"

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self.base_url = (base_url or settings.KEY_SERVICE_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.KEY_SERVICE_API_KEY
        self.timeout = settings.KEY_SERVICE_TIMEOUT_SECONDS
        self._transport = transport

    def _headers(self, caller: CallerContext) -> Dict[str, str]:
        return {
            "X-API-Key": self.api_key,
            "X-Caller-Service": self.caller_service,
            "X-Caller-Method": caller.method,
            "X-Caller-Path": caller.path,
        }

    async def _decrypt(
        self,
        path: str,
        params: Dict[str, str],
        provider: str,
        caller: CallerContext,
    ) -> str:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                resp = await client.get(
                    f"{self.base_url}{path}",
                    params=params,
                    headers=self._headers(caller),
                )
            except httpx.HTTPError as exc:
                raise KeyServiceError(f"Failed to reach key-service for {provider} key: {exc}") from exc

        if resp.status_code == 404:
            raise KeyNotConfiguredError(provider)

        if resp.status_code >= 400:
            logger.error(
                "key-service decrypt failed: status=%s url=%s api_key_set=%s",
                resp.status_code,
                self.base_url,
                bool(self.api_key),
                extra={"step": "key_decrypt", "status_code": resp.status_code},
            )
            raise KeyServiceError(f"Failed to fetch {provider} key: {resp.text[:500]}")

        key = (resp.json() or {}).get("key")
        if not key:
            raise KeyServiceError(f"key-service returned no {provider} key")
        return key

    async def get_byok_key(self, org_id: str, provider: str, caller: CallerContext) -> str:
        return await self._decrypt(
            f"/internal/keys/{provider}/decrypt",
            {"orgId": org_id},
            provider,
            caller,
        )

    async def get_app_key(self, app_id: str, provider: str, caller: CallerContext) -> str:
        return await self._decrypt(
            f"/internal/app-keys/{provider}/decrypt",
            {"appId": app_id},
            provider,
            caller,
        )
