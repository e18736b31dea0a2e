# backend/apollo_service/services/cursor_lock.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as aioredis
from redis.exceptions import LockError

from ..core.config import get_settings
from ..errors import CursorConflictError

logger = logging.getLogger(__name__)


def cursor_lock_key(org_id: str, campaign_id: str) -> str:
    return f"apollo:cursor-lock:{org_id}:{campaign_id}"


def _redis_client() -> aioredis.Redis:
    settings = get_settings()
    return aioredis.from_url(
        str(settings.REDIS_URL),
        decode_responses=True,
        socket_timeout=5,
        socket_connect_timeout=5,
    )


class CursorLock:
    """
    Per-campaign mutual exclusion for the fetch-next sequence.

    Held from the cursor read until the cursor write (and billing) is done, so
    two concurrent calls for the same campaign cannot both read page N. The
    lock has a TTL; if a holder outlives it, the versioned cursor update in
    cursor_store is what catches the overlap.
    """

    def __init__(
        self,
        client: aioredis.Redis | None = None,
        timeout: float | None = None,
        blocking_timeout: float | None = None,
    ) -> None:
        settings = get_settings()
        self._client = client
        self.timeout = timeout if timeout is not None else settings.CURSOR_LOCK_TIMEOUT_SECONDS
        self.blocking_timeout = (
            blocking_timeout
            if blocking_timeout is not None
            else settings.CURSOR_LOCK_BLOCKING_TIMEOUT_SECONDS
        )

    @property
    def client(self) -> aioredis.Redis:
        if self._client is None:
            self._client = _redis_client()
        return self._client

    @asynccontextmanager
    async def hold(self, org_id: str, campaign_id: str) -> AsyncIterator[None]:
        key = cursor_lock_key(org_id, campaign_id)
        lock = self.client.lock(key, timeout=self.timeout, blocking_timeout=self.blocking_timeout)

        acquired = await lock.acquire()
        if not acquired:
            logger.warning(
                "Timed out waiting for cursor lock",
                extra={"org_id": org_id, "campaign_id": campaign_id, "step": "cursor_lock"},
            )
            raise CursorConflictError(
                "Another request is already fetching the next page for this campaign; retry the request"
            )

        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                # TTL ran out while we held it; the versioned update already
                # decided whether our write won.
                logger.warning(
                    "Cursor lock expired before release",
                    extra={"org_id": org_id, "campaign_id": campaign_id, "step": "cursor_lock"},
                )
