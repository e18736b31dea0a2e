# backend/apollo_service/services/cursor_store.py
"""
Durable pagination cursors, one per (org_id, campaign_id).

Writes are conditional on the `version` read by the caller:

    UPDATE apollo_search_cursors
       SET ..., version = version + 1
     WHERE id = :id AND version = :read_version

A zero rowcount means another request advanced or reset the cursor after we
read it. The cursor lock (services/cursor_lock.py) normally prevents that;
the version check is what still holds when the lock has expired.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import CursorConflictError
from ..models.search_cursor import SearchCursor

logger = logging.getLogger(__name__)


def get_cursor(db: Session, org_id: str, campaign_id: str) -> Optional[SearchCursor]:
    return (
        db.query(SearchCursor)
        .filter(SearchCursor.org_id == org_id, SearchCursor.campaign_id == campaign_id)
        .first()
    )


def create_cursor(
    db: Session,
    *,
    org_id: str,
    campaign_id: str,
    app_id: str,
    brand_id: str,
    search_params: Dict[str, Any],
) -> SearchCursor:
    cursor = SearchCursor(
        org_id=org_id,
        campaign_id=campaign_id,
        app_id=app_id,
        brand_id=brand_id,
        search_params=search_params,
        current_page=1,
        total_entries=0,
        exhausted=False,
        version=1,
    )
    db.add(cursor)
    try:
        db.commit()
    except IntegrityError as exc:
        # Unique (org_id, campaign_id): someone else created it first.
        db.rollback()
        raise CursorConflictError(
            "Search cursor for this campaign was created concurrently; retry the request"
        ) from exc
    db.refresh(cursor)
    logger.info(
        "Created search cursor",
        extra={"org_id": org_id, "campaign_id": campaign_id, "step": "cursor_create"},
    )
    return cursor


def _conditional_update(db: Session, cursor: SearchCursor, values: Dict[str, Any]) -> SearchCursor:
    read_version = cursor.version
    now = datetime.utcnow()
    updated = (
        db.query(SearchCursor)
        .filter(SearchCursor.id == cursor.id, SearchCursor.version == read_version)
        .update(
            {
                **values,
                SearchCursor.version: read_version + 1,
                SearchCursor.updated_at: now,
            },
            synchronize_session=False,
        )
    )
    db.commit()

    if updated != 1:
        logger.warning(
            "Search cursor changed underneath us (read version %s)",
            read_version,
            extra={
                "org_id": cursor.org_id,
                "campaign_id": cursor.campaign_id,
                "step": "cursor_update",
            },
        )
        raise CursorConflictError(
            "Search cursor for this campaign was advanced by a concurrent request; retry the request"
        )

    db.refresh(cursor)
    return cursor


def reset_cursor(db: Session, cursor: SearchCursor, search_params: Dict[str, Any]) -> SearchCursor:
    """Replace the filters and start over from page 1."""
    return _conditional_update(
        db,
        cursor,
        {
            SearchCursor.search_params: search_params,
            SearchCursor.current_page: 1,
            SearchCursor.total_entries: 0,
            SearchCursor.exhausted: False,
        },
    )


def advance_cursor(
    db: Session,
    cursor: SearchCursor,
    *,
    next_page: int,
    total_entries: int,
    exhausted: bool,
) -> SearchCursor:
    if next_page <= cursor.current_page:
        raise ValueError(
            f"cursor page must increase (current={cursor.current_page}, next={next_page})"
        )
    return _conditional_update(
        db,
        cursor,
        {
            SearchCursor.current_page: next_page,
            SearchCursor.total_entries: total_entries,
            SearchCursor.exhausted: exhausted,
        },
    )
