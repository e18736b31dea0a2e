"""
SearchCursor model: durable pagination state for /search/next.

One row per (org_id, campaign_id). The cursor remembers the filters that
produced it, the next page to fetch, the last upstream total and whether the
result set is exhausted. `version` is bumped on every write so concurrent
writers can detect a lost update (see services/cursor_store.py).
"""
from datetime import datetime
import uuid

from sqlalchemy import Column, String, Integer, Boolean, DateTime, JSON, Uuid, Index, UniqueConstraint

from ..core.db import Base


class SearchCursor(Base):
    __tablename__ = "apollo_search_cursors"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    org_id = Column(String, nullable=False)
    campaign_id = Column(String, nullable=False)
    app_id = Column(String, nullable=False)
    brand_id = Column(String, nullable=False)

    search_params = Column(JSON, nullable=False)  # camelCase filter object as supplied by the caller
    current_page = Column(Integer, nullable=False, default=1)
    total_entries = Column(Integer, nullable=False, default=0)
    exhausted = Column(Boolean, nullable=False, default=False)
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("org_id", "campaign_id", name="uq_cursors_org_campaign"),
        Index("ix_cursors_campaign", "campaign_id"),
    )
