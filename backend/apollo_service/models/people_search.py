from sqlalchemy import Column, String, Integer, DateTime, JSON, Uuid, Index
from datetime import datetime
import uuid

from ..core.db import Base


class PeopleSearch(Base):
    """Audit row for every executed Apollo people search."""

    __tablename__ = "apollo_people_searches"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    org_id = Column(String, nullable=False)
    run_id = Column(String, nullable=False)  # parent run in runs-service

    app_id = Column(String, nullable=False)
    brand_id = Column(String, nullable=False)
    campaign_id = Column(String, nullable=False)

    request_params = Column(JSON, nullable=True)  # snake_case params sent to Apollo
    people_count = Column(Integer, nullable=False, default=0)
    total_entries = Column(Integer, nullable=False, default=0)
    response_raw = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_searches_org", "org_id"),
        Index("ix_searches_run", "run_id"),
        Index("ix_searches_campaign", "campaign_id"),
    )
