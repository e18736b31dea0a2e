"""
PeopleEnrichment model: one row per person returned by a search or fetched
through enrich / match.

Rows are written once. The only later mutation is attaching
`enrichment_run_id` once the billing run for the row exists. Rows with an
email double as the enrichment cache (see services/enrichment_cache.py).
"""
from datetime import datetime
import uuid

from sqlalchemy import (
    Column,
    String,
    Integer,
    Text,
    DateTime,
    JSON,
    Numeric,
    Uuid,
    ForeignKey,
    Index,
)

from ..core.db import Base


class PeopleEnrichment(Base):
    __tablename__ = "apollo_people_enrichments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    org_id = Column(String, nullable=False)
    run_id = Column(String, nullable=False)
    search_id = Column(Uuid, ForeignKey("apollo_people_searches.id", ondelete="CASCADE"), nullable=True)

    app_id = Column(String, nullable=False)
    brand_id = Column(String, nullable=False)
    campaign_id = Column(String, nullable=False)

    apollo_person_id = Column(String, nullable=True)

    # Person
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    email = Column(String, nullable=True)
    email_status = Column(String, nullable=True)
    title = Column(String, nullable=True)
    linkedin_url = Column(String, nullable=True)
    photo_url = Column(String, nullable=True)
    headline = Column(Text, nullable=True)
    city = Column(String, nullable=True)
    state = Column(String, nullable=True)
    country = Column(String, nullable=True)
    seniority = Column(String, nullable=True)
    departments = Column(JSON, nullable=True)
    subdepartments = Column(JSON, nullable=True)
    functions = Column(JSON, nullable=True)
    twitter_url = Column(String, nullable=True)
    github_url = Column(String, nullable=True)
    facebook_url = Column(String, nullable=True)
    employment_history = Column(JSON, nullable=True)

    # Organization
    organization_name = Column(String, nullable=True)
    organization_domain = Column(String, nullable=True)
    organization_industry = Column(String, nullable=True)
    organization_size = Column(String, nullable=True)
    organization_revenue_usd = Column(Numeric(15, 2), nullable=True)
    organization_website_url = Column(String, nullable=True)
    organization_logo_url = Column(String, nullable=True)
    organization_short_description = Column(Text, nullable=True)
    organization_seo_description = Column(Text, nullable=True)
    organization_linkedin_url = Column(String, nullable=True)
    organization_twitter_url = Column(String, nullable=True)
    organization_facebook_url = Column(String, nullable=True)
    organization_blog_url = Column(String, nullable=True)
    organization_crunchbase_url = Column(String, nullable=True)
    organization_angellist_url = Column(String, nullable=True)
    organization_founded_year = Column(Integer, nullable=True)
    organization_primary_phone = Column(String, nullable=True)
    organization_publicly_traded_symbol = Column(String, nullable=True)
    organization_publicly_traded_exchange = Column(String, nullable=True)
    organization_annual_revenue_printed = Column(String, nullable=True)
    organization_total_funding = Column(Numeric(15, 2), nullable=True)
    organization_total_funding_printed = Column(String, nullable=True)
    organization_latest_funding_round_date = Column(String, nullable=True)
    organization_latest_funding_stage = Column(String, nullable=True)
    organization_funding_events = Column(JSON, nullable=True)
    organization_city = Column(String, nullable=True)
    organization_state = Column(String, nullable=True)
    organization_country = Column(String, nullable=True)
    organization_street_address = Column(String, nullable=True)
    organization_postal_code = Column(String, nullable=True)
    organization_technology_names = Column(JSON, nullable=True)
    organization_current_technologies = Column(JSON, nullable=True)
    organization_keywords = Column(JSON, nullable=True)
    organization_industries = Column(JSON, nullable=True)
    organization_secondary_industries = Column(JSON, nullable=True)
    organization_num_suborganizations = Column(Integer, nullable=True)
    organization_retail_location_count = Column(Integer, nullable=True)
    organization_alexa_ranking = Column(Integer, nullable=True)

    response_raw = Column(JSON, nullable=True)

    # Billing run in runs-service that charged (or tried to charge) for this row
    enrichment_run_id = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_enrichments_org", "org_id"),
        Index("ix_enrichments_run", "run_id"),
        Index("ix_enrichments_email", "email"),
        Index("ix_enrichments_person_id", "apollo_person_id"),
        Index("ix_enrichments_campaign", "campaign_id"),
    )
