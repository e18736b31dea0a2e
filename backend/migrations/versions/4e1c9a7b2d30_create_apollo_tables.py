"""Create apollo searches, enrichments and search cursors tables

Revision ID: 4e1c9a7b2d30
Revises:
Create Date: 2026-03-02 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '4e1c9a7b2d30'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'apollo_people_searches',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('org_id', sa.String(), nullable=False),
        sa.Column('run_id', sa.String(), nullable=False),
        sa.Column('app_id', sa.String(), nullable=False),
        sa.Column('brand_id', sa.String(), nullable=False),
        sa.Column('campaign_id', sa.String(), nullable=False),
        sa.Column('request_params', postgresql.JSON(astext_type=sa.Text()), nullable=True),
        sa.Column('people_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_entries', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('response_raw', postgresql.JSON(astext_type=sa.Text()), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_searches_org', 'apollo_people_searches', ['org_id'], unique=False)
    op.create_index('ix_searches_run', 'apollo_people_searches', ['run_id'], unique=False)
    op.create_index('ix_searches_campaign', 'apollo_people_searches', ['campaign_id'], unique=False)

    op.create_table(
        'apollo_people_enrichments',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('org_id', sa.String(), nullable=False),
        sa.Column('run_id', sa.String(), nullable=False),
        sa.Column('search_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('app_id', sa.String(), nullable=False),
        sa.Column('brand_id', sa.String(), nullable=False),
        sa.Column('campaign_id', sa.String(), nullable=False),
        sa.Column('apollo_person_id', sa.String(), nullable=True),
        # person
        sa.Column('first_name', sa.String(), nullable=True),
        sa.Column('last_name', sa.String(), nullable=True),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('email_status', sa.String(), nullable=True),
        sa.Column('title', sa.String(), nullable=True),
        sa.Column('linkedin_url', sa.String(), nullable=True),
        sa.Column('photo_url', sa.String(), nullable=True),
        sa.Column('headline', sa.Text(), nullable=True),
        sa.Column('city', sa.String(), nullable=True),
        sa.Column('state', sa.String(), nullable=True),
        sa.Column('country', sa.String(), nullable=True),
        sa.Column('seniority', sa.String(), nullable=True),
        sa.Column('departments', postgresql.JSON(astext_type=sa.Text()), nullable=True),
        sa.Column('subdepartments', postgresql.JSON(astext_type=sa.Text()), nullable=True),
        sa.Column('functions', postgresql.JSON(astext_type=sa.Text()), nullable=True),
        sa.Column('twitter_url', sa.String(), nullable=True),
        sa.Column('github_url', sa.String(), nullable=True),
        sa.Column('facebook_url', sa.String(), nullable=True),
        sa.Column('employment_history', postgresql.JSON(astext_type=sa.Text()), nullable=True),
        # organization
        sa.Column('organization_name', sa.String(), nullable=True),
        sa.Column('organization_domain', sa.String(), nullable=True),
        sa.Column('organization_industry', sa.String(), nullable=True),
        sa.Column('organization_size', sa.String(), nullable=True),
        sa.Column('organization_revenue_usd', sa.Numeric(15, 2), nullable=True),
        sa.Column('organization_website_url', sa.String(), nullable=True),
        sa.Column('organization_logo_url', sa.String(), nullable=True),
        sa.Column('organization_short_description', sa.Text(), nullable=True),
        sa.Column('organization_seo_description', sa.Text(), nullable=True),
        sa.Column('organization_linkedin_url', sa.String(), nullable=True),
        sa.Column('organization_twitter_url', sa.String(), nullable=True),
        sa.Column('organization_facebook_url', sa.String(), nullable=True),
        sa.Column('organization_blog_url', sa.String(), nullable=True),
        sa.Column('organization_crunchbase_url', sa.String(), nullable=True),
        sa.Column('organization_angellist_url', sa.String(), nullable=True),
        sa.Column('organization_founded_year', sa.Integer(), nullable=True),
        sa.Column('organization_primary_phone', sa.String(), nullable=True),
        sa.Column('organization_publicly_traded_symbol', sa.String(), nullable=True),
        sa.Column('organization_publicly_traded_exchange', sa.String(), nullable=True),
        sa.Column('organization_annual_revenue_printed', sa.String(), nullable=True),
        sa.Column('organization_total_funding', sa.Numeric(15, 2), nullable=True),
        sa.Column('organization_total_funding_printed', sa.String(), nullable=True),
        sa.Column('organization_latest_funding_round_date', sa.String(), nullable=True),
        sa.Column('organization_latest_funding_stage', sa.String(), nullable=True),
        sa.Column('organization_funding_events', postgresql.JSON(astext_type=sa.Text()), nullable=True),
        sa.Column('organization_city', sa.String(), nullable=True),
        sa.Column('organization_state', sa.String(), nullable=True),
        sa.Column('organization_country', sa.String(), nullable=True),
        sa.Column('organization_street_address', sa.String(), nullable=True),
        sa.Column('organization_postal_code', sa.String(), nullable=True),
        sa.Column('organization_technology_names', postgresql.JSON(astext_type=sa.Text()), nullable=True),
        sa.Column('organization_current_technologies', postgresql.JSON(astext_type=sa.Text()), nullable=True),
        sa.Column('organization_keywords', postgresql.JSON(astext_type=sa.Text()), nullable=True),
        sa.Column('organization_industries', postgresql.JSON(astext_type=sa.Text()), nullable=True),
        sa.Column('organization_secondary_industries', postgresql.JSON(astext_type=sa.Text()), nullable=True),
        sa.Column('organization_num_suborganizations', sa.Integer(), nullable=True),
        sa.Column('organization_retail_location_count', sa.Integer(), nullable=True),
        sa.Column('organization_alexa_ranking', sa.Integer(), nullable=True),
        sa.Column('response_raw', postgresql.JSON(astext_type=sa.Text()), nullable=True),
        sa.Column('enrichment_run_id', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['search_id'], ['apollo_people_searches.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_enrichments_org', 'apollo_people_enrichments', ['org_id'], unique=False)
    op.create_index('ix_enrichments_run', 'apollo_people_enrichments', ['run_id'], unique=False)
    op.create_index('ix_enrichments_email', 'apollo_people_enrichments', ['email'], unique=False)
    op.create_index('ix_enrichments_person_id', 'apollo_people_enrichments', ['apollo_person_id'], unique=False)
    op.create_index('ix_enrichments_campaign', 'apollo_people_enrichments', ['campaign_id'], unique=False)

    op.create_table(
        'apollo_search_cursors',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('org_id', sa.String(), nullable=False),
        sa.Column('campaign_id', sa.String(), nullable=False),
        sa.Column('app_id', sa.String(), nullable=False),
        sa.Column('brand_id', sa.String(), nullable=False),
        sa.Column('search_params', postgresql.JSON(astext_type=sa.Text()), nullable=False),
        sa.Column('current_page', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('total_entries', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('exhausted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('org_id', 'campaign_id', name='uq_cursors_org_campaign')
    )
    op.create_index('ix_cursors_campaign', 'apollo_search_cursors', ['campaign_id'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_cursors_campaign', table_name='apollo_search_cursors')
    op.drop_table('apollo_search_cursors')

    op.drop_index('ix_enrichments_campaign', table_name='apollo_people_enrichments')
    op.drop_index('ix_enrichments_person_id', table_name='apollo_people_enrichments')
    op.drop_index('ix_enrichments_email', table_name='apollo_people_enrichments')
    op.drop_index('ix_enrichments_run', table_name='apollo_people_enrichments')
    op.drop_index('ix_enrichments_org', table_name='apollo_people_enrichments')
    op.drop_table('apollo_people_enrichments')

    op.drop_index('ix_searches_campaign', table_name='apollo_people_searches')
    op.drop_index('ix_searches_run', table_name='apollo_people_searches')
    op.drop_index('ix_searches_org', table_name='apollo_people_searches')
    op.drop_table('apollo_people_searches')
