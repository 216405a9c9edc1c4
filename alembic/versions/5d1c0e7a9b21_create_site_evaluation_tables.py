"""create_site_evaluation_tables

Revision ID: 5d1c0e7a9b21
Revises:
Create Date: 2026-10-17 09:12:44.318204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '5d1c0e7a9b21'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), 'postgresql')


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'locations',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('address', sa.String(), nullable=False),
        sa.Column('address_key', sa.String(), nullable=False),
        sa.Column('title_reference', sa.String(), nullable=True),
        sa.Column('legal_description', sa.String(), nullable=True),
        sa.Column('valuation_reference', sa.String(), nullable=True),
        sa.Column('latitude', sa.Float(), nullable=False),
        sa.Column('longitude', sa.Float(), nullable=False),
        sa.Column('boundary', JSON_TYPE, nullable=True),
        sa.Column('site_area_m2', sa.Float(), nullable=True),
        sa.Column('street_number', sa.String(), nullable=True),
        sa.Column('street_name', sa.String(), nullable=True),
        sa.Column('suburb', sa.String(), nullable=True),
        sa.Column('city', sa.String(), nullable=True),
        sa.Column('post_code', sa.String(), nullable=True),
        sa.Column('territorial_authority', sa.String(), nullable=True),
        sa.Column('regional_council', sa.String(), nullable=True),
        sa.Column('source', sa.String(), nullable=False),
        sa.Column('geocode_confidence', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_refreshed_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_locations_address_key', 'locations', ['address_key'], unique=True)
    op.create_index('ix_locations_title_reference', 'locations', ['title_reference'])
    op.create_index('ix_locations_latitude', 'locations', ['latitude'])
    op.create_index('ix_locations_longitude', 'locations', ['longitude'])

    op.create_table(
        'location_sections',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('location_id', sa.Uuid(), nullable=False),
        sa.Column('section', sa.String(length=32), nullable=False),
        sa.Column('payload', JSON_TYPE, nullable=True),
        sa.Column('cached_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_attempt_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_outcome', sa.String(length=32), nullable=True),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['location_id'], ['locations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('location_id', 'section', name='uq_location_section'),
    )
    op.create_index('ix_location_sections_location_id', 'location_sections', ['location_id'])

    op.create_table(
        'jobs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('job_reference', sa.String(length=32), nullable=False),
        sa.Column('reference_year', sa.Integer(), nullable=False),
        sa.Column('reference_sequence', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('location_id', sa.Uuid(), nullable=False),
        sa.Column('address', sa.String(), nullable=False),
        sa.Column('owner_id', sa.String(), nullable=True),
        sa.Column('customer_name', sa.String(), nullable=False),
        sa.Column('customer_reference', sa.String(), nullable=True),
        sa.Column('customer_email', sa.String(), nullable=True),
        sa.Column('customer_company', sa.String(), nullable=True),
        sa.Column('purpose', sa.String(length=32), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('intended_use', sa.String(length=32), nullable=False),
        sa.Column('intended_use_details', sa.Text(), nullable=True),
        sa.Column('is_new_development', sa.Boolean(), nullable=False),
        sa.Column('proposed_height', sa.Float(), nullable=True),
        sa.Column('proposed_coverage', sa.Float(), nullable=True),
        sa.Column('proposed_units', sa.Integer(), nullable=True),
        sa.Column('proposed_gfa', sa.Float(), nullable=True),
        sa.Column('is_billable', sa.Boolean(), nullable=False),
        sa.Column('billing_status', sa.String(length=32), nullable=False),
        sa.Column('invoice_reference', sa.String(), nullable=True),
        sa.Column('internal_notes', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('data_status', JSON_TYPE, nullable=False),
        sa.Column('completeness_percent', sa.Integer(), nullable=False),
        sa.Column('data_gaps', JSON_TYPE, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['location_id'], ['locations.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_jobs_job_reference', 'jobs', ['job_reference'], unique=True)
    op.create_index('ix_jobs_reference_year', 'jobs', ['reference_year'])
    op.create_index('ix_jobs_location_id', 'jobs', ['location_id'])
    op.create_index('ix_jobs_owner_id', 'jobs', ['owner_id'])
    op.create_index('ix_jobs_status', 'jobs', ['status'])
    op.create_index('ix_jobs_created_at', 'jobs', ['created_at'])

    op.create_table(
        'job_reports',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('job_id', sa.Uuid(), nullable=False),
        sa.Column('report_type', sa.String(length=32), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('file_name', sa.String(), nullable=False),
        sa.Column('content_type', sa.String(), nullable=False),
        sa.Column('file_size', sa.Integer(), nullable=False),
        sa.Column('options', JSON_TYPE, nullable=False),
        sa.Column('storage_key', sa.String(), nullable=False),
        sa.Column('generated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('generated_by', sa.String(), nullable=True),
        sa.Column('download_count', sa.Integer(), nullable=False),
        sa.Column('last_downloaded_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['job_id'], ['jobs.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('storage_key'),
    )
    op.create_index('ix_job_reports_job_id', 'job_reports', ['job_id'])

    op.create_table(
        'report_blobs',
        sa.Column('storage_key', sa.String(), nullable=False),
        sa.Column('content', sa.LargeBinary(), nullable=False),
        sa.Column('content_type', sa.String(), nullable=False),
        sa.Column('size', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('storage_key'),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('report_blobs')
    op.drop_index('ix_job_reports_job_id', table_name='job_reports')
    op.drop_table('job_reports')
    op.drop_index('ix_jobs_created_at', table_name='jobs')
    op.drop_index('ix_jobs_status', table_name='jobs')
    op.drop_index('ix_jobs_owner_id', table_name='jobs')
    op.drop_index('ix_jobs_location_id', table_name='jobs')
    op.drop_index('ix_jobs_reference_year', table_name='jobs')
    op.drop_index('ix_jobs_job_reference', table_name='jobs')
    op.drop_table('jobs')
    op.drop_index('ix_location_sections_location_id', table_name='location_sections')
    op.drop_table('location_sections')
    op.drop_index('ix_locations_longitude', table_name='locations')
    op.drop_index('ix_locations_latitude', table_name='locations')
    op.drop_index('ix_locations_title_reference', table_name='locations')
    op.drop_index('ix_locations_address_key', table_name='locations')
    op.drop_table('locations')
