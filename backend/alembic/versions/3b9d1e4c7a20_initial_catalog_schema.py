"""initial catalog schema

Revision ID: 3b9d1e4c7a20
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from alembic import op

# revision identifiers, used by Alembic.
revision = '3b9d1e4c7a20'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Datasets
    op.create_table('datasets',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('uuid', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('external_id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=500), nullable=False),
        sa.Column('name_localized', sa.String(length=500), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('description_localized', sa.Text(), nullable=True),
        sa.Column('category', sa.String(length=255), server_default='Other', nullable=False),
        sa.Column('source', sa.String(length=500), nullable=True),
        sa.Column('source_url', sa.String(length=500), nullable=True),
        sa.Column('record_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('resources', postgresql.JSONB(astext_type=sa.Text()), server_default='[]', nullable=False),
        sa.Column('sync_status', sa.String(length=20), server_default='PENDING', nullable=False),
        sa.Column('last_sync_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_sync_attempt_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('sync_error', sa.Text(), nullable=True),
        sa.Column('sync_failures', sa.Integer(), server_default='0', nullable=False),
        sa.Column('extra_data', postgresql.JSONB(astext_type=sa.Text()), server_default='{}', nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('external_id', name='uq_datasets_external_id'),
        sa.UniqueConstraint('uuid', name='uq_datasets_uuid')
    )
    op.create_index('idx_datasets_external_id', 'datasets', ['external_id'], unique=False)
    op.create_index('idx_datasets_category', 'datasets', ['category'], unique=False)
    op.create_index('idx_datasets_sync_status', 'datasets', ['sync_status'], unique=False)
    op.create_index('ix_datasets_uuid', 'datasets', ['uuid'], unique=True)

    # Sync logs
    op.create_table('sync_logs',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('uuid', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('job_type', sa.String(length=50), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('dataset_external_id', sa.String(length=64), nullable=True),
        sa.Column('records_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('new_records', sa.Integer(), server_default='0', nullable=False),
        sa.Column('duration_ms', sa.Integer(), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('details', postgresql.JSONB(astext_type=sa.Text()), server_default='{}', nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('uuid', name='uq_sync_logs_uuid')
    )
    op.create_index('idx_sync_logs_job_type', 'sync_logs', ['job_type'], unique=False)
    op.create_index('idx_sync_logs_dataset', 'sync_logs', ['dataset_external_id'], unique=False)
    op.create_index('idx_sync_logs_created', 'sync_logs', ['created_at'], unique=False)
    op.create_index('ix_sync_logs_uuid', 'sync_logs', ['uuid'], unique=True)


def downgrade() -> None:
    op.drop_table('sync_logs')
    op.drop_table('datasets')
