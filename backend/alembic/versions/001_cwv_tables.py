"""CWV samples, aggregates and alerts

Revision ID: 001
Revises: 
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # Raw samples
    op.create_table(
        'cwv_samples',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        *_timestamps(),
        sa.Column('site_id', sa.BigInteger(), nullable=False, server_default='1'),
        sa.Column('page_id', sa.BigInteger(), nullable=False),
        sa.Column('metric_name', sa.String(10), nullable=False),
        sa.Column('value', sa.Float(), nullable=False),
        sa.Column('rating', sa.String(20), nullable=False),
        sa.Column('delta', sa.Float(), nullable=True),
        sa.Column('metric_id', sa.String(100), nullable=True),
        sa.Column('device_type', sa.String(10), nullable=False),
        sa.Column('connection', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('navigation_type', sa.String(20), nullable=False, server_default='unknown'),
        sa.Column('url', sa.String(2048), nullable=False),
        sa.Column('user_agent', sa.String(512), nullable=True),
        sa.Column('viewport', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('screen', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('captured_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_cwv_samples_id', 'cwv_samples', ['id'], unique=False)
    op.create_index('ix_cwv_samples_page_id', 'cwv_samples', ['page_id'], unique=False)
    op.create_index('ix_cwv_samples_captured_at', 'cwv_samples', ['captured_at'], unique=False)
    op.create_index(
        'ix_cwv_samples_page_metric_captured',
        'cwv_samples',
        ['page_id', 'metric_name', 'captured_at'],
        unique=False
    )

    # Write-time aggregates
    op.create_table(
        'cwv_aggregates',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        *_timestamps(),
        sa.Column('site_id', sa.BigInteger(), nullable=False, server_default='1'),
        sa.Column('page_id', sa.BigInteger(), nullable=False),
        sa.Column('metric_name', sa.String(10), nullable=False),
        sa.Column('device_type', sa.String(10), nullable=False),
        sa.Column('sample_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('good_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('needs_improvement_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('poor_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('recent_values', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default='[]'),
        sa.Column('p75', sa.Float(), nullable=True),
        sa.Column('p75_rating', sa.String(20), nullable=True),
        sa.Column('latest_value', sa.Float(), nullable=True),
        sa.Column('latest_rating', sa.String(20), nullable=True),
        sa.Column('last_sample_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('page_id', 'metric_name', 'device_type', name='uq_cwv_aggregate_key')
    )
    op.create_index('ix_cwv_aggregates_id', 'cwv_aggregates', ['id'], unique=False)
    op.create_index('ix_cwv_aggregates_page_id', 'cwv_aggregates', ['page_id'], unique=False)

    # Alerts
    op.create_table(
        'cwv_alerts',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        *_timestamps(),
        sa.Column('page_id', sa.BigInteger(), nullable=False),
        sa.Column('metric_name', sa.String(10), nullable=False),
        sa.Column('value', sa.Float(), nullable=False),
        sa.Column('rating', sa.String(20), nullable=False),
        sa.Column('device_type', sa.String(10), nullable=False),
        sa.Column('url', sa.String(2048), nullable=True),
        sa.Column('diagnosis', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('resolved', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_cwv_alerts_id', 'cwv_alerts', ['id'], unique=False)
    op.create_index('ix_cwv_alerts_page_resolved', 'cwv_alerts', ['page_id', 'resolved'], unique=False)
    op.create_index(
        'ix_cwv_alerts_page_metric_created',
        'cwv_alerts',
        ['page_id', 'metric_name', 'created_at'],
        unique=False
    )


def downgrade() -> None:
    op.drop_index('ix_cwv_alerts_page_metric_created', table_name='cwv_alerts')
    op.drop_index('ix_cwv_alerts_page_resolved', table_name='cwv_alerts')
    op.drop_index('ix_cwv_alerts_id', table_name='cwv_alerts')
    op.drop_table('cwv_alerts')

    op.drop_index('ix_cwv_aggregates_page_id', table_name='cwv_aggregates')
    op.drop_index('ix_cwv_aggregates_id', table_name='cwv_aggregates')
    op.drop_table('cwv_aggregates')

    op.drop_index('ix_cwv_samples_page_metric_captured', table_name='cwv_samples')
    op.drop_index('ix_cwv_samples_captured_at', table_name='cwv_samples')
    op.drop_index('ix_cwv_samples_page_id', table_name='cwv_samples')
    op.drop_index('ix_cwv_samples_id', table_name='cwv_samples')
    op.drop_table('cwv_samples')
