"""Initial schema for analysis jobs and their audit trail

Revision ID: 001
Revises:
Create Date: 2026-10-16 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Job state is stored by enum member name
    op.create_table(
        'analysis_jobs',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('query', sa.Text(), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=True),
        sa.Column('job_metadata', sa.JSON(), nullable=False),
        sa.Column('state', sa.String(length=20), nullable=False),
        sa.Column('priority', sa.Integer(), nullable=True),
        sa.Column('attempts_made', sa.Integer(), nullable=False),
        sa.Column('result', sa.JSON(), nullable=True),
        sa.Column('failed_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('processed_on', sa.DateTime(timezone=True), nullable=True),
        sa.Column('finished_on', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_analysis_jobs_state', 'analysis_jobs', ['state'])
    op.create_index('ix_analysis_jobs_created_at', 'analysis_jobs', ['created_at'])

    # Create audit_events table
    op.create_table(
        'audit_events',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('job_id', sa.UUID(), nullable=False),
        sa.Column('node_name', sa.String(length=100), nullable=False),
        sa.Column('tool_name', sa.String(length=100), nullable=True),
        sa.Column('input_data', sa.JSON(), nullable=False),
        sa.Column('output_data', sa.JSON(), nullable=False),
        sa.Column('duration_ms', sa.Integer(), nullable=False),
        sa.Column('timestamp', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['job_id'], ['analysis_jobs.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_audit_events_job_id', 'audit_events', ['job_id'])
    op.create_index('ix_audit_events_node_name', 'audit_events', ['node_name'])
    op.create_index('ix_audit_events_timestamp', 'audit_events', ['timestamp'])


def downgrade() -> None:
    op.drop_index('ix_audit_events_timestamp', table_name='audit_events')
    op.drop_index('ix_audit_events_node_name', table_name='audit_events')
    op.drop_index('ix_audit_events_job_id', table_name='audit_events')
    op.drop_table('audit_events')

    op.drop_index('ix_analysis_jobs_created_at', table_name='analysis_jobs')
    op.drop_index('ix_analysis_jobs_state', table_name='analysis_jobs')
    op.drop_table('analysis_jobs')
