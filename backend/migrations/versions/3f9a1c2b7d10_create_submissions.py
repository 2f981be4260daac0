"""Create submissions and submission_transitions tables

Revision ID: 3f9a1c2b7d10
Revises:
Create Date: 2025-06-02 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '3f9a1c2b7d10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'submissions',
        sa.Column('id', postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column('site', sa.String(255), nullable=False, index=True),
        sa.Column('date', sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column('inv_gen', sa.Float(), nullable=False),
        sa.Column('abt_export', sa.Float(), nullable=False),
        sa.Column('poa', sa.Float(), nullable=False),
        sa.Column('status', sa.String(32), nullable=False),
        sa.Column('previous_status', sa.String(32), nullable=True),
        sa.Column('submitted_by', sa.String(255), nullable=True),
        sa.Column('revision', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_submissions_site_date', 'submissions', ['site', 'date'])
    op.create_index('ix_submissions_status', 'submissions', ['status'])

    op.create_table(
        'submission_transitions',
        sa.Column('id', postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column('submission_id', postgresql.UUID(as_uuid=False), sa.ForeignKey('submissions.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('action', sa.String(20), nullable=False),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('actor_id', sa.String(255), nullable=True),
        sa.Column('from_status', sa.String(32), nullable=False),
        sa.Column('to_status', sa.String(32), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True, index=True),
    )


def downgrade() -> None:
    op.drop_table('submission_transitions')
    op.drop_index('ix_submissions_status', table_name='submissions')
    op.drop_index('ix_submissions_site_date', table_name='submissions')
    op.drop_table('submissions')
