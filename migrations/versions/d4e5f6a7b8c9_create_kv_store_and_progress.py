"""create kv_store, progress and daily_progress tables

Revision ID: d4e5f6a7b8c9
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'd4e5f6a7b8c9'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the cache and progress tables."""
    op.create_table('kv_store',
        sa.Column('key', sa.String(), nullable=False),
        sa.Column('value', sa.Text(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('key')
    )

    op.create_table('progress',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user', sa.String(), nullable=False),
        sa.Column('total_reviews', sa.Integer(), nullable=True, server_default='0'),
        sa.Column('correct_answers', sa.Integer(), nullable=True, server_default='0'),
        sa.Column('last_updated', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user')
    )

    op.create_table('daily_progress',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user', sa.String(), nullable=False),
        sa.Column('date', sa.Date(), nullable=True),
        sa.Column('rounds_answered', sa.Integer(), nullable=True, server_default='0'),
        sa.Column('correct_answers', sa.Integer(), nullable=True, server_default='0'),
        sa.PrimaryKeyConstraint('id')
    )


def downgrade() -> None:
    """Drop the cache and progress tables."""
    op.drop_table('daily_progress')
    op.drop_table('progress')
    op.drop_table('kv_store')
