"""Add release date index for newest-first episode listing

Until this index exists, episode listings are read in key order and
sorted in memory.

Revision ID: 002
Revises: 001
Create Date: 2026-10-08

"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_index('ix_episodes_release_date', 'episodes', ['podcast_id', 'release_date'])


def downgrade() -> None:
    op.drop_index('ix_episodes_release_date', table_name='episodes')
