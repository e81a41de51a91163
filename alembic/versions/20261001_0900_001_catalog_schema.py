"""Podcast and episode catalog tables

Revision ID: 001
Revises:
Create Date: 2026-10-01

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
    # Create podcasts table
    op.create_table(
        'podcasts',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(128), nullable=False),
        sa.Column('title', sa.String(512), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('feed_url', sa.String(2048), nullable=False),
        sa.Column('image_url', sa.String(2048), nullable=True),
        sa.Column('episode_count', sa.Integer, default=0),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('last_updated', sa.DateTime, nullable=False),
        sa.UniqueConstraint('user_id', 'feed_url', name='uq_podcast_user_feed'),
    )
    op.create_index('ix_podcasts_user_id', 'podcasts', ['user_id'])

    # Create episodes table, partitioned by podcast
    op.create_table(
        'episodes',
        sa.Column('podcast_id', sa.String(36), sa.ForeignKey('podcasts.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('natural_key', sa.String(32), nullable=True),
        sa.Column('title', sa.String(512), nullable=False),
        sa.Column('description', sa.Text, nullable=False),
        sa.Column('audio_url', sa.String(2048), nullable=False),
        sa.Column('duration', sa.String(32), nullable=False),
        sa.Column('release_date', sa.DateTime, nullable=False),
        sa.Column('image_url', sa.String(2048), nullable=True),
        sa.Column('guests', sa.JSON, nullable=True),
        sa.Column('tags', sa.JSON, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=True),
    )
    op.create_index('ix_episodes_natural_key', 'episodes', ['podcast_id', 'natural_key'])


def downgrade() -> None:
    op.drop_index('ix_episodes_natural_key', table_name='episodes')
    op.drop_table('episodes')
    op.drop_index('ix_podcasts_user_id', table_name='podcasts')
    op.drop_table('podcasts')
