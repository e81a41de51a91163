"""SQLAlchemy ORM models for podcast and episode data."""

import uuid
from datetime import UTC, datetime
from typing import List, Optional

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import JSON

# Secondary index names; the store probes the live schema for these
NATURAL_KEY_INDEX = "ix_episodes_natural_key"
RELEASE_DATE_INDEX = "ix_episodes_release_date"


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, the form stored in DateTime columns."""
    return datetime.now(UTC).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class Podcast(Base):
    """Podcast owned by a single user.

    Owned by the podcast management side of the application; the episode
    catalog only reads it to authorize syncs and to find the feed URL.
    """

    __tablename__ = "podcasts"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)

    title: Mapped[str] = mapped_column(String(512), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    feed_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    image_url: Mapped[Optional[str]] = mapped_column(String(2048))
    episode_count: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow
    )

    episodes: Mapped[List["Episode"]] = relationship(
        "Episode", back_populates="podcast", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("user_id", "feed_url", name="uq_podcast_user_feed"),
        Index("ix_podcasts_user_id", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<Podcast(id={self.id}, title={self.title!r})>"


class Episode(Base):
    """Episode in a podcast's catalog.

    Identity is (podcast_id, id). The id is allocated once and never
    regenerated; re-syncs of the same logical episode, recognized by
    natural_key, update the mutable fields in place.
    """

    __tablename__ = "episodes"

    podcast_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("podcasts.id", ondelete="CASCADE"),
        primary_key=True,
    )
    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    # Fingerprint of normalized title + release date; expected to be unique per podcast
    natural_key: Mapped[Optional[str]] = mapped_column(String(32))

    title: Mapped[str] = mapped_column(String(512), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    audio_url: Mapped[str] = mapped_column(String(2048), nullable=False, default="")
    duration: Mapped[str] = mapped_column(String(32), nullable=False, default="0:00")
    release_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    image_url: Mapped[Optional[str]] = mapped_column(String(2048))
    guests: Mapped[Optional[List[str]]] = mapped_column(JSON)
    tags: Mapped[Optional[List[str]]] = mapped_column(JSON)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    podcast: Mapped["Podcast"] = relationship("Podcast", back_populates="episodes")

    __table_args__ = (
        Index(NATURAL_KEY_INDEX, "podcast_id", "natural_key"),
        Index(RELEASE_DATE_INDEX, "podcast_id", "release_date"),
    )

    def __repr__(self) -> str:
        return f"<Episode(id={self.id}, title={self.title!r})>"
