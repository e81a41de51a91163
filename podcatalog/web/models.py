"""
Pydantic models for web API responses.

Field names are snake_case in Python and camelCase on the wire.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from podcatalog.db.models import Episode
from podcatalog.podcast.models import SyncReport


class ApiModel(BaseModel):
    """Base model serializing fields as camelCase."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EpisodeResponse(ApiModel):
    """A stored episode."""
    podcast_id: str = Field(..., description="Podcast the episode belongs to")
    episode_id: str = Field(..., description="Stable episode identifier")
    title: str
    description: str = ""
    audio_url: str = ""
    duration: str = Field(default="0:00", description="H:MM:SS or M:SS")
    release_date: datetime = Field(..., description="Release date (UTC)")
    natural_key: Optional[str] = Field(default=None, description="Title and date fingerprint")
    image_url: Optional[str] = None
    guests: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    @classmethod
    def from_episode(cls, episode: Episode) -> "EpisodeResponse":
        return cls(
            podcast_id=episode.podcast_id,
            episode_id=episode.id,
            title=episode.title,
            description=episode.description or "",
            audio_url=episode.audio_url or "",
            duration=episode.duration or "0:00",
            release_date=episode.release_date,
            natural_key=episode.natural_key,
            image_url=episode.image_url,
            guests=episode.guests,
            tags=episode.tags,
            created_at=episode.created_at,
            updated_at=episode.updated_at,
        )


class Pagination(ApiModel):
    """Pagination state of an episode listing."""
    has_more: bool = Field(..., description="True when another page exists")
    next_cursor: Optional[str] = Field(default=None, description="Opaque cursor for the next page")
    limit: int = Field(..., description="Page size used")


class EpisodeListResponse(ApiModel):
    """Response model for the episode listing endpoint."""
    episodes: List[EpisodeResponse] = Field(default_factory=list)
    pagination: Pagination


class SyncStatsResponse(ApiModel):
    """Sync statistics."""
    new_episodes: int = 0
    updated_episodes: int = 0
    total_processed: int = 0
    duplicates_found: int = 0


class SyncResponse(ApiModel):
    """Response model for the sync endpoint."""
    message: str
    episode_count: int = Field(..., description="Total episodes stored for the podcast")
    episodes: List[EpisodeResponse] = Field(default_factory=list, description="Preview of saved episodes")
    stats: SyncStatsResponse

    @classmethod
    def from_report(cls, report: SyncReport) -> "SyncResponse":
        return cls(
            message=report.message,
            episode_count=report.episode_count,
            episodes=[EpisodeResponse.from_episode(ep) for ep in report.episodes],
            stats=SyncStatsResponse(
                new_episodes=report.stats.new_episodes,
                updated_episodes=report.stats.updated_episodes,
                total_processed=report.stats.total_processed,
                duplicates_found=report.stats.duplicates_found,
            ),
        )


class DeleteEpisodesResponse(ApiModel):
    """Response model for deleting a podcast's episodes."""
    message: str
    deleted_count: int = 0
