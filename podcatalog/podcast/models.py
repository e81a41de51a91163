"""Value types passed between the episode catalog components."""

from dataclasses import dataclass, field
from typing import List, Optional

from ..db.models import Episode


@dataclass
class EpisodeDraft:
    """Unpersisted candidate episode produced by the feed parser.

    All string fields are raw feed values; `release_date` in particular is
    free-form and only interpreted when fingerprinting and sanitizing.
    """

    title: str = ""
    description: str = ""
    audio_url: str = ""
    duration: str = ""
    release_date: str = ""
    image_url: Optional[str] = None
    guests: Optional[List[str]] = None
    tags: Optional[List[str]] = None


@dataclass
class SyncStats:
    """Count-delta statistics for one sync run."""

    new_episodes: int = 0
    updated_episodes: int = 0
    total_processed: int = 0
    duplicates_found: int = 0

    def to_dict(self) -> dict:
        return {
            "newEpisodes": self.new_episodes,
            "updatedEpisodes": self.updated_episodes,
            "totalProcessed": self.total_processed,
            "duplicatesFound": self.duplicates_found,
        }


@dataclass
class SyncReport:
    """Outcome of syncing one podcast.

    Attributes:
        message: Human readable summary.
        episode_count: Total episodes stored for the podcast after the sync.
        episodes: Preview slice of the episodes saved by this sync.
        stats: New/updated/processed/duplicate counts.
    """

    message: str
    episode_count: int
    episodes: List[Episode] = field(default_factory=list)
    stats: SyncStats = field(default_factory=SyncStats)
