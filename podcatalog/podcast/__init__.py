"""Podcast episode catalog module.

Provides functionality for:
- RSS feed parsing into episode drafts
- Natural-key fingerprinting and duplicate resolution
- Batched episode upserts
- Newest-first catalog listing
- Episode sync and catalog deduplication
"""

from .batch import BatchCoordinator
from .catalog import CatalogReader, EpisodePage
from .deduplicate import CatalogDeduplicator, DeduplicationStats
from .episode_sync import EpisodeSyncService
from .feed_parser import FeedParser, ParsedFeed
from .fingerprint import fingerprint, normalize_duration, normalize_release_date, normalize_title
from .models import EpisodeDraft, SyncReport, SyncStats
from .resolver import ExistenceResolver
from .upsert import UpsertEngine

__all__ = [
    "BatchCoordinator",
    "CatalogReader",
    "EpisodePage",
    "CatalogDeduplicator",
    "DeduplicationStats",
    "EpisodeSyncService",
    "FeedParser",
    "ParsedFeed",
    "fingerprint",
    "normalize_duration",
    "normalize_release_date",
    "normalize_title",
    "EpisodeDraft",
    "SyncReport",
    "SyncStats",
    "ExistenceResolver",
    "UpsertEngine",
]
