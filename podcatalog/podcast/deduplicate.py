"""Catalog maintenance: merge stored duplicates and backfill natural keys.

Catalogs written before natural-key lookups existed, or while lookups were
failing, may hold several episodes for the same (podcast, title, date). This
job groups each podcast's episodes by natural key, keeps the earliest created
copy of each group so its episode id survives, copies the newest copy's data
onto it and deletes the rest.

A stored natural key was computed from the raw feed entry and is never
recomputed: stored titles and dates have defaults filled in, so they do not
always fingerprint like the entry they came from. Only episodes without a key
are fingerprinted from their stored fields, and that key is backfilled.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterator, List

from ..db.models import Episode, utcnow
from ..db.store import EpisodeStoreInterface
from ..errors import StoreError
from .fingerprint import natural_key

logger = logging.getLogger(__name__)

# Page size used when scanning a podcast's episodes
SCAN_PAGE_SIZE = 500


@dataclass
class DeduplicationStats:
    """Totals for one deduplication run."""

    total_episodes: int = 0
    duplicates_found: int = 0
    episodes_removed: int = 0
    episodes_updated: int = 0
    keys_backfilled: int = 0
    errors: int = 0

    @property
    def final_episode_count(self) -> int:
        return self.total_episodes - self.episodes_removed


def episode_natural_key(episode: Episode) -> str:
    """Fingerprint a stored episode from its title and release date.

    Only an approximation for episodes saved without a key; defaulted titles
    and release dates do not reproduce the original entry's fingerprint.
    """
    release_date = episode.release_date.isoformat() if episode.release_date else ""
    return natural_key(episode.title, release_date)


class CatalogDeduplicator:
    """Merges episodes that share a natural key within a podcast.

    Example:
        deduplicator = CatalogDeduplicator(store)
        stats = deduplicator.run()
        print(f"Removed {stats.episodes_removed} duplicates")
    """

    def __init__(self, store: EpisodeStoreInterface, dry_run: bool = False):
        """
        Parameters:
            store (EpisodeStoreInterface): Store holding the catalogs.
            dry_run (bool): If true, report what would change without writing.
        """
        self.store = store
        self.dry_run = dry_run

    def run(self) -> DeduplicationStats:
        """Deduplicate the catalogs of all podcasts."""
        stats = DeduplicationStats()
        for podcast in self.store.list_podcasts():
            self.deduplicate_podcast(podcast.id, stats)

        logger.info(
            f"Deduplication {'dry run ' if self.dry_run else ''}complete: "
            f"{stats.total_episodes} scanned, {stats.duplicates_found} duplicates, "
            f"{stats.episodes_removed} removed, {stats.errors} errors"
        )
        return stats

    def deduplicate_podcast(self, podcast_id: str, stats: DeduplicationStats) -> DeduplicationStats:
        """Deduplicate one podcast's catalog, accumulating into `stats`."""
        groups: Dict[str, List[Episode]] = defaultdict(list)
        try:
            for episode in self._iter_episodes(podcast_id):
                groups[episode.natural_key or episode_natural_key(episode)].append(episode)
                stats.total_episodes += 1
        except StoreError as e:
            logger.error(f"Failed to scan episodes of podcast {podcast_id}: {e}")
            stats.errors += 1
            return stats

        for key, episodes in groups.items():
            try:
                if len(episodes) > 1:
                    self._merge_group(key, episodes, stats)
                elif episodes[0].natural_key is None:
                    self._backfill_key(key, episodes[0], stats)
            except StoreError as e:
                logger.error(f"Failed to deduplicate '{episodes[0].title}': {e}")
                stats.errors += 1

        return stats

    def _iter_episodes(self, podcast_id: str) -> Iterator[Episode]:
        cursor = None
        while True:
            page = self.store.query_episodes(podcast_id, limit=SCAN_PAGE_SIZE, cursor=cursor)
            yield from page.items
            if not page.cursor:
                return
            cursor = page.cursor

    def _merge_group(self, key: str, episodes: List[Episode], stats: DeduplicationStats) -> None:
        ordered = sorted(episodes, key=lambda ep: (ep.created_at, ep.id))
        keep, remove = ordered[0], ordered[1:]
        latest = ordered[-1]
        stats.duplicates_found += len(remove)

        logger.info(f"Merging {len(episodes)} copies of '{keep.title}' into {keep.id}")
        if self.dry_run:
            return

        keep.natural_key = key
        keep.title = latest.title
        keep.description = latest.description
        keep.audio_url = latest.audio_url
        keep.duration = latest.duration
        if latest.image_url:
            keep.image_url = latest.image_url
        if latest.guests:
            keep.guests = list(latest.guests)
        if latest.tags:
            keep.tags = list(latest.tags)
        keep.updated_at = utcnow()

        self.store.put_episode(keep, must_exist=True)
        stats.episodes_updated += 1

        for episode in remove:
            if self.store.delete_episode(episode.podcast_id, episode.id):
                stats.episodes_removed += 1

    def _backfill_key(self, key: str, episode: Episode, stats: DeduplicationStats) -> None:
        logger.debug(f"Backfilling natural key for '{episode.title}' ({episode.id})")
        if self.dry_run:
            return
        episode.natural_key = key
        self.store.put_episode(episode, must_exist=True)
        stats.keys_backfilled += 1
