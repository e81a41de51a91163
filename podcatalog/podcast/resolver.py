"""Lookup of previously stored episodes by natural key."""

import logging
from typing import Optional

from ..db.models import NATURAL_KEY_INDEX, Episode
from ..db.store import EpisodeStoreInterface
from ..errors import StoreError

logger = logging.getLogger(__name__)


class ExistenceResolver:
    """Finds the stored episode that shares a podcast and natural key.

    At most one episode should carry a given natural key per podcast. When
    several do, the earliest created one wins, with the episode id breaking
    ties, so repeated lookups always return the same episode.

    A failing lookup is reported as "not found": the caller then creates a new
    episode instead of blocking the sync. The catalog deduplication job
    (`podcatalog.podcast.deduplicate`) cleans up any copies this produces.
    """

    def __init__(self, store: EpisodeStoreInterface):
        self.store = store

    def find_existing(self, podcast_id: str, natural_key: str) -> Optional[Episode]:
        """
        Return the stored episode for (podcast_id, natural_key), if any.

        Parameters:
            podcast_id (str): Podcast partition to search.
            natural_key (str): Fingerprint to match.

        Returns:
            Optional[Episode]: The matching episode, or None if absent or the lookup failed.
        """
        try:
            page = self.store.query_episodes(
                podcast_id, index=NATURAL_KEY_INDEX, natural_key=natural_key
            )
        except StoreError as e:
            logger.warning(
                f"Natural key lookup failed for podcast {podcast_id} ({natural_key}), "
                f"treating as new: {e}"
            )
            return None

        matches = page.items
        if not matches:
            return None

        if len(matches) > 1:
            logger.warning(
                f"Found {len(matches)} episodes with natural key {natural_key} "
                f"in podcast {podcast_id}; using the earliest created"
            )
        return min(matches, key=lambda ep: (ep.created_at, ep.id))
