"""Newest-first episode listing with an index fallback."""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ..db.models import RELEASE_DATE_INDEX, Episode
from ..db.store import EpisodeStoreInterface
from ..errors import IndexUnavailableError

logger = logging.getLogger(__name__)


@dataclass
class EpisodePage:
    """A page of episodes, newest first."""

    episodes: List[Episode] = field(default_factory=list)
    next_cursor: Optional[str] = None

    @property
    def has_more(self) -> bool:
        return self.next_cursor is not None


class CatalogReader:
    """Reads a podcast's episodes ordered by release date, newest first.

    The release-date index is used when it exists. Without it, the page is
    read from the base partition in key order and sorted in memory; only the
    retrieved page is sorted, so ordering across pages is approximate on
    that path.

    Cursors are tied to the path that produced them. A cursor issued while
    the index was available is rejected with `InvalidCursorError` once the
    reader has fallen back, and vice versa.
    """

    def __init__(self, store: EpisodeStoreInterface):
        self.store = store

    def list_episodes(
        self,
        podcast_id: str,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> EpisodePage:
        """
        List one page of a podcast's episodes, newest first.

        Parameters:
            podcast_id (str): Podcast to list.
            limit (Optional[int]): Page size; None reads everything.
            cursor (Optional[str]): `next_cursor` from the previous page, passed back unchanged.

        Returns:
            EpisodePage: The episodes and the cursor for the next page, if any.

        Raises:
            InvalidCursorError: If the cursor is malformed or from the other path.
            StoreError: If the store cannot be read.
        """
        try:
            page = self.store.query_episodes(
                podcast_id, index=RELEASE_DATE_INDEX, limit=limit, cursor=cursor
            )
            return EpisodePage(episodes=page.items, next_cursor=page.cursor)
        except IndexUnavailableError as e:
            logger.warning(f"Release date index unavailable, sorting in memory: {e}")

        page = self.store.query_episodes(podcast_id, limit=limit, cursor=cursor)
        episodes = sorted(page.items, key=lambda ep: (ep.release_date, ep.id), reverse=True)
        return EpisodePage(episodes=episodes, next_cursor=page.cursor)

    def count_episodes(self, podcast_id: str, limit: int) -> int:
        """Count episodes on the first page of size `limit`, standing in for the total."""
        return len(self.list_episodes(podcast_id, limit=limit).episodes)
