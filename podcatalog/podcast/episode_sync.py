"""Episode sync service for podcast catalogs.

Fetches a podcast's feed, merges its episodes into the stored catalog and
reports what changed. Also serves the read and delete operations that need
the same ownership check.
"""

import logging
from typing import Optional

from ..db.models import Episode, Podcast
from ..db.store import EpisodeStoreInterface
from ..errors import (
    CatalogError,
    InternalError,
    InvalidInputError,
    NotFoundError,
)
from .batch import BatchCoordinator
from .catalog import CatalogReader, EpisodePage
from .feed_parser import FeedParser
from .models import SyncReport, SyncStats

logger = logging.getLogger(__name__)

DEFAULT_SNAPSHOT_LIMIT = 1000
DEFAULT_PREVIEW_SIZE = 5


class EpisodeSyncService:
    """Service for synchronizing a podcast's episodes with its feed.

    Example:
        service = EpisodeSyncService(store)
        report = service.sync(podcast_id, user_id)
        print(f"New episodes: {report.stats.new_episodes}")
    """

    def __init__(
        self,
        store: EpisodeStoreInterface,
        feed_parser: Optional[FeedParser] = None,
        coordinator: Optional[BatchCoordinator] = None,
        reader: Optional[CatalogReader] = None,
        snapshot_limit: int = DEFAULT_SNAPSHOT_LIMIT,
        preview_size: int = DEFAULT_PREVIEW_SIZE,
    ):
        """
        Create an EpisodeSyncService backed by the given store.

        Parameters:
            store (EpisodeStoreInterface): Episode and podcast store.
            feed_parser (Optional[FeedParser]): Source of episode drafts.
            coordinator (Optional[BatchCoordinator]): Batch upsert driver; built from `store` if omitted.
            reader (Optional[CatalogReader]): Catalog reader; built from `store` if omitted.
            snapshot_limit (int): Page size used to count episodes before and after a sync.
            preview_size (int): Number of saved episodes included in the report.
        """
        self.store = store
        self.feed_parser = feed_parser or FeedParser()
        self.coordinator = coordinator or BatchCoordinator(store)
        self.reader = reader or CatalogReader(store)
        self.snapshot_limit = snapshot_limit
        self.preview_size = preview_size

    @classmethod
    def from_config(cls, store: EpisodeStoreInterface, config) -> "EpisodeSyncService":
        """Build a service using the sync settings of a Config object."""
        return cls(
            store,
            feed_parser=FeedParser(user_agent=config.FEED_USER_AGENT),
            coordinator=BatchCoordinator(store, batch_size=config.EPISODE_BATCH_SIZE),
            snapshot_limit=config.SYNC_SNAPSHOT_LIMIT,
            preview_size=config.SYNC_PREVIEW_SIZE,
        )

    def get_owned_podcast(self, podcast_id: str, user_id: str) -> Podcast:
        """
        Return the podcast if it belongs to the user.

        Raises:
            InvalidInputError: If `podcast_id` is empty.
            NotFoundError: If the podcast does not exist or belongs to someone else.
        """
        if not podcast_id or not podcast_id.strip():
            raise InvalidInputError("Podcast ID is required")

        for podcast in self.store.get_podcasts_owned_by(user_id):
            if podcast.id == podcast_id:
                return podcast
        raise NotFoundError("Podcast not found or access denied")

    def sync(self, podcast_id: str, user_id: str) -> SyncReport:
        """
        Sync a podcast's episodes from its feed.

        New versus updated counts are inferred from the catalog size before
        and after the merge, not tracked per episode.

        Parameters:
            podcast_id (str): Podcast to sync.
            user_id (str): User requesting the sync; must own the podcast.

        Returns:
            SyncReport: Summary, post-sync episode total, preview and statistics.

        Raises:
            InvalidInputError: If `podcast_id` is empty.
            NotFoundError: If the user does not own the podcast.
            FeedParseError: If the feed cannot be fetched or parsed.
            InternalError: For any other failure.
        """
        try:
            podcast = self.get_owned_podcast(podcast_id, user_id)
            logger.info(f"Syncing episodes for podcast: {podcast.title}")

            pre_count = self.reader.count_episodes(podcast_id, self.snapshot_limit)

            drafts = self.feed_parser.parse_drafts(podcast.feed_url)
            if not drafts:
                logger.info(f"No episodes found in feed for '{podcast.title}'")
                return SyncReport(
                    message="No episodes found in RSS feed",
                    episode_count=pre_count,
                )

            saved = self.coordinator.sync_drafts(podcast_id, drafts)

            post_count = self.reader.count_episodes(podcast_id, self.snapshot_limit)
            stats = self._compute_stats(pre_count, post_count, len(saved), len(drafts))
            self.store.update_podcast(podcast_id, episode_count=post_count)

            logger.info(
                f"Sync complete for '{podcast.title}': {stats.new_episodes} new, "
                f"{stats.updated_episodes} updated, {stats.duplicates_found} skipped"
            )
            return SyncReport(
                message="Episodes synced successfully",
                episode_count=post_count,
                episodes=saved[: self.preview_size],
                stats=stats,
            )
        except CatalogError:
            raise
        except Exception as e:
            logger.error(f"Failed to sync podcast {podcast_id}: {e}")
            raise InternalError(f"Failed to sync podcast {podcast_id}") from e

    @staticmethod
    def _compute_stats(pre_count: int, post_count: int, saved_count: int, draft_count: int) -> SyncStats:
        new_episodes = max(0, post_count - pre_count)
        return SyncStats(
            new_episodes=new_episodes,
            updated_episodes=max(0, saved_count - new_episodes),
            total_processed=draft_count,
            duplicates_found=max(0, draft_count - saved_count),
        )

    def list_episodes(
        self,
        podcast_id: str,
        user_id: str,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> EpisodePage:
        """
        List a podcast's episodes newest first.

        Parameters:
            podcast_id (str): Podcast to list.
            user_id (str): User requesting the listing; must own the podcast.
            limit (Optional[int]): Page size; None reads everything.
            cursor (Optional[str]): `next_cursor` from the previous page.

        Raises:
            InvalidInputError: If `podcast_id` is empty, `limit` is not positive, or the cursor is invalid.
            NotFoundError: If the user does not own the podcast.
            InternalError: If the store cannot be read.
        """
        if not podcast_id or not podcast_id.strip():
            raise InvalidInputError("Podcast ID is required")
        if limit is not None and limit < 1:
            raise InvalidInputError("Limit must be a positive integer")

        try:
            self.get_owned_podcast(podcast_id, user_id)
            return self.reader.list_episodes(podcast_id, limit=limit, cursor=cursor)
        except CatalogError:
            raise
        except Exception as e:
            logger.error(f"Failed to list episodes of podcast {podcast_id}: {e}")
            raise InternalError("Failed to get episodes") from e

    def get_episode(self, podcast_id: str, episode_id: str, user_id: str) -> Episode:
        """
        Return one episode of a podcast owned by the user.

        Raises:
            InvalidInputError: If either identifier is empty.
            NotFoundError: If the podcast is not owned by the user or the episode is absent.
            InternalError: If the store cannot be read.
        """
        if not episode_id or not episode_id.strip():
            raise InvalidInputError("Episode ID is required")

        try:
            self.get_owned_podcast(podcast_id, user_id)
            episode = self.store.get_episode(podcast_id, episode_id)
        except CatalogError:
            raise
        except Exception as e:
            logger.error(f"Failed to get episode {episode_id}: {e}")
            raise InternalError("Failed to get episode") from e

        if episode is None:
            raise NotFoundError("Episode not found")
        return episode

    def delete_episodes(self, podcast_id: str, user_id: str) -> int:
        """
        Delete every episode of a podcast owned by the user.

        Returns:
            int: Number of episodes deleted.
        """
        try:
            podcast = self.get_owned_podcast(podcast_id, user_id)
            deleted = self.store.delete_episodes_by_podcast(podcast_id)
            self.store.update_podcast(podcast_id, episode_count=0)
        except CatalogError:
            raise
        except Exception as e:
            logger.error(f"Failed to delete episodes of podcast {podcast_id}: {e}")
            raise InternalError("Failed to delete episodes") from e

        logger.info(f"Deleted {deleted} episodes of '{podcast.title}'")
        return deleted

