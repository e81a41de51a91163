"""Chunked, failure-isolating episode upserts."""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..db.models import Episode
from ..db.store import EpisodeStoreInterface
from ..errors import PersistenceError, StoreError
from .fingerprint import fingerprint
from .models import EpisodeDraft
from .resolver import ExistenceResolver
from .upsert import UpsertEngine

logger = logging.getLogger(__name__)


@dataclass
class _Pending:
    episode: Episode
    is_new: bool


class BatchCoordinator:
    """Drives fingerprint, lookup and upsert for a list of drafts.

    Drafts are processed in input order, in chunks no larger than the store's
    batch-write limit, and each chunk is persisted with one batch write. A
    draft that fails at any step is logged and skipped without affecting the
    rest of its chunk.

    Example:
        coordinator = BatchCoordinator(store)
        saved = coordinator.sync_drafts(podcast_id, drafts)
    """

    def __init__(
        self,
        store: EpisodeStoreInterface,
        resolver: Optional[ExistenceResolver] = None,
        engine: Optional[UpsertEngine] = None,
        batch_size: Optional[int] = None,
    ):
        """
        Parameters:
            store (EpisodeStoreInterface): Store used for batch writes.
            resolver (Optional[ExistenceResolver]): Natural-key lookup; built from `store` if omitted.
            engine (Optional[UpsertEngine]): Create/merge engine; built from `store` if omitted.
            batch_size (Optional[int]): Drafts per chunk; defaults to the store's maximum.

        Raises:
            ValueError: If `batch_size` is not between 1 and the store's maximum.
        """
        self.store = store
        self.resolver = resolver or ExistenceResolver(store)
        self.engine = engine or UpsertEngine(store)
        self.batch_size = batch_size or store.max_batch_size
        if not 1 <= self.batch_size <= store.max_batch_size:
            raise ValueError(
                f"batch_size must be between 1 and {store.max_batch_size}, got {self.batch_size}"
            )

    def sync_drafts(self, podcast_id: str, drafts: List[EpisodeDraft]) -> List[Episode]:
        """
        Upsert a list of drafts into a podcast's catalog.

        Parameters:
            podcast_id (str): Podcast the drafts belong to.
            drafts (List[EpisodeDraft]): Parsed feed entries.

        Returns:
            List[Episode]: One entry per successfully saved draft, in input
                order. Drafts without an audio URL and failed drafts are absent.
        """
        if not drafts:
            return []

        eligible = [d for d in drafts if d.audio_url and d.audio_url.strip()]
        if len(eligible) < len(drafts):
            logger.info(f"Skipping {len(drafts) - len(eligible)} drafts without audio URL")

        saved: List[Episode] = []
        for start in range(0, len(eligible), self.batch_size):
            chunk = eligible[start:start + self.batch_size]
            batch_number = start // self.batch_size + 1
            saved.extend(self._process_chunk(podcast_id, chunk, batch_number))

        logger.info(f"Saved {len(saved)} of {len(drafts)} episodes for podcast {podcast_id}")
        return saved

    def _process_chunk(
        self, podcast_id: str, chunk: List[EpisodeDraft], batch_number: int
    ) -> List[Episode]:
        # Drafts in the same chunk that share a natural key merge into one item
        pending: Dict[str, _Pending] = {}
        built: List[Episode] = []

        for draft in chunk:
            try:
                key = fingerprint(draft)
                if key in pending:
                    existing = pending[key].episode
                    is_new = pending[key].is_new
                else:
                    existing = self.resolver.find_existing(podcast_id, key)
                    is_new = existing is None
                episode = self.engine.build(podcast_id, draft, key, existing)
            except Exception as e:
                logger.error(f"Skipping episode '{draft.title}': {e}")
                continue

            pending[key] = _Pending(episode=episode, is_new=is_new)
            built.append(episode)

        if not pending:
            return []

        items = [p.episode for p in pending.values()]
        try:
            result = self.store.batch_write(items)
        except StoreError as e:
            logger.warning(f"Batch {batch_number} write failed, saving items one by one: {e}")
            failed = self._save_individually(pending.values())
        else:
            failed = set()
            for episode, error in result.failed:
                logger.error(f"Failed to save episode '{episode.title}': {error}")
                failed.add(id(episode))

        logger.debug(
            f"Batch {batch_number}: {len(items) - len(failed)} of {len(items)} items written"
        )
        return [episode for episode in built if id(episode) not in failed]

    def _save_individually(self, pending) -> set:
        failed = set()
        for item in pending:
            try:
                self.engine.save(item.episode, is_new=item.is_new)
            except PersistenceError as e:
                logger.error(str(e))
                failed.add(id(item.episode))
        return failed
