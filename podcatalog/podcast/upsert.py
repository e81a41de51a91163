"""Create-or-merge of episodes from drafts."""

import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from ..db.models import Episode, utcnow
from ..db.store import EpisodeStoreInterface
from ..errors import PersistenceError, StoreError
from .fingerprint import normalize_duration, parse_release_date
from .models import EpisodeDraft

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled Episode"


def sanitize_draft(draft: EpisodeDraft, now: datetime) -> Dict[str, Any]:
    """
    Fill in defaults for missing draft fields.

    Parameters:
        draft (EpisodeDraft): Raw draft from the feed parser.
        now (datetime): Release date to use when the draft's cannot be parsed.

    Returns:
        dict: Core Episode column values (title, description, audio_url, duration, release_date).
    """
    return {
        "title": (draft.title or "").strip() or DEFAULT_TITLE,
        "description": draft.description or "",
        "audio_url": (draft.audio_url or "").strip(),
        "duration": normalize_duration(draft.duration),
        "release_date": parse_release_date(draft.release_date) or now,
    }


class UpsertEngine:
    """Creates new episodes or merges drafts into existing ones.

    Example:
        engine = UpsertEngine(store)
        episode = engine.upsert(podcast_id, draft, fingerprint(draft), existing)
    """

    def __init__(
        self,
        store: EpisodeStoreInterface,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        """
        Parameters:
            store (EpisodeStoreInterface): Store the episodes are written to.
            clock (Callable[[], datetime]): Source of naive UTC timestamps.
            id_factory (Callable[[], str]): Allocates ids for new episodes.
        """
        self.store = store
        self.clock = clock
        self.id_factory = id_factory

    def build(
        self,
        podcast_id: str,
        draft: EpisodeDraft,
        natural_key: str,
        existing: Optional[Episode] = None,
    ) -> Episode:
        """
        Produce the episode an upsert would write, without writing it.

        A new episode gets a fresh id and created_at. An existing one keeps
        both; its core fields are overwritten, while image_url, guests and tags
        are only replaced when the draft supplies a value (non-empty for lists).
        The existing instance is updated in place and returned.
        """
        now = self.clock()
        fields = sanitize_draft(draft, now)

        if existing is None:
            episode = Episode(
                podcast_id=podcast_id,
                id=self.id_factory(),
                natural_key=natural_key,
                image_url=draft.image_url,
                guests=list(draft.guests) if draft.guests else None,
                tags=list(draft.tags) if draft.tags else None,
                created_at=now,
                updated_at=now,
                **fields,
            )
            logger.debug(f"New episode: {episode.title} ({episode.id})")
            return episode

        for key, value in fields.items():
            setattr(existing, key, value)
        existing.natural_key = natural_key
        existing.updated_at = now

        if draft.image_url is not None:
            existing.image_url = draft.image_url
        if draft.guests:
            existing.guests = list(draft.guests)
        if draft.tags:
            existing.tags = list(draft.tags)

        logger.debug(f"Merged episode: {existing.title} ({existing.id})")
        return existing

    def upsert(
        self,
        podcast_id: str,
        draft: EpisodeDraft,
        natural_key: str,
        existing: Optional[Episode] = None,
    ) -> Episode:
        """
        Create or merge one episode and persist it.

        Parameters:
            podcast_id (str): Podcast the episode belongs to.
            draft (EpisodeDraft): Incoming episode data.
            natural_key (str): Fingerprint of the draft.
            existing (Optional[Episode]): Stored episode with the same natural key, if any.

        Returns:
            Episode: The written episode.

        Raises:
            PersistenceError: If the store rejects the write. Not retried.
        """
        episode = self.build(podcast_id, draft, natural_key, existing)
        return self.save(episode, is_new=existing is None)

    def save(self, episode: Episode, is_new: bool) -> Episode:
        """
        Persist an episode produced by `build`.

        New episodes are written on condition that they do not exist yet,
        merged ones on condition that they still do.

        Raises:
            PersistenceError: If the store rejects the write. Not retried.
        """
        try:
            self.store.put_episode(episode, must_exist=not is_new)
        except StoreError as e:
            raise PersistenceError(f"Failed to save episode '{episode.title}': {e}") from e
        return episode
