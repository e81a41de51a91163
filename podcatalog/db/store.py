"""Persistent store capability for podcast and episode data.

Provides an abstract interface and SQLAlchemy implementation. The episode
catalog depends only on the interface: point lookup, index-scoped query with
optional ordering and pagination, single-item conditional write, and bounded
batch write. Supports both SQLite (local development) and PostgreSQL.
"""

import base64
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import and_, create_engine, delete, inspect, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..errors import (
    ConditionalCheckFailedError,
    IndexUnavailableError,
    InvalidCursorError,
    StoreError,
)
from .models import NATURAL_KEY_INDEX, RELEASE_DATE_INDEX, Base, Episode, Podcast, utcnow

logger = logging.getLogger(__name__)

# Largest number of items accepted by a single batch write
DEFAULT_MAX_BATCH_SIZE = 25

# Cursor label for queries against the base partition
BASE_PARTITION = "base"


@dataclass
class EpisodeQueryPage:
    """One page of an episode query.

    Attributes:
        items: Episodes on this page, in the order the query path produced them.
        cursor: Opaque continuation token, or None when no more items exist.
    """

    items: List[Episode] = field(default_factory=list)
    cursor: Optional[str] = None


@dataclass
class BatchWriteResult:
    """Per-item outcome of a batch write.

    Attributes:
        written: Episodes that were persisted.
        failed: (episode, error) pairs for items the store rejected.
    """

    written: List[Episode] = field(default_factory=list)
    failed: List[Tuple[Episode, Exception]] = field(default_factory=list)


def encode_cursor(position: Dict[str, Any]) -> str:
    """
    Serialize a query position into an opaque, URL-safe cursor string.

    Parameters:
        position (dict): JSON-serializable position; must include the "index" that produced it.

    Returns:
        str: URL-safe base64 encoding of the position.
    """
    raw = json.dumps(position, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii")


def decode_cursor(cursor: str, index: str) -> Dict[str, Any]:
    """
    Decode a cursor produced by `encode_cursor` for the given query path.

    A cursor is only valid for the query path (index) that produced it.

    Parameters:
        cursor (str): Cursor string as returned to the caller.
        index (str): Query path the cursor is being used with.

    Returns:
        dict: The decoded position.

    Raises:
        InvalidCursorError: If the cursor is malformed or belongs to another query path.
    """
    try:
        position = json.loads(base64.urlsafe_b64decode(cursor.encode("ascii")))
    except ValueError as e:
        raise InvalidCursorError("Invalid pagination cursor") from e

    if not isinstance(position, dict) or position.get("index") != index:
        raise InvalidCursorError("Pagination cursor is not valid for this query")
    return position


class EpisodeStoreInterface(ABC):
    """Abstract interface for podcast and episode persistence."""

    max_batch_size: int = DEFAULT_MAX_BATCH_SIZE

    # --- Podcast Operations ---

    @abstractmethod
    def create_podcast(self, user_id: str, feed_url: str, title: str, **kwargs) -> Podcast:
        """
        Create and persist a podcast owned by the given user.

        Parameters:
            user_id (str): Owner of the podcast.
            feed_url (str): RSS or Atom feed URL of the podcast.
            title (str): Display title.
            **kwargs: Additional Podcast attributes (description, image_url).

        Returns:
            Podcast: The persisted Podcast instance.
        """
        pass

    @abstractmethod
    def get_podcast(self, podcast_id: str) -> Optional[Podcast]:
        """
        Retrieve a podcast by its identifier.

        Returns:
            Podcast if a podcast with the given ID exists, `None` otherwise.
        """
        pass

    @abstractmethod
    def get_podcasts_owned_by(self, user_id: str) -> List[Podcast]:
        """
        Return all podcasts owned by the user, ordered by title.

        Parameters:
            user_id (str): Owner identifier.

        Returns:
            List[Podcast]: The user's podcasts; empty if none.
        """
        pass

    @abstractmethod
    def list_podcasts(self, limit: Optional[int] = None) -> List[Podcast]:
        """
        Return podcasts of all users, ordered by title.

        Parameters:
            limit (Optional[int]): Maximum number of podcasts to return.

        Returns:
            List[Podcast]: Podcasts ordered by title.
        """
        pass

    @abstractmethod
    def update_podcast(self, podcast_id: str, **kwargs) -> Optional[Podcast]:
        """
        Update attributes of an existing podcast.

        Returns:
            Optional[Podcast]: The updated Podcast, or `None` if it does not exist.
        """
        pass

    @abstractmethod
    def delete_podcast(self, podcast_id: str) -> bool:
        """
        Delete a podcast and all of its episodes.

        Returns:
            bool: `True` if the podcast existed and was deleted, `False` otherwise.
        """
        pass

    # --- Episode Operations ---

    @abstractmethod
    def get_episode(self, podcast_id: str, episode_id: str) -> Optional[Episode]:
        """
        Point lookup of an episode by its composite key.

        Returns:
            The Episode if found, `None` otherwise.

        Raises:
            StoreError: If the store cannot be read.
        """
        pass

    @abstractmethod
    def query_episodes(
        self,
        podcast_id: str,
        index: Optional[str] = None,
        natural_key: Optional[str] = None,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> EpisodeQueryPage:
        """
        Query the episodes of one podcast.

        Parameters:
            podcast_id (str): Partition to query.
            index (Optional[str]): `RELEASE_DATE_INDEX` for newest-first ordering,
                `NATURAL_KEY_INDEX` to match `natural_key`, or None for the base
                partition in key order (no release-date ordering).
            natural_key (Optional[str]): Required with `NATURAL_KEY_INDEX`.
            limit (Optional[int]): Maximum number of items on the page.
            cursor (Optional[str]): Position returned by a previous page of the same query path.

        Returns:
            EpisodeQueryPage: Items and the cursor for the next page, if any.

        Raises:
            IndexUnavailableError: If the requested index is not provisioned.
            InvalidCursorError: If the cursor does not belong to this query path.
            StoreError: If the store cannot be read.
        """
        pass

    @abstractmethod
    def put_episode(self, episode: Episode, must_exist: Optional[bool] = None) -> Episode:
        """
        Write a single episode, optionally conditioned on its prior existence.

        Parameters:
            episode (Episode): Episode to write; identified by (podcast_id, id).
            must_exist (Optional[bool]): `True` requires the item to exist (update),
                `False` requires it to be absent (create), `None` writes unconditionally.

        Returns:
            Episode: The written episode.

        Raises:
            ConditionalCheckFailedError: If the existence condition does not hold.
            StoreError: If the write fails.
        """
        pass

    @abstractmethod
    def batch_write(self, episodes: List[Episode]) -> BatchWriteResult:
        """
        Write up to `max_batch_size` episodes in one operation.

        Items are written independently: one rejected item does not prevent
        the others from being persisted.

        Returns:
            BatchWriteResult: Written items and per-item failures.

        Raises:
            ValueError: If more than `max_batch_size` episodes are supplied.
        """
        pass

    @abstractmethod
    def delete_episode(self, podcast_id: str, episode_id: str) -> bool:
        """
        Delete a single episode.

        Returns:
            bool: `True` if the episode existed and was deleted.
        """
        pass

    @abstractmethod
    def delete_episodes_by_podcast(self, podcast_id: str) -> int:
        """
        Delete every episode of a podcast.

        Returns:
            int: Number of episodes deleted.
        """
        pass

    # --- Connection Management ---

    @abstractmethod
    def close(self) -> None:
        """Release all connections held by the store."""
        pass


class SQLAlchemyEpisodeStore(EpisodeStoreInterface):
    """SQLAlchemy-based implementation of the episode store.

    Supports SQLite for local development and PostgreSQL for production.
    """

    def __init__(
        self,
        database_url: str,
        pool_size: int = 5,
        max_overflow: int = 10,
        echo: bool = False,
        max_batch_size: int = DEFAULT_MAX_BATCH_SIZE,
        create_tables: bool = True,
    ):
        """
        Initialize the store and configure its SQLAlchemy engine and session factory.

        Parameters:
            database_url (str): SQLAlchemy-compatible database URL.
            pool_size (int): Connection pool size for non-SQLite databases.
            max_overflow (int): Maximum overflow connections for non-SQLite databases.
            echo (bool): If true, enable SQLAlchemy SQL statement logging.
            max_batch_size (int): Largest number of items accepted by `batch_write`.
            create_tables (bool): If true, create missing tables and indexes.
        """
        self.database_url = database_url
        self.max_batch_size = max_batch_size

        # SQLite doesn't support connection pooling
        if database_url.startswith("sqlite"):
            self.engine = create_engine(
                database_url,
                echo=echo,
                connect_args={"check_same_thread": False},
            )
        else:
            self.engine = create_engine(
                database_url,
                pool_size=pool_size,
                max_overflow=max_overflow,
                echo=echo,
            )

        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

        if create_tables:
            Base.metadata.create_all(self.engine)

        logger.info(f"Database initialized: {database_url.split('@')[-1] if '@' in database_url else database_url}")

    def _get_session(self) -> Session:
        return self.SessionLocal()

    def _index_available(self, name: str) -> bool:
        """Check the live schema for a secondary index on the episodes table."""
        try:
            indexes = inspect(self.engine).get_indexes(Episode.__tablename__)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to inspect indexes: {e}") from e
        return any(ix.get("name") == name for ix in indexes)

    # --- Podcast Operations ---

    def create_podcast(self, user_id: str, feed_url: str, title: str, **kwargs) -> Podcast:
        with self._get_session() as session:
            podcast = Podcast(user_id=user_id, feed_url=feed_url, title=title, **kwargs)
            session.add(podcast)
            session.commit()
            session.refresh(podcast)
            logger.info(f"Created podcast: {title} ({podcast.id})")
            return podcast

    def get_podcast(self, podcast_id: str) -> Optional[Podcast]:
        with self._get_session() as session:
            return session.get(Podcast, podcast_id)

    def get_podcasts_owned_by(self, user_id: str) -> List[Podcast]:
        with self._get_session() as session:
            stmt = (
                select(Podcast)
                .where(Podcast.user_id == user_id)
                .order_by(Podcast.title)
            )
            return list(session.scalars(stmt).all())

    def list_podcasts(self, limit: Optional[int] = None) -> List[Podcast]:
        with self._get_session() as session:
            stmt = select(Podcast).order_by(Podcast.title)
            if limit:
                stmt = stmt.limit(limit)
            return list(session.scalars(stmt).all())

    def update_podcast(self, podcast_id: str, **kwargs) -> Optional[Podcast]:
        """
        Update attributes of an existing podcast.

        Only attributes that exist on the Podcast model are set from `kwargs`; the
        `last_updated` timestamp is refreshed on every update.
        """
        with self._get_session() as session:
            podcast = session.get(Podcast, podcast_id)
            if podcast:
                for key, value in kwargs.items():
                    if hasattr(podcast, key):
                        setattr(podcast, key, value)
                podcast.last_updated = utcnow()
                session.commit()
                session.refresh(podcast)
                logger.debug(f"Updated podcast {podcast_id}: {kwargs.keys()}")
            return podcast

    def delete_podcast(self, podcast_id: str) -> bool:
        with self._get_session() as session:
            podcast = session.get(Podcast, podcast_id)
            if not podcast:
                return False

            session.delete(podcast)
            session.commit()
            logger.info(f"Deleted podcast: {podcast.title} ({podcast_id})")
            return True

    # --- Episode Operations ---

    def get_episode(self, podcast_id: str, episode_id: str) -> Optional[Episode]:
        try:
            with self._get_session() as session:
                return session.get(Episode, (podcast_id, episode_id))
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to get episode {episode_id}: {e}") from e

    def query_episodes(
        self,
        podcast_id: str,
        index: Optional[str] = None,
        natural_key: Optional[str] = None,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> EpisodeQueryPage:
        """
        Query the episodes of one podcast along one of three paths.

        The release-date path pages newest-first using (release_date, id) as the
        keyset; the base path pages in primary-key order. Natural-key lookups are
        returned oldest-created first and are not paginated.
        """
        if index == RELEASE_DATE_INDEX:
            if not self._index_available(RELEASE_DATE_INDEX):
                raise IndexUnavailableError(f"Index {RELEASE_DATE_INDEX} is not available")
            return self._query_by_release_date(podcast_id, limit, cursor)
        if index == NATURAL_KEY_INDEX:
            if natural_key is None:
                raise ValueError("natural_key is required when querying the natural key index")
            return self._query_by_natural_key(podcast_id, natural_key, limit)
        if index is None:
            return self._query_base_partition(podcast_id, limit, cursor)
        raise ValueError(f"Unknown index: {index}")

    def _query_by_release_date(
        self, podcast_id: str, limit: Optional[int], cursor: Optional[str]
    ) -> EpisodeQueryPage:
        stmt = select(Episode).where(Episode.podcast_id == podcast_id)

        if cursor:
            position = decode_cursor(cursor, RELEASE_DATE_INDEX)
            try:
                last_date = datetime.fromisoformat(position["release_date"])
                last_id = position["id"]
            except (KeyError, TypeError, ValueError) as e:
                raise InvalidCursorError("Invalid pagination cursor") from e
            stmt = stmt.where(
                or_(
                    Episode.release_date < last_date,
                    and_(Episode.release_date == last_date, Episode.id < last_id),
                )
            )

        stmt = stmt.order_by(Episode.release_date.desc(), Episode.id.desc())
        items = self._fetch_page(stmt, limit)

        page = EpisodeQueryPage(items=items[:limit] if limit else items)
        if limit and len(items) > limit:
            last = page.items[-1]
            page.cursor = encode_cursor(
                {
                    "index": RELEASE_DATE_INDEX,
                    "release_date": last.release_date.isoformat(),
                    "id": last.id,
                }
            )
        return page

    def _query_base_partition(
        self, podcast_id: str, limit: Optional[int], cursor: Optional[str]
    ) -> EpisodeQueryPage:
        stmt = select(Episode).where(Episode.podcast_id == podcast_id)

        if cursor:
            position = decode_cursor(cursor, BASE_PARTITION)
            if not isinstance(position.get("id"), str):
                raise InvalidCursorError("Invalid pagination cursor")
            stmt = stmt.where(Episode.id > position["id"])

        stmt = stmt.order_by(Episode.id)
        items = self._fetch_page(stmt, limit)

        page = EpisodeQueryPage(items=items[:limit] if limit else items)
        if limit and len(items) > limit:
            page.cursor = encode_cursor({"index": BASE_PARTITION, "id": page.items[-1].id})
        return page

    def _query_by_natural_key(
        self, podcast_id: str, natural_key: str, limit: Optional[int]
    ) -> EpisodeQueryPage:
        stmt = (
            select(Episode)
            .where(Episode.podcast_id == podcast_id, Episode.natural_key == natural_key)
            .order_by(Episode.created_at, Episode.id)
        )
        if limit:
            stmt = stmt.limit(limit)
        try:
            with self._get_session() as session:
                return EpisodeQueryPage(items=list(session.scalars(stmt).all()))
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to query natural key {natural_key}: {e}") from e

    def _fetch_page(self, stmt, limit: Optional[int]) -> List[Episode]:
        # One extra row tells us whether a next page exists
        if limit:
            stmt = stmt.limit(limit + 1)
        try:
            with self._get_session() as session:
                return list(session.scalars(stmt).all())
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to query episodes: {e}") from e

    def put_episode(self, episode: Episode, must_exist: Optional[bool] = None) -> Episode:
        with self._get_session() as session:
            try:
                current = session.get(Episode, (episode.podcast_id, episode.id))
                if must_exist is True and current is None:
                    raise ConditionalCheckFailedError(f"Episode {episode.id} does not exist")
                if must_exist is False and current is not None:
                    raise ConditionalCheckFailedError(f"Episode {episode.id} already exists")
                self._write_one(session, episode)
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                raise StoreError(f"Failed to write episode {episode.id}: {e}") from e

        logger.debug(f"Wrote episode: {episode.title} ({episode.id})")
        return episode

    def batch_write(self, episodes: List[Episode]) -> BatchWriteResult:
        if len(episodes) > self.max_batch_size:
            raise ValueError(
                f"Batch of {len(episodes)} exceeds the maximum of {self.max_batch_size} items"
            )

        result = BatchWriteResult()
        with self._get_session() as session:
            for episode in episodes:
                try:
                    self._write_one(session, episode)
                    session.commit()
                    result.written.append(episode)
                except SQLAlchemyError as e:
                    session.rollback()
                    logger.warning(f"Batch write rejected episode {episode.id}: {e}")
                    result.failed.append((episode, e))

        logger.debug(
            f"Batch write: {len(result.written)} written, {len(result.failed)} failed"
        )
        return result

    def _write_one(self, session: Session, episode: Episode) -> None:
        session.merge(episode)
        session.flush()

    def delete_episode(self, podcast_id: str, episode_id: str) -> bool:
        with self._get_session() as session:
            episode = session.get(Episode, (podcast_id, episode_id))
            if not episode:
                return False
            session.delete(episode)
            session.commit()
            logger.debug(f"Deleted episode: {episode.title} ({episode_id})")
            return True

    def delete_episodes_by_podcast(self, podcast_id: str) -> int:
        with self._get_session() as session:
            result = session.execute(delete(Episode).where(Episode.podcast_id == podcast_id))
            session.commit()
            logger.info(f"Deleted {result.rowcount} episodes of podcast {podcast_id}")
            return result.rowcount

    # --- Connection Management ---

    def close(self) -> None:
        self.engine.dispose()
        logger.debug("Database connections closed")
