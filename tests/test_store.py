"""Tests for the SQLAlchemy episode store."""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from podcatalog.db.factory import create_store
from podcatalog.db.models import NATURAL_KEY_INDEX, RELEASE_DATE_INDEX, Episode
from podcatalog.db.store import SQLAlchemyEpisodeStore, decode_cursor, encode_cursor
from podcatalog.errors import (
    ConditionalCheckFailedError,
    IndexUnavailableError,
    InvalidCursorError,
)


def make_episode(podcast_id, episode_id, days=0, natural_key=None, created_at=None, title=None):
    """Build an unsaved episode released `days` after 2024-01-01."""
    return Episode(
        podcast_id=podcast_id,
        id=episode_id,
        natural_key=natural_key,
        title=title or f"Episode {episode_id}",
        description="",
        audio_url=f"https://cdn.example.com/{episode_id}.mp3",
        duration="30:00",
        release_date=datetime(2024, 1, 1) + timedelta(days=days),
        created_at=created_at or datetime(2024, 2, 1),
    )


def drop_release_date_index(store):
    with store.engine.begin() as conn:
        conn.execute(text(f"DROP INDEX {RELEASE_DATE_INDEX}"))


class FailingWriteStore(SQLAlchemyEpisodeStore):
    """Store that rejects writes of chosen episode ids."""

    def __init__(self, *args, reject_ids=(), **kwargs):
        super().__init__(*args, **kwargs)
        self.reject_ids = set(reject_ids)

    def _write_one(self, session, episode):
        if episode.id in self.reject_ids:
            raise SQLAlchemyError(f"rejected {episode.id}")
        super()._write_one(session, episode)


class TestPodcastOperations:
    """Tests for podcast ownership operations."""

    def test_create_and_get_podcast(self, store):
        """Test a created podcast can be read back."""
        podcast = store.create_podcast(
            user_id="user-1", feed_url="https://example.com/a.xml", title="A"
        )
        assert podcast.id
        fetched = store.get_podcast(podcast.id)
        assert fetched.title == "A"
        assert fetched.episode_count == 0

    def test_get_podcasts_owned_by(self, store):
        """Test only the user's podcasts are returned, ordered by title."""
        store.create_podcast(user_id="user-1", feed_url="https://example.com/b.xml", title="B")
        store.create_podcast(user_id="user-1", feed_url="https://example.com/a.xml", title="A")
        store.create_podcast(user_id="user-2", feed_url="https://example.com/c.xml", title="C")

        titles = [p.title for p in store.get_podcasts_owned_by("user-1")]
        assert titles == ["A", "B"]
        assert store.get_podcasts_owned_by("nobody") == []

    def test_update_podcast(self, store, podcast):
        """Test updating known attributes."""
        updated = store.update_podcast(podcast.id, episode_count=12)
        assert updated.episode_count == 12
        assert store.update_podcast("missing", episode_count=1) is None

    def test_delete_podcast_removes_episodes(self, store, podcast):
        """Test deleting a podcast cascades to its episodes."""
        store.put_episode(make_episode(podcast.id, "e1"))
        assert store.delete_podcast(podcast.id) is True
        assert store.get_podcast(podcast.id) is None
        assert store.get_episode(podcast.id, "e1") is None
        assert store.delete_podcast(podcast.id) is False


class TestPutEpisode:
    """Tests for single-item conditional writes."""

    def test_put_and_get(self, store, podcast):
        """Test an episode written once can be looked up by key."""
        store.put_episode(make_episode(podcast.id, "e1"), must_exist=False)
        episode = store.get_episode(podcast.id, "e1")
        assert episode.title == "Episode e1"
        assert store.get_episode(podcast.id, "missing") is None

    def test_create_condition_rejects_existing(self, store, podcast):
        """Test must_exist=False fails when the episode already exists."""
        store.put_episode(make_episode(podcast.id, "e1"))
        with pytest.raises(ConditionalCheckFailedError):
            store.put_episode(make_episode(podcast.id, "e1"), must_exist=False)

    def test_update_condition_rejects_missing(self, store, podcast):
        """Test must_exist=True fails when the episode does not exist."""
        with pytest.raises(ConditionalCheckFailedError):
            store.put_episode(make_episode(podcast.id, "e1"), must_exist=True)
        assert store.get_episode(podcast.id, "e1") is None

    def test_update_overwrites(self, store, podcast):
        """Test an unconditional write replaces stored fields."""
        store.put_episode(make_episode(podcast.id, "e1"))
        changed = make_episode(podcast.id, "e1", title="Renamed")
        store.put_episode(changed, must_exist=True)
        assert store.get_episode(podcast.id, "e1").title == "Renamed"

    def test_json_lists_round_trip(self, store, podcast):
        """Test guests and tags are stored as lists."""
        episode = make_episode(podcast.id, "e1")
        episode.guests = ["A", "B"]
        episode.tags = ["news"]
        store.put_episode(episode)
        stored = store.get_episode(podcast.id, "e1")
        assert stored.guests == ["A", "B"]
        assert stored.tags == ["news"]


class TestBatchWrite:
    """Tests for bounded batch writes."""

    def test_writes_all_items(self, store, podcast):
        """Test every item of a healthy batch is persisted."""
        episodes = [make_episode(podcast.id, f"e{i}", days=i) for i in range(5)]
        result = store.batch_write(episodes)
        assert len(result.written) == 5
        assert result.failed == []
        assert len(store.query_episodes(podcast.id).items) == 5

    def test_rejects_oversized_batch(self, store, podcast):
        """Test more than max_batch_size items raises ValueError."""
        episodes = [make_episode(podcast.id, f"e{i}") for i in range(store.max_batch_size + 1)]
        with pytest.raises(ValueError):
            store.batch_write(episodes)

    def test_failed_item_does_not_block_others(self, tmp_path):
        """Test a rejected item is reported while the rest are written."""
        failing = FailingWriteStore(f"sqlite:///{tmp_path / 'fail.db'}", reject_ids={"e2"})
        try:
            podcast = failing.create_podcast(
                user_id="user-1", feed_url="https://example.com/feed.xml", title="P"
            )
            episodes = [make_episode(podcast.id, f"e{i}", days=i) for i in range(5)]
            result = failing.batch_write(episodes)

            assert [ep.id for ep in result.written] == ["e0", "e1", "e3", "e4"]
            assert [ep.id for ep, _ in result.failed] == ["e2"]
            assert failing.get_episode(podcast.id, "e2") is None
            assert len(failing.query_episodes(podcast.id).items) == 4
        finally:
            failing.close()


class TestQueryEpisodes:
    """Tests for index-scoped queries and pagination."""

    def test_release_date_order(self, store, podcast):
        """Test the release date index returns newest first."""
        store.batch_write([make_episode(podcast.id, f"e{i}", days=i) for i in range(4)])
        page = store.query_episodes(podcast.id, index=RELEASE_DATE_INDEX)
        assert [ep.id for ep in page.items] == ["e3", "e2", "e1", "e0"]
        assert page.cursor is None

    def test_release_date_pagination(self, store, podcast):
        """Test cursors walk every episode exactly once, newest first."""
        store.batch_write([make_episode(podcast.id, f"e{i:02d}", days=i) for i in range(7)])

        seen = []
        cursor = None
        while True:
            page = store.query_episodes(podcast.id, index=RELEASE_DATE_INDEX, limit=3, cursor=cursor)
            seen.extend(ep.id for ep in page.items)
            if page.cursor is None:
                break
            cursor = page.cursor

        assert seen == [f"e{i:02d}" for i in reversed(range(7))]

    def test_release_date_ties_broken_by_id(self, store, podcast):
        """Test episodes released at the same moment page deterministically."""
        store.batch_write([make_episode(podcast.id, eid, days=0) for eid in ["a", "c", "b"]])
        first = store.query_episodes(podcast.id, index=RELEASE_DATE_INDEX, limit=2)
        second = store.query_episodes(podcast.id, index=RELEASE_DATE_INDEX, limit=2, cursor=first.cursor)
        assert [ep.id for ep in first.items] == ["c", "b"]
        assert [ep.id for ep in second.items] == ["a"]
        assert second.cursor is None

    def test_exact_page_has_no_cursor(self, store, podcast):
        """Test no cursor is returned when the last page is exactly full."""
        store.batch_write([make_episode(podcast.id, f"e{i}", days=i) for i in range(3)])
        page = store.query_episodes(podcast.id, index=RELEASE_DATE_INDEX, limit=3)
        assert len(page.items) == 3
        assert page.cursor is None

    def test_base_partition_key_order(self, store, podcast):
        """Test base partition queries page in key order."""
        store.batch_write([make_episode(podcast.id, eid, days=d) for eid, d in [("b", 0), ("a", 5), ("c", 2)]])
        first = store.query_episodes(podcast.id, limit=2)
        second = store.query_episodes(podcast.id, limit=2, cursor=first.cursor)
        assert [ep.id for ep in first.items] == ["a", "b"]
        assert [ep.id for ep in second.items] == ["c"]

    def test_natural_key_lookup_ordered_by_created_at(self, store, podcast):
        """Test natural key matches are returned oldest first."""
        store.batch_write([
            make_episode(podcast.id, "late", natural_key="k1", created_at=datetime(2024, 3, 1)),
            make_episode(podcast.id, "early", natural_key="k1", created_at=datetime(2024, 1, 1)),
            make_episode(podcast.id, "other", natural_key="k2"),
        ])
        page = store.query_episodes(podcast.id, index=NATURAL_KEY_INDEX, natural_key="k1")
        assert [ep.id for ep in page.items] == ["early", "late"]

    def test_natural_key_requires_key(self, store, podcast):
        """Test natural key queries without a key are rejected."""
        with pytest.raises(ValueError):
            store.query_episodes(podcast.id, index=NATURAL_KEY_INDEX)

    def test_unknown_index(self, store, podcast):
        """Test unknown index names are rejected."""
        with pytest.raises(ValueError):
            store.query_episodes(podcast.id, index="ix_nope")

    def test_partitions_are_isolated(self, store, podcast):
        """Test queries only see episodes of the requested podcast."""
        other = store.create_podcast(user_id="user-2", feed_url="https://example.com/o.xml", title="O")
        store.put_episode(make_episode(podcast.id, "mine"))
        store.put_episode(make_episode(other.id, "theirs"))
        assert [ep.id for ep in store.query_episodes(podcast.id).items] == ["mine"]

    def test_missing_index_raises(self, store, podcast):
        """Test release date queries fail when the index is not provisioned."""
        drop_release_date_index(store)
        with pytest.raises(IndexUnavailableError):
            store.query_episodes(podcast.id, index=RELEASE_DATE_INDEX)

    def test_cursor_from_other_path_rejected(self, store, podcast):
        """Test a cursor can only resume the query path that produced it."""
        store.batch_write([make_episode(podcast.id, f"e{i}", days=i) for i in range(3)])
        base_cursor = store.query_episodes(podcast.id, limit=1).cursor
        with pytest.raises(InvalidCursorError):
            store.query_episodes(podcast.id, index=RELEASE_DATE_INDEX, limit=1, cursor=base_cursor)

    def test_garbage_cursor_rejected(self, store, podcast):
        """Test malformed cursors raise InvalidCursorError."""
        with pytest.raises(InvalidCursorError):
            store.query_episodes(podcast.id, index=RELEASE_DATE_INDEX, cursor="%%%not-base64")
        with pytest.raises(InvalidCursorError):
            store.query_episodes(podcast.id, cursor=encode_cursor({"index": "base", "id": 5}))


class TestCursorEncoding:
    """Tests for cursor helpers."""

    def test_round_trip(self):
        """Test a cursor decodes to the position it encodes."""
        position = {"index": "base", "id": "abc"}
        assert decode_cursor(encode_cursor(position), "base") == position

    def test_url_safe(self):
        """Test cursors contain only URL-safe characters."""
        cursor = encode_cursor({"index": RELEASE_DATE_INDEX, "release_date": "2024-01-01T00:00:00", "id": "???>>>"})
        assert "+" not in cursor and "/" not in cursor

    def test_non_object_rejected(self):
        """Test JSON that is not an object is rejected."""
        import base64

        cursor = base64.urlsafe_b64encode(b"[1, 2]").decode("ascii")
        with pytest.raises(InvalidCursorError):
            decode_cursor(cursor, "base")


class TestFactory:
    """Tests for create_store."""

    def test_uses_environment_url(self, tmp_path, monkeypatch):
        """Test DATABASE_URL is used when no URL is passed."""
        monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'env.db'}")
        env_store = create_store()
        try:
            assert env_store.database_url.endswith("env.db")
        finally:
            env_store.close()

    def test_max_batch_size(self, tmp_path):
        """Test the batch limit is configurable."""
        small = create_store(f"sqlite:///{tmp_path / 'small.db'}", max_batch_size=3)
        try:
            assert small.max_batch_size == 3
        finally:
            small.close()
