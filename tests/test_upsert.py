"""Tests for UpsertEngine and draft sanitization."""

from datetime import datetime
from unittest.mock import Mock

import pytest

from podcatalog.errors import ConditionalCheckFailedError, PersistenceError, StoreError
from podcatalog.podcast.fingerprint import fingerprint
from podcatalog.podcast.models import EpisodeDraft
from podcatalog.podcast.resolver import ExistenceResolver
from podcatalog.podcast.upsert import UpsertEngine, sanitize_draft


class TestSanitizeDraft:
    """Tests for default filling."""

    def test_defaults_for_missing_fields(self):
        """Test missing fields get their documented defaults."""
        now = datetime(2024, 6, 1, 8, 0, 0)
        fields = sanitize_draft(EpisodeDraft(), now)
        assert fields == {
            "title": "Untitled Episode",
            "description": "",
            "audio_url": "",
            "duration": "0:00",
            "release_date": now,
        }

    def test_whitespace_title_defaults(self):
        """Test a whitespace-only title is treated as missing."""
        fields = sanitize_draft(EpisodeDraft(title="   "), datetime(2024, 1, 1))
        assert fields["title"] == "Untitled Episode"

    def test_parses_release_date(self):
        """Test release dates are parsed into naive UTC datetimes."""
        fields = sanitize_draft(
            EpisodeDraft(release_date="2023-10-15T12:00:00Z"), datetime(2024, 1, 1)
        )
        assert fields["release_date"] == datetime(2023, 10, 15, 12, 0, 0)

    def test_normalizes_duration(self):
        """Test durations in seconds are formatted."""
        fields = sanitize_draft(EpisodeDraft(duration="3600"), datetime(2024, 1, 1))
        assert fields["duration"] == "1:00:00"


class TestUpsertEngine:
    """Tests for create and merge."""

    def test_create_new_episode(self, store, podcast, clock, make_draft):
        """Test a draft without an existing episode is created."""
        engine = UpsertEngine(store, clock=clock)
        draft = make_draft("Ep 1", guests=["Alice"], tags=["news"], image_url="https://img/1.png")
        key = fingerprint(draft)

        episode = engine.upsert(podcast.id, draft, key)

        stored = store.get_episode(podcast.id, episode.id)
        assert stored.title == "Ep 1"
        assert stored.natural_key == key
        assert stored.guests == ["Alice"]
        assert stored.tags == ["news"]
        assert stored.image_url == "https://img/1.png"
        assert stored.created_at == stored.updated_at

    def test_new_episodes_get_distinct_ids(self, store, podcast, make_draft):
        """Test every created episode gets a fresh id."""
        engine = UpsertEngine(store)
        a = make_draft("Ep 1")
        b = make_draft("Ep 2")
        first = engine.upsert(podcast.id, a, fingerprint(a))
        second = engine.upsert(podcast.id, b, fingerprint(b))
        assert first.id != second.id

    def test_same_draft_twice_updates(self, store, podcast, clock, make_draft):
        """Test upserting the same draft twice leaves exactly one episode."""
        engine = UpsertEngine(store, clock=clock)
        resolver = ExistenceResolver(store)
        draft = make_draft("Ep 1", release_date="2023-10-15T12:00:00Z")
        key = fingerprint(draft)

        first = engine.upsert(podcast.id, draft, key, resolver.find_existing(podcast.id, key))
        second = engine.upsert(podcast.id, draft, key, resolver.find_existing(podcast.id, key))

        assert second.id == first.id
        assert second.created_at == first.created_at
        assert second.updated_at > second.created_at
        assert len(store.query_episodes(podcast.id).items) == 1

    def test_merge_overwrites_core_fields(self, store, podcast, clock, make_draft):
        """Test core fields come from the newest draft."""
        engine = UpsertEngine(store, clock=clock)
        original = make_draft("Ep 1", description="old", audio_url="https://old/1.mp3", duration="10:00")
        key = fingerprint(original)
        existing = engine.upsert(podcast.id, original, key)

        update = make_draft("EP 1", description="new", audio_url="https://new/1.mp3", duration="3600")
        merged = engine.upsert(podcast.id, update, key, existing)

        stored = store.get_episode(podcast.id, merged.id)
        assert stored.title == "EP 1"
        assert stored.description == "new"
        assert stored.audio_url == "https://new/1.mp3"
        assert stored.duration == "1:00:00"

    def test_merge_keeps_guests_and_tags_on_empty_lists(self, store, podcast, clock, make_draft):
        """Test empty or missing lists in a draft do not erase stored ones."""
        engine = UpsertEngine(store, clock=clock)
        original = make_draft("Ep 1", guests=["A", "B"], tags=["t1"])
        key = fingerprint(original)
        existing = engine.upsert(podcast.id, original, key)

        engine.upsert(podcast.id, make_draft("Ep 1", guests=[], tags=None), key, existing)

        stored = store.get_episode(podcast.id, existing.id)
        assert stored.guests == ["A", "B"]
        assert stored.tags == ["t1"]

    def test_merge_replaces_non_empty_lists(self, store, podcast, clock, make_draft):
        """Test non-empty lists in a draft replace stored ones."""
        engine = UpsertEngine(store, clock=clock)
        original = make_draft("Ep 1", guests=["A"])
        key = fingerprint(original)
        existing = engine.upsert(podcast.id, original, key)

        engine.upsert(podcast.id, make_draft("Ep 1", guests=["C"]), key, existing)

        assert store.get_episode(podcast.id, existing.id).guests == ["C"]

    def test_merge_image_only_when_supplied(self, store, podcast, clock, make_draft):
        """Test image_url is kept when the draft has none and replaced when it does."""
        engine = UpsertEngine(store, clock=clock)
        original = make_draft("Ep 1", image_url="https://img/old.png")
        key = fingerprint(original)
        existing = engine.upsert(podcast.id, original, key)

        engine.upsert(podcast.id, make_draft("Ep 1"), key, existing)
        assert store.get_episode(podcast.id, existing.id).image_url == "https://img/old.png"

        engine.upsert(podcast.id, make_draft("Ep 1", image_url="https://img/new.png"), key, existing)
        assert store.get_episode(podcast.id, existing.id).image_url == "https://img/new.png"

    def test_build_does_not_write(self, store, podcast, make_draft):
        """Test build returns an episode without persisting it."""
        draft = make_draft("Ep 1")
        episode = UpsertEngine(store).build(podcast.id, draft, fingerprint(draft))
        assert store.get_episode(podcast.id, episode.id) is None

    def test_store_failure_raises_persistence_error(self, make_draft):
        """Test a rejected write surfaces as PersistenceError without retrying."""
        mock_store = Mock()
        mock_store.put_episode.side_effect = StoreError("disk full")
        engine = UpsertEngine(mock_store)
        draft = make_draft("Ep 1")

        with pytest.raises(PersistenceError) as exc_info:
            engine.upsert("p1", draft, fingerprint(draft))

        assert isinstance(exc_info.value.__cause__, StoreError)
        assert mock_store.put_episode.call_count == 1

    def test_conditional_writes(self, make_draft):
        """Test creates require absence and merges require presence."""
        mock_store = Mock()
        engine = UpsertEngine(mock_store)
        draft = make_draft("Ep 1")
        key = fingerprint(draft)

        created = engine.upsert("p1", draft, key)
        mock_store.put_episode.assert_called_with(created, must_exist=False)

        engine.upsert("p1", draft, key, created)
        mock_store.put_episode.assert_called_with(created, must_exist=True)

    def test_merge_onto_deleted_episode_fails(self, store, podcast, make_draft):
        """Test merging onto an episode that no longer exists is a persistence failure."""
        engine = UpsertEngine(store)
        draft = make_draft("Ep 1")
        key = fingerprint(draft)
        existing = engine.upsert(podcast.id, draft, key)
        store.delete_episode(podcast.id, existing.id)

        with pytest.raises(PersistenceError) as exc_info:
            engine.upsert(podcast.id, draft, key, existing)
        assert isinstance(exc_info.value.__cause__, ConditionalCheckFailedError)
