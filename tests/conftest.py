"""
Pytest configuration and fixtures for podcatalog tests.

This module runs before any test imports, setting up the test environment.
Environment variables are explicitly set to ensure deterministic test behavior
regardless of external environment configuration.
"""

import os
from datetime import datetime, timedelta

import pytest

# Test JWT secret that meets minimum length requirements for HS256
_TEST_JWT_SECRET = "test-jwt-secret-key-for-pytest-minimum-32-chars"

os.environ["DEV_MODE"] = "true"
os.environ["JWT_SECRET_KEY"] = _TEST_JWT_SECRET

from podcatalog.db.factory import create_store  # noqa: E402
from podcatalog.podcast.models import EpisodeDraft  # noqa: E402


class StepClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, 12, 0, 0)):
        self.current = start

    def __call__(self) -> datetime:
        value = self.current
        self.current += timedelta(seconds=1)
        return value


@pytest.fixture
def store(tmp_path):
    """
    Create a temporary SQLite-backed episode store for tests.

    Yields a store configured to use a SQLite file under the provided temporary path and closes it when the fixture is torn down.
    """
    db_path = tmp_path / "test.db"
    episode_store = create_store(f"sqlite:///{db_path}", create_tables=True)
    yield episode_store
    episode_store.close()


@pytest.fixture
def podcast(store):
    """Create and persist a podcast owned by ``user-1``."""
    return store.create_podcast(
        user_id="user-1",
        feed_url="https://example.com/feed.xml",
        title="Test Podcast",
        description="A test podcast",
    )


@pytest.fixture
def clock():
    return StepClock()


def _build_draft(title: str = "Episode", release_date: str = "2023-10-15T12:00:00Z", **kwargs) -> EpisodeDraft:
    kwargs.setdefault("audio_url", f"https://cdn.example.com/{title.replace(' ', '-').lower()}.mp3")
    kwargs.setdefault("duration", "30:00")
    return EpisodeDraft(title=title, release_date=release_date, **kwargs)


@pytest.fixture
def make_draft():
    """Factory for drafts with a playable audio URL unless one is given."""
    return _build_draft
