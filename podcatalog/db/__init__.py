"""Database module for podcast and episode persistence.

Provides:
- SQLAlchemy ORM models (Podcast, Episode)
- Episode store interface and implementation
- Factory functions for creating stores
"""

from .factory import create_store, create_store_from_config
from .models import NATURAL_KEY_INDEX, RELEASE_DATE_INDEX, Base, Episode, Podcast
from .store import (
    BatchWriteResult,
    EpisodeQueryPage,
    EpisodeStoreInterface,
    SQLAlchemyEpisodeStore,
)

__all__ = [
    "Base",
    "Podcast",
    "Episode",
    "NATURAL_KEY_INDEX",
    "RELEASE_DATE_INDEX",
    "BatchWriteResult",
    "EpisodeQueryPage",
    "EpisodeStoreInterface",
    "SQLAlchemyEpisodeStore",
    "create_store",
    "create_store_from_config",
]
