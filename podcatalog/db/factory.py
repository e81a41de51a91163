"""Database factory for creating episode store instances.

Automatically detects database type from URL and configures appropriately
for SQLite (local development) or PostgreSQL (production).
"""

import logging
import os
from typing import Optional

from .store import DEFAULT_MAX_BATCH_SIZE, EpisodeStoreInterface, SQLAlchemyEpisodeStore

logger = logging.getLogger(__name__)

# Default database URL for local development
DEFAULT_DATABASE_URL = "sqlite:///./podcatalog.db"


def create_store(
    database_url: Optional[str] = None,
    pool_size: int = 5,
    max_overflow: int = 10,
    echo: bool = False,
    max_batch_size: int = DEFAULT_MAX_BATCH_SIZE,
    create_tables: bool = True,
) -> EpisodeStoreInterface:
    """
    Create an EpisodeStoreInterface configured from the provided or discovered database URL.

    If `database_url` is not provided, it is read from the `DATABASE_URL` environment variable; if that is unset, a local SQLite default is used. Logs the chosen database type and hides credentials when present. Pool settings apply to PostgreSQL and are ignored for SQLite.

    Parameters:
        database_url (Optional[str]): SQLAlchemy database URL to use; if None the environment or default is used.
        pool_size (int): Connection pool size for PostgreSQL; ignored for SQLite.
        max_overflow (int): Maximum overflow connections for PostgreSQL; ignored for SQLite.
        echo (bool): If true, enable SQL statement logging.
        max_batch_size (int): Largest number of items accepted by a single batch write.
        create_tables (bool): If true, create missing tables and indexes on startup.

    Returns:
        EpisodeStoreInterface: A store instance backed by the resolved database URL.
    """
    if database_url is None:
        database_url = os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)

    # Log database type (without credentials)
    if "://" in database_url:
        db_type = database_url.split("://")[0]
        if "@" in database_url:
            db_location = database_url.split("@")[-1]
            logger.info(f"Creating {db_type} store: ...@{db_location}")
        else:
            logger.info(f"Creating {db_type} store: {database_url}")
    else:
        logger.info(f"Creating store with URL: {database_url}")

    return SQLAlchemyEpisodeStore(
        database_url=database_url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        echo=echo,
        max_batch_size=max_batch_size,
        create_tables=create_tables,
    )


def create_store_from_config(config, create_tables: bool = True) -> EpisodeStoreInterface:
    """
    Create a store using the database settings of a Config object.

    Parameters:
        config: A `podcatalog.config.Config` instance.
        create_tables (bool): If true, create missing tables and indexes on startup.

    Returns:
        EpisodeStoreInterface: The configured store.
    """
    return create_store(
        database_url=config.DATABASE_URL,
        pool_size=config.DB_POOL_SIZE,
        max_overflow=config.DB_MAX_OVERFLOW,
        echo=config.DB_ECHO,
        max_batch_size=config.EPISODE_BATCH_SIZE,
        create_tables=create_tables,
    )
