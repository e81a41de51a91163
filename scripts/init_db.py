"""Create the catalog tables and indexes for the configured database.

Existing tables and data are left untouched. Use alembic for schema
changes on databases that already exist.
"""

import argparse
import logging
import os
import sys

from sqlalchemy.exc import SQLAlchemyError

# Adjust path to import from the project root
sys.path.append(os.path.join(os.path.dirname(__file__), '..'))
from podcatalog.config import Config
from podcatalog.db.factory import create_store_from_config

# Setup basic logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def initialize_database(config: Config) -> None:
    """Connect to the database and create all tables defined in the models."""
    logger.info("Creating tables if they don't exist...")
    store = create_store_from_config(config, create_tables=True)
    store.close()
    logger.info("Database initialization complete.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Initialize the database. Creates tables if they don't exist.")
    parser.add_argument("--yes", "-y", action="store_true", help="Bypass confirmation prompt.")
    parser.add_argument("--env-file", help="Path to a custom .env file", default=None)
    args = parser.parse_args()

    config = Config(env_file=args.env_file)

    if not args.yes:
        confirm = input("Initialize the database? This will create tables but not delete existing data. (y/n): ")
        if confirm.lower() != 'y':
            logger.info("Database initialization cancelled by user.")
            sys.exit(0)

    try:
        initialize_database(config)
    except SQLAlchemyError as e:
        logger.error(f"Database initialization failed: {e}")
        sys.exit(1)
