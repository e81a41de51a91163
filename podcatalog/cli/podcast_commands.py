"""CLI commands for the podcast episode catalog.

Provides commands for:
- Adding podcasts from feed URLs
- Listing a user's podcasts
- Syncing a podcast's episodes
- Listing episodes page by page
- Deduplicating stored catalogs
- Deleting a podcast's episodes
"""

import argparse
import logging
import sys

from ..config import Config
from ..db.factory import create_store_from_config
from ..errors import CatalogError
from ..podcast.deduplicate import CatalogDeduplicator
from ..podcast.episode_sync import EpisodeSyncService
from ..podcast.feed_parser import FeedParser

logger = logging.getLogger(__name__)


def _user_id(args, config: Config) -> str:
    return args.user_id or config.CLI_USER_ID


def add_podcast(args, config: Config):
    """
    Register a podcast feed for a user.

    Parses the feed to read its title, description and artwork. If the feed
    cannot be parsed the error is printed and the process exits with status 1.
    Feeds the user already has are reported and left unchanged.

    Parameters:
        args: Parsed CLI arguments; expects `args.url` and optionally `args.user_id`.
        config (Config): Application configuration used to construct the store.
    """
    logger.info(f"Adding podcast from: {args.url}")
    user_id = _user_id(args, config)

    store = create_store_from_config(config)
    try:
        for podcast in store.get_podcasts_owned_by(user_id):
            if podcast.feed_url == args.url:
                print(f"Podcast already added: {podcast.title}")
                print(f"  ID: {podcast.id}")
                return

        try:
            parsed = FeedParser(user_agent=config.FEED_USER_AGENT).parse_url(args.url)
        except CatalogError as e:
            print(f"Error: {e.public_message}")
            sys.exit(1)

        podcast = store.create_podcast(
            user_id=user_id,
            feed_url=args.url,
            title=parsed.title,
            description=parsed.description,
            image_url=parsed.image_url,
        )

        print(f"\nAdded podcast: {podcast.title}")
        print(f"  ID: {podcast.id}")
        print(f"  Episodes in feed: {len(parsed.drafts)}")

    finally:
        store.close()


def list_podcasts(args, config: Config):
    """List the podcasts owned by the user."""
    store = create_store_from_config(config)
    try:
        podcasts = store.get_podcasts_owned_by(_user_id(args, config))
        if not podcasts:
            print("No podcasts found")
            return

        print(f"\n{len(podcasts)} podcasts:")
        for podcast in podcasts:
            print(f"  {podcast.id}  {podcast.title} ({podcast.episode_count} episodes)")
    finally:
        store.close()


def sync_episodes(args, config: Config):
    """Sync a podcast's episodes from its feed and print the report."""
    store = create_store_from_config(config)
    try:
        service = EpisodeSyncService.from_config(store, config)
        try:
            report = service.sync(args.podcast_id, _user_id(args, config))
        except CatalogError as e:
            print(f"Error: {e.public_message}")
            sys.exit(1)

        print(f"\n{report.message}")
        print(f"  Episodes stored: {report.episode_count}")
        print(f"  New episodes: {report.stats.new_episodes}")
        print(f"  Updated episodes: {report.stats.updated_episodes}")
        print(f"  Processed: {report.stats.total_processed}")
        print(f"  Duplicates/skipped: {report.stats.duplicates_found}")

        if report.episodes:
            print("\nLatest saved:")
            for episode in report.episodes:
                print(f"  - {episode.title}")
    finally:
        store.close()


def list_episodes(args, config: Config):
    """Print one page of a podcast's episodes owned by the user, newest first."""
    limit = args.limit or config.EPISODE_PAGE_SIZE
    if limit > config.EPISODE_PAGE_MAX:
        print(f"Error: Limit cannot exceed {config.EPISODE_PAGE_MAX}")
        sys.exit(1)

    store = create_store_from_config(config)
    try:
        service = EpisodeSyncService.from_config(store, config)
        try:
            page = service.list_episodes(
                args.podcast_id, _user_id(args, config), limit=limit, cursor=args.cursor
            )
        except CatalogError as e:
            print(f"Error: {e.public_message}")
            sys.exit(1)

        if not page.episodes:
            print("No episodes found")
            return

        for episode in page.episodes:
            print(f"  {episode.release_date:%Y-%m-%d}  {episode.duration:>8}  {episode.title}")

        if page.has_more:
            print(f"\nNext page: --cursor {page.next_cursor}")
    finally:
        store.close()


def deduplicate_catalog(args, config: Config):
    """Merge duplicate episodes across all stored catalogs."""
    store = create_store_from_config(config)
    try:
        stats = CatalogDeduplicator(store, dry_run=args.dry_run).run()

        if args.dry_run:
            print("\n[DRY RUN] No changes were made")
        print("\nDeduplication statistics:")
        print(f"  Total episodes scanned: {stats.total_episodes}")
        print(f"  Duplicates found: {stats.duplicates_found}")
        print(f"  Episodes removed: {stats.episodes_removed}")
        print(f"  Episodes updated: {stats.episodes_updated}")
        print(f"  Natural keys backfilled: {stats.keys_backfilled}")
        print(f"  Errors: {stats.errors}")
        print(f"  Final episode count: {stats.final_episode_count}")

        if stats.errors:
            sys.exit(1)
    finally:
        store.close()


def delete_episodes(args, config: Config):
    """Delete all episodes of a podcast owned by the user."""
    store = create_store_from_config(config)
    try:
        service = EpisodeSyncService.from_config(store, config)
        try:
            deleted = service.delete_episodes(args.podcast_id, _user_id(args, config))
        except CatalogError as e:
            print(f"Error: {e.public_message}")
            sys.exit(1)

        print(f"Deleted {deleted} episodes")
    finally:
        store.close()


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        description="Podcast episode catalog CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--env-file",
        help="Path to .env file",
        default=None,
    )
    parser.add_argument(
        "--user-id",
        help="Owner of the podcasts (default: CLI_USER_ID)",
        default=None,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # add command
    add_parser = subparsers.add_parser(
        "add",
        help="Add a podcast from feed URL",
    )
    add_parser.add_argument("url", help="RSS feed URL")

    # list command
    subparsers.add_parser(
        "list",
        help="List podcasts",
    )

    # sync command
    sync_parser = subparsers.add_parser(
        "sync",
        help="Sync a podcast's episodes from its feed",
    )
    sync_parser.add_argument("podcast_id", help="Podcast ID")

    # episodes command
    episodes_parser = subparsers.add_parser(
        "episodes",
        help="List a podcast's episodes, newest first",
    )
    episodes_parser.add_argument("podcast_id", help="Podcast ID")
    episodes_parser.add_argument(
        "--limit",
        type=int,
        help="Number of episodes per page",
    )
    episodes_parser.add_argument(
        "--cursor",
        help="Cursor printed by the previous page",
    )

    # dedupe command
    dedupe_parser = subparsers.add_parser(
        "dedupe",
        help="Merge duplicate episodes in all catalogs",
    )
    dedupe_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would change without making changes",
    )

    # delete-episodes command
    delete_parser = subparsers.add_parser(
        "delete-episodes",
        help="Delete all episodes of a podcast",
    )
    delete_parser.add_argument("podcast_id", help="Podcast ID")

    return parser


def main():
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Load configuration
    config = Config(env_file=args.env_file)

    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    # Route to appropriate command
    commands = {
        "add": add_podcast,
        "list": list_podcasts,
        "sync": sync_episodes,
        "episodes": list_episodes,
        "dedupe": deduplicate_catalog,
        "delete-episodes": delete_episodes,
    }

    command_func = commands.get(args.command)
    if command_func:
        command_func(args, config)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
