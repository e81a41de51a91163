import os

from dotenv import load_dotenv


def _int_env(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got: {raw!r}") from None


class Config:
    def __init__(self, env_file=None):
        """
        Initialize configuration by loading environment variables and setting default attributes.

        Loads environment variables from the provided .env file path when `env_file` is given; otherwise loads from the default environment. After loading, sets database, sync, pagination, feed, auth and logging settings using environment values with sensible defaults.

        Parameters:
            env_file (str | None): Optional path to a .env file to load environment variables from.

        Raises:
            ValueError: If a numeric setting is malformed or out of range.
        """
        if env_file:
            load_dotenv(env_file)
        else:
            load_dotenv()

        # Database configuration
        self.DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./podcatalog.db")
        self.DB_POOL_SIZE = _int_env("DB_POOL_SIZE", "5")
        self.DB_MAX_OVERFLOW = _int_env("DB_MAX_OVERFLOW", "10")
        self.DB_ECHO = os.getenv("DB_ECHO", "false").lower() == "true"

        # Episode sync configuration
        # Maximum number of items the store accepts in one batch write
        self.EPISODE_BATCH_SIZE = _int_env("EPISODE_BATCH_SIZE", "25")
        if self.EPISODE_BATCH_SIZE < 1:
            raise ValueError(
                f"EPISODE_BATCH_SIZE must be at least 1, got {self.EPISODE_BATCH_SIZE}"
            )
        # Page limit standing in for "all episodes" when counting before/after a sync
        self.SYNC_SNAPSHOT_LIMIT = _int_env("SYNC_SNAPSHOT_LIMIT", "1000")
        self.SYNC_PREVIEW_SIZE = _int_env("SYNC_PREVIEW_SIZE", "5")

        # Episode listing
        self.EPISODE_PAGE_SIZE = _int_env("EPISODE_PAGE_SIZE", "20")
        self.EPISODE_PAGE_MAX = _int_env("EPISODE_PAGE_MAX", "100")
        if self.EPISODE_PAGE_SIZE < 1 or self.EPISODE_PAGE_MAX < self.EPISODE_PAGE_SIZE:
            raise ValueError(
                "EPISODE_PAGE_SIZE must be positive and not exceed EPISODE_PAGE_MAX, "
                f"got {self.EPISODE_PAGE_SIZE} / {self.EPISODE_PAGE_MAX}"
            )

        # Feed fetching
        self.FEED_USER_AGENT = os.getenv("FEED_USER_AGENT", "Podcatalog/1.0")

        # Web server configuration
        self.WEB_ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*")

        # JWT configuration
        self.JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "")
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.JWT_EXPIRATION_DAYS = _int_env("JWT_EXPIRATION_DAYS", "7")

        # Owner used by the command-line interface
        self.CLI_USER_ID = os.getenv("CLI_USER_ID", "local")

        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
