"""Error taxonomy for the episode catalog.

Every error a caller can observe belongs to one of four kinds. Store-level
exceptions stay internal: the components that see them either recover
locally or re-raise them as one of the catalog errors below.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Closed set of error kinds reported to callers."""

    VALIDATION = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    FEED_PARSE = "RSS_PARSE_ERROR"
    INTERNAL = "INTERNAL_ERROR"


class CatalogError(Exception):
    """Base exception for all catalog errors."""

    kind: ErrorKind = ErrorKind.INTERNAL
    http_status: int = 500

    def __init__(self, message: str = "An internal error occurred"):
        super().__init__(message)
        self.message = message

    @property
    def public_message(self) -> str:
        """Message that is safe to show to the caller."""
        return self.message


class InvalidInputError(CatalogError):
    """Caller supplied a missing or malformed value."""

    kind = ErrorKind.VALIDATION
    http_status = 400


class InvalidCursorError(InvalidInputError):
    """Pagination cursor could not be decoded or belongs to another query path."""

    pass


class NotFoundError(CatalogError):
    """Podcast not owned by the user, or episode absent."""

    kind = ErrorKind.NOT_FOUND
    http_status = 404


class FeedParseError(CatalogError):
    """The podcast feed could not be fetched or parsed."""

    kind = ErrorKind.FEED_PARSE
    http_status = 400


class InternalError(CatalogError):
    """Unexpected failure. The concrete cause is chained, never exposed."""

    kind = ErrorKind.INTERNAL
    http_status = 500

    @property
    def public_message(self) -> str:
        return "An internal error occurred"


class PersistenceError(InternalError):
    """A single episode write failed."""

    pass


class StoreError(Exception):
    """Base exception for persistent store failures."""

    pass


class IndexUnavailableError(StoreError):
    """A secondary index required by a query is not provisioned."""

    pass


class ConditionalCheckFailedError(StoreError):
    """A conditional write found the item in an unexpected state."""

    pass


def to_error_payload(error: BaseException, path: Optional[str] = None) -> Dict[str, Any]:
    """
    Render an exception into the API error envelope.

    Catalog errors keep their kind and public message; anything else collapses
    to a generic internal error so underlying details never reach the caller.

    Parameters:
        error (BaseException): The exception to render.
        path (Optional[str]): Request path to echo back, if any.

    Returns:
        dict: {"error": {"message", "code"}, "timestamp", "path"}.
    """
    if isinstance(error, CatalogError):
        message, code = error.public_message, error.kind.value
    else:
        message, code = InternalError().public_message, ErrorKind.INTERNAL.value

    payload: Dict[str, Any] = {
        "error": {"message": message, "code": code},
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if path:
        payload["path"] = path
    return payload
