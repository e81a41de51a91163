"""Natural-key fingerprinting for episodes.

A fingerprint is the MD5 hex digest of ``"<normalized title>:<YYYY-MM-DD>"``.
Only the title and release date take part, so description edits or rotating
CDN audio URLs do not change an episode's identity.
"""

import hashlib
import re
from datetime import datetime, timezone
from typing import Optional

from dateutil import parser as date_parser

from .models import EpisodeDraft

SENTINEL_DATE = "1900-01-01"

UNTITLED = "untitled"

# Fills in fields a partial date string leaves out, so parsing never depends on today's date
_PARSE_DEFAULT = datetime(1900, 1, 1)

_NON_DATE_CHARS = re.compile(r"[^\d\-/]")


def normalize_title(title: Optional[str]) -> str:
    """Trim and lower-case a title; empty or missing titles become ``untitled``."""
    normalized = (title or "").strip().lower()
    return normalized or UNTITLED


def _to_utc(value: datetime) -> datetime:
    # Naive values are taken to be UTC already
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _parse_standard(raw: str) -> Optional[datetime]:
    try:
        return _to_utc(date_parser.parse(raw, default=_PARSE_DEFAULT))
    except (ValueError, OverflowError):
        return None


def _parse_timestamp(raw: str) -> Optional[datetime]:
    try:
        seconds = int(raw)
    except ValueError:
        return None
    if seconds <= 0:
        return None
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(tzinfo=None)
    except (ValueError, OverflowError, OSError):
        return None


def parse_release_date(raw: Optional[str]) -> Optional[datetime]:
    """
    Parse a free-form release date into a naive UTC datetime.

    Stages, each tried only when the previous one fails:

    1. standard date/time parsing (RFC 822, ISO 8601 and similar);
    2. an integer Unix timestamp in seconds;
    3. standard parsing after stripping everything but digits, ``-`` and ``/``.

    Digit-only strings skip stage 1 so that epoch seconds are not misread as
    compact dates.

    Returns:
        The parsed datetime, or None if no stage produced a valid date.
    """
    if raw is None:
        return None
    raw = str(raw).strip()
    if not raw:
        return None

    if not raw.isdigit():
        parsed = _parse_standard(raw)
        if parsed is not None:
            return parsed

    parsed = _parse_timestamp(raw)
    if parsed is not None:
        return parsed

    stripped = _NON_DATE_CHARS.sub("", raw)
    if stripped and stripped != raw:
        return _parse_standard(stripped)
    return None


def normalize_release_date(raw: Optional[str]) -> str:
    """Reduce a free-form release date to its UTC calendar date, or the 1900-01-01 sentinel."""
    parsed = parse_release_date(raw)
    if parsed is None:
        return SENTINEL_DATE
    return parsed.strftime("%Y-%m-%d")


def fingerprint(draft: EpisodeDraft) -> str:
    """
    Compute the natural key of a draft episode.

    Parameters:
        draft (EpisodeDraft): Raw episode as produced by the feed parser.

    Returns:
        str: 32-character lowercase hex MD5 digest of the normalized title and date.
    """
    return natural_key(draft.title, draft.release_date)


def natural_key(title: Optional[str], release_date: Optional[str]) -> str:
    """Fingerprint a (title, release date) pair."""
    source = f"{normalize_title(title)}:{normalize_release_date(release_date)}"
    return hashlib.md5(source.encode("utf-8")).hexdigest()


def normalize_duration(value) -> str:
    """
    Normalize a feed duration to ``H:MM:SS`` or ``M:SS``.

    Handles:
    - Seconds: "3600"
    - MM:SS: "60:00"
    - HH:MM:SS: "1:00:00"

    Values that cannot be read as a duration become ``0:00``.
    """
    if value is None or value == "":
        return "0:00"

    value_str = str(value).strip()
    seconds: Optional[int] = None

    try:
        seconds = int(float(value_str))
    except (ValueError, OverflowError):
        parts = value_str.split(":")
        try:
            if len(parts) == 2:
                seconds = int(parts[0]) * 60 + int(parts[1])
            elif len(parts) == 3:
                seconds = int(parts[0]) * 3600 + int(parts[1]) * 60 + int(parts[2])
        except ValueError:
            seconds = None

    if seconds is None or seconds < 0:
        return "0:00"

    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"
