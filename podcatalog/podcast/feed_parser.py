"""RSS/Atom feed parser producing episode drafts.

Uses feedparser library to handle various feed formats and extract
episode data including iTunes namespace extensions.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import urlparse

import feedparser

from ..errors import FeedParseError
from .fingerprint import normalize_duration
from .models import EpisodeDraft

logger = logging.getLogger(__name__)


@dataclass
class ParsedFeed:
    """Podcast-level data and episode drafts from one feed."""

    feed_url: str
    title: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    drafts: List[EpisodeDraft] = field(default_factory=list)


class FeedParser:
    """Parser for podcast RSS/Atom feeds.

    Turns each feed entry that carries audio into an `EpisodeDraft`. Dates are
    left as the raw strings found in the feed.

    Example:
        parser = FeedParser()
        drafts = parser.parse_drafts("https://example.com/feed.xml")
        for draft in drafts:
            print(f"  - {draft.title}")
    """

    # User agent for feed requests
    USER_AGENT = "Podcatalog/1.0"

    def __init__(self, user_agent: Optional[str] = None):
        """Initialize the feed parser.

        Args:
            user_agent: Custom user agent string for requests
        """
        self.user_agent = user_agent or self.USER_AGENT

    def parse_drafts(self, feed_url: str) -> List[EpisodeDraft]:
        """Fetch a feed and return its episode drafts.

        Args:
            feed_url: URL of the RSS/Atom feed

        Returns:
            Drafts in feed order; empty if the feed has no audio entries

        Raises:
            FeedParseError: If the feed cannot be fetched or parsed
        """
        return self.parse_url(feed_url).drafts

    def parse_url(self, feed_url: str) -> ParsedFeed:
        """Parse a podcast feed from URL.

        Args:
            feed_url: URL of the RSS/Atom feed

        Returns:
            ParsedFeed with podcast metadata and episode drafts

        Raises:
            FeedParseError: If feed cannot be fetched or parsed
        """
        logger.info(f"Parsing feed: {feed_url}")

        feed = feedparser.parse(
            feed_url,
            agent=self.user_agent,
        )
        return self._parse_feed(feed, feed_url)

    def parse_string(self, content: str, feed_url: str = "") -> ParsedFeed:
        """Parse a podcast feed from string content.

        Args:
            content: RSS/Atom feed content
            feed_url: Original URL of the feed (for reference)

        Returns:
            ParsedFeed with podcast metadata and episode drafts

        Raises:
            FeedParseError: If the content is not a feed
        """
        feed = feedparser.parse(content)
        return self._parse_feed(feed, feed_url)

    def _parse_feed(self, feed: feedparser.FeedParserDict, feed_url: str) -> ParsedFeed:
        # Check for errors
        if feed.bozo and feed.bozo_exception:
            logger.warning(f"Feed parsing warning: {feed.bozo_exception}")

        if not feed.feed:
            raise FeedParseError("Failed to parse episodes from RSS feed")

        f = feed.feed
        parsed = ParsedFeed(
            feed_url=feed_url,
            title=f.get("title", "Unknown Podcast"),
            description=self._clean_html(f.get("description") or f.get("subtitle")),
            image_url=self._extract_image_url(f),
        )

        for entry in feed.entries:
            draft = self._parse_entry(entry)
            if draft:
                parsed.drafts.append(draft)

        logger.info(f"Parsed feed '{parsed.title}' with {len(parsed.drafts)} episodes")
        return parsed

    def _parse_entry(self, entry: feedparser.FeedParserDict) -> Optional[EpisodeDraft]:
        """Parse a feed entry into an EpisodeDraft.

        Args:
            entry: Feed entry from feedparser

        Returns:
            EpisodeDraft or None if the entry has no audio
        """
        audio_url = self._extract_audio_url(entry)
        if not audio_url:
            logger.debug(f"Skipping entry without audio enclosure: {entry.get('title')}")
            return None

        description = self._clean_html(
            entry.get("description")
            or entry.get("summary")
            or entry.get("content", [{}])[0].get("value")
        )

        tags = [tag.get("term") for tag in entry.get("tags", []) if tag.get("term")]

        return EpisodeDraft(
            title=entry.get("title") or entry.get("itunes_title") or "",
            description=description or "",
            audio_url=audio_url,
            duration=normalize_duration(entry.get("itunes_duration") or entry.get("duration")),
            release_date=entry.get("published") or entry.get("updated") or "",
            image_url=self._extract_image_url(entry),
            tags=tags or None,
        )

    def _extract_audio_url(self, entry: feedparser.FeedParserDict) -> Optional[str]:
        """Find the audio URL of a feed entry.

        Checks enclosures, then media content, then enclosure links.
        """
        for enclosure in entry.get("enclosures", []):
            url = enclosure.get("href") or enclosure.get("url")
            if url and self._is_audio_type(enclosure.get("type", ""), url):
                return url

        for media in entry.get("media_content", []):
            url = media.get("url")
            if url and self._is_audio_type(media.get("type", ""), url):
                return url

        for link in entry.get("links", []):
            if link.get("rel") == "enclosure":
                url = link.get("href")
                if url and self._is_audio_type(link.get("type", ""), url):
                    return url

        return None

    def _is_audio_type(self, mime_type: str, url: str) -> bool:
        """Check if content is an audio file.

        Args:
            mime_type: MIME type string
            url: URL of the content

        Returns:
            True if this appears to be an audio file
        """
        if mime_type:
            if mime_type.startswith("audio/"):
                return True
            if mime_type != "application/octet-stream":
                return False

        # Check URL extension
        path = urlparse(url).path.lower()
        audio_extensions = (".mp3", ".m4a", ".mp4", ".ogg", ".opus", ".wav", ".aac")
        return any(path.endswith(ext) for ext in audio_extensions)

    def _extract_image_url(self, node: feedparser.FeedParserDict) -> Optional[str]:
        """Extract an image URL from a feed or entry node.

        Args:
            node: Feed or entry dict from feedparser

        Returns:
            Image URL or None
        """
        # feedparser maps itunes:image to "image"
        for key in ("itunes_image", "image"):
            image = node.get(key)
            if image:
                if isinstance(image, dict):
                    return image.get("href") or image.get("url")
                return image

        if node.get("media_thumbnail"):
            thumbs = node.media_thumbnail
            if thumbs and isinstance(thumbs, list) and len(thumbs) > 0:
                return thumbs[0].get("url")

        return None

    def _clean_html(self, text: Optional[str]) -> Optional[str]:
        """Remove HTML tags from text.

        Args:
            text: Text that may contain HTML

        Returns:
            Cleaned text or None
        """
        if not text:
            return None

        clean = re.sub(r"<[^>]+>", "", text)
        # Decode HTML entities
        clean = clean.replace("&amp;", "&")
        clean = clean.replace("&lt;", "<")
        clean = clean.replace("&gt;", ">")
        clean = clean.replace("&quot;", '"')
        clean = clean.replace("&#39;", "'")
        clean = clean.replace("&nbsp;", " ")
        # Normalize whitespace
        clean = re.sub(r"\s+", " ", clean).strip()

        return clean if clean else None
