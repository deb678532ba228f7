"""
RSS feed and direct audio file resolver.

Handles podcast feeds, Substack posts (through the publication feed) and
links that already point at an audio file.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional, Union
from urllib.parse import unquote, urlparse

import feedparser
import httpx

from audioqueue.streaming.resolvers.base import (
    ResolvedItem,
    SourceType,
    TransientResolverError,
)
from audioqueue.streaming.resolvers.classifier import is_substack
from audioqueue.utils.duration import parse_duration
from audioqueue.utils.http import get_http_client

logger = logging.getLogger(__name__)

_DIRECT_AUDIO = re.compile(r"\.(mp3|m4a|ogg|opus|aac|flac|wav)(\?.*)?$", re.IGNORECASE)


def is_direct_audio_url(url: str) -> bool:
    """True when the URL path ends in a known audio file extension."""
    return bool(_DIRECT_AUDIO.search(url or ""))


def title_from_audio_url(url: str) -> str:
    """Decoded last path segment of an audio URL, without the query."""
    path = urlparse(url).path
    segment = path.rstrip("/").rsplit("/", 1)[-1]
    return unquote(segment) or url


def substack_feed_url(url: str) -> str:
    """Rewrite a Substack article URL to its publication feed."""
    parsed = urlparse(url)
    if parsed.path.rstrip("/").endswith("/feed"):
        return url
    return f"{parsed.scheme or 'https'}://{parsed.netloc}/feed"


@dataclass
class FeedEpisode:
    """One item of a parsed feed."""

    title: str
    audio_url: Optional[str] = None
    duration_seconds: Optional[Union[int, float]] = None
    thumbnail_url: Optional[str] = None


@dataclass
class Feed:
    """Parsed RSS feed; episodes keep the order they were published in."""

    url: str
    title: Optional[str] = None
    author: Optional[str] = None
    image_url: Optional[str] = None
    episodes: list[FeedEpisode] = field(default_factory=list)

    @property
    def publisher(self) -> Optional[str]:
        return self.title or self.author


def _image_href(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        return value.get("href") or value.get("url")
    return None


def _entry_audio_url(entry: Any) -> Optional[str]:
    for enclosure in entry.get("enclosures") or []:
        href = enclosure.get("href") or enclosure.get("url")
        if href:
            return href
    for media in entry.get("media_content") or []:
        if media.get("url"):
            return media["url"]
    return None


def _entry_thumbnail(entry: Any) -> Optional[str]:
    image = _image_href(entry.get("image"))
    if image:
        return image
    for thumb in entry.get("media_thumbnail") or []:
        if thumb.get("url"):
            return thumb["url"]
    return None


def parse_feed(content: Union[bytes, str], url: str) -> Feed:
    """
    Parse feed content with feedparser.

    Raises:
        TransientResolverError: If the content is not a usable feed
    """
    parsed = feedparser.parse(content)
    if parsed.get("bozo") and not parsed.entries and not parsed.feed.get("title"):
        raise TransientResolverError(
            f"Malformed feed at {url}: {parsed.get('bozo_exception')}",
            original_error=parsed.get("bozo_exception"),
        )

    channel = parsed.feed
    feed = Feed(
        url=url,
        title=channel.get("title"),
        author=channel.get("author") or channel.get("itunes_author"),
        image_url=_image_href(channel.get("image")),
    )

    for entry in parsed.entries:
        feed.episodes.append(
            FeedEpisode(
                title=entry.get("title") or "",
                audio_url=_entry_audio_url(entry),
                duration_seconds=parse_duration(entry.get("itunes_duration")),
                thumbnail_url=_entry_thumbnail(entry),
            )
        )

    return feed


def item_from_episode(
    feed: Feed,
    episode: FeedEpisode,
    original_url: str,
    source_type: SourceType = SourceType.PODCAST,
) -> ResolvedItem:
    """Build the resolved item for a feed episode."""
    return ResolvedItem(
        source_type=source_type,
        title=episode.title or feed.title or original_url,
        publisher=feed.publisher,
        duration_seconds=episode.duration_seconds,
        thumbnail_url=episode.thumbnail_url or feed.image_url,
        audio_url=episode.audio_url,
        original_url=original_url,
    )


class RSSResolver:
    """Resolves feeds, Substack posts and direct audio links."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: float = 10.0):
        self._client = client
        self.timeout = timeout

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client or get_http_client()

    async def fetch_feed(self, url: str) -> Feed:
        """
        Download and parse a feed.

        Raises:
            TransientResolverError: On network failure, non-2xx or bad XML
        """
        try:
            response = await self.client.get(url, timeout=self.timeout, follow_redirects=True)
        except httpx.HTTPError as e:
            raise TransientResolverError(
                f"Feed request failed for {url}: {type(e).__name__}: {e}",
                original_error=e,
            )

        if not response.is_success:
            raise TransientResolverError(f"Feed request for {url} returned HTTP {response.status_code}")

        return parse_feed(response.content, url)

    async def resolve(self, url: str) -> ResolvedItem:
        """
        Resolve a feed URL to its most recent episode, or a direct audio
        link to itself.

        Raises:
            TransientResolverError: Feed unreachable, empty or without audio
        """
        if is_direct_audio_url(url):
            return ResolvedItem(
                source_type=SourceType.OTHER,
                title=title_from_audio_url(url),
                audio_url=url,
                original_url=url,
            )

        substack = is_substack(url)
        feed_url = substack_feed_url(url) if substack else url
        feed = await self.fetch_feed(feed_url)

        if not feed.episodes:
            raise TransientResolverError(f"Feed has no entries: {feed_url}")

        episode = feed.episodes[0]
        if not episode.audio_url:
            raise TransientResolverError(f"Latest entry has no audio enclosure: {feed_url}")

        source_type = SourceType.SUBSTACK if substack else SourceType.PODCAST
        logger.info(f"Resolved {url} from feed {feed_url}: {episode.title}")
        return item_from_episode(feed, episode, url, source_type)
