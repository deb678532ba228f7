"""
Podcast platform resolution through Podcast Index.

Spotify and Apple Podcasts links do not expose audio, so we find the
show's public RSS feed and pick the matching episode from it. The same
machinery cross-references YouTube uploads of podcast episodes.
"""

import hashlib
import logging
import re
import time
from dataclasses import dataclass
from typing import Callable, Optional

import httpx
from bs4 import BeautifulSoup

from audioqueue.cache.lookup import MISSING, LookupCache
from audioqueue.config import PodcastIndexConfig
from audioqueue.streaming.resolvers.base import (
    ResolvedItem,
    ResolverError,
    SourceType,
)
from audioqueue.streaming.resolvers.classifier import (
    extract_apple_id,
    is_apple_podcasts,
    is_spotify,
    is_spotify_episode,
)
from audioqueue.streaming.resolvers.rss import (
    FeedEpisode,
    RSSResolver,
    item_from_episode,
)
from audioqueue.streaming.resolvers.youtube import fetch_embed_metadata
from audioqueue.utils.http import BROWSER_USER_AGENT, get_http_client

logger = logging.getLogger(__name__)

MATCH_THRESHOLD = 0.6

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")
_SPOTIFY_SHOW_IN_DESCRIPTION = re.compile(r"episode from (.+?) on Spotify", re.IGNORECASE)


def normalize_title(title: str) -> str:
    """Lowercase, punctuation to spaces, whitespace collapsed."""
    text = _PUNCTUATION.sub(" ", (title or "").lower())
    return _WHITESPACE.sub(" ", text).strip()


def word_overlap_score(a: str, b: str) -> float:
    """
    Share of significant words two titles have in common.

    Words of three characters or fewer are ignored. Comparison is exact,
    so callers normalize case first.
    """
    words_a = {w for w in (a or "").split() if len(w) > 3}
    words_b = {w for w in (b or "").split() if len(w) > 3}
    if not words_a or not words_b:
        return 0.0
    return len(words_a & words_b) / max(len(words_a), len(words_b))


def find_matching_episode(episodes: list[FeedEpisode], title: str) -> Optional[FeedEpisode]:
    """
    Find the episode whose title matches, loosening the test each pass:
    exact, then prefix, then word overlap of at least 0.6.
    """
    target = normalize_title(title)
    if not target or not episodes:
        return None

    normalized = [(normalize_title(e.title), e) for e in episodes]

    for candidate, episode in normalized:
        if candidate == target:
            return episode

    for candidate, episode in normalized:
        if candidate and (candidate.startswith(target) or target.startswith(candidate)):
            return episode

    best: Optional[FeedEpisode] = None
    best_score = 0.0
    for candidate, episode in normalized:
        score = word_overlap_score(candidate, target)
        if score > best_score:
            best, best_score = episode, score

    if best is not None and best_score >= MATCH_THRESHOLD:
        return best
    return None


@dataclass
class SpotifyPage:
    """What the Spotify page tells us about a show or an episode."""
    show_name: Optional[str]
    episode_title: Optional[str] = None


def parse_spotify_page(html: str, url: str) -> SpotifyPage:
    """Extract show name and episode title from Open Graph tags."""
    soup = BeautifulSoup(html, "html.parser")

    def meta(prop: str) -> Optional[str]:
        tag = soup.find("meta", attrs={"property": prop})
        content = tag.get("content") if tag else None
        return content.strip() if content and content.strip() else None

    og_title = meta("og:title")
    page_title = soup.title.get_text(strip=True) if soup.title else None

    if not is_spotify_episode(url):
        return SpotifyPage(show_name=og_title or page_title)

    show_name = None
    description = meta("og:description")
    if description:
        match = _SPOTIFY_SHOW_IN_DESCRIPTION.search(description)
        if match:
            show_name = match.group(1).strip()
        elif " · " in description:
            show_name = description.split(" · ", 1)[0].strip() or None

    episode_title = og_title
    if page_title:
        # "Episode title - Show name | Podcast on Spotify"
        head = page_title.split(" | ", 1)[0]
        if " - " in head:
            title_part, show_part = head.rsplit(" - ", 1)
            if show_name is None:
                show_name = show_part.strip() or None
            if episode_title is None:
                episode_title = title_part.strip() or None

    return SpotifyPage(show_name=show_name, episode_title=episode_title)


class PodcastIndexClient:
    """Client for the Podcast Index search API."""

    def __init__(
        self,
        config: Optional[PodcastIndexConfig] = None,
        cache: Optional[LookupCache] = None,
        client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or PodcastIndexConfig()
        self.cache = cache if cache is not None else LookupCache()
        self._client = client
        self._clock = clock

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client or get_http_client()

    def auth_headers(self) -> dict[str, str]:
        """Keyed-digest auth headers, stamped with the current unix time."""
        api_key = self.config.api_key.strip()
        api_secret = self.config.api_secret.strip()
        auth_date = str(int(self._clock()))
        digest = hashlib.sha1((api_key + api_secret + auth_date).encode()).hexdigest()
        return {
            "X-Auth-Key": api_key,
            "X-Auth-Date": auth_date,
            "Authorization": digest,
            "User-Agent": self.config.user_agent,
        }

    async def search(self, term: str) -> list[str]:
        """
        Search feeds by term. Returns feed URLs, best match first; an empty
        list when nothing matched or the API is unavailable.
        """
        if not self.config.is_configured:
            missing = [
                name
                for name, value in (
                    ("PODCAST_INDEX_API_KEY", self.config.api_key),
                    ("PODCAST_INDEX_API_SECRET", self.config.api_secret),
                )
                if not value.strip()
            ]
            logger.warning(f"Podcast Index API not configured (missing or empty): {', '.join(missing)}")
            return []

        cache_key = f"search:{term}"
        cached = self.cache.get(cache_key)
        if cached is not MISSING:
            return cached

        try:
            response = await self.client.get(
                f"{self.config.base_url}/search/byterm",
                params={"q": term, "max": str(self.config.search_max)},
                headers=self.auth_headers(),
                timeout=self.config.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Podcast Index search failed for {term!r}: {e}")
            return []

        feeds = data.get("feeds") if isinstance(data, dict) else None
        urls = [f["url"] for f in feeds or [] if isinstance(f, dict) and f.get("url")]
        self.cache.set(cache_key, urls)
        logger.debug(f"Podcast Index search {term!r}: {len(urls)} feeds")
        return urls


class PodcastPlatformResolver:
    """
    Resolves Spotify, Apple Podcasts and podcast-on-YouTube links to the
    episode audio in the show's RSS feed.

    Provider failures are logged and reported as None.
    """

    def __init__(
        self,
        index: PodcastIndexClient,
        rss: RSSResolver,
        cache: Optional[LookupCache] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.index = index
        self.rss = rss
        self.cache = cache if cache is not None else index.cache
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client or get_http_client()

    @property
    def timeout(self) -> float:
        return self.index.config.timeout

    async def resolve_platform(self, url: str) -> Optional[ResolvedItem]:
        """Resolve a Spotify or Apple Podcasts URL, or return None."""
        if is_apple_podcasts(url):
            return await self.resolve_apple(url)
        if is_spotify(url):
            return await self.resolve_spotify(url)
        return None

    async def apple_feed_url(self, apple_id: str) -> Optional[str]:
        """iTunes lookup of the feed URL for a catalog id."""
        cache_key = f"apple:{apple_id}"
        cached = self.cache.get(cache_key)
        if cached is not MISSING:
            return cached

        try:
            response = await self.client.get(
                self.index.config.itunes_lookup_url,
                params={"id": apple_id, "entity": "podcast"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"iTunes lookup failed for id {apple_id}: {e}")
            return None

        results = data.get("results") if isinstance(data, dict) else None
        feed_url = None
        if results and isinstance(results[0], dict):
            feed_url = results[0].get("feedUrl") or None

        self.cache.set(cache_key, feed_url)
        return feed_url

    async def resolve_apple(self, url: str) -> Optional[ResolvedItem]:
        """Apple Podcasts link to the show's most recent episode."""
        apple_id = extract_apple_id(url)
        if apple_id is None:
            logger.info(f"No Apple Podcasts id in {url}")
            return None

        feed_url = await self.apple_feed_url(apple_id)
        if not feed_url:
            logger.info(f"No feed URL for Apple Podcasts id {apple_id}")
            return None

        try:
            item = await self.rss.resolve(feed_url)
        except ResolverError as e:
            logger.warning(f"Feed {feed_url} for Apple Podcasts id {apple_id} failed: {e}")
            return None

        item.original_url = url
        return item

    async def fetch_spotify_page(self, url: str) -> Optional[SpotifyPage]:
        """Scrape Open Graph metadata from a Spotify page (cached, misses included)."""
        cache_key = f"spotify:{url}"
        cached = self.cache.get(cache_key)
        if cached is not MISSING:
            return cached

        try:
            response = await self.client.get(
                url,
                headers={"User-Agent": BROWSER_USER_AGENT},
                timeout=self.timeout,
                follow_redirects=True,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Spotify page fetch failed for {url}: {e}")
            return None

        page = parse_spotify_page(response.text, url)
        if not page.show_name:
            page = None
        self.cache.set(cache_key, page)
        return page

    async def _match_in_feeds(
        self,
        feed_urls: list[str],
        episode_title: Optional[str],
        original_url: str,
    ) -> Optional[ResolvedItem]:
        """
        Walk candidate feeds. With an episode title, return the first
        matching episode that has audio; without one, the newest episode
        of the first usable feed.
        """
        for feed_url in feed_urls:
            try:
                feed = await self.rss.fetch_feed(feed_url)
            except ResolverError as e:
                logger.info(f"Candidate feed {feed_url} skipped: {e}")
                continue

            if episode_title is None:
                episode = feed.episodes[0] if feed.episodes else None
            else:
                episode = find_matching_episode(feed.episodes, episode_title)

            if episode is None or not episode.audio_url:
                continue

            logger.info(f"Matched {original_url} to {episode.title!r} in {feed_url}")
            return item_from_episode(feed, episode, original_url, SourceType.PODCAST)

        return None

    async def resolve_spotify(self, url: str) -> Optional[ResolvedItem]:
        """
        Spotify show link to the newest episode, or episode link to that
        specific episode. None when no feed has it.
        """
        page = await self.fetch_spotify_page(url)
        if page is None:
            return None
        if is_spotify_episode(url) and not page.episode_title:
            # Without a title the newest episode would stand in for this one
            logger.info(f"No episode title on Spotify page {url}")
            return None

        feed_urls = await self.index.search(page.show_name)
        if not feed_urls:
            logger.info(f"No Podcast Index feeds for show {page.show_name!r}")
            return None

        item = await self._match_in_feeds(feed_urls, page.episode_title, url)
        if item is None:
            logger.info(f"No episode matching {page.episode_title!r} in feeds for {page.show_name!r}")
        return item

    async def resolve_youtube_via_podcast_index(self, url: str) -> Optional[ResolvedItem]:
        """Find the podcast episode a YouTube video is an upload of."""
        metadata = await fetch_embed_metadata(url, client=self.client, timeout=self.timeout)
        if metadata is None or not metadata.author_name:
            return None

        feed_urls = await self.index.search(metadata.author_name)
        if not feed_urls:
            return None

        return await self._match_in_feeds(feed_urls, metadata.title, url)
