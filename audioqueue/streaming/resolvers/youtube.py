"""
YouTube audio resolution.

Races public Piped and Invidious mirrors for a direct audio stream, falls
back to yt-dlp, and fetches lightweight oEmbed metadata for play-time
resolution.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import urljoin

import httpx

from audioqueue.config import MirrorsConfig
from audioqueue.streaming.resolvers.base import (
    ExhaustedError,
    NotApplicableError,
    ResolvedItem,
    ResolverError,
    SourceType,
    TransientResolverError,
)
from audioqueue.streaming.resolvers.classifier import extract_youtube_id
from audioqueue.streaming.resolvers.ytdlp import YtDlpExtractor
from audioqueue.utils.http import get_http_client

logger = logging.getLogger(__name__)

OEMBED_URL = "https://www.youtube.com/oembed"

INVIDIOUS_FIELDS = "title,author,lengthSeconds,videoThumbnails,adaptiveFormats"


@dataclass
class EmbedMetadata:
    """oEmbed fields used for metadata-only YouTube results."""

    title: str
    author_name: Optional[str] = None
    thumbnail_url: Optional[str] = None


@dataclass
class AudioStream:
    """One audio stream descriptor offered by a mirror."""

    url: str
    bitrate: int
    mime_type: str

    @property
    def is_mp4(self) -> bool:
        mime = self.mime_type.lower()
        return "audio/mp4" in mime or "mp4a" in mime


def _to_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def parse_audio_streams(descriptors: Any) -> list[AudioStream]:
    """Keep descriptors that carry a URL, a bitrate and a mime type."""
    streams: list[AudioStream] = []
    if not isinstance(descriptors, list):
        return streams
    for descriptor in descriptors:
        if not isinstance(descriptor, dict):
            continue
        url = descriptor.get("url")
        mime = descriptor.get("mimeType") or descriptor.get("type")
        if not url or not mime or descriptor.get("bitrate") is None:
            continue
        streams.append(AudioStream(url=url, bitrate=_to_int(descriptor["bitrate"]), mime_type=mime))
    return streams


def select_audio_stream(streams: list[AudioStream]) -> Optional[AudioStream]:
    """
    Pick the stream to play.

    MP4/AAC streams are preferred over everything else; within the pool the
    highest bitrate wins and ties keep the first one listed.
    """
    if not streams:
        return None
    pool = [s for s in streams if s.is_mp4] or streams
    return max(pool, key=lambda s: s.bitrate)


def select_invidious_thumbnail(thumbnails: Any, base_url: str = "") -> Optional[str]:
    """Prefer maxresdefault, then the widest entry, then the first."""
    if not isinstance(thumbnails, list):
        return None
    entries = [t for t in thumbnails if isinstance(t, dict) and t.get("url")]
    if not entries:
        return None

    chosen = next((t for t in entries if t.get("quality") == "maxresdefault"), None)
    if chosen is None:
        chosen = max(entries, key=lambda t: _to_int(t.get("width")))

    url = chosen["url"]
    # Some instances return paths relative to themselves
    if url.startswith("/") and base_url:
        url = urljoin(base_url, url)
    return url


async def fetch_embed_metadata(
    url: str,
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = 8.0,
) -> Optional[EmbedMetadata]:
    """
    Fetch YouTube oEmbed metadata.

    Returns None on any failure.
    """
    http = client or get_http_client()
    try:
        response = await http.get(
            OEMBED_URL,
            params={"url": url, "format": "json"},
            timeout=timeout,
        )
        response.raise_for_status()
        data = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.info(f"oEmbed lookup failed for {url}: {e}")
        return None

    if not isinstance(data, dict) or not data.get("title"):
        logger.info(f"oEmbed returned no title for {url}")
        return None

    return EmbedMetadata(
        title=data["title"],
        author_name=data.get("author_name"),
        thumbnail_url=data.get("thumbnail_url"),
    )


MirrorFetch = Callable[[str, str, str], Awaitable[ResolvedItem]]


class MirrorRacer:
    """
    Races YouTube front-end mirrors for an audio stream.

    Tier A is every configured Piped instance, Tier B every Invidious
    instance. All instances of a tier run concurrently and the first
    well-formed answer wins; Tier B only starts once all of Tier A failed.
    """

    def __init__(
        self,
        config: Optional[MirrorsConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config or MirrorsConfig()
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client or get_http_client()

    async def _get_json(self, url: str) -> dict[str, Any]:
        try:
            response = await self.client.get(
                url,
                headers={"User-Agent": self.config.user_agent},
                timeout=self.config.timeout,
            )
        except httpx.HTTPError as e:
            raise TransientResolverError(
                f"request failed: {type(e).__name__}: {e}",
                source_type=SourceType.YOUTUBE,
                original_error=e,
            )

        if not response.is_success:
            raise TransientResolverError(
                f"HTTP {response.status_code}",
                source_type=SourceType.YOUTUBE,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise TransientResolverError(
                "response is not JSON",
                source_type=SourceType.YOUTUBE,
                original_error=e,
            )

        if not isinstance(data, dict):
            raise TransientResolverError("unexpected JSON payload", source_type=SourceType.YOUTUBE)
        return data

    async def fetch_piped(self, base_url: str, video_id: str, original_url: str) -> ResolvedItem:
        """Resolve through one Piped instance."""
        data = await self._get_json(f"{base_url.rstrip('/')}/streams/{video_id}")

        stream = select_audio_stream(parse_audio_streams(data.get("audioStreams")))
        if stream is None:
            raise TransientResolverError("no audio streams", source_type=SourceType.YOUTUBE)

        duration = data.get("duration")
        return ResolvedItem(
            source_type=SourceType.YOUTUBE,
            title=data.get("title") or original_url,
            publisher=data.get("uploader"),
            duration_seconds=duration if isinstance(duration, (int, float)) and duration > 0 else None,
            thumbnail_url=data.get("thumbnailUrl"),
            audio_url=stream.url,
            original_url=original_url,
        )

    async def fetch_invidious(self, base_url: str, video_id: str, original_url: str) -> ResolvedItem:
        """Resolve through one Invidious instance."""
        data = await self._get_json(
            f"{base_url.rstrip('/')}/api/v1/videos/{video_id}?fields={INVIDIOUS_FIELDS}"
        )

        formats = data.get("adaptiveFormats")
        audio_formats = [
            f for f in (formats if isinstance(formats, list) else [])
            if isinstance(f, dict) and str(f.get("type", "")).startswith("audio/")
        ]
        stream = select_audio_stream(parse_audio_streams(audio_formats))
        if stream is None:
            raise TransientResolverError("no audio formats", source_type=SourceType.YOUTUBE)

        length = data.get("lengthSeconds")
        return ResolvedItem(
            source_type=SourceType.YOUTUBE,
            title=data.get("title") or original_url,
            publisher=data.get("author"),
            duration_seconds=length if isinstance(length, (int, float)) and length > 0 else None,
            thumbnail_url=select_invidious_thumbnail(data.get("videoThumbnails"), base_url),
            audio_url=stream.url,
            original_url=original_url,
        )

    async def _race(
        self,
        tier: str,
        instances: list[str],
        fetch: MirrorFetch,
        video_id: str,
        original_url: str,
        errors: list[Exception],
    ) -> Optional[ResolvedItem]:
        """
        Run one tier. Returns the first success, or None when every instance
        failed (failures are appended to errors).
        """
        if not instances:
            return None

        tasks = {
            asyncio.create_task(fetch(base, video_id, original_url)): base
            for base in instances
        }
        pending = set(tasks)
        try:
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    base = tasks[task]
                    error = task.exception()
                    if error is None:
                        logger.info(f"{tier} instance {base} won the race for {video_id}")
                        return task.result()
                    logger.warning(f"{tier} instance {base} failed for {video_id}: {error}")
                    errors.append(error)
        finally:
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        return None

    async def resolve_via_mirrors(self, url: str) -> ResolvedItem:
        """
        Resolve a YouTube URL to an audio stream through the mirrors.

        Raises:
            NotApplicableError: URL carries no recognisable video id
            ExhaustedError: Every Piped and Invidious instance failed
        """
        video_id = extract_youtube_id(url)
        if video_id is None:
            raise NotApplicableError(f"Not a YouTube video URL: {url}", source_type=SourceType.YOUTUBE)

        errors: list[Exception] = []

        item = await self._race("Piped", self.config.piped_instances, self.fetch_piped, video_id, url, errors)
        if item is not None:
            return item

        item = await self._race(
            "Invidious", self.config.invidious_instances, self.fetch_invidious, video_id, url, errors
        )
        if item is not None:
            return item

        raise ExhaustedError(
            f"All mirror instances failed for video {video_id}",
            errors=errors,
            source_type=SourceType.YOUTUBE,
        )


class YouTubeAudioResolver:
    """
    Play-time YouTube audio resolution.

    With cookies configured, yt-dlp goes first since cookies get past bot
    checks; otherwise the mirrors are cheaper and go first.
    """

    def __init__(self, racer: MirrorRacer, extractor: YtDlpExtractor):
        self.racer = racer
        self.extractor = extractor

    @property
    def prefers_extractor(self) -> bool:
        return self.extractor.config.has_cookies

    async def _via_extractor(self, url: str) -> ResolvedItem:
        info = await self.extractor.extract(url)
        return ResolvedItem(
            source_type=SourceType.YOUTUBE,
            title=info.title,
            publisher=info.publisher,
            duration_seconds=info.duration,
            thumbnail_url=info.thumbnail,
            audio_url=info.url,
            original_url=url,
        )

    async def resolve(self, url: str) -> ResolvedItem:
        """
        Resolve a YouTube URL to a playable audio stream.

        Raises:
            NotApplicableError: URL carries no recognisable video id
            ExhaustedError: Both strategies failed
        """
        if extract_youtube_id(url) is None:
            raise NotApplicableError(f"Not a YouTube video URL: {url}", source_type=SourceType.YOUTUBE)

        strategies = [
            ("mirrors", self.racer.resolve_via_mirrors),
            ("yt-dlp", self._via_extractor),
        ]
        if self.prefers_extractor:
            strategies.reverse()

        errors: list[Exception] = []
        for name, strategy in strategies:
            try:
                return await strategy(url)
            except ResolverError as e:
                logger.warning(f"YouTube audio via {name} failed for {url}: {e}")
                errors.append(e)

        raise ExhaustedError(
            f"No YouTube audio source available for {url}",
            errors=errors,
            source_type=SourceType.YOUTUBE,
        )
