"""
Tiered resolution dispatcher.

Tries an ordered list of stages until one produces a usable result. The
order is fixed: podcast platforms, YouTube, the generic extractor, RSS and
direct audio, then unsupported.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from audioqueue.streaming.resolvers.base import (
    ResolvedItem,
    ResolverError,
    SourceType,
    StageOutcome,
    StageResult,
)
from audioqueue.streaming.resolvers.classifier import (
    classify_extractor,
    is_podcast_platform,
    is_youtube,
)
from audioqueue.streaming.resolvers.podcast_index import PodcastPlatformResolver
from audioqueue.streaming.resolvers.rss import RSSResolver
from audioqueue.streaming.resolvers.youtube import YouTubeAudioResolver, fetch_embed_metadata
from audioqueue.streaming.resolvers.ytdlp import YtDlpExtractor

logger = logging.getLogger(__name__)


class ResolutionStage(ABC):
    """One strategy in the dispatcher's fallback sequence."""

    name: str = "stage"

    @abstractmethod
    async def try_resolve(self, url: str) -> StageResult:
        """
        Attempt to resolve a URL.

        Returns:
            StageResult tagged with how the attempt ended
        """
        pass


class PodcastPlatformStage(ResolutionStage):
    """Spotify and Apple Podcasts links. A miss here is final."""

    name = "podcast-platform"

    def __init__(self, resolver: PodcastPlatformResolver):
        self.resolver = resolver

    async def try_resolve(self, url: str) -> StageResult:
        if not is_podcast_platform(url):
            return StageResult.not_applicable("not a podcast platform URL")

        item = await self.resolver.resolve_platform(url)
        if item is None:
            return StageResult.unsupported("no matching feed episode")

        item.original_url = url
        return StageResult.success(item)


class YouTubeStage(ResolutionStage):
    """
    YouTube links.

    A podcast upload resolves to the podcast's own audio. Otherwise we
    return embed metadata only and leave audio to the stream proxy, unless
    eager audio resolution is enabled.
    """

    name = "youtube"

    def __init__(
        self,
        podcast_resolver: Optional[PodcastPlatformResolver] = None,
        audio_resolver: Optional[YouTubeAudioResolver] = None,
        eager_audio: bool = False,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 8.0,
    ):
        self.podcast_resolver = podcast_resolver
        self.audio_resolver = audio_resolver
        self.eager_audio = eager_audio
        self.client = client
        self.timeout = timeout

    async def try_resolve(self, url: str) -> StageResult:
        if not is_youtube(url):
            return StageResult.not_applicable("not a YouTube URL")

        if self.podcast_resolver is not None:
            item = await self.podcast_resolver.resolve_youtube_via_podcast_index(url)
            if item is not None:
                return StageResult.success(item)

        if self.eager_audio and self.audio_resolver is not None:
            try:
                return StageResult.success(await self.audio_resolver.resolve(url))
            except ResolverError as e:
                logger.info(f"Eager YouTube audio failed for {url}, falling back to metadata: {e}")

        metadata = await fetch_embed_metadata(url, client=self.client, timeout=self.timeout)
        if metadata is None:
            return StageResult.unsupported("no YouTube embed metadata")

        return StageResult.success(
            ResolvedItem(
                source_type=SourceType.YOUTUBE,
                title=metadata.title,
                publisher=metadata.author_name,
                thumbnail_url=metadata.thumbnail_url,
                original_url=url,
            )
        )


class GenericExtractorStage(ResolutionStage):
    """Anything yt-dlp understands (SoundCloud and friends)."""

    name = "generic-extractor"

    def __init__(self, extractor: YtDlpExtractor):
        self.extractor = extractor

    async def try_resolve(self, url: str) -> StageResult:
        # YouTube and podcast platforms have their own terminal stages
        if is_youtube(url) or is_podcast_platform(url):
            return StageResult.not_applicable("handled by a dedicated stage")

        try:
            info = await self.extractor.extract(url)
        except ResolverError as e:
            return StageResult.from_error(e)

        return StageResult.success(
            ResolvedItem(
                source_type=classify_extractor(url, info.extractor),
                title=info.title,
                publisher=info.publisher,
                duration_seconds=info.duration,
                thumbnail_url=info.thumbnail,
                audio_url=info.url,
                original_url=url,
            )
        )


class RSSStage(ResolutionStage):
    """RSS feeds, Substack posts and direct audio files."""

    name = "rss"

    def __init__(self, resolver: RSSResolver):
        self.resolver = resolver

    async def try_resolve(self, url: str) -> StageResult:
        try:
            return StageResult.success(await self.resolver.resolve(url))
        except ResolverError as e:
            return StageResult.from_error(e)


class Dispatcher:
    """
    Resolves any URL to a ResolvedItem.

    Usage:
        dispatcher = Dispatcher.with_default_stages(...)
        item = await dispatcher.dispatch("https://youtu.be/dQw4w9WgXcQ")
        if item.is_unsupported:
            print("Open externally:", item.original_url)
    """

    def __init__(self, stages: list[ResolutionStage]):
        self.stages = list(stages)

    @classmethod
    def with_default_stages(
        cls,
        podcast_resolver: PodcastPlatformResolver,
        audio_resolver: YouTubeAudioResolver,
        extractor: YtDlpExtractor,
        rss: RSSResolver,
        eager_audio: bool = False,
        client: Optional[httpx.AsyncClient] = None,
        embed_timeout: float = 8.0,
    ) -> "Dispatcher":
        """Build the dispatcher with the standard stage order."""
        return cls([
            PodcastPlatformStage(podcast_resolver),
            YouTubeStage(
                podcast_resolver=podcast_resolver,
                audio_resolver=audio_resolver,
                eager_audio=eager_audio,
                client=client,
                timeout=embed_timeout,
            ),
            GenericExtractorStage(extractor),
            RSSStage(rss),
        ])

    async def _run_stage(self, stage: ResolutionStage, url: str) -> StageResult:
        try:
            return await stage.try_resolve(url)
        except Exception as e:
            logger.warning(f"Stage {stage.name} raised for {url}: {type(e).__name__}: {e}", exc_info=True)
            return StageResult.transient(str(e))

    async def dispatch(self, url: str) -> ResolvedItem:
        """
        Resolve a URL. Never raises; unresolvable URLs come back as an
        unsupported item.
        """
        url = (url or "").strip()

        for stage in self.stages:
            result = await self._run_stage(stage, url)

            if result.outcome == StageOutcome.SUCCESS and result.item is not None:
                logger.info(f"Resolved {url} via {stage.name} ({result.item.source_type.value})")
                return result.item

            if result.outcome == StageOutcome.UNSUPPORTED:
                logger.info(f"Stage {stage.name} gave up on {url}: {result.reason}")
                return ResolvedItem.unsupported(url)

            if result.outcome == StageOutcome.NOT_APPLICABLE:
                logger.debug(f"Stage {stage.name} not applicable to {url}")
            else:
                logger.info(f"Stage {stage.name} failed for {url} ({result.outcome.value}): {result.reason}")

        logger.info(f"No stage could resolve {url}")
        return ResolvedItem.unsupported(url)

    async def dispatch_many(self, urls: list[str]) -> list[ResolvedItem]:
        """Resolve URLs concurrently; a failure only affects its own URL."""
        results = await asyncio.gather(
            *(self.dispatch(url) for url in urls),
            return_exceptions=True,
        )

        items: list[ResolvedItem] = []
        for url, result in zip(urls, results):
            if isinstance(result, BaseException):
                logger.error(f"Batch dispatch failed for {url}: {result}")
                items.append(ResolvedItem.unsupported(url))
            else:
                items.append(result)
        return items
