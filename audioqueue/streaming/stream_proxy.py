"""
Stream proxy for items the client cannot fetch directly.

Looks up (or re-resolves) the upstream audio URL for a queue item and
pipes an FFmpeg remux of it to the client as it is produced.
"""

import logging
from collections.abc import AsyncIterator
from enum import Enum
from typing import Any, Optional, Protocol

from audioqueue.cache.manager import CacheService
from audioqueue.streaming.dispatcher import Dispatcher
from audioqueue.streaming.remux_streamer import RemuxExitError, RemuxProcess, RemuxStreamer
from audioqueue.streaming.resolvers.base import ResolverError, SourceType
from audioqueue.streaming.resolvers.classifier import is_youtube
from audioqueue.streaming.resolvers.youtube import YouTubeAudioResolver

logger = logging.getLogger(__name__)


class StreamOutcome(str, Enum):
    """How a proxied stream ended."""

    COMPLETED = "completed"
    CLIENT_DISCONNECTED = "client_disconnected"
    UPSTREAM_FAILED = "upstream_failed"


class UpstreamResolutionError(Exception):
    """No playable upstream URL could be obtained for an item."""

    def __init__(self, item_id: str, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.item_id = item_id
        self.original_error = original_error


class StreamSink(Protocol):
    """Destination for remuxed bytes."""

    async def send(self, chunk: bytes) -> None:
        ...


class ItemLookup(Protocol):
    """Read access to stored items (original URL, source type, audio URL)."""

    def get_item(self, item_id: str) -> Optional[Any]:
        ...


def is_youtube_source(original_url: str, source_type: Optional[SourceType] = None) -> bool:
    """
    Whether an item plays through the YouTube resolver.

    A stored source type decides on its own; a YouTube link matched to a
    podcast episode plays the episode. The URL shape is only consulted for
    items with no stored type.
    """
    if source_type is not None:
        return source_type == SourceType.YOUTUBE
    return is_youtube(original_url)


# Raised by a sink once the client has gone away (ConnectionError is an OSError)
CLIENT_GONE_ERRORS = (OSError, EOFError)


class StreamProxy:
    """
    Serves upstream audio for queue items through the remuxer.

    Upstream URLs are cached per item id until shortly before they expire;
    a miss or an expired entry triggers re-resolution and overwrites the
    entry.
    """

    def __init__(
        self,
        cache: CacheService,
        dispatcher: Dispatcher,
        youtube_resolver: YouTubeAudioResolver,
        streamer: RemuxStreamer,
        items: Optional[ItemLookup] = None,
    ):
        self.cache = cache
        self.dispatcher = dispatcher
        self.youtube_resolver = youtube_resolver
        self.streamer = streamer
        self.items = items

    def _stored(self, item_id: str) -> tuple[Optional[str], Optional[SourceType], Optional[str]]:
        """Stored original URL, source type and audio URL for an item."""
        if self.items is None:
            return None, None, None
        item = self.items.get_item(item_id)
        if item is None:
            return None, None, None
        source_type = getattr(item, "source_type", None)
        if source_type is not None and not isinstance(source_type, SourceType):
            try:
                source_type = SourceType(source_type)
            except ValueError:
                source_type = None
        return getattr(item, "original_url", None), source_type, getattr(item, "audio_url", None)

    async def resolve_upstream(
        self,
        item_id: str,
        original_url: str,
        source_type: Optional[SourceType] = None,
        stored_audio_url: Optional[str] = None,
    ) -> str:
        """
        Get a playable upstream URL for an item.

        Args:
            item_id: Cache key for the item
            original_url: URL the user submitted
            source_type: Stored source type, if known
            stored_audio_url: Audio URL saved at resolution time

        Returns:
            Upstream audio URL

        Raises:
            UpstreamResolutionError: If no strategy produced a URL
        """
        cached = self.cache.streams.get_valid(item_id)
        if cached:
            logger.debug(f"Using cached upstream URL for {item_id}")
            return cached

        try:
            if is_youtube_source(original_url, source_type):
                upstream = (await self.youtube_resolver.resolve(original_url)).audio_url
            elif stored_audio_url:
                upstream = stored_audio_url
            else:
                upstream = (await self.dispatcher.dispatch(original_url)).audio_url
        except ResolverError as e:
            raise UpstreamResolutionError(
                item_id,
                f"Could not resolve audio for {original_url}: {e}",
                original_error=e,
            ) from e

        if not upstream:
            raise UpstreamResolutionError(item_id, f"No audio stream found for {original_url}")

        entry = self.cache.streams.put(item_id, upstream)
        logger.info(f"Resolved upstream for {item_id} (valid until {entry.expires_at:.0f})")
        return upstream

    async def open(self, item_id: str, original_url: Optional[str] = None) -> RemuxProcess:
        """
        Resolve and start the remux for an item.

        Raises:
            UpstreamResolutionError: No upstream URL
            RemuxSpawnError: FFmpeg could not be started
        """
        stored_url, source_type, stored_audio_url = self._stored(item_id)
        original_url = original_url or stored_url
        if not original_url:
            raise UpstreamResolutionError(item_id, f"No original URL known for item {item_id}")

        upstream = await self.resolve_upstream(
            item_id,
            original_url,
            source_type=source_type,
            stored_audio_url=stored_audio_url,
        )
        return await self.streamer.start(upstream, is_youtube=is_youtube_source(original_url, source_type))

    async def iter_body(self, remux: RemuxProcess, item_id: str) -> AsyncIterator[bytes]:
        """
        Response body for an already opened remux.

        A failure after output has started just ends the body; the status
        line is already on the wire.
        """
        chunks = remux.iter_chunks()
        try:
            async for chunk in chunks:
                yield chunk
        except RemuxExitError as e:
            logger.warning(f"Stream for {item_id} ended early after {remux.bytes_sent} bytes: {e}")
        except OSError as e:
            logger.warning(f"Upstream pipe error for {item_id}: {e}")
        finally:
            await chunks.aclose()
            await remux.close()

    async def stream_proxy(self, item_id: str, original_url: Optional[str], sink: StreamSink) -> StreamOutcome:
        """
        Stream an item to a sink.

        Resolution and spawn errors are raised before anything is sent.
        Cancellation terminates FFmpeg and propagates.

        Returns:
            How the stream ended
        """
        remux = await self.open(item_id, original_url)
        chunks = remux.iter_chunks()
        try:
            while True:
                try:
                    chunk = await chunks.__anext__()
                except StopAsyncIteration:
                    break
                except RemuxExitError as e:
                    logger.warning(f"Upstream failed for {item_id} after {remux.bytes_sent} bytes: {e}")
                    return StreamOutcome.UPSTREAM_FAILED
                except OSError as e:
                    logger.warning(f"Upstream pipe error for {item_id}: {e}")
                    return StreamOutcome.UPSTREAM_FAILED

                try:
                    await sink.send(chunk)
                except CLIENT_GONE_ERRORS as e:
                    logger.info(f"Client disconnected from {item_id}: {type(e).__name__}")
                    return StreamOutcome.CLIENT_DISCONNECTED

            logger.info(f"Stream for {item_id} completed ({remux.bytes_sent} bytes)")
            return StreamOutcome.COMPLETED
        finally:
            await chunks.aclose()
            await remux.close()
