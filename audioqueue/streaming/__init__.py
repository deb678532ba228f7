"""
AudioQueue Streaming Module

Resolves submitted URLs to audio and proxies streams to the client.

Components:
- Dispatcher: Ordered resolution stages, first usable result wins
- MirrorRacer: Piped/Invidious race for YouTube audio
- RemuxStreamer: FFmpeg remux to fragmented MP4
- StreamProxy: Cached upstream lookup and incremental delivery
"""

from audioqueue.streaming.dispatcher import (
    Dispatcher,
    GenericExtractorStage,
    PodcastPlatformStage,
    ResolutionStage,
    RSSStage,
    YouTubeStage,
)
from audioqueue.streaming.remux_streamer import (
    RemuxError,
    RemuxExitError,
    RemuxProcess,
    RemuxSpawnError,
    RemuxStreamer,
)
from audioqueue.streaming.stream_proxy import (
    StreamOutcome,
    StreamProxy,
    UpstreamResolutionError,
)

__all__ = [
    # Dispatcher
    "Dispatcher",
    "GenericExtractorStage",
    "PodcastPlatformStage",
    "ResolutionStage",
    "RSSStage",
    "YouTubeStage",
    # Remux
    "RemuxError",
    "RemuxExitError",
    "RemuxProcess",
    "RemuxSpawnError",
    "RemuxStreamer",
    # Proxy
    "StreamOutcome",
    "StreamProxy",
    "UpstreamResolutionError",
]
