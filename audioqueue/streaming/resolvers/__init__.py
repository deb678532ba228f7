"""
URL resolvers for the different audio sources.

Each resolver turns one family of URLs into a ResolvedItem; the dispatcher
tries them in a fixed order.
"""

from audioqueue.streaming.resolvers.base import (
    ExhaustedError,
    NotApplicableError,
    ResolvedItem,
    ResolverError,
    SourceType,
    StageOutcome,
    StageResult,
    TransientResolverError,
)
from audioqueue.streaming.resolvers.podcast_index import (
    PodcastIndexClient,
    PodcastPlatformResolver,
)
from audioqueue.streaming.resolvers.rss import RSSResolver
from audioqueue.streaming.resolvers.youtube import MirrorRacer, YouTubeAudioResolver
from audioqueue.streaming.resolvers.ytdlp import ExtractorInfo, YtDlpExtractor

__all__ = [
    # Base
    "ExhaustedError",
    "NotApplicableError",
    "ResolvedItem",
    "ResolverError",
    "SourceType",
    "StageOutcome",
    "StageResult",
    "TransientResolverError",
    # Resolvers
    "ExtractorInfo",
    "MirrorRacer",
    "PodcastIndexClient",
    "PodcastPlatformResolver",
    "RSSResolver",
    "YouTubeAudioResolver",
    "YtDlpExtractor",
]
