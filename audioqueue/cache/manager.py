"""
Cache service shared by the dispatcher and the stream proxy.
"""

import time
from typing import Any, Optional

from audioqueue.cache.lookup import LookupCache
from audioqueue.cache.stream_cache import Clock, StreamCache
from audioqueue.config import StreamCacheConfig


class CacheService:
    """
    Owns the stream URL cache and the lookup cache.

    One instance is built at startup and handed to every component that
    caches; tests inject a fake clock.
    """

    def __init__(
        self,
        clock: Clock = time.time,
        default_ttl: float = 4 * 3600,
        expiry_margin: float = 300,
    ):
        self.clock = clock
        self.streams = StreamCache(clock, default_ttl=default_ttl, expiry_margin=expiry_margin)
        self.lookups = LookupCache()

    @classmethod
    def from_config(cls, config: Optional[StreamCacheConfig] = None, clock: Clock = time.time) -> "CacheService":
        config = config or StreamCacheConfig()
        return cls(
            clock=clock,
            default_ttl=config.default_ttl_seconds,
            expiry_margin=config.expiry_margin_seconds,
        )

    def stats(self) -> dict[str, Any]:
        return {
            "streams": self.streams.stats(),
            "lookups": {"total_entries": len(self.lookups)},
        }
