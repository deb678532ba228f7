"""
AudioQueue Caching Layer

Process-lifetime caches shared by the resolvers and the stream proxy:
- Resolved upstream stream URLs with expiry
- Provider lookups (feed URLs, searches, page metadata), including misses
"""

from audioqueue.cache.lookup import MISSING, LookupCache
from audioqueue.cache.manager import CacheService
from audioqueue.cache.stream_cache import StreamCache, StreamCacheEntry

__all__ = [
    "MISSING",
    "CacheService",
    "LookupCache",
    "StreamCache",
    "StreamCacheEntry",
]
