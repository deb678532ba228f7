"""
Stream URL cache with expiry.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional
from urllib.parse import parse_qs, urlparse

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass
class StreamCacheEntry:
    """A resolved upstream URL and the unix time it stops being usable."""
    url: str
    expires_at: float

    def is_valid(self, now: float) -> bool:
        return now < self.expires_at


def expire_param(url: str) -> Optional[float]:
    """The `expire=<unix seconds>` query parameter, if the URL has one."""
    values = parse_qs(urlparse(url).query).get("expire")
    if not values:
        return None
    try:
        return float(values[0])
    except ValueError:
        return None


class StreamCache:
    """
    Upstream stream URLs keyed by item id.

    Entries are overwritten on re-resolution and never deleted; an expired
    entry simply stops being returned by get_valid().
    """

    def __init__(self, clock: Clock, default_ttl: float = 4 * 3600, expiry_margin: float = 300):
        self._clock = clock
        self.default_ttl = default_ttl
        self.expiry_margin = expiry_margin
        self._entries: dict[str, StreamCacheEntry] = {}
        self.hits = 0
        self.misses = 0

    def compute_expiry(self, url: str, now: Optional[float] = None) -> float:
        """
        Expiry for a freshly resolved URL.

        Signed CDN URLs carry their own expiry; we stop using them a margin
        before it. Anything else gets the default TTL.
        """
        if now is None:
            now = self._clock()
        expire = expire_param(url)
        if expire is not None:
            return expire - self.expiry_margin
        return now + self.default_ttl

    def put(self, item_id: str, url: str) -> StreamCacheEntry:
        """Store or overwrite the entry for an item."""
        entry = StreamCacheEntry(url=url, expires_at=self.compute_expiry(url))
        self._entries[item_id] = entry
        logger.debug(f"Cached stream URL for {item_id} (expires at {entry.expires_at:.0f})")
        return entry

    def get_valid(self, item_id: str) -> Optional[str]:
        """The cached URL when it has not expired yet, else None."""
        entry = self._entries.get(item_id)
        if entry is not None and entry.is_valid(self._clock()):
            self.hits += 1
            return entry.url
        self.misses += 1
        return None

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        now = self._clock()
        valid = sum(1 for e in self._entries.values() if e.is_valid(now))
        total = self.hits + self.misses
        return {
            "total_entries": len(self._entries),
            "valid_entries": valid,
            "expired_entries": len(self._entries) - valid,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": (self.hits / total * 100) if total > 0 else 0.0,
        }
