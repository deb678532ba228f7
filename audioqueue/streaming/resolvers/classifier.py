"""
URL classification helpers.

Pure functions deciding which resolution strategy a URL belongs to.
"""

import re
from typing import Optional
from urllib.parse import urlparse

from audioqueue.streaming.resolvers.base import SourceType

_YOUTU_BE = re.compile(r"youtu\.be/([A-Za-z0-9_-]{11})")
_YOUTUBE_LONG = re.compile(
    r"youtube\.com/(?:watch\?(?:.*&)?v=|embed/|shorts/|v/)([A-Za-z0-9_-]{11})"
)
_SPOTIFY = re.compile(r"open\.spotify\.com/(?:show|episode)/", re.IGNORECASE)
_APPLE_ID = re.compile(r"id(\d+)")


def extract_youtube_id(url: str) -> Optional[str]:
    """
    Extract the 11-character video id from any YouTube URL shape.

    Supports watch (v at any query position), youtu.be short links,
    embed/, shorts/ and v/ paths. Returns None for everything else.
    """
    if not url:
        return None
    match = _YOUTU_BE.search(url) or _YOUTUBE_LONG.search(url)
    if match:
        return match.group(1)
    return None


def is_youtube(url: str) -> bool:
    return extract_youtube_id(url) is not None


def is_spotify(url: str) -> bool:
    """Spotify show or episode page."""
    return bool(_SPOTIFY.search(url or ""))


def is_spotify_episode(url: str) -> bool:
    return is_spotify(url) and "/episode/" in url.lower()


def is_apple_podcasts(url: str) -> bool:
    return "podcasts.apple.com" in (url or "").lower()


def extract_apple_id(url: str) -> Optional[str]:
    """Numeric catalog id from an Apple Podcasts URL."""
    match = _APPLE_ID.search(url or "")
    return match.group(1) if match else None


def is_podcast_platform(url: str) -> bool:
    return is_spotify(url) or is_apple_podcasts(url)


def is_substack(url: str) -> bool:
    return "substack.com" in (url or "").lower()


def is_googlevideo(url: Optional[str]) -> bool:
    """YouTube CDN URL that the client cannot fetch directly."""
    if not url:
        return False
    host = urlparse(url).hostname or ""
    return host == "googlevideo.com" or host.endswith(".googlevideo.com")


def classify_extractor(url: str, extractor: Optional[str]) -> SourceType:
    """
    Map a generic extractor result onto a source type.

    The label check is case-insensitive; "substack" is accepted in either
    the URL or the label.
    """
    label = (extractor or "").lower()
    if "soundcloud" in label:
        return SourceType.SOUNDCLOUD
    if "substack" in label or "substack" in (url or "").lower():
        return SourceType.SUBSTACK
    return SourceType.OTHER
