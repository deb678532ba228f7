"""
AudioQueue - URL to audio stream resolution service

Turns arbitrary links into playable audio for the AudioQueue mobile client:
- Podcast platform links (Spotify, Apple Podcasts) via Podcast Index and RSS
- YouTube links via podcast cross-reference, mirror front-ends and yt-dlp
- SoundCloud and hundreds of other sites via yt-dlp
- RSS feeds, Substack posts and direct audio files
- Stream proxy that remuxes upstream audio into fragmented MP4
"""

__version__ = "1.0.0"
__author__ = "AudioQueue Contributors"
__license__ = "MIT"

from audioqueue.config import get_config, load_config

__all__ = [
    "__version__",
    "get_config",
    "load_config",
]
