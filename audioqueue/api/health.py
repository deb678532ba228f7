"""Health check API endpoint for AudioQueue"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request

from audioqueue import __version__
from audioqueue.api.dependencies import get_cache
from audioqueue.cache.manager import CacheService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
async def health_check(request: Request, cache: CacheService = Depends(get_cache)) -> dict[str, Any]:
    """
    Detailed health check.

    Reports whether the external binaries are installed and the state of
    the stream cache.
    """
    state = request.app.state
    ffmpeg_ok = state.remux_streamer.is_available()
    ytdlp_ok = state.extractor.is_available()
    podcast_index_ok = state.config.podcast_index.is_configured

    if not ffmpeg_ok:
        logger.warning("Health check: FFmpeg not available")

    return {
        "status": "healthy" if ffmpeg_ok and ytdlp_ok else "degraded",
        "version": __version__,
        "checks": {
            "ffmpeg": {"status": "ok" if ffmpeg_ok else "error", "path": state.config.ffmpeg.path},
            "yt_dlp": {"status": "ok" if ytdlp_ok else "error", "path": state.config.ytdlp.path},
            "podcast_index": {"status": "ok" if podcast_index_ok else "not_configured"},
        },
        "cache": cache.stats(),
    }
