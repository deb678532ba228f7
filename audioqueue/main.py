"""
AudioQueue Main Application

FastAPI application entry point for URL resolution and stream proxying.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from audioqueue import __version__
from audioqueue.cache.manager import CacheService
from audioqueue.config import AudioQueueConfig, load_config
from audioqueue.store import InMemoryItemStore
from audioqueue.streaming.dispatcher import Dispatcher
from audioqueue.streaming.remux_streamer import RemuxStreamer
from audioqueue.streaming.resolvers.podcast_index import PodcastIndexClient, PodcastPlatformResolver
from audioqueue.streaming.resolvers.rss import RSSResolver
from audioqueue.streaming.resolvers.youtube import MirrorRacer, YouTubeAudioResolver
from audioqueue.streaming.resolvers.ytdlp import YtDlpExtractor
from audioqueue.streaming.stream_proxy import StreamProxy
from audioqueue.utils.http import close_http_client, get_http_client

# Logger
logger = logging.getLogger(__name__)


def build_services(app: FastAPI, config: AudioQueueConfig) -> None:
    """Construct the shared services and attach them to app.state."""
    client = get_http_client()
    cache = CacheService.from_config(config.stream_cache)

    extractor = YtDlpExtractor(config.ytdlp)
    rss = RSSResolver(client=client, timeout=config.resolver.rss_timeout)
    index = PodcastIndexClient(config.podcast_index, cache=cache.lookups, client=client)
    podcast_resolver = PodcastPlatformResolver(index, rss, cache=cache.lookups, client=client)
    racer = MirrorRacer(config.mirrors, client=client)
    youtube_resolver = YouTubeAudioResolver(racer, extractor)

    dispatcher = Dispatcher.with_default_stages(
        podcast_resolver=podcast_resolver,
        audio_resolver=youtube_resolver,
        extractor=extractor,
        rss=rss,
        eager_audio=config.resolver.youtube_eager_audio,
        client=client,
        embed_timeout=config.podcast_index.timeout,
    )

    item_store = InMemoryItemStore()
    remux_streamer = RemuxStreamer(config.ffmpeg)

    app.state.config = config
    app.state.http_client = client
    app.state.cache = cache
    app.state.extractor = extractor
    app.state.dispatcher = dispatcher
    app.state.item_store = item_store
    app.state.remux_streamer = remux_streamer
    app.state.stream_proxy = StreamProxy(
        cache=cache,
        dispatcher=dispatcher,
        youtube_resolver=youtube_resolver,
        streamer=remux_streamer,
        items=item_store,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Handles startup and shutdown tasks:
    - Load configuration
    - Build resolvers, caches and the stream proxy
    - Close the shared HTTP client
    """
    # Startup
    logger.info(f"Starting AudioQueue v{__version__}")

    config = load_config()
    logger.info(f"Configuration loaded, server port: {config.server.port}")

    build_services(app, config)
    if not config.podcast_index.is_configured:
        logger.warning("Podcast Index credentials not set; podcast platform links will not resolve")
    logger.info("Resolvers and stream proxy initialized")

    yield

    # Shutdown
    logger.info("Shutting down AudioQueue...")
    try:
        await close_http_client()
        logger.info("HTTP client closed")
    except Exception as e:
        logger.warning(f"Error closing HTTP client: {e}")

    logger.info("AudioQueue shutdown complete")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    app = FastAPI(
        title="AudioQueue",
        description="Resolves links to playable audio and proxies streams",
        version=__version__,
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    # Register API routers
    from audioqueue.api import api_router
    app.include_router(api_router)

    # Liveness probe
    @app.get("/health")
    async def health() -> dict:
        """Liveness endpoint."""
        return {"ok": True}

    @app.get("/version")
    async def version_info() -> dict:
        """Version information endpoint."""
        return {
            "version": __version__,
            "app": "AudioQueue",
        }

    return app


app = create_app()


def main() -> None:
    """
    Run the AudioQueue server.

    Called when running `python -m audioqueue` or via the CLI.
    """
    import uvicorn
    from audioqueue.utils.logging_setup import parse_size, setup_logging

    config = load_config()

    setup_logging(
        log_level=config.logging.level,
        log_file_name=config.logging.file,
        log_to_console=True,
        log_to_file=True,
        max_bytes=parse_size(config.logging.max_size),
        backup_count=config.logging.backup_count,
        log_format=config.logging.format,
    )

    logger.info(f"Starting AudioQueue on {config.server.host}:{config.server.port}")

    uvicorn.run(
        "audioqueue.main:app",
        host=config.server.host,
        port=config.server.port,
        reload=config.server.debug,
        log_level=config.server.log_level.lower(),
    )


if __name__ == "__main__":
    main()
