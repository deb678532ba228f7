"""Request dependencies resolving the services built in the app lifespan."""

from fastapi import Request

from audioqueue.cache.manager import CacheService
from audioqueue.config import AudioQueueConfig
from audioqueue.store import InMemoryItemStore
from audioqueue.streaming.dispatcher import Dispatcher
from audioqueue.streaming.stream_proxy import StreamProxy


def get_app_config(request: Request) -> AudioQueueConfig:
    return request.app.state.config


def get_dispatcher(request: Request) -> Dispatcher:
    return request.app.state.dispatcher


def get_store(request: Request) -> InMemoryItemStore:
    return request.app.state.item_store


def get_stream_proxy(request: Request) -> StreamProxy:
    return request.app.state.stream_proxy


def get_cache(request: Request) -> CacheService:
    return request.app.state.cache
