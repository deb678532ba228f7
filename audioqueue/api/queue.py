"""Queue API endpoints"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Response
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from audioqueue.api.dependencies import (
    get_app_config,
    get_dispatcher,
    get_store,
    get_stream_proxy,
)
from audioqueue.config import AudioQueueConfig
from audioqueue.store import InMemoryItemStore, QueueItem, resolve_in_background
from audioqueue.streaming.dispatcher import Dispatcher
from audioqueue.streaming.remux_streamer import RemuxSpawnError
from audioqueue.streaming.resolvers.classifier import is_googlevideo
from audioqueue.streaming.stream_proxy import StreamProxy, UpstreamResolutionError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/queue", tags=["Queue"])


class QueueCreate(BaseModel):
    url: Optional[str] = None


class QueueUpdate(BaseModel):
    isListened: Optional[bool] = None


class QueuePosition(BaseModel):
    id: str
    position: int


class QueueReorder(BaseModel):
    order: Optional[list[QueuePosition]] = None


def stream_url_for(item_id: str, base_url: str) -> str:
    return f"{base_url.rstrip('/')}/api/queue/{item_id}/stream"


def serialize_item(item: QueueItem, base_url: str) -> dict[str, Any]:
    """Item JSON with IP-locked YouTube CDN URLs swapped for our proxy."""
    if is_googlevideo(item.audio_url):
        return item.to_dict(audio_url=stream_url_for(item.id, base_url))
    return item.to_dict()


@router.get("")
async def list_queue(
    store: InMemoryItemStore = Depends(get_store),
    config: AudioQueueConfig = Depends(get_app_config),
) -> list[dict[str, Any]]:
    """List queue items ordered by position."""
    return [serialize_item(item, config.server.base_url) for item in store.list_items()]


@router.post("", status_code=201)
async def add_to_queue(
    request: QueueCreate,
    background_tasks: BackgroundTasks,
    store: InMemoryItemStore = Depends(get_store),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    """Queue a URL; resolution runs in the background."""
    if not request.url or not request.url.strip():
        raise HTTPException(status_code=400, detail="url required")

    url = request.url.strip()
    item = store.create(url)
    background_tasks.add_task(resolve_in_background, store, dispatcher, item.id, url)
    logger.info(f"Queued {url} as {item.id}")
    return item.to_dict()


@router.patch("/reorder")
async def reorder_queue(
    request: QueueReorder,
    store: InMemoryItemStore = Depends(get_store),
) -> dict[str, Any]:
    """Bulk position update."""
    if request.order is None:
        raise HTTPException(status_code=400, detail="order array required")

    store.reorder([(entry.id, entry.position) for entry in request.order])
    return {"ok": True}


@router.patch("/{item_id}")
async def update_queue_item(
    item_id: str,
    request: QueueUpdate,
    store: InMemoryItemStore = Depends(get_store),
    config: AudioQueueConfig = Depends(get_app_config),
) -> dict[str, Any]:
    """Mark an item listened or unlistened."""
    item = store.get_item(item_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Not found")

    if request.isListened is not None:
        store.set_listened(item_id, request.isListened)
    return serialize_item(item, config.server.base_url)


@router.delete("/{item_id}", status_code=204)
async def delete_queue_item(
    item_id: str,
    store: InMemoryItemStore = Depends(get_store),
) -> Response:
    """Remove an item from the queue."""
    if not store.delete(item_id):
        raise HTTPException(status_code=404, detail="Not found")
    return Response(status_code=204)


@router.get("/{item_id}/stream", response_model=None)
async def stream_queue_item(
    item_id: str,
    store: InMemoryItemStore = Depends(get_store),
    proxy: StreamProxy = Depends(get_stream_proxy),
) -> StreamingResponse:
    """
    Stream an item as fragmented MP4.

    Errors before the first byte map to status codes; after that the
    connection is just closed.
    """
    item = store.get_item(item_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Not found")

    try:
        remux = await proxy.open(item_id, item.original_url)
    except UpstreamResolutionError as e:
        logger.warning(f"Stream {item_id}: {e}")
        raise HTTPException(status_code=502, detail="Could not resolve stream URL")
    except RemuxSpawnError as e:
        logger.error(f"Stream {item_id}: {e}")
        raise HTTPException(status_code=500, detail="Stream remuxer unavailable")

    return StreamingResponse(
        proxy.iter_body(remux, item_id),
        media_type="audio/mp4",
        headers={
            "Cache-Control": "no-cache, no-store, must-revalidate, private",
            "X-Accel-Buffering": "no",
        },
    )
