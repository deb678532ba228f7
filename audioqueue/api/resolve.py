"""URL resolution API endpoints"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from audioqueue.api.dependencies import get_app_config, get_dispatcher
from audioqueue.config import AudioQueueConfig
from audioqueue.streaming.dispatcher import Dispatcher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/resolve", tags=["Resolve"])


class ResolveRequest(BaseModel):
    url: Optional[str] = None


class BatchResolveRequest(BaseModel):
    urls: Optional[list[str]] = None


@router.post("")
async def resolve_url(
    request: ResolveRequest,
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    """Resolve a single URL."""
    if not request.url or not request.url.strip():
        raise HTTPException(status_code=400, detail="Missing required field: url")

    item = await dispatcher.dispatch(request.url.strip())
    return item.to_dict()


@router.post("/batch")
async def resolve_batch(
    request: BatchResolveRequest,
    dispatcher: Dispatcher = Depends(get_dispatcher),
    config: AudioQueueConfig = Depends(get_app_config),
) -> list[dict[str, Any]]:
    """Resolve several URLs concurrently."""
    if not request.urls:
        raise HTTPException(status_code=400, detail="Missing required field: urls (array)")

    limit = config.resolver.batch_limit
    if len(request.urls) > limit:
        raise HTTPException(status_code=400, detail=f"Batch limit is {limit} URLs")

    items = await dispatcher.dispatch_many([url.strip() for url in request.urls])
    return [item.to_dict() for item in items]
