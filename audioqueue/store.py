"""
In-memory queue item store.

Holds submitted URLs and their resolution state for the HTTP layer and
gives the stream proxy read access to stored items.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from audioqueue.streaming.dispatcher import Dispatcher
from audioqueue.streaming.resolvers.base import ResolvedItem, SourceType
from audioqueue.utils.logging_setup import log_exception

logger = logging.getLogger(__name__)

NO_AUDIO_ERROR = "No audio stream found"


class ResolveStatus(str, Enum):
    """Resolution state of a queue item."""

    PENDING = "pending"
    RESOLVED = "resolved"
    FAILED = "failed"


@dataclass
class QueueItem:
    """A URL the user queued, plus whatever resolution found."""

    id: str
    original_url: str
    title: str
    position: int
    resolve_status: ResolveStatus = ResolveStatus.PENDING
    source_type: Optional[SourceType] = None
    audio_url: Optional[str] = None
    duration_seconds: Optional[Union[int, float]] = None
    thumbnail_url: Optional[str] = None
    publisher: Optional[str] = None
    resolve_error: Optional[str] = None
    is_listened: bool = False
    created_at: datetime = field(default_factory=datetime.utcnow)

    def apply(self, resolved: ResolvedItem) -> None:
        """Copy a dispatch result onto the item and derive its status."""
        self.title = resolved.title or self.original_url
        self.source_type = resolved.source_type
        self.audio_url = resolved.audio_url
        self.duration_seconds = resolved.duration_seconds
        self.thumbnail_url = resolved.thumbnail_url
        self.publisher = resolved.publisher

        # YouTube metadata-only items get their audio from the stream proxy
        if resolved.audio_url or resolved.is_metadata_only:
            self.resolve_status = ResolveStatus.RESOLVED
            self.resolve_error = None
        else:
            self.resolve_status = ResolveStatus.FAILED
            self.resolve_error = NO_AUDIO_ERROR

    def mark_failed(self, message: str) -> None:
        self.resolve_status = ResolveStatus.FAILED
        self.resolve_error = message

    def to_dict(self, audio_url: Optional[str] = None) -> dict[str, Any]:
        """Serialize for the client; audio_url overrides the stored one."""
        return {
            "id": self.id,
            "originalURL": self.original_url,
            "title": self.title,
            "position": self.position,
            "resolveStatus": self.resolve_status.value,
            "sourceType": self.source_type.value if self.source_type else None,
            "audioURL": audio_url if audio_url is not None else self.audio_url,
            "durationSeconds": self.duration_seconds,
            "thumbnailURL": self.thumbnail_url,
            "publisher": self.publisher,
            "resolveError": self.resolve_error,
            "isListened": self.is_listened,
            "createdAt": self.created_at.isoformat(),
        }


class InMemoryItemStore:
    """Queue items for the lifetime of the process, ordered by position."""

    def __init__(self) -> None:
        self._items: dict[str, QueueItem] = {}

    def create(self, url: str) -> QueueItem:
        """Append a pending item for url at the end of the queue."""
        position = max((item.position for item in self._items.values()), default=-1) + 1
        item = QueueItem(
            id=uuid.uuid4().hex,
            original_url=url,
            title=url,
            position=position,
        )
        self._items[item.id] = item
        return item

    def get_item(self, item_id: str) -> Optional[QueueItem]:
        return self._items.get(item_id)

    def list_items(self) -> list[QueueItem]:
        return sorted(self._items.values(), key=lambda item: item.position)

    def delete(self, item_id: str) -> bool:
        return self._items.pop(item_id, None) is not None

    def set_listened(self, item_id: str, is_listened: bool) -> Optional[QueueItem]:
        item = self._items.get(item_id)
        if item is not None:
            item.is_listened = is_listened
        return item

    def reorder(self, order: list[tuple[str, int]]) -> int:
        """Apply (id, position) pairs; unknown ids are ignored. Returns updates made."""
        updated = 0
        for item_id, position in order:
            item = self._items.get(item_id)
            if item is not None:
                item.position = position
                updated += 1
        return updated

    def __len__(self) -> int:
        return len(self._items)


async def resolve_in_background(
    store: InMemoryItemStore,
    dispatcher: Dispatcher,
    item_id: str,
    url: str,
) -> None:
    """
    Resolve a queued item and record the result.

    An item deleted while resolution ran is left alone.
    """
    try:
        resolved = await dispatcher.dispatch(url)
    except Exception as e:
        log_exception(logger, e, f"Resolution failed for {item_id}")
        item = store.get_item(item_id)
        if item is not None:
            item.mark_failed(str(e))
        return

    item = store.get_item(item_id)
    if item is None:
        logger.debug(f"Item {item_id} was deleted before resolution finished")
        return

    item.apply(resolved)
    logger.info(f"Item {item_id} {item.resolve_status.value}: {item.title}")
