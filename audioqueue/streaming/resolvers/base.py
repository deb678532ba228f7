"""
Resolver result types and error taxonomy.

Provides the data model returned by every resolver and the exception
hierarchy used to steer the dispatcher between stages.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)

Seconds = Union[int, float]


class SourceType(str, Enum):
    """Source categories reported to the client."""

    PODCAST = "podcast"
    YOUTUBE = "youtube"
    SOUNDCLOUD = "soundcloud"
    SUBSTACK = "substack"
    OTHER = "other"
    UNSUPPORTED = "unsupported"


class ResolverError(Exception):
    """Error during URL resolution."""

    def __init__(
        self,
        message: str,
        source_type: SourceType = SourceType.OTHER,
        is_retryable: bool = True,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.source_type = source_type
        self.is_retryable = is_retryable
        self.original_error = original_error


class NotApplicableError(ResolverError):
    """The strategy's preconditions are not met for this URL."""

    def __init__(self, message: str, source_type: SourceType = SourceType.OTHER):
        super().__init__(message, source_type=source_type, is_retryable=False)


class TransientResolverError(ResolverError):
    """Timeout, non-2xx response or malformed payload from a provider."""


class ExhaustedError(ResolverError):
    """Every instance of every tier of a strategy failed."""

    def __init__(
        self,
        message: str,
        errors: Optional[list[Exception]] = None,
        source_type: SourceType = SourceType.OTHER,
    ):
        super().__init__(message, source_type=source_type, is_retryable=True)
        self.errors = errors or []


@dataclass
class ResolvedItem:
    """
    Metadata plus an optional playable stream for one input URL.

    Attributes:
        source_type: Category reported to the client
        title: Display title
        original_url: Always the URL the caller submitted
        publisher: Show, channel or uploader name
        duration_seconds: Length in seconds, None when unknown
        thumbnail_url: Artwork URL
        audio_url: Direct stream URL; None means "open externally" or,
            for YouTube, "resolve at play time"
    """

    source_type: SourceType
    title: str
    original_url: str
    publisher: Optional[str] = None
    duration_seconds: Optional[Seconds] = None
    thumbnail_url: Optional[str] = None
    audio_url: Optional[str] = None

    @classmethod
    def unsupported(cls, url: str) -> "ResolvedItem":
        """Terminal record for a URL no stage could handle."""
        return cls(
            source_type=SourceType.UNSUPPORTED,
            title=url,
            original_url=url,
        )

    @property
    def is_unsupported(self) -> bool:
        return self.source_type == SourceType.UNSUPPORTED

    @property
    def is_metadata_only(self) -> bool:
        """YouTube result whose audio is resolved later by the stream proxy."""
        return self.source_type == SourceType.YOUTUBE and not self.audio_url

    def to_dict(self) -> dict[str, Any]:
        """Serialize with the field names the mobile client consumes."""
        return {
            "sourceType": self.source_type.value,
            "title": self.title,
            "publisher": self.publisher,
            "audioURL": self.audio_url,
            "durationSeconds": self.duration_seconds,
            "thumbnailURL": self.thumbnail_url,
            "originalURL": self.original_url,
        }


class StageOutcome(str, Enum):
    """How a dispatcher stage ended."""

    SUCCESS = "success"
    NOT_APPLICABLE = "not_applicable"
    TRANSIENT = "transient"
    EXHAUSTED = "exhausted"
    UNSUPPORTED = "unsupported"


@dataclass
class StageResult:
    """Tagged result of one stage attempt."""

    outcome: StageOutcome
    item: Optional[ResolvedItem] = None
    reason: Optional[str] = None

    @classmethod
    def success(cls, item: ResolvedItem) -> "StageResult":
        return cls(StageOutcome.SUCCESS, item=item)

    @classmethod
    def not_applicable(cls, reason: Optional[str] = None) -> "StageResult":
        return cls(StageOutcome.NOT_APPLICABLE, reason=reason)

    @classmethod
    def transient(cls, reason: str) -> "StageResult":
        return cls(StageOutcome.TRANSIENT, reason=reason)

    @classmethod
    def exhausted(cls, reason: str) -> "StageResult":
        return cls(StageOutcome.EXHAUSTED, reason=reason)

    @classmethod
    def unsupported(cls, reason: str) -> "StageResult":
        return cls(StageOutcome.UNSUPPORTED, reason=reason)

    @classmethod
    def from_error(cls, error: ResolverError) -> "StageResult":
        """Map a resolver exception onto the matching outcome."""
        if isinstance(error, NotApplicableError):
            return cls.not_applicable(str(error))
        if isinstance(error, ExhaustedError):
            return cls.exhausted(str(error))
        return cls.transient(str(error))
