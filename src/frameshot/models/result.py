"""
Pipeline Results
================

Outcome of one screenshot request, plus the JSON payloads the API
layer renders from it.

The outcome is exactly one of:
    - PipelineSuccess: JPEG bytes and timing
    - PipelineFailure: classified error and timing

Output Contract (inline success):
    {
        "success": true,
        "request_id": "9f1c...",
        "image": "<base64 JPEG>",
        "size": 48213,
        "mime_type": "image/jpeg",
        "width": 960,
        "height": 540,
        "timestamp": "2025-01-01T12:00:00.000000+00:00",
        "processing_time_ms": 2310,
        "server_stats": {...}
    }

Output Contract (failure):
    {
        "success": false,
        "request_id": "9f1c...",
        "error": "Download stalled: no data for 15.0s",
        "kind": "DOWNLOAD_STALLED",
        "retryable": true,
        "stage": "DOWNLOADING",
        "timestamp": "2025-01-01T12:00:15.012000+00:00",
        "processing_time_ms": 15012,
        "server_stats": {...}
    }
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, Field

from frameshot.models.error_codes import ErrorKind
from frameshot.models.state import PipelineState


JPEG_MIME_TYPE = "image/jpeg"


@dataclass(frozen=True, slots=True)
class PipelineSuccess:
    """
    Successful extraction.

    Attributes:
        request_id: Request the image belongs to
        image: JPEG bytes
        elapsed_ms: Wall time from entry to result
        width: Decoded frame width in pixels
        height: Decoded frame height in pixels
    """

    request_id: str
    image: bytes = field(repr=False)
    elapsed_ms: int
    width: int = 0
    height: int = 0

    success = True

    @property
    def size(self) -> int:
        return len(self.image)


@dataclass(frozen=True, slots=True)
class PipelineFailure:
    """
    Failed request.

    Attributes:
        request_id: Request that failed
        kind: Error classification
        message: Human-readable description (no stack traces)
        elapsed_ms: Wall time from entry to result
        stage: State the pipeline was in when it failed (None if it
            never got admitted)
        retry_after: Suggested delay in seconds (admission rejections)
    """

    request_id: str
    kind: ErrorKind
    message: str
    elapsed_ms: int
    stage: Optional[PipelineState] = None
    retry_after: Optional[int] = None

    success = False

    @property
    def retryable(self) -> bool:
        return self.kind.retryable


PipelineResult = Union[PipelineSuccess, PipelineFailure]


# =============================================================================
# API payloads
# =============================================================================

def utc_timestamp() -> str:
    """Current time as an ISO 8601 UTC string."""
    return datetime.now(timezone.utc).isoformat()


class ScreenshotPayload(BaseModel):
    """Inline (base64) success payload."""

    success: bool = Field(default=True)
    request_id: str = Field(..., description="Request identifier")
    image: str = Field(..., description="Base64-encoded JPEG")
    size: int = Field(..., ge=0, description="JPEG size in bytes")
    mime_type: str = Field(default=JPEG_MIME_TYPE)
    width: int = Field(default=0, ge=0)
    height: int = Field(default=0, ge=0)
    timestamp: str = Field(default_factory=utc_timestamp, description="Response time (ISO 8601 UTC)")
    processing_time_ms: int = Field(..., ge=0)
    server_stats: Dict[str, Any] = Field(default_factory=dict)


class ErrorPayload(BaseModel):
    """Failure payload."""

    success: bool = Field(default=False)
    request_id: str = Field(..., description="Request identifier")
    error: str = Field(..., description="Human-readable message")
    kind: ErrorKind = Field(..., description="Error classification")
    retryable: bool = Field(..., description="Whether a retry might succeed")
    stage: Optional[PipelineState] = Field(default=None)
    retry_after: Optional[int] = Field(default=None, ge=0)
    timestamp: str = Field(default_factory=utc_timestamp, description="Response time (ISO 8601 UTC)")
    processing_time_ms: int = Field(..., ge=0)
    server_stats: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_failure(
        cls,
        failure: PipelineFailure,
        server_stats: Optional[Dict[str, Any]] = None,
    ) -> "ErrorPayload":
        return cls(
            request_id=failure.request_id,
            error=failure.message,
            kind=failure.kind,
            retryable=failure.retryable,
            stage=failure.stage,
            retry_after=failure.retry_after,
            processing_time_ms=failure.elapsed_ms,
            server_stats=server_stats or {},
        )
