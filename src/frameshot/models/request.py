"""
Request Models
==============

Input side of the screenshot pipeline.

    - ScreenshotParams: lenient HTTP parameter parsing (body or query,
      several accepted names per parameter)
    - RequestContext: immutable, validated record for one pipeline run

Input Contract:
    {
        "videoUrl": "https://example.com/video.mp4",
        "timestamp": 5,
        "returnBase64": true
    }

Example:
    from frameshot.models.request import RequestContext

    ctx = RequestContext.create("https://example.com/a.mp4", 1.5)
    print(ctx.request_id)
"""

import math
import re
import uuid
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import urlparse

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from frameshot.errors import InvalidInputError


REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")

ALLOWED_SCHEMES = ("http", "https")

_FALSE_STRINGS = {"", "0", "false", "no", "off"}


class ScreenshotParams(BaseModel):
    """
    Raw screenshot parameters as sent by clients.

    Accepts the parameter names older clients use. Values are only
    loosely checked here; RequestContext.create does the real validation.

    Attributes:
        video_url: Source video URL
        timestamp: Seek position in seconds (None = service default)
        return_base64: Return a JSON payload instead of raw JPEG bytes
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    video_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(
            "videoUrl", "video_url", "url", "video", "link", "videoLink"
        ),
        description="Source video URL",
    )

    timestamp: Optional[float] = Field(
        default=None,
        validation_alias=AliasChoices("timestamp", "time", "seconds", "sec", "t"),
        description="Seek position in seconds",
    )

    return_base64: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "returnBase64", "return_base64", "base64", "asBase64"
        ),
        description="Embed the image as base64 in a JSON payload",
    )

    @field_validator("video_url", mode="before")
    @classmethod
    def _coerce_url(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        return str(value).strip() or None

    @field_validator("timestamp", mode="before")
    @classmethod
    def _lenient_timestamp(cls, value: Any) -> Optional[float]:
        # Unparseable or negative values fall back to the default
        try:
            ts = float(value)
        except (TypeError, ValueError):
            return None
        if math.isnan(ts) or math.isinf(ts) or ts < 0:
            return None
        return ts

    @field_validator("return_base64", mode="before")
    @classmethod
    def _truthy(cls, value: Any) -> bool:
        if isinstance(value, str):
            return value.strip().lower() not in _FALSE_STRINGS
        return bool(value)


@dataclass(frozen=True, slots=True)
class RequestContext:
    """
    Validated parameters for one screenshot request.

    Immutable. Created at pipeline entry and discarded once the
    response has been produced.

    Attributes:
        request_id: Unique id, also used to name scratch files
        video_url: http(s) URL of the source video
        timestamp_seconds: Seek position, >= 0
        inline: True to embed the image as base64 in the response
    """

    request_id: str
    video_url: str
    timestamp_seconds: float
    inline: bool = False

    @classmethod
    def create(
        cls,
        video_url: Optional[str],
        timestamp_seconds: float = 5.0,
        request_id: Optional[str] = None,
        inline: bool = False,
    ) -> "RequestContext":
        """
        Validate raw values and build a context.

        Raises:
            InvalidInputError: On a missing/non-http URL, a negative or
                non-finite timestamp, or an unsafe request id.
        """
        if not video_url:
            raise InvalidInputError("videoUrl required")

        try:
            parsed = urlparse(video_url)
        except ValueError:
            # e.g. an unbalanced IPv6 bracket
            raise InvalidInputError(f"Invalid URL: {video_url[:100]}") from None
        if parsed.scheme.lower() not in ALLOWED_SCHEMES or not parsed.netloc:
            raise InvalidInputError(f"Invalid URL: {video_url[:100]}")

        try:
            ts = float(timestamp_seconds)
        except (TypeError, ValueError):
            raise InvalidInputError(f"Invalid timestamp: {timestamp_seconds!r}")
        if math.isnan(ts) or math.isinf(ts) or ts < 0:
            raise InvalidInputError(f"Timestamp must be >= 0, got {timestamp_seconds!r}")

        if request_id is None:
            request_id = uuid.uuid4().hex
        elif not REQUEST_ID_PATTERN.match(request_id):
            raise InvalidInputError(f"Invalid request id: {request_id!r}")

        return cls(
            request_id=request_id,
            video_url=video_url,
            timestamp_seconds=ts,
            inline=inline,
        )
