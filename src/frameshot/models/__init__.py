"""
Data Models
===========

Data models for the FrameShot pipeline.

Models:
    Configuration:
        - TimeoutBudget: Immutable pipeline time limits

    State:
        - PipelineState: Stage of one request

    Output:
        - ErrorKind: Closed failure taxonomy
        - PipelineSuccess / PipelineFailure: Pipeline outcome
        - ScreenshotPayload / ErrorPayload: API payloads

Request models (ScreenshotParams, RequestContext) live in
frameshot.models.request and are imported from there directly.
"""

from frameshot.models.budget import TimeoutBudget
from frameshot.models.error_codes import ErrorKind
from frameshot.models.result import (
    ErrorPayload,
    PipelineFailure,
    PipelineResult,
    PipelineSuccess,
    ScreenshotPayload,
)
from frameshot.models.state import PipelineState

__all__ = [
    # Configuration
    "TimeoutBudget",
    # State
    "PipelineState",
    # Output
    "ErrorKind",
    "PipelineSuccess",
    "PipelineFailure",
    "PipelineResult",
    "ScreenshotPayload",
    "ErrorPayload",
]
