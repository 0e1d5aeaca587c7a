"""
Pipeline State
==============

States a single screenshot request moves through.

    ADMITTED -> DOWNLOADING -> INPUT_STABILIZING -> EXTRACTING
             -> OUTPUT_STABILIZING -> READING -> COMPLETED

FAILED is reachable from every non-terminal state. COMPLETED and
FAILED are terminal.
"""

from enum import Enum


class PipelineState(str, Enum):
    """Pipeline stage for one request."""

    ADMITTED = "ADMITTED"
    DOWNLOADING = "DOWNLOADING"
    INPUT_STABILIZING = "INPUT_STABILIZING"
    EXTRACTING = "EXTRACTING"
    OUTPUT_STABILIZING = "OUTPUT_STABILIZING"
    READING = "READING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (PipelineState.COMPLETED, PipelineState.FAILED)


# Forward order of the non-failure path
PIPELINE_ORDER = (
    PipelineState.ADMITTED,
    PipelineState.DOWNLOADING,
    PipelineState.INPUT_STABILIZING,
    PipelineState.EXTRACTING,
    PipelineState.OUTPUT_STABILIZING,
    PipelineState.READING,
    PipelineState.COMPLETED,
)
