"""
Timeout Budget
==============

Immutable set of time limits for one pipeline run.

Design Rules:
    - Built once at startup from settings (see config.build_timeout_budget)
    - Passed into the pipeline at construction, never read from globals
    - Tests construct tiny budgets directly
"""

from dataclasses import dataclass, fields


@dataclass(frozen=True, slots=True)
class TimeoutBudget:
    """
    Named time limits, in seconds.

    Attributes:
        connect: Time for the remote to start responding
        inactivity: Longest gap allowed between two received chunks
        total_download: Hard ceiling on the whole download
        extraction: Wall clock limit for the ffmpeg process
        input_stability: Stability wait on the downloaded video
        output_stability: Stability wait on the extracted frame
    """

    connect: float = 10.0
    inactivity: float = 15.0
    total_download: float = 120.0
    extraction: float = 30.0
    input_stability: float = 15.0
    output_stability: float = 5.0

    def __post_init__(self) -> None:
        for field in fields(self):
            if getattr(self, field.name) <= 0:
                raise ValueError(f"{field.name} must be > 0")
