"""
Screenshot Pipeline
===================

Sequences the stages of one screenshot request.

    ADMITTED -> DOWNLOADING -> INPUT_STABILIZING -> EXTRACTING
             -> OUTPUT_STABILIZING -> READING -> COMPLETED
                                   (any stage) -> FAILED

Design Rules:
    - Input is validated before admission; invalid requests never take
      a slot
    - Stages run strictly in order; each either completes or fails the
      whole request
    - No retries inside the pipeline
    - Scratch files are removed, then the slot is released, before the
      result is returned, on every exit path including cancellation
    - Every failure becomes exactly one PipelineFailure; unexpected
      exceptions are logged and reported as INTERNAL
"""

import asyncio
import logging
import time
import uuid
from typing import Optional

from frameshot.errors import (
    DownloadTimeoutError,
    FileTimeoutError,
    InvalidInputError,
    OutputTooSmallError,
    PipelineError,
)
from frameshot.models.budget import TimeoutBudget
from frameshot.models.error_codes import ErrorKind
from frameshot.models.request import RequestContext
from frameshot.models.result import PipelineFailure, PipelineResult, PipelineSuccess
from frameshot.models.state import PIPELINE_ORDER, PipelineState
from frameshot.pipeline.admission import AdmissionQueue
from frameshot.pipeline.extractor import FrameExtractor
from frameshot.pipeline.fetcher import BoundedFetcher
from frameshot.pipeline.image_probe import probe_image
from frameshot.pipeline.polling import wait_stable
from frameshot.pipeline.scratch import ScratchDirectory, ScratchFiles


logger = logging.getLogger(__name__)


class _StageTracker:
    """Current stage of one request, for logs and failure reports."""

    __slots__ = ("request_id", "state")

    def __init__(self, request_id: str) -> None:
        self.request_id = request_id
        self.state = PipelineState.ADMITTED

    def enter(self, state: PipelineState) -> None:
        if self.state.is_terminal or (
            state != PipelineState.FAILED
            and PIPELINE_ORDER.index(state) <= PIPELINE_ORDER.index(self.state)
        ):
            raise RuntimeError(
                f"Illegal transition {self.state.value} -> {state.value}"
            )
        logger.debug(f"[{self.request_id}] {self.state.value} -> {state.value}")
        self.state = state


class ScreenshotPipeline:
    """
    One-frame screenshot pipeline.

    Attributes:
        budget: Time limits for every stage
        admission: Shared admission gate
        scratch: Scratch directory

    Example:
        pipeline = ScreenshotPipeline(
            budget=TimeoutBudget(),
            admission=AdmissionQueue(capacity=1),
            fetcher=BoundedFetcher(),
            extractor=FrameExtractor(),
            scratch=ScratchDirectory("/tmp/frameshot"),
        )
        result = await pipeline.capture("https://example.com/a.mp4", 1.0)
        if result.success:
            save(result.image)
    """

    def __init__(
        self,
        budget: TimeoutBudget,
        admission: AdmissionQueue,
        fetcher: BoundedFetcher,
        extractor: FrameExtractor,
        scratch: ScratchDirectory,
        retry_after_seconds: int = 10,
        poll_interval: float = 0.1,
        required_checks: int = 2,
        min_output_bytes: int = 500,
        default_timestamp: float = 5.0,
    ) -> None:
        """
        Initialize pipeline.

        Args:
            budget: Immutable time limits
            admission: Admission gate shared by all requests
            fetcher: Source downloader
            extractor: ffmpeg wrapper
            scratch: Scratch file owner
            retry_after_seconds: Delay suggested to rejected callers
            poll_interval: Seconds between stability checks
            required_checks: Identical sizes needed for stability
            min_output_bytes: Smallest plausible JPEG
            default_timestamp: Seek position when the caller gives none
        """
        self.budget = budget
        self.admission = admission
        self.fetcher = fetcher
        self.extractor = extractor
        self.scratch = scratch
        self.retry_after_seconds = retry_after_seconds
        self.poll_interval = poll_interval
        self.required_checks = required_checks
        self.min_output_bytes = min_output_bytes
        self.default_timestamp = default_timestamp

    async def capture(
        self,
        video_url: Optional[str],
        timestamp_seconds: Optional[float] = None,
        request_id: Optional[str] = None,
        inline: bool = False,
    ) -> PipelineResult:
        """
        Grab one frame from a remote video.

        Args:
            video_url: http(s) URL of the source video
            timestamp_seconds: Seek position (None = default_timestamp)
            request_id: Caller-supplied id (generated when None)
            inline: Carried into the context for the response layer

        Returns:
            PipelineSuccess or PipelineFailure. Never raises, except
            asyncio.CancelledError.
        """
        started = time.monotonic()
        if request_id is None:
            request_id = uuid.uuid4().hex
        if timestamp_seconds is None:
            timestamp_seconds = self.default_timestamp

        try:
            ctx = RequestContext.create(
                video_url,
                timestamp_seconds,
                request_id=request_id,
                inline=inline,
            )
        except InvalidInputError as e:
            logger.info(f"[{request_id}] Invalid input: {e}")
            return PipelineFailure(
                request_id=request_id,
                kind=ErrorKind.INVALID_INPUT,
                message=str(e),
                elapsed_ms=_elapsed_ms(started),
            )

        return await self.run(ctx, started=started)

    async def run(
        self,
        ctx: RequestContext,
        started: Optional[float] = None,
    ) -> PipelineResult:
        """
        Run the pipeline for a validated request.

        Args:
            ctx: Validated request
            started: monotonic() at request entry (defaults to now)

        Returns:
            PipelineSuccess or PipelineFailure.
        """
        if started is None:
            started = time.monotonic()

        try:
            admitted = self.admission.try_admit(ctx.request_id)
        except ValueError as e:
            # Same id already in flight; its scratch files must not be shared
            return PipelineFailure(
                request_id=ctx.request_id,
                kind=ErrorKind.INVALID_INPUT,
                message=str(e),
                elapsed_ms=_elapsed_ms(started),
            )

        if not admitted:
            return PipelineFailure(
                request_id=ctx.request_id,
                kind=ErrorKind.ADMISSION_REJECTED,
                message=(
                    f"Server busy, retry in {self.retry_after_seconds} seconds"
                ),
                elapsed_ms=_elapsed_ms(started),
                retry_after=self.retry_after_seconds,
            )

        logger.info(
            f"[{ctx.request_id}] Processing {ctx.video_url[:60]} "
            f"at {ctx.timestamp_seconds}s"
        )

        tracker = _StageTracker(ctx.request_id)
        success = False
        try:
            try:
                with self.scratch.allocate(ctx.request_id) as files:
                    image, width, height = await self._execute(ctx, files, tracker)
            except PipelineError as e:
                return self._fail(ctx, tracker, e.kind, str(e), started)
            except asyncio.CancelledError:
                logger.warning(
                    f"[{ctx.request_id}] Cancelled during {tracker.state.value}"
                )
                raise
            except Exception:
                logger.exception(
                    f"[{ctx.request_id}] Unexpected error during {tracker.state.value}"
                )
                return self._fail(
                    ctx, tracker, ErrorKind.INTERNAL, "Internal error", started
                )

            tracker.enter(PipelineState.COMPLETED)
            success = True
            elapsed_ms = _elapsed_ms(started)
            logger.info(
                f"[{ctx.request_id}] Completed in {elapsed_ms}ms "
                f"({len(image)} bytes, {width}x{height})"
            )
            return PipelineSuccess(
                request_id=ctx.request_id,
                image=image,
                elapsed_ms=elapsed_ms,
                width=width,
                height=height,
            )
        finally:
            self.admission.release(
                ctx.request_id,
                success=success,
                duration_ms=_elapsed_ms(started),
            )

    async def _execute(
        self,
        ctx: RequestContext,
        files: ScratchFiles,
        tracker: _StageTracker,
    ) -> tuple:
        """Run every stage in order; returns (image, width, height)."""
        budget = self.budget

        tracker.enter(PipelineState.DOWNLOADING)
        size = await self.fetcher.fetch(
            ctx.video_url, files.input_path, budget, request_id=ctx.request_id
        )
        logger.info(f"[{ctx.request_id}] Input ready: {size / (1024 * 1024):.1f}MB")

        tracker.enter(PipelineState.INPUT_STABILIZING)
        try:
            await wait_stable(
                files.input_path,
                timeout=budget.input_stability,
                interval=self.poll_interval,
                required_checks=self.required_checks,
            )
        except FileTimeoutError as e:
            raise DownloadTimeoutError(f"Downloaded video never settled: {e}") from e

        tracker.enter(PipelineState.EXTRACTING)
        await self.extractor.extract_frame(
            files.input_path,
            files.output_path,
            ctx.timestamp_seconds,
            timeout=budget.extraction,
            request_id=ctx.request_id,
        )

        tracker.enter(PipelineState.OUTPUT_STABILIZING)
        stats = await wait_stable(
            files.output_path,
            timeout=budget.output_stability,
            interval=self.poll_interval,
            required_checks=self.required_checks,
        )
        if stats.st_size < self.min_output_bytes:
            raise OutputTooSmallError(
                f"Generated image too small ({stats.st_size} bytes)"
            )

        tracker.enter(PipelineState.READING)
        image = files.output_path.read_bytes()
        if len(image) < self.min_output_bytes:
            raise OutputTooSmallError(
                f"Generated image too small ({len(image)} bytes)"
            )
        width, height = probe_image(image)
        return image, width, height

    def _fail(
        self,
        ctx: RequestContext,
        tracker: _StageTracker,
        kind: ErrorKind,
        message: str,
        started: float,
    ) -> PipelineFailure:
        stage = tracker.state
        tracker.enter(PipelineState.FAILED)
        elapsed_ms = _elapsed_ms(started)
        logger.warning(
            f"[{ctx.request_id}] Failed after {elapsed_ms}ms "
            f"in {stage.value}: {kind.value}: {message}"
        )
        return PipelineFailure(
            request_id=ctx.request_id,
            kind=kind,
            message=message,
            elapsed_ms=elapsed_ms,
            stage=stage,
        )


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
