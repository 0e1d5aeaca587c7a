"""
Frame Extractor
===============

Runs ffmpeg once to pull a single frame out of a local video.

The frame is seeked to the requested timestamp, downscaled so that neither
side exceeds max_dimension pixels (aspect ratio kept) and written as JPEG.

Design Rules:
    - One process per request, no retries
    - A watchdog kills the process (SIGKILL, no grace period) when the
      timeout expires
    - stdout is discarded; stderr is captured and only surfaced in
      failure messages
    - The caller validates the timestamp
"""

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence, Union

from frameshot.errors import ExtractionError, ExtractionTimeoutError


logger = logging.getLogger(__name__)


# Characters of stderr kept in error messages
STDERR_TAIL_CHARS = 500


class ProcessTimeout(Exception):
    """Raised by run_with_deadline after the process has been killed."""

    def __init__(self, timeout: float, elapsed: float) -> None:
        super().__init__(f"Process killed after {elapsed:.1f}s (limit {timeout}s)")
        self.timeout = timeout
        self.elapsed = elapsed


@dataclass(frozen=True, slots=True)
class ProcessOutcome:
    """
    Result of a finished child process.

    Attributes:
        returncode: Exit status
        stderr: Captured standard error, decoded
        elapsed: Wall time in seconds
    """

    returncode: int
    stderr: str
    elapsed: float

    @property
    def stderr_tail(self) -> str:
        return self.stderr.strip()[-STDERR_TAIL_CHARS:]


async def run_with_deadline(argv: Sequence[str], timeout: float) -> ProcessOutcome:
    """
    Start a process and wait for it, killing it on timeout.

    Args:
        argv: Program and arguments (no shell)
        timeout: Seconds before the process is killed

    Returns:
        ProcessOutcome once the process has exited.

    Raises:
        ProcessTimeout: The process was killed by the watchdog.
        OSError: The process could not be started.
    """
    started = time.monotonic()
    process = await asyncio.create_subprocess_exec(
        *argv,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.DEVNULL,
        stderr=asyncio.subprocess.PIPE,
    )

    try:
        _, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        _kill(process)
        await process.wait()
        raise ProcessTimeout(timeout, time.monotonic() - started) from None
    except asyncio.CancelledError:
        _kill(process)
        await process.wait()
        raise

    return ProcessOutcome(
        returncode=process.returncode,
        stderr=(stderr or b"").decode("utf-8", errors="replace"),
        elapsed=time.monotonic() - started,
    )


def _kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass


class FrameExtractor:
    """
    Single-frame JPEG extraction with ffmpeg.

    Attributes:
        ffmpeg_path: ffmpeg executable name or path
        max_dimension: Neither side of the output frame exceeds this
        jpeg_quality: ffmpeg -q:v value (1 = best, 31 = worst)

    Example:
        extractor = FrameExtractor(max_dimension=960)
        await extractor.extract_frame(
            "/tmp/input-abc.mp4", "/tmp/output-abc.jpg", 5.0, timeout=30.0
        )
    """

    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        max_dimension: int = 960,
        jpeg_quality: int = 8,
    ) -> None:
        self.ffmpeg_path = ffmpeg_path
        self.max_dimension = max_dimension
        self.jpeg_quality = jpeg_quality

    def scale_filter(self) -> str:
        """Fit the frame inside a max_dimension square, never upscaling."""
        side = self.max_dimension
        return (
            f"scale='min({side},iw)':'min({side},ih)'"
            ":force_original_aspect_ratio=decrease"
        )

    def build_command(
        self,
        input_path: Union[str, Path],
        output_path: Union[str, Path],
        timestamp_seconds: float,
    ) -> List[str]:
        """ffmpeg argv for one downscaled JPEG frame."""
        return [
            self.ffmpeg_path,
            "-hide_banner",
            "-loglevel", "error",
            "-ss", f"{timestamp_seconds:.3f}",
            "-i", os.fspath(input_path),
            "-frames:v", "1",
            "-q:v", str(self.jpeg_quality),
            "-vf", self.scale_filter(),
            "-f", "image2",
            "-y",
            os.fspath(output_path),
        ]

    async def extract_frame(
        self,
        input_path: Union[str, Path],
        output_path: Union[str, Path],
        timestamp_seconds: float,
        timeout: float,
        request_id: str = "-",
    ) -> None:
        """
        Extract the frame at timestamp_seconds into output_path.

        Args:
            input_path: Local video file
            output_path: JPEG file to write
            timestamp_seconds: Seek position (>= 0, validated by caller)
            timeout: Wall clock limit for the ffmpeg process
            request_id: Used in log lines only

        Raises:
            ExtractionTimeoutError: ffmpeg was killed by the watchdog
            ExtractionError: ffmpeg could not start or exited non-zero
        """
        argv = self.build_command(input_path, output_path, timestamp_seconds)
        logger.info(f"[{request_id}] Extracting frame at {timestamp_seconds}s")

        try:
            outcome = await run_with_deadline(argv, timeout)
        except ProcessTimeout as e:
            logger.warning(f"[{request_id}] ffmpeg killed after {e.elapsed:.1f}s")
            raise ExtractionTimeoutError(f"FFmpeg timeout ({timeout}s)") from None
        except OSError as e:
            raise ExtractionError(f"FFmpeg spawn error: {e}") from e

        if outcome.returncode != 0:
            logger.warning(
                f"[{request_id}] ffmpeg exited with code {outcome.returncode}: "
                f"{outcome.stderr_tail}"
            )
            message = f"FFmpeg failed with code {outcome.returncode}"
            if outcome.stderr_tail:
                message = f"{message}: {outcome.stderr_tail}"
            raise ExtractionError(message)

        logger.debug(f"[{request_id}] ffmpeg finished in {outcome.elapsed:.2f}s")
