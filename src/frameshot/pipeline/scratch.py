"""
Scratch Files
=============

Request-scoped temporary files.

Each request owns exactly two paths in the scratch directory:

    input-<request_id>.mp4   downloaded video
    output-<request_id>.jpg  extracted frame

Design Rules:
    - Paths are derived from the request id only, so concurrent
      requests never collide
    - allocate() is a context manager: both paths are removed on every
      exit path, including errors and cancellation
    - Cleanup never raises; failures are logged
    - sweep_stale() is a safety net for files left behind by a crash
"""

import logging
import os
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Union


logger = logging.getLogger(__name__)


INPUT_PREFIX = "input-"
INPUT_SUFFIX = ".mp4"
OUTPUT_PREFIX = "output-"
OUTPUT_SUFFIX = ".jpg"


@dataclass(frozen=True, slots=True)
class ScratchFiles:
    """
    Scratch file pair for one request.

    Attributes:
        input_path: Where the downloaded video is written
        output_path: Where ffmpeg writes the extracted frame
    """

    input_path: Path
    output_path: Path

    def __iter__(self) -> Iterator[Path]:
        return iter((self.input_path, self.output_path))


def cleanup_files(paths: Iterable[Union[str, Path]]) -> int:
    """
    Delete files, ignoring ones that do not exist.

    Args:
        paths: Files to remove

    Returns:
        Number of files actually removed.
    """
    removed = 0
    for path in paths:
        try:
            os.unlink(path)
            removed += 1
            logger.debug(f"Removed scratch file: {Path(path).name}")
        except FileNotFoundError:
            continue
        except OSError as e:
            logger.error(f"Failed to remove {path}: {e}")
    return removed


class ScratchDirectory:
    """
    Owner of the scratch directory.

    Attributes:
        root: Directory holding all scratch files

    Example:
        scratch = ScratchDirectory("/tmp/frameshot")

        with scratch.allocate(request_id) as files:
            await fetcher.fetch(url, files.input_path, budget)
            ...
        # both files are gone here
    """

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def paths_for(self, request_id: str) -> ScratchFiles:
        """Scratch file pair for a request id (nothing is created)."""
        return ScratchFiles(
            input_path=self.root / f"{INPUT_PREFIX}{request_id}{INPUT_SUFFIX}",
            output_path=self.root / f"{OUTPUT_PREFIX}{request_id}{OUTPUT_SUFFIX}",
        )

    @contextmanager
    def allocate(self, request_id: str) -> Iterator[ScratchFiles]:
        """
        Reserve the scratch pair for a request and remove it on exit.

        Any stale files with the same names are removed first.
        """
        files = self.paths_for(request_id)
        cleanup_files(files)
        try:
            yield files
        finally:
            removed = cleanup_files(files)
            if removed:
                logger.debug(f"[{request_id}] Cleaned up {removed} scratch file(s)")

    def residual_files(self, request_id: str) -> list:
        """Scratch files for a request id still on disk."""
        return [path for path in self.paths_for(request_id) if path.exists()]

    def sweep_stale(self, max_age_seconds: float) -> int:
        """
        Remove scratch files older than max_age_seconds.

        Returns:
            Number of files removed.
        """
        cutoff = time.time() - max_age_seconds
        stale = []
        for pattern in (
            f"{INPUT_PREFIX}*{INPUT_SUFFIX}",
            f"{OUTPUT_PREFIX}*{OUTPUT_SUFFIX}",
        ):
            for path in self.root.glob(pattern):
                try:
                    if path.stat().st_mtime < cutoff:
                        stale.append(path)
                except FileNotFoundError:
                    continue

        removed = cleanup_files(stale)
        if removed:
            logger.info(f"Swept {removed} stale scratch file(s) from {self.root}")
        return removed
