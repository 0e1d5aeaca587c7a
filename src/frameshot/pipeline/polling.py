"""
Polling
=======

Readiness polling helpers.

    - poll_until: generic "probe until it returns something" loop
    - wait_stable: waits for a file's size to stop changing

An external process exiting with code 0 does not guarantee the file it
wrote has reached its final size on disk. wait_stable requires the same
non-zero size across several consecutive polls before it returns.

Design Rules:
    - Clock, sleep and stat are injectable for tests
    - A missing file keeps polling until the timeout
    - The timeout always unblocks the waiter
"""

import asyncio
import logging
import os
import time
from typing import Awaitable, Callable, Optional, TypeVar, Union

from frameshot.errors import FileTimeoutError


logger = logging.getLogger(__name__)


T = TypeVar("T")

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


class PollTimeout(Exception):
    """Raised by poll_until when the probe never succeeds in time."""
    pass


async def poll_until(
    probe: Callable[[], Optional[T]],
    interval: float,
    timeout: float,
    clock: Clock = time.monotonic,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """
    Call probe every interval seconds until it returns a non-None value.

    Args:
        probe: Returns the result when ready, None otherwise
        interval: Seconds between probes
        timeout: Seconds before giving up
        clock: Monotonic time source
        sleep: Async sleep function

    Returns:
        The first non-None value returned by probe.

    Raises:
        PollTimeout: If the deadline passes first.
    """
    if interval <= 0:
        raise ValueError("interval must be > 0")

    deadline = clock() + timeout
    while True:
        result = probe()
        if result is not None:
            return result

        remaining = deadline - clock()
        if remaining <= 0:
            raise PollTimeout(f"Condition not met within {timeout}s")
        await sleep(min(interval, remaining))


class _SizeTracker:
    """Probe that reports a stat result once the size has settled."""

    def __init__(self, path: str, required_checks: int, stat: Callable) -> None:
        self.path = path
        self.required_checks = required_checks
        self.stat = stat
        self.last_size = -1
        self.stable_count = 0

    def __call__(self) -> Optional[os.stat_result]:
        try:
            stats = self.stat(self.path)
        except FileNotFoundError:
            self.last_size = -1
            self.stable_count = 0
            return None

        if stats.st_size > 0 and stats.st_size == self.last_size:
            self.stable_count += 1
            if self.stable_count >= self.required_checks:
                return stats
        else:
            self.stable_count = 0
            self.last_size = stats.st_size
        return None


async def wait_stable(
    path: Union[str, os.PathLike],
    timeout: float,
    interval: float = 0.1,
    required_checks: int = 2,
    stat: Callable = os.stat,
    clock: Clock = time.monotonic,
    sleep: Sleep = asyncio.sleep,
) -> os.stat_result:
    """
    Wait until a file exists and its size stops changing.

    Args:
        path: File to watch
        timeout: Seconds before giving up
        interval: Seconds between size checks
        required_checks: Consecutive identical non-zero sizes needed
        stat: stat() implementation
        clock: Monotonic time source
        sleep: Async sleep function

    Returns:
        The stat result from the final, stable check.

    Raises:
        FileTimeoutError: If the file is missing, empty or still
            changing when the timeout elapses.
    """
    if required_checks < 1:
        raise ValueError("required_checks must be >= 1")

    tracker = _SizeTracker(os.fspath(path), required_checks, stat)
    try:
        stats = await poll_until(tracker, interval, timeout, clock=clock, sleep=sleep)
    except PollTimeout:
        raise FileTimeoutError(
            f"File not stable after {timeout}s: {os.path.basename(tracker.path)} "
            f"(last size {max(tracker.last_size, 0)} bytes)"
        ) from None

    logger.debug(f"File stable: {os.path.basename(tracker.path)} ({stats.st_size} bytes)")
    return stats
