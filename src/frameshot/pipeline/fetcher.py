"""
Bounded Fetcher
===============

Streams a remote video to disk under layered limits.

Limits (all from the TimeoutBudget unless noted):
    - connect: the remote must send response headers in time
    - inactivity: longest gap between two received chunks
    - total_download: hard ceiling, regardless of steady progress
    - max_bytes (constructor): size cap, enforced per chunk

Design Rules:
    - Each limit maps to its own error type
    - Any violation stops writing at once, closes the connection without
      draining it and deletes the partial file
    - A finished file below min_bytes is a CorruptDownloadError
    - Task cancellation follows the same teardown path
"""

import asyncio
import logging
import os
import time
from pathlib import Path
from typing import AsyncGenerator, Optional, Union

import httpx

from frameshot.errors import (
    CorruptDownloadError,
    DownloadFailedError,
    DownloadTimeoutError,
    SourceRejectedError,
    StalledDownloadError,
    TooLargeError,
)
from frameshot.models.budget import TimeoutBudget


logger = logging.getLogger(__name__)


MEGABYTE = 1024 * 1024

# Progress is logged each time the download crosses a multiple of this
PROGRESS_LOG_BYTES = 5 * MEGABYTE


class BoundedFetcher:
    """
    HTTP downloader with size, inactivity and duration limits.

    Attributes:
        max_bytes: Size cap for one download
        min_bytes: Smallest acceptable completed download
        max_redirects: Redirects followed before giving up
        user_agent: User-Agent header value

    Example:
        fetcher = BoundedFetcher(max_bytes=50 * 1024 * 1024)
        size = await fetcher.fetch(url, "/tmp/input-abc.mp4", budget)
    """

    def __init__(
        self,
        max_bytes: int = 50 * MEGABYTE,
        min_bytes: int = 1024,
        max_redirects: int = 3,
        user_agent: str = "Mozilla/5.0 (compatible; FrameShot/1.0)",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize fetcher.

        Args:
            max_bytes: Abort once more than this many bytes arrive
            min_bytes: Completed downloads below this are corrupt
            max_redirects: Redirect limit
            user_agent: User-Agent header value
            transport: Optional httpx transport (tests use MockTransport)
        """
        if min_bytes > max_bytes:
            raise ValueError("min_bytes must not exceed max_bytes")

        self.max_bytes = max_bytes
        self.min_bytes = min_bytes
        self.max_redirects = max_redirects
        self.user_agent = user_agent
        self._transport = transport

    def _client(self, budget: TimeoutBudget) -> httpx.AsyncClient:
        # httpx read timeout is a second inactivity layer under our own
        timeout = httpx.Timeout(
            connect=budget.connect,
            read=budget.inactivity,
            write=budget.connect,
            pool=budget.connect,
        )
        return httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            max_redirects=self.max_redirects,
            transport=self._transport,
            headers={
                "User-Agent": self.user_agent,
                "Accept": "video/*,*/*;q=0.8",
                "Accept-Encoding": "identity",
                "Connection": "close",
            },
        )

    async def fetch(
        self,
        url: str,
        dest_path: Union[str, Path],
        budget: TimeoutBudget,
        request_id: str = "-",
    ) -> int:
        """
        Download url into dest_path.

        Args:
            url: http(s) URL to download
            dest_path: File to create (overwritten if present)
            budget: Time limits
            request_id: Used in log lines only

        Returns:
            Number of bytes written.

        Raises:
            DownloadTimeoutError: No response within budget.connect, or
                the whole download exceeded budget.total_download
            StalledDownloadError: No data for budget.inactivity
            TooLargeError: Size cap crossed
            CorruptDownloadError: Completed file below min_bytes
            SourceRejectedError: 4xx response
            DownloadFailedError: 5xx response or transport error
        """
        dest_path = Path(dest_path)
        started = time.monotonic()
        deadline = started + budget.total_download
        completed = False

        logger.info(f"[{request_id}] Download starting: {url[:60]}")

        try:
            async with self._client(budget) as client:
                response = await self._open(client, url, budget)
                try:
                    self._check_response(response)
                    total = await self._stream_to_file(
                        response, dest_path, budget, deadline, request_id
                    )
                finally:
                    await response.aclose()
            completed = True
        except httpx.ConnectTimeout as e:
            raise DownloadTimeoutError(
                f"Connection not established within {budget.connect}s"
            ) from e
        except httpx.ReadTimeout as e:
            raise StalledDownloadError(
                f"Download stalled: no data for {budget.inactivity}s"
            ) from e
        except httpx.TimeoutException as e:
            raise DownloadTimeoutError(f"Download timed out: {e}") from e
        except httpx.TooManyRedirects as e:
            raise SourceRejectedError(
                f"Too many redirects (limit {self.max_redirects})"
            ) from e
        except httpx.HTTPError as e:
            raise DownloadFailedError(f"Download failed: {e}") from e
        finally:
            if not completed:
                self._discard(dest_path)

        if total < self.min_bytes:
            self._discard(dest_path)
            raise CorruptDownloadError(
                f"Downloaded file too small or corrupt ({total} bytes)"
            )

        elapsed = time.monotonic() - started
        logger.info(
            f"[{request_id}] Download complete: "
            f"{total / MEGABYTE:.1f}MB in {elapsed:.1f}s"
        )
        return total

    async def _open(
        self,
        client: httpx.AsyncClient,
        url: str,
        budget: TimeoutBudget,
    ) -> httpx.Response:
        """Send the request and wait for response headers."""
        request = client.build_request("GET", url)
        try:
            return await asyncio.wait_for(
                client.send(request, stream=True),
                timeout=budget.connect,
            )
        except asyncio.TimeoutError:
            raise DownloadTimeoutError(
                f"No response from source within {budget.connect}s"
            ) from None

    def _check_response(self, response: httpx.Response) -> None:
        """Reject error statuses and oversized declared lengths."""
        status = response.status_code
        if 400 <= status < 500:
            raise SourceRejectedError(f"Source returned HTTP {status}")
        if status >= 300:
            raise DownloadFailedError(f"Source returned HTTP {status}")

        declared = response.headers.get("Content-Length")
        if declared and declared.isdigit() and int(declared) > self.max_bytes:
            raise TooLargeError(
                f"Source declares {int(declared)} bytes, "
                f"limit is {self.max_bytes}"
            )

    async def _stream_to_file(
        self,
        response: httpx.Response,
        dest_path: Path,
        budget: TimeoutBudget,
        deadline: float,
        request_id: str,
    ) -> int:
        """Copy the body to disk chunk by chunk, enforcing every limit."""
        total = 0
        chunks: AsyncGenerator[bytes, None] = response.aiter_bytes()
        try:
            with open(dest_path, "wb") as f:
                while True:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        raise DownloadTimeoutError(
                            f"Download exceeded {budget.total_download}s"
                        )

                    # Whichever limit is closer decides the error type
                    wait = min(budget.inactivity, remaining)
                    try:
                        chunk = await asyncio.wait_for(chunks.__anext__(), timeout=wait)
                    except StopAsyncIteration:
                        break
                    except asyncio.TimeoutError:
                        if wait < budget.inactivity:
                            raise DownloadTimeoutError(
                                f"Download exceeded {budget.total_download}s"
                            ) from None
                        raise StalledDownloadError(
                            f"Download stalled: no data for {budget.inactivity}s "
                            f"after {total} bytes"
                        ) from None

                    previous = total
                    total += len(chunk)
                    if total > self.max_bytes:
                        raise TooLargeError(
                            f"Download exceeded {self.max_bytes} bytes"
                        )

                    f.write(chunk)

                    if total // PROGRESS_LOG_BYTES > previous // PROGRESS_LOG_BYTES:
                        logger.info(f"[{request_id}] {total // MEGABYTE}MB downloaded")
        finally:
            await chunks.aclose()

        return total

    @staticmethod
    def _discard(path: Path) -> None:
        try:
            os.unlink(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove partial download {path.name}: {e}")
