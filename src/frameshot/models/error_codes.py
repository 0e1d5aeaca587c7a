"""
Error Kinds
===========

Closed taxonomy of pipeline failures.

Each failed request carries exactly ONE kind. Whether a caller may retry
is derived from the kind and is never set independently.

Rules:
    - Timeouts, stalls and connection-class failures are retryable
    - Bad input and oversized sources are not
"""

from enum import Enum


class ErrorKind(str, Enum):
    """
    Machine-readable failure classification.

    Attributes:
        INVALID_INPUT: Missing or malformed URL, timestamp or request id
        ADMISSION_REJECTED: All processing slots are busy
        DOWNLOAD_TIMEOUT: Source did not respond or finish in time
        DOWNLOAD_STALLED: Source stopped sending bytes
        DOWNLOAD_FAILED: Connection-level failure or 5xx from the source
        SOURCE_REJECTED: Source answered with a 4xx status
        TOO_LARGE: Source exceeded the download size cap
        CORRUPT_DOWNLOAD: Downloaded file is implausibly small
        EXTRACTION_TIMEOUT: ffmpeg was killed by the watchdog
        EXTRACTION_FAILED: ffmpeg exited non-zero or produced no image
        OUTPUT_TIMEOUT: Extracted frame never settled on disk
        OUTPUT_TOO_SMALL: Extracted frame is implausibly small
        INTERNAL: Unexpected error
    """

    # Input
    INVALID_INPUT = "INVALID_INPUT"
    ADMISSION_REJECTED = "ADMISSION_REJECTED"

    # Download
    DOWNLOAD_TIMEOUT = "DOWNLOAD_TIMEOUT"
    DOWNLOAD_STALLED = "DOWNLOAD_STALLED"
    DOWNLOAD_FAILED = "DOWNLOAD_FAILED"
    SOURCE_REJECTED = "SOURCE_REJECTED"
    TOO_LARGE = "TOO_LARGE"
    CORRUPT_DOWNLOAD = "CORRUPT_DOWNLOAD"

    # Extraction
    EXTRACTION_TIMEOUT = "EXTRACTION_TIMEOUT"
    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    OUTPUT_TIMEOUT = "OUTPUT_TIMEOUT"
    OUTPUT_TOO_SMALL = "OUTPUT_TOO_SMALL"

    INTERNAL = "INTERNAL"

    @property
    def retryable(self) -> bool:
        """Whether resending the same request might succeed."""
        return self in _RETRYABLE

    @property
    def http_status(self) -> int:
        """HTTP status used by the API layer."""
        return _HTTP_STATUS[self]


_RETRYABLE = frozenset({
    ErrorKind.ADMISSION_REJECTED,
    ErrorKind.DOWNLOAD_TIMEOUT,
    ErrorKind.DOWNLOAD_STALLED,
    ErrorKind.DOWNLOAD_FAILED,
    ErrorKind.EXTRACTION_TIMEOUT,
    ErrorKind.OUTPUT_TIMEOUT,
})

_HTTP_STATUS = {
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.ADMISSION_REJECTED: 429,
    ErrorKind.DOWNLOAD_TIMEOUT: 408,
    ErrorKind.DOWNLOAD_STALLED: 408,
    ErrorKind.DOWNLOAD_FAILED: 502,
    ErrorKind.SOURCE_REJECTED: 502,
    ErrorKind.TOO_LARGE: 413,
    ErrorKind.CORRUPT_DOWNLOAD: 422,
    ErrorKind.EXTRACTION_TIMEOUT: 408,
    ErrorKind.EXTRACTION_FAILED: 500,
    ErrorKind.OUTPUT_TIMEOUT: 408,
    ErrorKind.OUTPUT_TOO_SMALL: 500,
    ErrorKind.INTERNAL: 500,
}
