"""
Pipeline Errors
===============

Exception hierarchy raised by the pipeline stages.

Every stage fails fast with a PipelineError subclass. The class carries
its ErrorKind, so the orchestrator can turn any stage failure into a
single typed result without inspecting messages.
"""

from frameshot.models.error_codes import ErrorKind


class PipelineError(Exception):
    """Base class for all classified pipeline failures."""

    kind: ErrorKind = ErrorKind.INTERNAL

    @property
    def retryable(self) -> bool:
        return self.kind.retryable


class InvalidInputError(PipelineError):
    """Raised when a request cannot be processed as given."""

    kind = ErrorKind.INVALID_INPUT


# =============================================================================
# Download
# =============================================================================

class DownloadError(PipelineError):
    """Base class for fetch failures."""

    kind = ErrorKind.DOWNLOAD_FAILED


class DownloadFailedError(DownloadError):
    """Raised on connection-level failures and 5xx responses."""

    kind = ErrorKind.DOWNLOAD_FAILED


class SourceRejectedError(DownloadError):
    """Raised when the source answers with a 4xx status."""

    kind = ErrorKind.SOURCE_REJECTED


class DownloadTimeoutError(DownloadError):
    """Raised when the source does not respond or finish in time."""

    kind = ErrorKind.DOWNLOAD_TIMEOUT


class StalledDownloadError(DownloadError):
    """Raised when no bytes arrive for longer than the inactivity budget."""

    kind = ErrorKind.DOWNLOAD_STALLED


class TooLargeError(DownloadError):
    """Raised the moment the download crosses the size cap."""

    kind = ErrorKind.TOO_LARGE


class CorruptDownloadError(DownloadError):
    """Raised when the completed download is implausibly small."""

    kind = ErrorKind.CORRUPT_DOWNLOAD


# =============================================================================
# Extraction and output
# =============================================================================

class ExtractionError(PipelineError):
    """Raised when ffmpeg fails or its output is not an image."""

    kind = ErrorKind.EXTRACTION_FAILED


class ExtractionTimeoutError(ExtractionError):
    """Raised when ffmpeg is killed by the watchdog."""

    kind = ErrorKind.EXTRACTION_TIMEOUT


class FileTimeoutError(PipelineError):
    """Raised when a file does not settle before the stability timeout."""

    kind = ErrorKind.OUTPUT_TIMEOUT


class OutputTooSmallError(PipelineError):
    """Raised when the extracted frame is implausibly small."""

    kind = ErrorKind.OUTPUT_TOO_SMALL
