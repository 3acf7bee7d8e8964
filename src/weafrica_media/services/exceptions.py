"""Service error hierarchy for the upload processing pipeline.

This module defines the exception hierarchy for service-level errors:
- ServiceError: Base for all service errors
- TransientError: Errors caused by the environment (network, rate limits, timeouts)
- PermanentError: Errors caused by the input or credentials

The worker does not retry: every per-record error ends with the upload
rejected. The split is kept so logs tell operators whether a manual re-queue
is likely to help.
"""


class ServiceError(Exception):
    """Base exception for all service errors."""

    pass


class TransientError(ServiceError):
    """Error that may succeed if the upload is re-queued later.

    Examples:
    - Network timeouts
    - Rate limit exceeded (429)
    - Storage unavailable (5xx)
    - Transcoder timeout
    """

    pass


class PermanentError(ServiceError):
    """Error that will fail again for the same input.

    Examples:
    - Authentication failures (401, 403)
    - Source object missing
    - Corrupt media rejected by ffmpeg
    - Upload row missing required data
    """

    pass


# Object storage errors
class StorageError(ServiceError):
    """Base exception for object storage errors."""

    pass


class StorageRateLimitError(StorageError, TransientError):
    """Rate limit exceeded (429)."""

    pass


class StorageUnavailableError(StorageError, TransientError):
    """Storage service returned a 5xx response."""

    pass


class StorageNetworkError(StorageError, TransientError):
    """Network timeout or connection failure."""

    pass


class StorageAuthError(StorageError, PermanentError):
    """Authentication failure (401, 403)."""

    pass


class StorageNotFoundError(StorageError, PermanentError):
    """Object or bucket does not exist."""

    pass


class StorageValidationError(StorageError, PermanentError):
    """Bad request (4xx other than auth / not found)."""

    pass


class EmptyDownloadError(StorageError, PermanentError):
    """Download succeeded but returned no bytes."""

    pass


# Media tool errors
class MediaToolError(ServiceError):
    """Base exception for ffmpeg / ffprobe invocation errors."""

    pass


class MediaToolNotFoundError(MediaToolError, PermanentError):
    """Executable not found on PATH."""

    pass


class CommandTimeoutError(MediaToolError, TransientError):
    """Subprocess exceeded its timeout and was killed."""

    pass


class TranscodeError(MediaToolError, PermanentError):
    """Transcoder exited non-zero or produced no output."""

    pass


# Upload data errors
class UploadDataError(PermanentError):
    """Upload row is missing data the pipeline needs."""

    pass


# Metadata store errors
class MetadataStoreError(ServiceError):
    """Base exception for metadata store errors."""

    pass


class UploadStateConflictError(MetadataStoreError):
    """Terminal update matched no row still in processing."""

    pass
