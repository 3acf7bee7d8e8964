"""SQLModel database entities.

All models are imported here to ensure they're registered with SQLModel metadata.
"""

from weafrica_media.models.upload import (
    InvalidStateTransition,
    Upload,
    UploadRecord,
    UploadStatus,
    UploadType,
    uploads_table,
)

__all__ = [
    "Upload",
    "UploadRecord",
    "UploadStatus",
    "UploadType",
    "InvalidStateTransition",
    "uploads_table",
]
