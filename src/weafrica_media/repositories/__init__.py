"""Repository layer for the media worker.

Provides data access abstractions for domain entities.
"""

from weafrica_media.repositories.upload import UploadRepository

__all__ = [
    "UploadRepository",
]
