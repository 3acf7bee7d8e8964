"""Background workers for async processing tasks."""

from weafrica_media.workers.upload_processing_worker import (
    process_batch,
    run_upload_processing_worker,
)

__all__ = [
    "process_batch",
    "run_upload_processing_worker",
]
