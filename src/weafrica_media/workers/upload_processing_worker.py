"""Upload processing worker for artist media submissions.

Claims uploads with status='processing', downloads the original from storage,
transcodes it (audio to MP3, video to H.264/AAC MP4), probes the duration,
uploads the result and moves the upload to 'published' or 'rejected'.

Uploads in a batch are processed one at a time. Each upload is isolated: any
failure rejects that upload only, and the batch scratch directory is removed
however the batch ends.
"""

import asyncio
import shutil
import tempfile
import time
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from pathlib import Path, PurePosixPath
from typing import Callable, Iterator, Optional, Sequence
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from weafrica_media.core.config import Settings
from weafrica_media.models.upload import UploadRecord, UploadStatus, normalize_error_message
from weafrica_media.services.exceptions import TransientError, UploadDataError
from weafrica_media.services.media.recipes import TranscodeRecipe, recipe_for
from weafrica_media.services.media.runner import SubprocessRunner
from weafrica_media.services.media.toolkit import MediaToolkit
from weafrica_media.services.storage.storage_client import StorageClient
from weafrica_media.uow import create_uow_factory

logger = structlog.get_logger(__name__)

SCRATCH_PREFIX = "weafrica-uploads-"
MISSING_PATH_MESSAGE = "Missing original file path."
ERROR_BACKOFF_SECONDS = 5


@dataclass(frozen=True)
class BatchRun:
    """One claimed batch: upload snapshots plus the scratch directory they share."""

    records: tuple[UploadRecord, ...]
    scratch_dir: Path
    worker_id: str

    def input_path_for(self, record: UploadRecord) -> Path:
        return self.scratch_dir / f"{record.id}-input"

    def output_path_for(self, record: UploadRecord, recipe: TranscodeRecipe) -> Path:
        return self.scratch_dir / f"{record.id}-output.{recipe.extension}"

    def with_records(self, records: Sequence[UploadRecord]) -> "BatchRun":
        return replace(self, records=tuple(records))


@dataclass(frozen=True)
class UploadOutcome:
    """Terminal state an upload reached in this pass."""

    upload_id: UUID
    status: UploadStatus
    processed_path: Optional[str] = None
    duration_seconds: Optional[float] = None
    error_message: Optional[str] = None


@dataclass
class BatchSummary:
    """Counts for one batch pass."""

    claimed: int = 0
    published: int = 0
    rejected: int = 0
    outcomes: list[UploadOutcome] = field(default_factory=list)

    def add(self, outcome: UploadOutcome) -> None:
        self.outcomes.append(outcome)
        if outcome.status == UploadStatus.PUBLISHED:
            self.published += 1
        else:
            self.rejected += 1


@dataclass(frozen=True)
class WorkerDependencies:
    """Capabilities the pipeline needs; tests swap in fakes."""

    uow_factory: Callable
    storage: StorageClient
    toolkit: MediaToolkit


@contextmanager
def open_batch_run(
    records: Sequence[UploadRecord], worker_id: str, scratch_root: Optional[str] = None
) -> Iterator[BatchRun]:
    """Create a fresh scratch directory for a batch and remove it on exit."""
    scratch_dir = Path(tempfile.mkdtemp(prefix=SCRATCH_PREFIX, dir=scratch_root))
    try:
        yield BatchRun(records=tuple(records), scratch_dir=scratch_dir, worker_id=worker_id)
    finally:
        shutil.rmtree(scratch_dir, ignore_errors=True)
        if scratch_dir.exists():
            logger.warning("uploads.scratch.cleanup_failed", scratch_dir=str(scratch_dir))


def processed_path_for(record: UploadRecord, recipe: TranscodeRecipe) -> str:
    """Deterministic storage key for the transcoded object.

    Example:
        processed/songs/<artist_uid>/<id>-my-track.mp3
    """
    stem = PurePosixPath(record.original_path or "upload").stem
    return f"{recipe.folder}/{record.artist_uid}/{record.id}-{stem}.{recipe.extension}"


async def transcode_upload(
    record: UploadRecord, batch: BatchRun, deps: WorkerDependencies
) -> tuple[str, Optional[float]]:
    """Run download, transcode, probe and upload for one upload.

    Returns:
        (processed_path, duration_seconds)

    Raises:
        UploadDataError: Missing path, artist or unsupported type
        ServiceError: Storage or transcoder failure
    """
    if not record.original_path:
        raise UploadDataError(MISSING_PATH_MESSAGE)
    upload_type = record.upload_type
    if not record.artist_uid:
        raise UploadDataError("Missing artist uid.")

    recipe = recipe_for(upload_type)
    input_path = batch.input_path_for(record)
    output_path = batch.output_path_for(record, recipe)

    try:
        size = await deps.storage.download_to_file(record.original_path, input_path)
        logger.info("uploads.record.downloaded", upload_id=str(record.id), bytes=size)

        await deps.toolkit.transcode(recipe, input_path, output_path)
        logger.info("uploads.record.transcoded", upload_id=str(record.id), recipe=recipe.extension)

        duration = await deps.toolkit.probe_duration(output_path)

        processed_path = processed_path_for(record, recipe)
        await deps.storage.upload_file(processed_path, output_path, recipe.content_type)
        logger.info("uploads.record.uploaded", upload_id=str(record.id), path=processed_path)
    finally:
        input_path.unlink(missing_ok=True)
        output_path.unlink(missing_ok=True)

    return processed_path, duration


async def reject_upload(
    record: UploadRecord, error: Exception, deps: WorkerDependencies
) -> UploadOutcome:
    """Best-effort write of the rejected state.

    A failure to write the rejection is logged and does not propagate, so the
    rest of the batch still runs.
    """
    message = str(error) or type(error).__name__
    outcome = UploadOutcome(
        upload_id=record.id,
        status=UploadStatus.REJECTED,
        error_message=normalize_error_message(message),
    )

    try:
        async with await deps.uow_factory() as uow:
            await uow.uploads.mark_rejected(record, message)
    except Exception as e:
        logger.error(
            "uploads.reject_failed",
            upload_id=str(record.id),
            error_type=type(e).__name__,
            error_message=str(e),
            original_error=message,
        )

    return outcome


async def process_upload(
    record: UploadRecord, batch: BatchRun, deps: WorkerDependencies
) -> UploadOutcome:
    """Process a single upload and record its terminal state.

    Workflow:
    1. Validate original_path (missing -> rejected, nothing else attempted)
    2. Download original into the batch scratch directory
    3. Transcode with the recipe for the upload type
    4. Probe duration (failure leaves duration null)
    5. Upload result to processed/{videos|songs}/<artist>/<id>-<name>.<ext>
    6. Mark published

    Any exception in steps 1-6 rejects the upload with the error description.
    Never raises for upload-level failures.
    """
    start_time = time.time()
    logger.info(
        "uploads.record.started",
        upload_id=str(record.id),
        upload_type=record.type,
        original_path=record.original_path,
    )

    try:
        processed_path, duration = await transcode_upload(record, batch, deps)

        async with await deps.uow_factory() as uow:
            await uow.uploads.mark_published(record, processed_path, duration)

    except Exception as e:
        logger.error(
            "uploads.record.rejected",
            upload_id=str(record.id),
            error_type=type(e).__name__,
            error_class="transient" if isinstance(e, TransientError) else "permanent",
            error_message=str(e),
        )
        return await reject_upload(record, e, deps)

    logger.info(
        "uploads.record.published",
        upload_id=str(record.id),
        processed_path=processed_path,
        media_duration_seconds=duration,
        elapsed_seconds=round(time.time() - start_time, 3),
    )
    return UploadOutcome(
        upload_id=record.id,
        status=UploadStatus.PUBLISHED,
        processed_path=processed_path,
        duration_seconds=duration,
    )


async def process_batch(deps: WorkerDependencies, settings: Settings) -> BatchSummary:
    """Claim and process one batch of uploads sequentially.

    The scratch directory is created before claiming, so a broken scratch root
    fails the pass without touching any upload. Claiming runs in its own
    transaction; each terminal update runs in its own transaction, so one
    upload's failure never rolls back another's state.

    Raises:
        OSError: Scratch directory cannot be created
        Exception: Claim (batch listing) failures propagate to the caller
    """
    summary = BatchSummary()

    with open_batch_run((), settings.worker_id, settings.scratch_root) as scratch:
        async with await deps.uow_factory() as uow:
            records = await uow.uploads.claim_processing(
                limit=settings.max_batch_size,
                worker_id=settings.worker_id,
                claim_ttl_seconds=settings.claim_ttl_seconds,
            )

        summary.claimed = len(records)
        if not records:
            logger.info("uploads.batch.empty")
            return summary

        logger.info(
            "uploads.batch.claimed",
            count=len(records),
            upload_ids=[str(r.id) for r in records],
            worker_id=settings.worker_id,
        )

        batch = scratch.with_records(records)
        for record in batch.records:
            summary.add(await process_upload(record, batch, deps))

    logger.info(
        "uploads.batch.completed",
        claimed=summary.claimed,
        published=summary.published,
        rejected=summary.rejected,
    )
    return summary


def build_worker_dependencies(
    session_factory: async_sessionmaker[AsyncSession], settings: Settings
) -> WorkerDependencies:
    """Wire production capabilities from settings."""
    return WorkerDependencies(
        uow_factory=create_uow_factory(session_factory, table_name=settings.uploads_table),
        storage=StorageClient(
            base_url=settings.storage_url,
            service_key=settings.storage_service_key,
            bucket=settings.storage_bucket,
            timeout=settings.storage_timeout_seconds,
        ),
        toolkit=MediaToolkit(
            runner=SubprocessRunner(),
            ffmpeg_bin=settings.ffmpeg_bin,
            ffprobe_bin=settings.ffprobe_bin,
            transcode_timeout=settings.transcode_timeout,
            probe_timeout=settings.probe_timeout,
        ),
    )


async def run_upload_processing_worker(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
    deps: WorkerDependencies | None = None,
    on_batch: Callable[[BatchSummary], None] | None = None,
) -> None:
    """Main worker loop for upload processing.

    Polls at POLL_INTERVAL_SECONDS, processes batches, and handles graceful shutdown.

    Args:
        session_factory: Factory function that creates database sessions
        settings: Application settings (poll interval, batch size, storage, tools)
        deps: Pre-built capabilities (built from settings when omitted)
        on_batch: Optional callback receiving each batch summary
    """
    deps = deps or build_worker_dependencies(session_factory, settings)

    logger.info(
        "worker.started",
        worker_type="upload_processing",
        worker_id=settings.worker_id,
        poll_interval=settings.poll_interval_seconds,
        batch_size=settings.max_batch_size,
    )

    try:
        while True:
            try:
                summary = await process_batch(deps, settings)
                if on_batch is not None:
                    on_batch(summary)

                await asyncio.sleep(settings.poll_interval_seconds)

            except asyncio.CancelledError:
                raise

            except Exception as e:
                # Batch-level failure (claim query) - log and retry after back-off
                logger.error(
                    "worker.error",
                    worker_type="upload_processing",
                    error_type=type(e).__name__,
                    error_message=str(e),
                    exc_info=True,
                )
                await asyncio.sleep(ERROR_BACKOFF_SECONDS)

    except asyncio.CancelledError:
        logger.info("worker.stopped", worker_type="upload_processing")
        raise
