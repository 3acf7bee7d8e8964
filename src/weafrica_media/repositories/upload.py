"""Upload repository for the media worker.

Provides data access methods for upload rows with worker coordination via
FOR UPDATE SKIP LOCKED and an explicit claim stamp.
"""

from datetime import timedelta
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from weafrica_media.models.upload import UploadRecord, UploadStatus, uploads_table, utcnow
from weafrica_media.services.exceptions import UploadStateConflictError


class UploadRepository:
    """Repository for upload rows.

    Works against a configurable table name so deployments that renamed the
    uploads table can still share the model definition.
    """

    def __init__(self, session: AsyncSession, table_name: str = "uploads"):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
            table_name: Name of the uploads table (default: "uploads")
        """
        self.session = session
        self.table = uploads_table(table_name)

    async def get_by_id(self, upload_id: UUID) -> UploadRecord | None:
        """Retrieve upload snapshot by id.

        Args:
            upload_id: Upload's unique identifier

        Returns:
            UploadRecord if found, None otherwise
        """
        result = await self.session.execute(select(self.table).where(self.table.c.id == upload_id))
        row = result.mappings().one_or_none()
        return UploadRecord.from_row(row) if row is not None else None

    async def claim_processing(
        self, limit: int, worker_id: str, claim_ttl_seconds: int = 3600
    ) -> list[UploadRecord]:
        """Claim the oldest processing uploads for this worker.

        Query explanation:
        - WHERE status = 'processing': Only uploads awaiting processing
        - AND unclaimed or claim older than the TTL: Skip uploads another live
          worker is handling, recover uploads left by a crashed worker
        - ORDER BY created_at ASC: Process oldest first
        - LIMIT: Batch size for worker
        - FOR UPDATE SKIP LOCKED: Lock rows, skip already locked ones

        The selected rows are stamped with claimed_by/claimed_at in the same
        transaction, so the claim is visible to other workers once it commits.

        Args:
            limit: Maximum number of uploads to claim
            worker_id: Claim owner id written to claimed_by
            claim_ttl_seconds: Age after which another worker's claim is ignored

        Returns:
            Snapshots of the claimed uploads, oldest first
        """
        t = self.table
        now = utcnow()
        stale_before = now - timedelta(seconds=claim_ttl_seconds)

        result = await self.session.execute(
            select(t)
            .where(t.c.status == UploadStatus.PROCESSING.value)
            .where(or_(t.c.claimed_by.is_(None), t.c.claimed_at < stale_before))
            .order_by(t.c.created_at.asc())
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        rows = [dict(row) for row in result.mappings().all()]
        if not rows:
            return []

        await self.session.execute(
            update(t)
            .where(t.c.id.in_([row["id"] for row in rows]))
            .values(claimed_by=worker_id, claimed_at=now)
        )
        await self.session.flush()

        claimed = []
        for row in rows:
            row["claimed_by"] = worker_id
            claimed.append(UploadRecord.from_row(row))
        return claimed

    async def mark_published(
        self,
        record: UploadRecord,
        processed_path: str,
        duration_seconds: Optional[float],
    ) -> None:
        """Mark upload as published with its processed object.

        Args:
            record: Snapshot taken when the batch was claimed
            processed_path: Storage key of the transcoded object
            duration_seconds: Probed duration, None when probing failed

        Raises:
            InvalidStateTransition: If the snapshot is not in processing
            UploadStateConflictError: If the row left processing meanwhile
        """
        await self._apply(record.id, record.published_patch(processed_path, duration_seconds))

    async def mark_rejected(self, record: UploadRecord, error_message: Optional[str]) -> None:
        """Mark upload as rejected with a failure description.

        Args:
            record: Snapshot taken when the batch was claimed
            error_message: Failure description (truncated to 1000 characters)

        Raises:
            InvalidStateTransition: If the snapshot is not in processing
            UploadStateConflictError: If the row left processing meanwhile
        """
        await self._apply(record.id, record.rejected_patch(error_message))

    async def _apply(self, upload_id: UUID, patch: dict[str, Any]) -> None:
        t = self.table
        result = await self.session.execute(
            update(t)
            .where(t.c.id == upload_id)
            .where(t.c.status == UploadStatus.PROCESSING.value)
            .values(**patch)
        )
        if result.rowcount == 0:
            raise UploadStateConflictError(
                f"Upload {upload_id} is no longer in processing state"
            )
        await self.session.flush()
