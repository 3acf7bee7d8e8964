"""Upload entity - artist media submission with processing lifecycle."""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from functools import lru_cache
from typing import Any, Mapping, Optional
from uuid import UUID, uuid4

from sqlalchemy import Column, DateTime, Index, MetaData, String, Table
from sqlmodel import Field, SQLModel

from weafrica_media.services.exceptions import UploadDataError

MAX_ERROR_MESSAGE_LENGTH = 1000
DEFAULT_ERROR_MESSAGE = "Processing failed"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_error_message(error_message: Optional[str]) -> str:
    """Non-empty rejection message, truncated to fit the column."""
    message = (error_message or "").strip() or DEFAULT_ERROR_MESSAGE
    return message[:MAX_ERROR_MESSAGE_LENGTH]


class UploadStatus(str, Enum):
    """Upload lifecycle status."""

    PROCESSING = "processing"
    PUBLISHED = "published"
    REJECTED = "rejected"


class UploadType(str, Enum):
    """Media kind, selects the transcoding recipe."""

    AUDIO = "audio"
    VIDEO = "video"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "UploadType":
        """Parse a stored type value.

        The ingestion API stores audio uploads as ``song``.

        Raises:
            UploadDataError: If the value is missing or not a known media kind
        """
        if raw == "song":
            return cls.AUDIO
        try:
            return cls(raw)
        except ValueError:
            raise UploadDataError(f"Unsupported upload type: {raw}") from None


class InvalidStateTransition(Exception):
    """Raised when attempting an invalid upload state transition."""

    pass


class Upload(SQLModel, table=True):
    """Upload row as stored in the metadata database.

    Rows are created by the ingestion API in ``processing`` and only ever
    moved to a terminal state by the processing worker.
    """

    __tablename__ = "uploads"  # type: ignore[assignment]
    __table_args__ = (Index("ix_uploads_status_created_at", "status", "created_at"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    artist_uid: Optional[str] = Field(default=None, index=True)
    type: Optional[str] = Field(default=None, max_length=16)
    title: Optional[str] = Field(default=None)
    original_path: Optional[str] = Field(default=None)
    processed_path: Optional[str] = Field(default=None)
    status: str = Field(
        default=UploadStatus.PROCESSING.value,
        sa_column=Column(String(32), nullable=False, index=True),
    )
    rejection_reason: Optional[str] = Field(default=None)
    error_message: Optional[str] = Field(default=None)
    duration_seconds: Optional[float] = Field(default=None)

    # Claim guard for concurrent workers
    claimed_by: Optional[str] = Field(default=None, max_length=255)
    claimed_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )

    created_at: datetime = Field(
        default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False)
    )
    updated_at: datetime = Field(
        default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False)
    )


@lru_cache(maxsize=None)
def uploads_table(name: str = "uploads") -> Table:
    """Return the uploads table definition under a configurable name."""
    table = Upload.__table__  # type: ignore[attr-defined]
    if name == table.name:
        return table
    return table.to_metadata(MetaData(), name=name)


@dataclass(frozen=True)
class UploadRecord:
    """Immutable snapshot of one upload row taken when a batch is claimed."""

    id: UUID
    status: UploadStatus
    artist_uid: Optional[str] = None
    type: Optional[str] = None
    original_path: Optional[str] = None
    processed_path: Optional[str] = None
    duration_seconds: Optional[float] = None
    error_message: Optional[str] = None
    claimed_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "UploadRecord":
        """Build a snapshot from a result mapping.

        Only ``id`` and ``status`` are required here. Fields whose absence is a
        per-upload problem are validated by the pipeline so a single bad row
        gets rejected instead of failing the whole batch.

        Raises:
            UploadDataError: If id or status is missing or status is unknown
        """
        if row.get("id") is None:
            raise UploadDataError("Upload row has no id")
        try:
            status = UploadStatus(row.get("status"))
        except ValueError:
            raise UploadDataError(
                f"Upload {row['id']} has unknown status: {row.get('status')}"
            ) from None

        return cls(
            id=row["id"],
            status=status,
            artist_uid=row.get("artist_uid"),
            type=row.get("type"),
            original_path=row.get("original_path"),
            processed_path=row.get("processed_path"),
            duration_seconds=row.get("duration_seconds"),
            error_message=row.get("error_message"),
            claimed_by=row.get("claimed_by"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    @property
    def upload_type(self) -> UploadType:
        """Parsed media kind.

        Raises:
            UploadDataError: If the stored type is missing or unsupported
        """
        return UploadType.parse(self.type)

    def published_patch(
        self, processed_path: str, duration_seconds: Optional[float]
    ) -> dict[str, Any]:
        """Column patch for processing -> published.

        Args:
            processed_path: Storage key of the transcoded object
            duration_seconds: Probed duration, None when probing failed

        Raises:
            InvalidStateTransition: If the snapshot is not in processing
            ValueError: If processed_path is empty
        """
        if self.status != UploadStatus.PROCESSING:
            raise InvalidStateTransition(
                f"Cannot mark published from {self.status.value}. "
                "Upload must be in processing state."
            )
        if not processed_path:
            raise ValueError("processed_path is required")

        return {
            "status": UploadStatus.PUBLISHED.value,
            "processed_path": processed_path,
            "duration_seconds": duration_seconds,
            "error_message": None,
            "claimed_by": None,
            "claimed_at": None,
            "updated_at": utcnow(),
        }

    def rejected_patch(self, error_message: Optional[str]) -> dict[str, Any]:
        """Column patch for processing -> rejected.

        Leaves processed_path and duration_seconds untouched.

        Args:
            error_message: Failure description (truncated to 1000 characters)

        Raises:
            InvalidStateTransition: If the snapshot is not in processing
        """
        if self.status != UploadStatus.PROCESSING:
            raise InvalidStateTransition(
                f"Cannot mark rejected from {self.status.value}. "
                "Upload must be in processing state."
            )
        return {
            "status": UploadStatus.REJECTED.value,
            "error_message": normalize_error_message(error_message),
            "claimed_by": None,
            "claimed_at": None,
            "updated_at": utcnow(),
        }
