"""State transition tests for the Upload lifecycle.

Tests focus on validating the upload state machine:
- processing -> published and processing -> rejected are the only transitions
- Terminal uploads refuse further transitions with clear error messages
- Row snapshots reject unknown statuses, types are parsed leniently for "song"
"""

from uuid import uuid4

import pytest

from weafrica_media.models.upload import (
    DEFAULT_ERROR_MESSAGE,
    MAX_ERROR_MESSAGE_LENGTH,
    InvalidStateTransition,
    UploadRecord,
    UploadStatus,
    UploadType,
    normalize_error_message,
)
from weafrica_media.services.exceptions import PermanentError, UploadDataError


def make_record(status: str = "processing", **fields) -> UploadRecord:
    row = {
        "id": uuid4(),
        "status": status,
        "artist_uid": "artist-1",
        "type": "audio",
        "original_path": "originals/track.wav",
    }
    row.update(fields)
    return UploadRecord.from_row(row)


def test_published_patch():
    """processing -> published sets path, duration and clears error and claim."""
    record = make_record(error_message="old failure", claimed_by="worker-1")

    patch = record.published_patch("processed/songs/artist-1/x-track.mp3", 183.4)

    assert patch["status"] == UploadStatus.PUBLISHED.value
    assert patch["processed_path"] == "processed/songs/artist-1/x-track.mp3"
    assert patch["duration_seconds"] == 183.4
    assert patch["error_message"] is None
    assert patch["claimed_by"] is None
    assert patch["claimed_at"] is None
    assert patch["updated_at"].tzinfo is not None


def test_published_patch_allows_missing_duration():
    patch = make_record().published_patch("processed/videos/a/x-clip.mp4", None)
    assert patch["duration_seconds"] is None


def test_published_patch_requires_path():
    with pytest.raises(ValueError, match="processed_path"):
        make_record().published_patch("", 10.0)


def test_rejected_patch():
    """processing -> rejected records the error and leaves outputs untouched."""
    patch = make_record().rejected_patch("ffmpeg exited with code 1")

    assert patch["status"] == UploadStatus.REJECTED.value
    assert patch["error_message"] == "ffmpeg exited with code 1"
    assert "processed_path" not in patch
    assert "duration_seconds" not in patch
    assert patch["claimed_by"] is None


@pytest.mark.parametrize("terminal", ["published", "rejected"])
def test_terminal_states_refuse_transitions(terminal):
    record = make_record(status=terminal)

    with pytest.raises(InvalidStateTransition) as exc_info:
        record.published_patch("processed/songs/a/x.mp3", 1.0)
    assert f"Cannot mark published from {terminal}" in str(exc_info.value)

    with pytest.raises(InvalidStateTransition) as exc_info:
        record.rejected_patch("late failure")
    assert f"Cannot mark rejected from {terminal}" in str(exc_info.value)


@pytest.mark.parametrize(
    "raw,expected",
    [
        (None, DEFAULT_ERROR_MESSAGE),
        ("", DEFAULT_ERROR_MESSAGE),
        ("   \n", DEFAULT_ERROR_MESSAGE),
        ("  disk full  ", "disk full"),
    ],
)
def test_normalize_error_message(raw, expected):
    assert normalize_error_message(raw) == expected


def test_error_message_truncated():
    patch = make_record().rejected_patch("x" * 5000)
    assert len(patch["error_message"]) == MAX_ERROR_MESSAGE_LENGTH


@pytest.mark.parametrize(
    "raw,expected",
    [("audio", UploadType.AUDIO), ("song", UploadType.AUDIO), ("video", UploadType.VIDEO)],
)
def test_upload_type_parse(raw, expected):
    assert make_record(type=raw).upload_type == expected


@pytest.mark.parametrize("raw", [None, "", "image", "VIDEO"])
def test_upload_type_parse_rejects_unknown(raw):
    with pytest.raises(UploadDataError, match="Unsupported upload type"):
        make_record(type=raw).upload_type


def test_upload_data_error_is_permanent():
    assert issubclass(UploadDataError, PermanentError)


def test_from_row_requires_id_and_known_status():
    with pytest.raises(UploadDataError, match="no id"):
        UploadRecord.from_row({"status": "processing"})

    with pytest.raises(UploadDataError, match="unknown status"):
        UploadRecord.from_row({"id": uuid4(), "status": "pending"})


def test_from_row_tolerates_missing_optional_fields():
    upload_id = uuid4()
    record = UploadRecord.from_row({"id": upload_id, "status": "processing"})

    assert record.id == upload_id
    assert record.status == UploadStatus.PROCESSING
    assert record.original_path is None
    assert record.artist_uid is None
