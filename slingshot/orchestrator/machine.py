"""Transition tables and pure transition functions for the upload flow."""
from dataclasses import replace
from enum import Enum

from ..errors import InvalidTransitionError
from ..models import FileRecord, FileStatus, UploadStatus


class UploadEvent(Enum):
    """Events accepted by the overall upload machine."""
    UPLOAD = "UPLOAD"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


# (state, event) -> next state
STATUS_TRANSITIONS = {
    (UploadStatus.IDLE, UploadEvent.UPLOAD): UploadStatus.UPLOADING,
    (UploadStatus.DONE, UploadEvent.UPLOAD): UploadStatus.UPLOADING,
    (UploadStatus.FAILED, UploadEvent.UPLOAD): UploadStatus.UPLOADING,
    (UploadStatus.UPLOADING, UploadEvent.SUCCESS): UploadStatus.DONE,
    (UploadStatus.UPLOADING, UploadEvent.FAILED): UploadStatus.FAILED,
}

# Valid per-file edges (from_status, to_status)
FILE_EDGES = frozenset({
    (FileStatus.AUTHORIZING, FileStatus.ACCEPTED),
    (FileStatus.AUTHORIZING, FileStatus.REJECTED),
    (FileStatus.AUTHORIZING, FileStatus.ABORTED),
    (FileStatus.ACCEPTED, FileStatus.UPLOADING),
    (FileStatus.ACCEPTED, FileStatus.ABORTED),
    (FileStatus.UPLOADING, FileStatus.UPLOADING),
    (FileStatus.UPLOADING, FileStatus.DONE),
    (FileStatus.UPLOADING, FileStatus.FAILED),
    (FileStatus.UPLOADING, FileStatus.ABORTED),
})


def next_status(status: UploadStatus, event: UploadEvent) -> UploadStatus:
    """Return the overall status reached by `event`, or raise InvalidTransitionError."""
    try:
        return STATUS_TRANSITIONS[(status, event)]
    except KeyError:
        raise InvalidTransitionError(
            f"Event {event.value} is not accepted in state {status.value}"
        ) from None


def can_advance(current: FileStatus, target: FileStatus) -> bool:
    return (current, target) in FILE_EDGES


def advance(record: FileRecord, status: FileStatus, **changes) -> FileRecord:
    """
    Move a record to `status`, returning the replacement record.

    Field rules:
        accepted  requires key and url together
        uploading progress defaults to 0 on entry and is clamped to [0, 100]
        done      progress is 100
        error     kept only for rejected / failed
        progress  cleared in every state except uploading and done
    """
    if not can_advance(record.status, status):
        raise InvalidTransitionError(
            f"File {record.name!r} cannot move from {record.status.value} to {status.value}"
        )

    unknown = set(changes) - {"key", "url", "progress", "error"}
    if unknown:
        raise TypeError(f"Unexpected record fields: {', '.join(sorted(unknown))}")

    if status is FileStatus.ACCEPTED:
        if not changes.get("key") or not changes.get("url"):
            raise InvalidTransitionError(
                f"File {record.name!r} can only be accepted with both key and url"
            )

    progress = changes.pop("progress", record.progress)
    if status is FileStatus.UPLOADING:
        progress = 0 if progress is None else max(0, min(100, int(progress)))
    elif status is FileStatus.DONE:
        progress = 100
    else:
        progress = None

    error = changes.pop("error", None)
    if status not in (FileStatus.REJECTED, FileStatus.FAILED):
        error = None

    return replace(record, status=status, progress=progress, error=error, **changes)
