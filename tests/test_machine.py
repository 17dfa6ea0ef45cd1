"""Tests for the upload state machine transition functions."""
from dataclasses import replace

import pytest

from slingshot.errors import InvalidTransitionError
from slingshot.models import FileRecord, FileStatus, UploadFile, UploadStatus
from slingshot.orchestrator.machine import (
    FILE_EDGES,
    UploadEvent,
    advance,
    can_advance,
    next_status,
)


def _record(status: FileStatus = FileStatus.AUTHORIZING, **kwargs) -> FileRecord:
    record = FileRecord.create("file-1", UploadFile(name="a.png", data=b"abc", type="image/png"))
    if status is FileStatus.AUTHORIZING:
        return record
    return replace(record, status=status, **kwargs)


class TestOverallStatus:
    def test_upload_from_idle(self):
        assert next_status(UploadStatus.IDLE, UploadEvent.UPLOAD) is UploadStatus.UPLOADING

    def test_success_and_failure_from_uploading(self):
        assert next_status(UploadStatus.UPLOADING, UploadEvent.SUCCESS) is UploadStatus.DONE
        assert next_status(UploadStatus.UPLOADING, UploadEvent.FAILED) is UploadStatus.FAILED

    @pytest.mark.parametrize("status", [UploadStatus.DONE, UploadStatus.FAILED])
    def test_terminal_states_restart_on_upload(self, status):
        assert next_status(status, UploadEvent.UPLOAD) is UploadStatus.UPLOADING

    def test_upload_while_uploading_is_invalid(self):
        with pytest.raises(InvalidTransitionError):
            next_status(UploadStatus.UPLOADING, UploadEvent.UPLOAD)

    def test_success_from_idle_is_invalid(self):
        with pytest.raises(InvalidTransitionError, match="SUCCESS"):
            next_status(UploadStatus.IDLE, UploadEvent.SUCCESS)


class TestFileTransitions:
    def test_accept_sets_key_and_url(self):
        record = advance(_record(), FileStatus.ACCEPTED, key="avatar/a.png", url="https://s3/put")
        assert record.status is FileStatus.ACCEPTED
        assert record.key == "avatar/a.png"
        assert record.url == "https://s3/put"
        assert record.progress is None
        assert record.error is None

    def test_accept_requires_both_key_and_url(self):
        with pytest.raises(InvalidTransitionError):
            advance(_record(), FileStatus.ACCEPTED, key="avatar/a.png")

    def test_reject_keeps_error(self):
        record = advance(_record(), FileStatus.REJECTED, error="File type not allowed")
        assert record.status is FileStatus.REJECTED
        assert record.error == "File type not allowed"
        assert record.key is None and record.url is None

    def test_rejected_is_terminal(self):
        rejected = advance(_record(), FileStatus.REJECTED)
        assert rejected.is_terminal
        for target in (FileStatus.ACCEPTED, FileStatus.UPLOADING, FileStatus.DONE):
            with pytest.raises(InvalidTransitionError):
                advance(rejected, target)

    def test_cannot_upload_before_accepted(self):
        with pytest.raises(InvalidTransitionError):
            advance(_record(), FileStatus.UPLOADING)

    def test_uploading_starts_at_zero_and_clamps(self):
        accepted = _record(FileStatus.ACCEPTED, key="k", url="u")
        uploading = advance(accepted, FileStatus.UPLOADING)
        assert uploading.progress == 0
        assert advance(uploading, FileStatus.UPLOADING, progress=150).progress == 100
        assert advance(uploading, FileStatus.UPLOADING, progress=-3).progress == 0

    def test_done_sets_progress_to_100(self):
        uploading = _record(FileStatus.UPLOADING, key="k", url="u", progress=40)
        done = advance(uploading, FileStatus.DONE)
        assert done.progress == 100
        assert done.key == "k"

    def test_failed_clears_progress(self):
        uploading = _record(FileStatus.UPLOADING, key="k", url="u", progress=40)
        failed = advance(uploading, FileStatus.FAILED, error="AccessDenied")
        assert failed.progress is None
        assert failed.error == "AccessDenied"

    def test_aborted_has_no_error(self):
        uploading = _record(FileStatus.UPLOADING, key="k", url="u", progress=10)
        aborted = advance(uploading, FileStatus.ABORTED, error="ignored")
        assert aborted.status is FileStatus.ABORTED
        assert aborted.error is None
        assert aborted.progress is None

    def test_every_non_terminal_state_can_abort(self):
        for status in FileStatus:
            if status.is_terminal:
                assert not can_advance(status, FileStatus.ABORTED)
            else:
                assert can_advance(status, FileStatus.ABORTED)

    def test_terminal_states_have_no_outgoing_edges(self):
        for source, _target in FILE_EDGES:
            assert not source.is_terminal

    def test_unknown_fields_are_refused(self):
        with pytest.raises(TypeError):
            advance(_record(), FileStatus.REJECTED, name="other.png")

    def test_original_record_is_untouched(self):
        record = _record()
        advance(record, FileStatus.REJECTED, error="nope")
        assert record.status is FileStatus.AUTHORIZING
        assert record.error is None
