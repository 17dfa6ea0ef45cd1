"""Tests for the file record store and event emitter."""
import logging
from dataclasses import replace
from unittest.mock import Mock

import pytest

from slingshot.models import FileRecord, FileStatus, UploadFile
from slingshot.services.store import FileRecordStore
from slingshot.utils.events import EventEmitter


def _record(file_id: str, name: str) -> FileRecord:
    return FileRecord.create(file_id, UploadFile(name=name, data=b"data"))


class TestFileRecordStore:
    def test_snapshot_keeps_insertion_order(self):
        store = FileRecordStore()
        store.put(_record("2", "b.png"))
        store.put(_record("1", "a.png"))
        store.put(_record("3", "c.png"))
        assert [r.id for r in store.snapshot()] == ["2", "1", "3"]

    def test_replace_keeps_position(self):
        store = FileRecordStore()
        first = store.put(_record("1", "a.png"))
        store.put(_record("2", "b.png"))
        store.put(replace(first, status=FileStatus.REJECTED))
        snapshot = store.snapshot()
        assert [r.id for r in snapshot] == ["1", "2"]
        assert snapshot[0].status is FileStatus.REJECTED
        assert len(store) == 2

    def test_snapshot_is_detached(self):
        store = FileRecordStore()
        store.put(_record("1", "a.png"))
        snapshot = store.snapshot()
        snapshot.clear()
        assert len(store) == 1
        assert store.snapshot() == store.snapshot()

    def test_subscribers_see_every_write(self):
        store = FileRecordStore()
        seen = []
        store.subscribe(lambda files: seen.append([r.status for r in files]))
        record = store.put(_record("1", "a.png"))
        store.put(replace(record, status=FileStatus.REJECTED))
        assert seen == [[FileStatus.AUTHORIZING], [FileStatus.REJECTED]]

    def test_unsubscribe(self):
        store = FileRecordStore()
        listener = Mock()
        unsubscribe = store.subscribe(listener)
        store.put(_record("1", "a.png"))
        unsubscribe()
        store.put(_record("2", "b.png"))
        assert listener.call_count == 1

    def test_clear_notifies_once(self):
        store = FileRecordStore()
        store.put(_record("1", "a.png"))
        listener = Mock()
        store.subscribe(listener)
        store.clear()
        store.clear()
        listener.assert_called_once_with([])
        assert store.get("1") is None
        assert "1" not in store


class TestEventEmitter:
    def test_listener_errors_are_logged_and_isolated(self, caplog):
        caplog.set_level(logging.ERROR, logger="slingshot.utils.events")
        events = EventEmitter()
        second = Mock()

        def broken(*args):
            raise RuntimeError("boom")

        events.on("file", broken)
        events.on("file", second)
        events.emit("file", "payload")

        second.assert_called_once_with("payload")
        assert "boom" in caplog.text

    def test_duplicate_subscription_is_ignored(self):
        events = EventEmitter()
        listener = Mock()
        events.on("status", listener)
        events.on("status", listener)
        events.emit("status", 1)
        assert listener.call_count == 1
        assert events.listener_count("status") == 1

    @pytest.mark.asyncio
    async def test_async_listeners_are_scheduled(self):
        events = EventEmitter()
        received = []

        async def listener(value):
            received.append(value)

        events.on("status", listener)
        events.emit("status", "done")
        await events.drain()
        assert received == ["done"]
