"""Ordered store of per-file upload state."""
from typing import Callable, Dict, List, Optional

from ..models import FileRecord
from ..utils.events import EventEmitter


class FileRecordStore:
    """
    Insertion-ordered mapping from file id to FileRecord.

    Only the owning orchestrator writes (put/clear); everyone else reads
    snapshots. Records are frozen, so a snapshot cannot be used to mutate
    the store.

    Events:
        "change": (snapshot: List[FileRecord])
        "file":   (record: FileRecord)
    """

    def __init__(self, events: Optional[EventEmitter] = None):
        self._records: Dict[str, FileRecord] = {}
        self._events = events or EventEmitter()

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, file_id: str) -> bool:
        return file_id in self._records

    def get(self, file_id: str) -> Optional[FileRecord]:
        return self._records.get(file_id)

    def snapshot(self) -> List[FileRecord]:
        """Read-only snapshot in insertion order."""
        return list(self._records.values())

    def put(self, record: FileRecord) -> FileRecord:
        """Insert or replace a record and notify subscribers."""
        self._records[record.id] = record
        self._events.emit("file", record)
        self._events.emit("change", self.snapshot())
        return record

    def clear(self):
        if not self._records:
            return
        self._records.clear()
        self._events.emit("change", [])

    def subscribe(self, callback: Callable[[List[FileRecord]], None]) -> Callable[[], None]:
        """Register a snapshot listener. Returns an unsubscribe callable."""
        return self._events.on("change", callback)
