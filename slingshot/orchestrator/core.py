"""Core orchestrator - drives each file through authorize, upload and a terminal state."""
import asyncio
import logging
import uuid
from typing import Callable, Dict, List, Optional, Sequence

from ..errors import ConfigurationError, UploadInProgressError, describe_error
from ..models import FileRecord, FileStatus, SlingshotConfig, UploadFile, UploadStatus
from ..protocols import ITransport
from ..services.api_client import HTTPTransport
from ..services.store import FileRecordStore
from ..utils.events import EventEmitter
from ..validators import validate_file
from .machine import UploadEvent, advance, next_status

logger = logging.getLogger(__name__)


class UploadOrchestrator:
    """
    Orchestrates slingshot uploads for one widget instance.

    Every file submitted to upload() is authorized concurrently; once all
    authorizations have settled, every accepted file is transferred
    concurrently. Per-file failures are recorded on the file and never
    fail the batch: the overall status ends in DONE. FAILED is reserved
    for orchestrator-level errors (including cancellation of the batch).

    Usage:
        config = SlingshotConfig(profile="avatar", origin="https://example.com")
        async with UploadOrchestrator(config) as orchestrator:
            orchestrator.on_file(lambda record: print(record.name, record.status))
            await orchestrator.upload([UploadFile.from_path(path)])
            files = orchestrator.get_files()

    Events:
        "change": (snapshot: List[FileRecord])
        "file":   (record: FileRecord)
        "status": (status: UploadStatus)
    """

    def __init__(
        self,
        config: SlingshotConfig,
        transport: Optional[ITransport] = None,
    ):
        """
        Initialize orchestrator with dependencies.

        Args:
            config: Widget configuration (profile, meta, limits)
            transport: Transport implementation; an HTTPTransport for the
                configured endpoint is built when omitted

        Raises:
            ConfigurationError: config or transport is missing or unusable
        """
        if config is None:
            raise ConfigurationError("Slingshot config is required")

        self._owns_transport = transport is None
        if transport is None:
            transport = HTTPTransport.from_config(config)
        if not isinstance(transport, ITransport):
            raise ConfigurationError(
                f"{type(transport).__name__} does not implement request_authorization/upload"
            )

        self._config = config
        self._transport = transport
        self._events = EventEmitter()
        self._store = FileRecordStore(self._events)
        self._status = UploadStatus.IDLE
        self._tasks: Dict[str, asyncio.Task] = {}
        self._opened = not self._owns_transport

    async def __aenter__(self):
        if self._owns_transport:
            await self._transport.__aenter__()
            self._opened = True
        return self

    async def __aexit__(self, *args):
        self.abort_all()
        if self._owns_transport:
            await self._transport.__aexit__(*args)
            self._opened = False

    # State properties
    @property
    def config(self) -> SlingshotConfig:
        return self._config

    @property
    def status(self) -> UploadStatus:
        """Overall status of the current batch."""
        return self._status

    @property
    def is_ready(self) -> bool:
        """False while an owned transport has not been opened with `async with`."""
        return self._opened

    @property
    def is_uploading(self) -> bool:
        return self._status is UploadStatus.UPLOADING

    @property
    def progress(self) -> int:
        """Aggregate batch progress 0-100; finished files count as 100."""
        records = self._store.snapshot()
        if not records:
            return 0
        total = 0
        for record in records:
            if record.is_terminal:
                total += 100
            elif record.status is FileStatus.UPLOADING:
                total += record.progress or 0
        return round(total / len(records))

    def get_files(self) -> List[FileRecord]:
        """Snapshot of the current batch in submission order."""
        return self._store.snapshot()

    def get_file(self, file_id: str) -> Optional[FileRecord]:
        return self._store.get(file_id)

    # Event subscription methods
    def on_change(self, callback: Callable[[List[FileRecord]], None]) -> Callable[[], None]:
        """Called with a fresh snapshot after every store write."""
        return self._events.on("change", callback)

    def on_file(self, callback: Callable[[FileRecord], None]) -> Callable[[], None]:
        """Called with each replaced FileRecord."""
        return self._events.on("file", callback)

    def on_status(self, callback: Callable[[UploadStatus], None]) -> Callable[[], None]:
        """Called when the overall status changes."""
        return self._events.on("status", callback)

    # Control methods
    async def upload(self, files: Sequence[UploadFile]) -> List[FileRecord]:
        """
        Upload a batch of files and wait until every file is terminal.

        Returns the final snapshot. Per-file failures are reported on the
        records only.

        Raises:
            ValueError: empty batch or a file without a name
            UploadInProgressError: another batch is still running
            ConfigurationError: the owned transport was never opened
        """
        self._require_ready()
        files = list(files)
        if not files:
            raise ValueError("upload() requires at least one file")
        for file in files:
            if not getattr(file, "name", None):
                raise ValueError("Every file must have a non-empty name")
        if self.is_uploading:
            raise UploadInProgressError("A batch is already uploading")

        self._store.clear()
        self._tasks.clear()
        self._send(UploadEvent.UPLOAD)
        logger.info(f"Uploading {len(files)} file(s) to profile {self._config.profile}")

        try:
            records = [self._store.put(FileRecord.create(uuid.uuid4().hex, file)) for file in files]

            # Phase 1: authorize everything, wait for all to settle
            auth_tasks = [
                self._spawn(record.id, self._authorize(record.id, file))
                for record, file in zip(records, files)
            ]
            self._raise_fatal(await asyncio.gather(*auth_tasks, return_exceptions=True))

            # Phase 2: transfer every accepted file
            semaphore = (
                asyncio.Semaphore(self._config.max_parallel)
                if self._config.max_parallel
                else None
            )
            accepted = [r for r in self._store.snapshot() if r.status is FileStatus.ACCEPTED]
            upload_tasks = [
                self._spawn(record.id, self._transfer(record.id, semaphore))
                for record in accepted
            ]
            self._raise_fatal(await asyncio.gather(*upload_tasks, return_exceptions=True))
        except (Exception, asyncio.CancelledError) as exc:
            logger.error(f"Upload batch failed: {describe_error(exc)}")
            self.abort_all()
            self._send(UploadEvent.FAILED)
            raise
        finally:
            self._tasks.clear()

        self._send(UploadEvent.SUCCESS)
        snapshot = self._store.snapshot()
        done = sum(1 for r in snapshot if r.status is FileStatus.DONE)
        logger.info(f"Batch complete: {done}/{len(snapshot)} uploaded")
        return snapshot

    def abort(self, file_id: str) -> bool:
        """
        Cancel one file's in-flight request or transfer.

        Returns False when the file is unknown or already terminal.
        Sibling files are not affected.
        """
        record = self._store.get(file_id)
        if record is None or record.is_terminal:
            return False

        self._store.put(advance(record, FileStatus.ABORTED))
        task = self._tasks.get(file_id)
        if task is not None and not task.done():
            task.cancel()
        logger.info(f"Aborted {record.name}")
        return True

    def abort_all(self) -> int:
        """Abort every non-terminal file. Returns how many were aborted."""
        return sum(1 for record in self._store.snapshot() if self.abort(record.id))

    def clear(self):
        """Drop the records of the previous batch."""
        if self.is_uploading:
            raise UploadInProgressError("Cannot clear files while uploading")
        self._store.clear()

    # Internals
    def _require_ready(self):
        if not self._opened:
            raise ConfigurationError(
                "The default HTTP transport is not open. Use 'async with' on the orchestrator or SlingshotApi."
            )

    def _send(self, event: UploadEvent):
        status = next_status(self._status, event)
        if status is not self._status:
            logger.debug(f"Status {self._status.value} -> {status.value}")
            self._status = status
            self._events.emit("status", status)

    def _spawn(self, file_id: str, coro) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks[file_id] = task
        return task

    @staticmethod
    def _raise_fatal(results: list):
        # Per-file coroutines capture their own errors; anything left is a bug.
        for result in results:
            if isinstance(result, Exception):
                raise result

    def _update(self, file_id: str, status: FileStatus, **changes) -> Optional[FileRecord]:
        """Apply a transition unless the file already reached a terminal state."""
        record = self._store.get(file_id)
        if record is None or record.is_terminal:
            return None
        updated = advance(record, status, **changes)
        logger.debug(f"{record.name}: {record.status.value} -> {status.value}")
        return self._store.put(updated)

    def _mark_aborted(self, file_id: str):
        record = self._store.get(file_id)
        if record is not None and not record.is_terminal:
            self._store.put(advance(record, FileStatus.ABORTED))

    async def _authorize(self, file_id: str, file: UploadFile):
        try:
            rejection = validate_file(
                file,
                self._config.allowed_file_types,
                self._config.max_size_bytes,
            )
            if rejection:
                logger.warning(f"Rejected {file.name}: {rejection}")
                self._update(file_id, FileStatus.REJECTED, error=rejection)
                return

            result = await self._transport.request_authorization(file, self._config.meta)
        except asyncio.CancelledError:
            self._mark_aborted(file_id)
            raise
        except Exception as exc:
            logger.warning(f"Authorization failed for {file.name}: {describe_error(exc)}")
            self._update(file_id, FileStatus.REJECTED, error=describe_error(exc))
            return

        if result is None or not result.key or not result.url:
            logger.warning(f"Server declined {file.name}")
            self._update(file_id, FileStatus.REJECTED)
            return

        self._update(file_id, FileStatus.ACCEPTED, key=result.key, url=result.url)

    async def _transfer(self, file_id: str, semaphore: Optional[asyncio.Semaphore]):
        try:
            if semaphore is None:
                await self._send_bytes(file_id)
            else:
                async with semaphore:
                    await self._send_bytes(file_id)
        except asyncio.CancelledError:
            self._mark_aborted(file_id)
            raise
        except Exception as exc:
            logger.warning(f"Upload failed for {self._store.get(file_id).name}: {describe_error(exc)}")
            self._update(file_id, FileStatus.FAILED, error=describe_error(exc))
            return

        self._update(file_id, FileStatus.DONE)

    async def _send_bytes(self, file_id: str):
        record = self._update(file_id, FileStatus.UPLOADING)
        if record is None:
            return

        def on_progress(progress: int):
            current = self._store.get(file_id)
            if current is not None and current.status is FileStatus.UPLOADING:
                self._store.put(advance(current, FileStatus.UPLOADING, progress=progress))

        await self._transport.upload(
            record.data,
            record.url,
            on_progress=on_progress,
            content_type=record.type or None,
        )
