"""Public API adapter between the orchestrator and a UI layer."""
import asyncio
import logging
from typing import Callable, List, Optional, Sequence

from .errors import ConfigurationError, UploadInProgressError
from .models import FileRecord, SlingshotConfig, UploadFile, UploadStatus
from .orchestrator.core import UploadOrchestrator
from .protocols import ITransport

logger = logging.getLogger(__name__)


class SlingshotApi:
    """
    UI-facing view of an UploadOrchestrator.

    upload() is fire-and-forget: the UI observes the batch through
    subscribe() and reads get_files() / status / progress on each change.

    The default HTTP transport must be opened with `async with` first.

    Usage:
        async with SlingshotApi.create(config) as api:
            api.subscribe(lambda files: render(files, api.status))
            api.on_file_accept(selected_files)   # uploads only if upload_on_accept
            api.upload()                         # explicit trigger
            await api.wait()
    """

    def __init__(self, orchestrator: UploadOrchestrator):
        self._orchestrator = orchestrator
        self._accepted: List[UploadFile] = []
        self._task: Optional[asyncio.Task] = None

    @classmethod
    def create(
        cls,
        config: SlingshotConfig,
        transport: Optional[ITransport] = None,
    ) -> "SlingshotApi":
        return cls(UploadOrchestrator(config, transport))

    async def __aenter__(self):
        await self._orchestrator.__aenter__()
        return self

    async def __aexit__(self, *args):
        await self._orchestrator.__aexit__(*args)

    @property
    def orchestrator(self) -> UploadOrchestrator:
        return self._orchestrator

    @property
    def status(self) -> UploadStatus:
        return self._orchestrator.status

    @property
    def progress(self) -> int:
        return self._orchestrator.progress

    @property
    def upload_on_accept(self) -> bool:
        return self._orchestrator.config.upload_on_accept

    @property
    def accepted_files(self) -> List[UploadFile]:
        """Files registered through on_file_accept and not yet uploaded."""
        return list(self._accepted)

    def get_files(self) -> List[FileRecord]:
        return self._orchestrator.get_files()

    def subscribe(self, callback: Callable[[List[FileRecord]], None]) -> Callable[[], None]:
        """Register a listener for store snapshots. Returns an unsubscribe callable."""
        return self._orchestrator.on_change(callback)

    def on_status(self, callback: Callable[[UploadStatus], None]) -> Callable[[], None]:
        return self._orchestrator.on_status(callback)

    def on_file_accept(self, files: Sequence[UploadFile]) -> Optional[asyncio.Task]:
        """Register files picked by the user; starts the upload when upload_on_accept is set."""
        self._accepted = list(files)
        if self.upload_on_accept and self._accepted:
            return self.upload()
        logger.debug(f"{len(self._accepted)} file(s) waiting for an explicit upload")
        return None

    def upload(self, files: Optional[Sequence[UploadFile]] = None) -> asyncio.Task:
        """
        Start uploading `files` (or the accepted files) in the background.

        Input errors, a running batch and an unopened default transport
        surface immediately; per-file failures only through the store.
        Must be called from a running event loop.
        """
        loop = asyncio.get_running_loop()
        if not self._orchestrator.is_ready:
            raise ConfigurationError(
                "The default HTTP transport is not open. Use 'async with' on the SlingshotApi."
            )
        if self._orchestrator.is_uploading or (self._task is not None and not self._task.done()):
            raise UploadInProgressError("A batch is already uploading")

        batch = list(files) if files is not None else list(self._accepted)
        if not batch:
            raise ValueError("No files to upload")
        for file in batch:
            if not getattr(file, "name", None):
                raise ValueError("Every file must have a non-empty name")

        if files is None:
            self._accepted = []
        self._task = loop.create_task(self._orchestrator.upload(batch))
        self._task.add_done_callback(self._on_batch_done)
        return self._task

    def abort(self, file_id: str) -> bool:
        return self._orchestrator.abort(file_id)

    async def wait(self) -> List[FileRecord]:
        """Wait for the current background batch and return the final snapshot."""
        if self._task is not None:
            await self._task
        return self.get_files()

    @staticmethod
    def _on_batch_done(task: asyncio.Task):
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Background upload failed: {exc}")
