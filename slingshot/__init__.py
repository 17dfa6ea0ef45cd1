"""
Slingshot - signed-URL upload orchestration.

Each file in a batch is authorized against a slingshot profile
(POST {base_url}/{profile}/request -> {key, url}) and then PUT directly
to storage through the signed URL. Progress and per-file status are
observable through the orchestrator's store events.

Usage:
    from slingshot import SlingshotConfig, UploadFile, UploadOrchestrator

    config = SlingshotConfig(profile="avatar", origin="https://example.com")
    async with UploadOrchestrator(config) as orchestrator:
        orchestrator.on_file(lambda record: print(record.name, record.status.value))
        records = await orchestrator.upload([UploadFile.from_path(path)])

    # UI-style, fire-and-forget
    api = SlingshotApi(orchestrator)
    api.subscribe(render)
    api.upload(files)
"""
from .connect import SlingshotApi
from .errors import (
    AuthorizationError,
    ConfigurationError,
    InvalidTransitionError,
    SlingshotError,
    TransferError,
    UploadInProgressError,
)
from .models import (
    AuthorizationResult,
    FileRecord,
    FileStatus,
    SlingshotConfig,
    UploadFile,
    UploadStatus,
)
from .orchestrator import UploadOrchestrator
from .services import FileRecordStore, HTTPTransport

__version__ = "0.1.0"
__all__ = [
    # Main
    "UploadOrchestrator",
    "SlingshotApi",
    # Models
    "AuthorizationResult",
    "FileRecord",
    "FileStatus",
    "SlingshotConfig",
    "UploadFile",
    "UploadStatus",
    # Services
    "FileRecordStore",
    "HTTPTransport",
    # Errors
    "SlingshotError",
    "ConfigurationError",
    "AuthorizationError",
    "TransferError",
    "InvalidTransitionError",
    "UploadInProgressError",
]
