"""
Models for slingshot module.

Immutable dataclasses: records are replaced, never mutated in place.
"""
import mimetypes
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Pattern, Union

from .errors import ConfigurationError


DEFAULT_BASE_URL = "/api/slingshot"

MetaValue = Union[str, int, float]
AllowedFileTypes = Union[str, List[str], Pattern, None]


class UploadStatus(Enum):
    """Overall status of the orchestrator (aggregated over the current batch)."""
    IDLE = "idle"
    UPLOADING = "uploading"
    DONE = "done"
    FAILED = "failed"


class FileStatus(Enum):
    """Per-file upload status."""
    AUTHORIZING = "authorizing"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    UPLOADING = "uploading"
    DONE = "done"
    FAILED = "failed"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_FILE_STATUSES


TERMINAL_FILE_STATUSES = frozenset({
    FileStatus.REJECTED,
    FileStatus.DONE,
    FileStatus.FAILED,
    FileStatus.ABORTED,
})


@dataclass(frozen=True)
class UploadFile:
    """A raw file handle submitted for upload."""
    name: str
    data: bytes = field(repr=False)
    type: str = ""
    size: Optional[int] = None

    def __post_init__(self):
        if not self.name:
            raise ValueError("File name must not be empty")
        if self.size is None:
            object.__setattr__(self, "size", len(self.data))

    @classmethod
    def from_path(cls, path: Path, type: Optional[str] = None) -> "UploadFile":
        """Read a file from disk, guessing its MIME type from the extension."""
        path = Path(path)
        if type is None:
            type = mimetypes.guess_type(path.name)[0] or ""
        data = path.read_bytes()
        return cls(name=path.name, data=data, type=type, size=len(data))


@dataclass(frozen=True)
class AuthorizationResult:
    """Signed URL issued by the server for a single file."""
    key: Optional[str] = None
    url: Optional[str] = None

    @property
    def accepted(self) -> bool:
        return bool(self.key)


@dataclass(frozen=True)
class FileRecord:
    """Upload state of one submitted file."""
    id: str
    name: str
    type: str
    size: int
    data: bytes = field(repr=False, compare=False)
    status: FileStatus = FileStatus.AUTHORIZING
    key: Optional[str] = None
    url: Optional[str] = None
    progress: Optional[int] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @classmethod
    def create(cls, file_id: str, file: UploadFile) -> "FileRecord":
        return cls(
            id=file_id,
            name=file.name,
            type=file.type,
            size=file.size,
            data=file.data,
        )


@dataclass(frozen=True)
class SlingshotConfig:
    """Immutable configuration for an upload widget."""
    profile: str
    base_url: str = DEFAULT_BASE_URL
    origin: Optional[str] = None  # scheme://host, used when base_url is relative
    meta: Dict[str, MetaValue] = field(default_factory=dict)
    upload_on_accept: bool = False
    timeout: float = 60
    max_parallel: Optional[int] = None
    allowed_file_types: AllowedFileTypes = None
    max_size_bytes: Optional[int] = None

    def __post_init__(self):
        if not self.profile or not str(self.profile).strip():
            raise ConfigurationError("Slingshot profile is required")
        if not self.base_url:
            raise ConfigurationError("base_url must not be empty")
        for name, value in self.meta.items():
            if not isinstance(name, str):
                raise ConfigurationError(f"Meta keys must be strings, got {name!r}")
            if isinstance(value, bool) or not isinstance(value, (str, int, float)):
                raise ConfigurationError(
                    "Meta must be an object with string or number values "
                    f"(invalid value for {name!r})"
                )
        if self.max_parallel is not None and self.max_parallel < 1:
            raise ConfigurationError("max_parallel must be at least 1")
        if self.max_size_bytes is not None and self.max_size_bytes < 0:
            raise ConfigurationError("max_size_bytes must not be negative")
        if self.allowed_file_types is not None and not isinstance(
            self.allowed_file_types, (str, list, tuple, re.Pattern)
        ):
            raise ConfigurationError(
                "allowed_file_types must be a string, a list of strings or a compiled pattern"
            )

    @property
    def endpoint(self) -> str:
        """Absolute base URL of this profile's routes."""
        base = self.base_url.rstrip("/")
        if not base.startswith(("http://", "https://")):
            if not self.origin:
                raise ConfigurationError(
                    f"base_url {self.base_url!r} is relative; an origin is required"
                )
            base = self.origin.rstrip("/") + "/" + base.lstrip("/")
        return f"{base}/{self.profile}"
