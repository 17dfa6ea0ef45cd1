"""
Protocols (Interfaces) for Dependency Inversion.

The orchestrator depends only on this two-operation contract,
never on the concrete HTTP mechanism.
"""
from typing import Callable, Mapping, Optional, Protocol, runtime_checkable

from .models import AuthorizationResult, MetaValue, UploadFile


ProgressCallback = Callable[[int], None]


@runtime_checkable
class ITransport(Protocol):
    """Interface for the signed-URL server and storage transfer."""

    async def request_authorization(
        self,
        file: UploadFile,
        meta: Optional[Mapping[str, MetaValue]] = None,
    ) -> AuthorizationResult:
        """Ask the server for a storage key and signed URL. Raises AuthorizationError."""
        ...

    async def upload(
        self,
        data: bytes,
        url: str,
        on_progress: Optional[ProgressCallback] = None,
        content_type: Optional[str] = None,
    ) -> None:
        """PUT the raw bytes to the signed URL. Raises TransferError."""
        ...
