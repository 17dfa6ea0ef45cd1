"""HTTP adapter for the signed-URL server and storage transfers."""
from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Mapping, Optional
from urllib.parse import quote

import httpx

from ..errors import AuthorizationError, ConfigurationError, TransferError, describe_error
from ..models import AuthorizationResult, MetaValue, SlingshotConfig, UploadFile
from ..protocols import ProgressCallback

logger = logging.getLogger(__name__)

UPLOAD_CHUNK_SIZE = 64 * 1024
DEFAULT_AUTHORIZATION_ERROR = "Failed to get upload url"


def _error_detail(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except Exception:
        return response.text or None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return None


class HTTPTransport:
    """
    HTTP client adapter for a slingshot profile.

    Implements ITransport protocol.

    Usage:
        async with HTTPTransport("https://example.com/api/slingshot/avatar") as transport:
            result = await transport.request_authorization(file, {"userId": 1})
            await transport.upload(file.data, result.url, on_progress=print)
    """

    def __init__(
        self,
        endpoint: str,
        timeout: float = 60,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        chunk_size: int = UPLOAD_CHUNK_SIZE,
    ):
        if not endpoint.startswith(("http://", "https://")):
            raise ConfigurationError(f"Transport endpoint must be absolute, got {endpoint!r}")
        self._endpoint = endpoint.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._chunk_size = chunk_size
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_config(cls, config: SlingshotConfig, **kwargs) -> "HTTPTransport":
        kwargs.setdefault("timeout", config.timeout)
        return cls(config.endpoint, **kwargs)

    @property
    def endpoint(self) -> str:
        return self._endpoint

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            base_url=self._endpoint,
            timeout=self._timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    def _require_client(self) -> httpx.AsyncClient:
        if not self._client:
            raise RuntimeError("HTTPTransport not initialized. Use 'async with' context.")
        return self._client

    async def request_authorization(
        self,
        file: UploadFile,
        meta: Optional[Mapping[str, MetaValue]] = None,
    ) -> AuthorizationResult:
        client = self._require_client()
        payload: dict[str, Any] = {
            "file": {"name": file.name, "type": file.type, "size": file.size},
        }
        if meta:
            payload["meta"] = dict(meta)

        try:
            response = await client.post("/request", json=payload)
        except httpx.RequestError as exc:
            raise AuthorizationError(describe_error(exc)) from exc

        if not response.is_success:
            detail = _error_detail(response) or DEFAULT_AUTHORIZATION_ERROR
            logger.debug(f"Authorization refused for {file.name}: {response.status_code} {detail}")
            raise AuthorizationError(detail, status_code=response.status_code)

        try:
            body = response.json()
        except ValueError as exc:
            raise AuthorizationError("Invalid authorization response") from exc
        if not isinstance(body, dict):
            raise AuthorizationError("Invalid authorization response")

        key = body.get("key") or None
        url = body.get("url") or None
        if not key or not url:
            return AuthorizationResult()
        return AuthorizationResult(key=str(key), url=str(url))

    async def _iter_body(
        self,
        data: bytes,
        on_progress: Optional[ProgressCallback],
    ) -> AsyncIterator[bytes]:
        total = len(data)
        if total == 0:
            if on_progress:
                on_progress(100)
            return

        sent = 0
        view = memoryview(data)
        while sent < total:
            chunk = bytes(view[sent:sent + self._chunk_size])
            yield chunk
            sent += len(chunk)
            if on_progress:
                on_progress(min(100, round(sent / total * 100)))

    async def upload(
        self,
        data: bytes,
        url: str,
        on_progress: Optional[ProgressCallback] = None,
        content_type: Optional[str] = None,
    ) -> None:
        client = self._require_client()
        headers = {"Content-Length": str(len(data))}
        if content_type:
            headers["Content-Type"] = content_type

        try:
            response = await client.put(
                url,
                content=self._iter_body(data, on_progress),
                headers=headers,
            )
        except httpx.RequestError as exc:
            raise TransferError(describe_error(exc)) from exc

        if response.status_code >= 400:
            raise TransferError(
                response.text or f"Upload failed with status {response.status_code}",
                status_code=response.status_code,
            )

    async def resolve_url(self, key: str) -> Optional[str]:
        """Return the signed retrieval URL for a stored key, or None if it does not exist."""
        client = self._require_client()
        try:
            response = await client.get("/" + quote(key, safe=""), follow_redirects=False)
        except httpx.RequestError as exc:
            raise TransferError(describe_error(exc)) from exc

        if response.is_redirect:
            return response.headers.get("location")
        if response.status_code == 404:
            return None
        raise TransferError(
            _error_detail(response) or f"Unexpected status {response.status_code} for key {key}",
            status_code=response.status_code,
        )
