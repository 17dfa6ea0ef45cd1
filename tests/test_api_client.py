"""Tests for the httpx-backed slingshot transport."""
import json

import httpx
import pytest

from slingshot.errors import AuthorizationError, ConfigurationError, TransferError
from slingshot.models import AuthorizationResult, SlingshotConfig, UploadFile
from slingshot.services.api_client import HTTPTransport


ENDPOINT = "https://app.test/api/slingshot/avatar"


def _transport(handler, **kwargs) -> HTTPTransport:
    return HTTPTransport(ENDPOINT, transport=httpx.MockTransport(handler), **kwargs)


def _file(name="A.png", data=b"x" * 100, type="image/png") -> UploadFile:
    return UploadFile(name=name, data=data, type=type)


class TestConstruction:
    def test_relative_endpoint_is_a_configuration_error(self):
        with pytest.raises(ConfigurationError):
            HTTPTransport("/api/slingshot/avatar")

    def test_from_config(self):
        config = SlingshotConfig(profile="avatar", origin="https://app.test", timeout=5)
        transport = HTTPTransport.from_config(config)
        assert transport.endpoint == ENDPOINT

    @pytest.mark.asyncio
    async def test_requires_context(self):
        transport = HTTPTransport(ENDPOINT)
        with pytest.raises(RuntimeError, match="async with"):
            await transport.request_authorization(_file())


class TestRequestAuthorization:
    @pytest.mark.asyncio
    async def test_posts_descriptor_and_meta(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["method"] = request.method
            captured["url"] = str(request.url)
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"key": "avatar/A.png", "url": "https://s3.test/put"})

        async with _transport(handler) as transport:
            result = await transport.request_authorization(_file(), {"userId": 7})

        assert result == AuthorizationResult(key="avatar/A.png", url="https://s3.test/put")
        assert captured["method"] == "POST"
        assert captured["url"] == f"{ENDPOINT}/request"
        assert captured["body"] == {
            "file": {"name": "A.png", "type": "image/png", "size": 100},
            "meta": {"userId": 7},
        }

    @pytest.mark.asyncio
    async def test_meta_omitted_when_empty(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"key": "k", "url": "u"})

        async with _transport(handler) as transport:
            await transport.request_authorization(_file(), {})

        assert "meta" not in bodies[0]

    @pytest.mark.asyncio
    async def test_server_error_message_is_surfaced(self):
        def handler(request):
            return httpx.Response(400, json={"error": "File type not allowed"})

        async with _transport(handler) as transport:
            with pytest.raises(AuthorizationError, match="File type not allowed") as exc_info:
                await transport.request_authorization(_file("B.exe", type="application/x-msdownload"))

        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_error_without_body_uses_default_message(self):
        def handler(request):
            return httpx.Response(401, json={})

        async with _transport(handler) as transport:
            with pytest.raises(AuthorizationError, match="Failed to get upload url"):
                await transport.request_authorization(_file())

    @pytest.mark.asyncio
    async def test_response_without_key_is_declined(self):
        def handler(request):
            return httpx.Response(200, json={"url": "https://s3.test/put"})

        async with _transport(handler) as transport:
            result = await transport.request_authorization(_file())

        assert result.accepted is False
        assert result.key is None and result.url is None

    @pytest.mark.asyncio
    async def test_non_object_body_is_an_error(self):
        def handler(request):
            return httpx.Response(200, content=b"<html>oops</html>")

        async with _transport(handler) as transport:
            with pytest.raises(AuthorizationError, match="Invalid authorization response"):
                await transport.request_authorization(_file())

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with _transport(handler) as transport:
            with pytest.raises(AuthorizationError, match="connection refused"):
                await transport.request_authorization(_file())


class TestUpload:
    @pytest.mark.asyncio
    async def test_puts_raw_bytes_with_progress(self):
        captured = {}

        def handler(request):
            captured["method"] = request.method
            captured["url"] = str(request.url)
            captured["body"] = request.content
            captured["headers"] = request.headers
            return httpx.Response(200)

        progress = []
        data = bytes(range(100))
        async with _transport(handler, chunk_size=25) as transport:
            await transport.upload(data, "https://s3.test/put?sig=1", progress.append, "image/png")

        assert captured["method"] == "PUT"
        assert captured["url"] == "https://s3.test/put?sig=1"
        assert captured["body"] == data
        assert captured["headers"]["content-length"] == "100"
        assert captured["headers"]["content-type"] == "image/png"
        assert progress == [25, 50, 75, 100]

    @pytest.mark.asyncio
    async def test_empty_body_reports_complete(self):
        progress = []
        async with _transport(lambda request: httpx.Response(204)) as transport:
            await transport.upload(b"", "https://s3.test/put", progress.append)
        assert progress == [100]

    @pytest.mark.asyncio
    async def test_error_status_uses_response_text(self):
        def handler(request):
            return httpx.Response(403, text="AccessDenied")

        async with _transport(handler) as transport:
            with pytest.raises(TransferError, match="AccessDenied") as exc_info:
                await transport.upload(b"abc", "https://s3.test/put")

        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        async with _transport(handler) as transport:
            with pytest.raises(TransferError, match="timed out"):
                await transport.upload(b"abc", "https://s3.test/put")


class TestResolveUrl:
    @pytest.mark.asyncio
    async def test_redirect_location_is_returned(self):
        def handler(request):
            assert request.url.path == "/api/slingshot/avatar/photo.png"
            return httpx.Response(302, headers={"Location": "https://s3.test/get?sig=2"})

        async with _transport(handler) as transport:
            assert await transport.resolve_url("photo.png") == "https://s3.test/get?sig=2"

    @pytest.mark.asyncio
    async def test_missing_key(self):
        def handler(request):
            return httpx.Response(404, json={"error": "File not found"})

        async with _transport(handler) as transport:
            assert await transport.resolve_url("missing.png") is None

    @pytest.mark.asyncio
    async def test_unexpected_status(self):
        def handler(request):
            return httpx.Response(500, json={"error": "Internal server error"})

        async with _transport(handler) as transport:
            with pytest.raises(TransferError, match="Internal server error"):
                await transport.resolve_url("photo.png")
