"""Pytest configuration and shared fixtures."""

from collections.abc import Callable
from dataclasses import dataclass, field
from inspect import isawaitable
from urllib.parse import parse_qsl, urlsplit

import pytest

from alioss import OSSClient, OSSConfig, OSSRequestManager


@dataclass
class FakeCall:
    method: str
    url: str
    headers: dict
    body: bytes
    chunks: list[bytes] | None = None

    @property
    def path(self) -> str:
        return urlsplit(self.url).path

    @property
    def host(self) -> str:
        return urlsplit(self.url).netloc

    @property
    def query(self) -> dict[str, str]:
        return dict(parse_qsl(urlsplit(self.url).query, keep_blank_values=True))


class FakeResponse:
    """Response object; with ``parse=None`` the body is read through the stream methods."""

    def __init__(self, status_code: int = 200, headers: dict | None = None, body: bytes = b"", chunk_size: int = 4096):
        self.status_code = status_code
        self.status = status_code
        self.headers = headers or {}
        self.body = body
        self.chunk_size = chunk_size
        self.closed = False

    def _chunks(self):
        for i in range(0, len(self.body), self.chunk_size):
            yield self.body[i:i+self.chunk_size]

    def iter_stream(self):
        yield from self._chunks()

    async def aiter_stream(self):
        for chunk in self._chunks():
            yield chunk

    def close(self):
        self.closed = True

    async def aclose(self):
        self.closed = True


class FakeTransport:
    """Stand-in for ``httpcore_request.request``.

    The handler receives a ``FakeCall`` and returns ``(status, headers, body)``,
    either directly or as an awaitable. Request bodies given as (async)
    iterators are drained before the handler runs, and the chunk sizes seen
    are kept in ``FakeCall.chunks``. With ``parse=None`` the raw
    ``FakeResponse`` is returned, as ``httpcore_request`` does.
    """

    def __init__(self, handler: Callable, chunk_size: int = 4096):
        self.handler = handler
        self.chunk_size = chunk_size
        self.calls: list[FakeCall] = []
        self.responses: list[FakeResponse] = []

    def _finish(self, call, result, parse):
        status, resp_headers, body = result
        resp = FakeResponse(status, resp_headers, body, self.chunk_size)
        self.responses.append(resp)
        if parse is None:
            return resp
        return parse(resp, body)

    def __call__(self, *, url, method, headers=None, data=None, parse, async_=False, **kwargs):
        if async_:
            return self._call_async(url, method, headers, data, parse)
        chunks = None
        if data is not None and not isinstance(data, (bytes, bytearray)):
            chunks = [bytes(chunk) for chunk in data]
            data = b"".join(chunks)
        call = FakeCall(method, url, dict(headers or {}), bytes(data or b""), chunks)
        self.calls.append(call)
        return self._finish(call, self.handler(call), parse)

    async def _call_async(self, url, method, headers, data, parse):
        chunks = None
        if data is not None and not isinstance(data, (bytes, bytearray)):
            if hasattr(data, "__aiter__"):
                chunks = [bytes(chunk) async for chunk in data]
            else:
                chunks = [bytes(chunk) for chunk in data]
            data = b"".join(chunks)
        call = FakeCall(method, url, dict(headers or {}), bytes(data or b""), chunks)
        self.calls.append(call)
        result = self.handler(call)
        if isawaitable(result):
            result = await result
        return self._finish(call, result, parse)


@dataclass
class FakeOSS:
    """A tiny in-memory model of the multipart upload endpoints."""

    upload_id: str = "0004B9894A22E5B1888A1E29F823****"
    composite_etag: str = "3A4D1E7B9C2F5A8D-4"
    fail_parts: set = field(default_factory=set)
    on_part: Callable | None = None
    parts: dict = field(default_factory=dict)
    completed_body: bytes | None = None
    aborted: list = field(default_factory=list)

    def __call__(self, call: FakeCall):
        query = call.query
        key = call.path.lstrip("/")
        if call.method == "POST" and "uploads" in query:
            return 200, {"content-type": "application/xml"}, (
                "<?xml version=\"1.0\" encoding=\"UTF-8\"?>"
                "<InitiateMultipartUploadResult>"
                f"<Bucket>test-bucket</Bucket><Key>{key}</Key><UploadId>{self.upload_id}</UploadId>"
                "</InitiateMultipartUploadResult>"
            ).encode()
        if call.method == "PUT" and "partNumber" in query:
            return self._upload_part(call, int(query["partNumber"]))
        if call.method == "POST" and "uploadId" in query:
            self.completed_body = call.body
            return 200, {"content-type": "application/xml"}, (
                "<?xml version=\"1.0\" encoding=\"UTF-8\"?>"
                "<CompleteMultipartUploadResult>"
                f"<Location>https://test-bucket.oss-cn-hangzhou.aliyuncs.com/{key}</Location>"
                f"<Bucket>test-bucket</Bucket><Key>{key}</Key>"
                f"<ETag>\"{self.composite_etag}\"</ETag>"
                "</CompleteMultipartUploadResult>"
            ).encode()
        if call.method == "DELETE" and "uploadId" in query:
            self.aborted.append(query["uploadId"])
            return 204, {}, b""
        return 404, {}, b"<Error><Code>NoSuchKey</Code></Error>"

    def _upload_part(self, call: FakeCall, part_number: int):
        if part_number in self.fail_parts:
            raise ConnectionError(f"connection reset while sending part {part_number}")
        self.parts[part_number] = call.body
        response = (200, {"ETag": f"\"etag-{part_number}\""}, b"")
        if self.on_part is not None:
            async def delayed():
                await self.on_part(part_number)
                return response
            return delayed()
        return response


@pytest.fixture
def config():
    return OSSConfig.for_test()


@pytest.fixture
def fake_oss():
    return FakeOSS()


@pytest.fixture
def transport(fake_oss):
    return FakeTransport(fake_oss)


@pytest.fixture
def request_manager():
    return OSSRequestManager()


@pytest.fixture
def client(config, transport, request_manager):
    return OSSClient(config, request_manager=request_manager, request=transport)


@pytest.fixture
def make_file(tmp_path):
    def _make_file(size: int, name: str = "payload.bin") -> str:
        path = tmp_path / name
        path.write_bytes(bytes(i % 251 for i in range(size)))
        return str(path)
    return _make_file
