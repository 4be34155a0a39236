"""
In-memory stand-ins for the transport and binary-metadata capabilities.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple, Union

from unfurlkit.protocols import Headers, Page
from unfurlkit.utils.streams import ByteStream, BytesStream


class AbortCounter:
    """Callable recording how often a page was aborted."""

    def __init__(self) -> None:
        self.calls = 0

    def __call__(self) -> None:
        self.calls += 1


def make_page(
    url: str = "https://example.com/",
    body: Union[bytes, str] = b"",
    content_type: Optional[str] = "text/html; charset=utf-8",
    status: int = 200,
    headers: Optional[Headers] = None,
    chunk_size: int = 64,
) -> Page:
    page_headers: Headers = dict(headers or {})
    if content_type is not None:
        page_headers.setdefault("content-type", content_type)
    return Page(
        url=url,
        status=status,
        headers=page_headers,
        body=BytesStream(body, chunk_size=chunk_size),
        abort=AbortCounter(),
    )


class FailingStream(ByteStream):
    """Yields ``chunks`` and then raises ``error``."""

    def __init__(self, chunks: List[bytes], error: Exception) -> None:
        super().__init__()
        self._chunks = list(chunks)
        self._error = error

    async def read(self) -> bytes:
        if self._destroyed:
            return b""
        if self._chunks:
            return self._chunks.pop(0)
        raise self._error


class FakeTransport:
    """``Request`` serving canned responses; unknown URLs answer 404."""

    def __init__(self) -> None:
        self.routes: Dict[str, Tuple[int, Headers, bytes]] = {}
        self.calls: List[Tuple[str, Optional[str]]] = []
        self.pages: List[Page] = []

    def add(
        self,
        url: str,
        body: Union[bytes, str] = b"",
        content_type: Optional[str] = "text/html",
        status: int = 200,
    ) -> None:
        payload = body.encode("utf-8") if isinstance(body, str) else body
        headers: Headers = {"content-type": content_type} if content_type else {}
        self.routes[url] = (status, headers, payload)

    async def __call__(self, url: str, *, accept: Optional[str] = None) -> Page:
        self.calls.append((url, accept))
        status, headers, payload = self.routes.get(url, (404, {}, b""))
        page = make_page(url, payload, content_type=None, status=status, headers=headers)
        self.pages.append(page)
        return page

    def requested(self, url: str) -> bool:
        return any(called == url for called, _ in self.calls)


class FakeExifExtractor:
    """Returns a fixed record after reading the stream to the end."""

    def __init__(self, record: Optional[Dict[str, Any]] = None, error: Optional[Exception] = None) -> None:
        self.record = record
        self.error = error
        self.bytes_read = 0

    async def extract(self, stream: ByteStream) -> Optional[Dict[str, Any]]:
        async for chunk in stream:
            self.bytes_read += len(chunk)
        if self.error is not None:
            raise self.error
        return self.record
