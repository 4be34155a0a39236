"""
Primitive stream utilities: chunked byte streams, fan-out (tee), buffering,
JSON decoding and MIME type extraction.
"""

from __future__ import annotations

import asyncio
import json
from collections import deque
from typing import Any, AsyncIterator, Callable, Deque, Iterable, List, Mapping, Optional, Tuple, Union

import structlog

logger = structlog.get_logger(__name__)

DEFAULT_CHUNK_SIZE = 16 * 1024
DEFAULT_TEE_BUFFER_CHUNKS = 64


class ByteStream:
    """Readable stream of byte chunks.

    ``read()`` returns the next chunk and ``b""`` once the stream has ended.
    A destroyed stream behaves as ended.
    """

    def __init__(self) -> None:
        self._destroyed = False

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    async def read(self) -> bytes:
        raise NotImplementedError

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[bytes]:
        while True:
            chunk = await self.read()
            if not chunk:
                return
            yield chunk

    async def resume(self) -> None:
        """Read the remaining bytes and discard them."""
        async for _ in self:
            pass

    async def destroy(self) -> None:
        """Stop reading and release the underlying resource. Idempotent."""
        self._destroyed = True


class IteratorStream(ByteStream):
    """Stream over an async iterator of chunks (e.g. an aiohttp response body)."""

    def __init__(
        self,
        source: AsyncIterator[bytes],
        on_close: Optional[Callable[[], None]] = None,
    ) -> None:
        super().__init__()
        self._source = source
        self._on_close = on_close
        self._ended = False

    async def read(self) -> bytes:
        if self._destroyed or self._ended:
            return b""
        try:
            chunk = await self._source.__anext__()
        except StopAsyncIteration:
            self._ended = True
            return b""
        return bytes(chunk)

    async def destroy(self) -> None:
        if self._destroyed:
            return
        self._destroyed = True
        aclose = getattr(self._source, "aclose", None)
        if aclose is not None:
            try:
                await aclose()
            except Exception as e:  # noqa: BLE001
                logger.debug("Error closing stream source", error=str(e))
        if self._on_close is not None:
            self._on_close()


class BytesStream(IteratorStream):
    """In-memory payload served in fixed-size chunks."""

    def __init__(self, data: Union[bytes, str], chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        payload = data.encode("utf-8") if isinstance(data, str) else data
        chunks = [payload[i : i + chunk_size] for i in range(0, len(payload), chunk_size)]
        super().__init__(_iterate_chunks(chunks))


async def _iterate_chunks(chunks: Iterable[bytes]) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk


# --- Tee ---


class _TeeSource:
    """Shared state behind the branches produced by ``tee``."""

    def __init__(self, stream: ByteStream, max_buffered: int) -> None:
        self.stream = stream
        self.max_buffered = max(1, max_buffered)
        self.branches: List[TeeBranch] = []
        self.condition = asyncio.Condition()
        self.reading = False
        self.ended = False
        self.error: Optional[BaseException] = None

    def _sibling_full(self, branch: "TeeBranch") -> bool:
        return any(
            other is not branch and other.attached and len(other.buffer) >= self.max_buffered
            for other in self.branches
        )

    async def pull(self, branch: "TeeBranch") -> bytes:
        async with self.condition:
            while True:
                if not branch.attached:
                    return b""
                if branch.buffer:
                    chunk = branch.buffer.popleft()
                    self.condition.notify_all()
                    return chunk
                if self.error is not None:
                    raise self.error
                if self.ended:
                    return b""
                if self.reading or self._sibling_full(branch):
                    await self.condition.wait()
                    continue
                self.reading = True
                break

        try:
            chunk = await self.stream.read()
        except asyncio.CancelledError:
            async with self.condition:
                self.reading = False
                self.condition.notify_all()
            raise
        except Exception as e:
            async with self.condition:
                self.reading = False
                self.error = e
                self.condition.notify_all()
            raise

        async with self.condition:
            self.reading = False
            if chunk:
                for other in self.branches:
                    if other is not branch and other.attached:
                        other.buffer.append(chunk)
            else:
                self.ended = True
            self.condition.notify_all()
        return chunk

    async def detach(self, branch: "TeeBranch") -> None:
        async with self.condition:
            branch.attached = False
            branch.buffer.clear()
            self.condition.notify_all()


class TeeBranch(ByteStream):
    """One independently owned view of a teed stream."""

    def __init__(self, source: _TeeSource) -> None:
        super().__init__()
        self._source = source
        self.buffer: Deque[bytes] = deque()
        self.attached = True

    async def read(self) -> bytes:
        if self._destroyed:
            return b""
        return await self._source.pull(self)

    async def destroy(self) -> None:
        if self._destroyed:
            return
        self._destroyed = True
        await self._source.detach(self)


def tee(stream: ByteStream, max_buffered: int = DEFAULT_TEE_BUFFER_CHUNKS) -> Tuple[TeeBranch, TeeBranch]:
    """Fork ``stream`` into two branches that can be read at their own pace.

    A branch never runs more than ``max_buffered`` chunks ahead of its sibling.
    Destroying a branch detaches it without affecting the other one; the
    source stream itself stays owned by the caller.
    """
    source = _TeeSource(stream, max_buffered)
    first, second = TeeBranch(source), TeeBranch(source)
    source.branches.extend([first, second])
    return first, second


# --- Buffering / decoding ---


async def read_buffer(stream: ByteStream, max_bytes: Optional[int] = None) -> bytes:
    """Read a stream into memory, stopping once ``max_bytes`` have been read."""
    size = 0
    parts: List[bytes] = []
    async for chunk in stream:
        parts.append(chunk)
        size += len(chunk)
        if max_bytes is not None and size >= max_bytes:
            break
    return b"".join(parts)


async def read_json(stream: ByteStream, max_bytes: Optional[int] = None) -> Any:
    """Read and decode a JSON payload. Raises ``ValueError`` on invalid JSON."""
    data = await read_buffer(stream, max_bytes)
    return json.loads(data.decode("utf-8", errors="replace"))


def extract_mime(value: str) -> str:
    """``"Text/HTML; charset=utf-8"`` -> ``"text/html"``."""
    return value.split(";", 1)[0].strip().lower()


def _header(headers: Mapping[str, Any], name: str) -> str:
    value = headers.get(name)
    if isinstance(value, (list, tuple)):
        return str(value[0]) if value else ""
    return str(value) if value else ""


def content_type(headers: Mapping[str, Any]) -> str:
    """MIME type of the ``content-type`` header; the first value wins when repeated."""
    return extract_mime(_header(headers, "content-type"))


def content_charset(headers: Mapping[str, Any], default: str = "utf-8") -> str:
    """Charset parameter of the ``content-type`` header."""
    for param in _header(headers, "content-type").split(";")[1:]:
        key, _, value = param.partition("=")
        if key.strip().lower() == "charset" and value.strip():
            return value.strip().strip("\"'").lower()
    return default
