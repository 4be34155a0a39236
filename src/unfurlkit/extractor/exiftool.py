"""
exiftool subprocess wrapper.

The body is piped to ``exiftool -json -fast -`` and the first JSON record is
returned. Every failure (missing binary, non-zero exit, malformed output,
timeout) is reported as ``None``.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, Optional, Protocol

import structlog

from ..utils.streams import ByteStream

logger = structlog.get_logger(__name__)

ExifRecord = Dict[str, Any]


class ExifExtractor(Protocol):
    """Binary metadata extraction capability."""

    async def extract(self, stream: ByteStream) -> Optional[ExifRecord]:
        ...


class ExifToolExtractor:
    """Runs one exiftool process per extraction."""

    def __init__(self, path: str = "exiftool", timeout: float = 10.0, max_bytes: int = 8 * 1024 * 1024) -> None:
        self.path = path
        self.timeout = timeout
        self.max_bytes = max_bytes

    async def extract(self, stream: ByteStream) -> Optional[ExifRecord]:
        try:
            async with asyncio.timeout(self.timeout):
                return await self._run(stream)
        except asyncio.TimeoutError:
            logger.warning("exiftool timed out", timeout=self.timeout)
        except OSError as e:
            logger.warning("exiftool could not be started", path=self.path, error=str(e))
        except ValueError as e:
            logger.warning("exiftool returned malformed output", error=str(e))
        return None

    async def _run(self, stream: ByteStream) -> Optional[ExifRecord]:
        proc = await asyncio.create_subprocess_exec(
            self.path,
            "-json",
            "-fast",
            "-",
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        assert proc.stdout is not None and proc.stderr is not None
        try:
            _, stdout, stderr = await asyncio.gather(
                self._feed(proc, stream), proc.stdout.read(), proc.stderr.read()
            )
            await proc.wait()
        finally:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()

        if proc.returncode != 0:
            logger.debug(
                "exiftool exited with an error",
                returncode=proc.returncode,
                stderr=stderr.decode("utf-8", errors="replace").strip()[:200],
            )
            return None

        records = json.loads(stdout.decode("utf-8", errors="replace"))
        if not isinstance(records, list) or not records or not isinstance(records[0], dict):
            raise ValueError("expected a non-empty JSON array of records")
        return records[0]

    async def _feed(self, proc: asyncio.subprocess.Process, stream: ByteStream) -> None:
        assert proc.stdin is not None
        sent = 0
        try:
            async for chunk in stream:
                proc.stdin.write(chunk)
                await proc.stdin.drain()
                sent += len(chunk)
                if sent >= self.max_bytes:
                    break
        except (BrokenPipeError, ConnectionResetError):
            # exiftool closes its input once it has read the metadata it needs.
            pass
        finally:
            proc.stdin.close()
