"""
Binary-media plugin.

Claims images, PDFs and audio/video resources. Images and PDFs are piped
through exiftool; audio and video are described from their headers alone.
Responses without a usable content type are analysed alongside the rest of
the chain and claimed only when exiftool recognises them.
"""

from __future__ import annotations

import asyncio
from typing import Optional

import structlog

from ..config import ExtractionSettings, settings as global_settings
from ..observability.metrics import METRICS
from ..protocols import Next, ScrapeInput
from ..snippets.exif import PDF_TYPE, project_exif
from ..snippets.models import AudioSnippet, Snippet, VideoSnippet
from ..utils.streams import content_type, tee
from .exiftool import ExifExtractor, ExifToolExtractor

logger = structlog.get_logger(__name__)

AMBIGUOUS_TYPES = frozenset({"", "application/octet-stream"})
PROJECTED_PREFIXES = ("image/", "video/", "audio/")


def _is_projected(encoding_format: str) -> bool:
    return encoding_format.startswith(PROJECTED_PREFIXES) or encoding_format == PDF_TYPE


class ExifPlugin:
    """Plugin producing image, video, audio and document snippets."""

    def __init__(self, extractor: Optional[ExifExtractor] = None, settings: Optional[ExtractionSettings] = None) -> None:
        self._extractor = extractor
        self._settings = settings

    @property
    def settings(self) -> ExtractionSettings:
        if self._settings is None:
            self._settings = global_settings.extraction
        return self._settings

    @property
    def extractor(self) -> ExifExtractor:
        if self._extractor is None:
            self._extractor = ExifToolExtractor(
                path=self.settings.exiftool_path,
                timeout=self.settings.exiftool_timeout,
                max_bytes=self.settings.exif_max_bytes,
            )
        return self._extractor

    async def __call__(self, input: ScrapeInput, next: Next) -> Snippet:
        page = input.page
        encoding_format = content_type(page.headers)

        if encoding_format.startswith(("video/", "audio/")):
            await page.release()
            if encoding_format.startswith("video/"):
                return VideoSnippet(url=page.url, encoding_format=encoding_format)
            return AudioSnippet(url=page.url, encoding_format=encoding_format)

        if encoding_format.startswith("image/") or encoding_format == PDF_TYPE:
            try:
                exif = await self.extractor.extract(page.body)
            finally:
                await page.body.destroy()
            return project_exif(exif, page.url, encoding_format)

        if encoding_format in AMBIGUOUS_TYPES:
            return await self._sniff(input, next)

        return await next(input)

    async def _sniff(self, input: ScrapeInput, next: Next) -> Snippet:
        """Run exiftool and the rest of the chain side by side on a teed body."""
        analysis_branch, baseline_branch = tee(input.page.body, self.settings.tee_buffer_chunks)

        async def analyse():
            try:
                return await self.extractor.extract(analysis_branch)
            finally:
                await analysis_branch.destroy()

        async def baseline() -> Snippet:
            try:
                return await next(input.with_body(baseline_branch))
            finally:
                await baseline_branch.destroy()

        exif, result = await asyncio.gather(analyse(), baseline(), return_exceptions=True)
        if isinstance(result, BaseException):
            raise result
        if isinstance(exif, BaseException):
            logger.warning("Binary metadata extraction failed", url=input.page.url, error=str(exif))
            METRICS["plugin_failures_total"].labels(plugin="exif").inc()
            return result

        detected = str((exif or {}).get("MIMEType") or "").lower()
        if exif is not None and _is_projected(detected):
            return project_exif(exif, input.page.url)
        return result
