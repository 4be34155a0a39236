"""
HTML plugin.

Tokenizes HTML documents, fetches the auxiliary documents they advertise
(oEmbed endpoint, remote linked-data contexts, ``/favicon.ico``) and fuses
everything into an ``HtmlSnippet``.

In concurrent mode the body is teed: the tokenizer reads one branch while
the rest of the chain produces a baseline snippet from the other. Any
failure on the tokenizer side returns the baseline unchanged.
"""

from __future__ import annotations

import asyncio
from typing import Optional
from urllib.parse import urljoin

import structlog

from ..config import ExtractionSettings, settings as global_settings
from ..metadata import Expander, Icon, MetadataBag, expand_linked_data, fetch_oembed, tokenize
from ..observability.metrics import METRICS, record_auxiliary
from ..protocols import Next, Page, Request, ScrapeInput
from ..snippets import FusionAux, FusionOptions, Snippet, fuse
from ..utils.streams import content_charset, content_type, tee

logger = structlog.get_logger(__name__)

HTML_TYPES = frozenset({"text/html", "application/xhtml+xml"})
FAVICON_PATH = "/favicon.ico"


async def probe_favicon(request: Request, url: str) -> Optional[Icon]:
    """Look for ``/favicon.ico`` at the page's origin. Never raises."""
    favicon_url = urljoin(url, FAVICON_PATH)
    try:
        page = await request(favicon_url, accept="image/*")
    except Exception as e:
        logger.debug("Favicon probe failed", url=favicon_url, error=str(e))
        record_auxiliary("favicon", "error")
        return None

    try:
        ctype = content_type(page.headers)
        if 200 <= page.status < 300 and ctype.startswith("image/"):
            record_auxiliary("favicon", "success")
            return Icon(href=page.url, type=ctype)
    finally:
        await page.release()
    record_auxiliary("favicon", "miss")
    return None


class HtmlPlugin:
    """Plugin producing ``HtmlSnippet`` for HTML and XHTML documents."""

    def __init__(
        self,
        settings: Optional[ExtractionSettings] = None,
        expander: Optional[Expander] = None,
        concurrent: Optional[bool] = None,
    ) -> None:
        self._settings = settings
        self.expander = expander
        self._concurrent = concurrent

    @property
    def settings(self) -> ExtractionSettings:
        if self._settings is None:
            self._settings = global_settings.extraction
        return self._settings

    @property
    def concurrent(self) -> bool:
        if self._concurrent is None:
            return self.settings.concurrent_html
        return self._concurrent

    async def __call__(self, input: ScrapeInput, next: Next) -> Snippet:
        if content_type(input.page.headers) not in HTML_TYPES:
            return await next(input)
        if self.concurrent:
            return await self._with_baseline(input, next)

        try:
            bag = await tokenize(input.page.body, input.page.url, encoding=content_charset(input.page.headers))
        finally:
            await input.page.body.destroy()
        return await self._enrich(bag, input)

    async def _with_baseline(self, input: ScrapeInput, next: Next) -> Snippet:
        page = input.page
        html_branch, baseline_branch = tee(page.body, self.settings.tee_buffer_chunks)

        async def analyse() -> MetadataBag:
            try:
                return await tokenize(html_branch, page.url, encoding=content_charset(page.headers))
            finally:
                await html_branch.destroy()

        async def baseline() -> Snippet:
            try:
                return await next(input.with_body(baseline_branch))
            finally:
                await baseline_branch.destroy()

        bag, result = await asyncio.gather(analyse(), baseline(), return_exceptions=True)
        if isinstance(result, BaseException):
            raise result
        if isinstance(bag, BaseException):
            logger.warning("HTML tokenization failed, using baseline snippet", url=page.url, error=str(bag))
            METRICS["plugin_failures_total"].labels(plugin="html").inc()
            return result

        try:
            return await self._enrich(bag, input)
        except Exception as e:
            logger.warning("HTML enrichment failed, using baseline snippet", url=page.url, error=str(e))
            METRICS["plugin_failures_total"].labels(plugin="html").inc()
            return result

    async def _enrich(self, bag: MetadataBag, input: ScrapeInput) -> Snippet:
        page: Page = input.page
        request = input.request
        cfg = self.settings

        async def oembed():
            if page.status != 200:
                return None
            return await fetch_oembed(request, bag.alternates, cfg.oembed_max_bytes)

        async def favicon():
            if bag.icons or not cfg.fallback_on_favicon:
                return None
            return await probe_favicon(request, page.url)

        oembed_doc, graph, favicon_icon = await asyncio.gather(
            oembed(),
            expand_linked_data(
                bag.json_ld,
                page.url,
                request,
                expander=self.expander,
                max_remote_contexts=cfg.max_remote_contexts,
            ),
            favicon(),
        )
        logger.debug(
            "Enriched HTML metadata",
            url=page.url,
            oembed=oembed_doc is not None,
            linked_data=graph is not None,
            favicon=favicon_icon is not None,
        )
        return fuse(
            bag,
            FusionAux(oembed=oembed_doc, graph=graph, favicon=favicon_icon),
            url=page.url,
            options=FusionOptions(
                preferred_icon_size=cfg.preferred_icon_size,
                encoding_format=content_type(page.headers),
            ),
        )
