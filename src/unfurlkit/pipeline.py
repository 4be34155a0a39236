"""
Pipeline orchestration for unfurlkit.

A scrape runs the page through an ordered chain of plugins. Each plugin either
claims the page and returns a snippet, or delegates to the rest of the chain
by awaiting ``next`` exactly once. A page no plugin claims becomes a
``LinkSnippet``.
"""

from __future__ import annotations

import time
from typing import Optional, Sequence

import structlog

from .extractor import ExifPlugin, HtmlPlugin
from .observability.metrics import METRICS
from .protocols import DoubleDispatchError, Next, Page, Plugin, Request, Scrape, ScrapeInput, ScrapeUrl, TransportError
from .snippets.models import LinkSnippet, Snippet

logger = structlog.get_logger(__name__)

DEFAULT_PLUGINS: Sequence[Plugin] = (HtmlPlugin(), ExifPlugin())


async def _fallback(input: ScrapeInput) -> Snippet:
    """Innermost ``next``: release the body and describe the page as a plain link."""
    await input.page.release()
    return LinkSnippet(url=input.page.url)


def compose(plugins: Sequence[Plugin]) -> Plugin:
    """Combine ``plugins`` into a single plugin that dispatches them in order.

    The result is itself a plugin, so composed chains nest. A plugin that calls
    ``next`` more than once, or returns without claiming or delegating, raises
    ``DoubleDispatchError``.
    """
    chain = tuple(plugins)

    async def composed(input: ScrapeInput, done: Next) -> Snippet:
        async def dispatch(index: int, current: ScrapeInput) -> Snippet:
            if index == len(chain):
                return await done(current)

            plugin = chain[index]
            called = False

            async def next_(next_input: ScrapeInput) -> Snippet:
                nonlocal called
                if called:
                    raise DoubleDispatchError(f"Plugin {plugin!r} called next more than once")
                called = True
                return await dispatch(index + 1, next_input)

            result = await plugin(current, next_)
            if result is None:
                raise DoubleDispatchError(f"Plugin {plugin!r} returned without a snippet")
            return result

        return await dispatch(0, input)

    return composed


def scraper(request: Request, plugins: Optional[Sequence[Plugin]] = None) -> Scrape:
    """Build a scrape function turning fetched pages into snippets.

    Args:
        request: Transport used for auxiliary fetches (oEmbed, favicon, contexts).
        plugins: Plugin chain; ``DEFAULT_PLUGINS`` when omitted.

    Returns:
        ``async scrape(page) -> Snippet``. The page body is destroyed and the
        transport aborted once the scrape finishes, whether or not it succeeded.
    """
    plugin = compose(DEFAULT_PLUGINS if plugins is None else plugins)

    async def scrape(page: Page) -> Snippet:
        start_time = time.perf_counter()
        with structlog.contextvars.bound_contextvars(scrape_url=page.url):
            try:
                snippet = await plugin(ScrapeInput(page=page, request=request, scrape=scrape), _fallback)
            finally:
                await page.release()
                METRICS["scrape_duration_seconds"].observe(time.perf_counter() - start_time)

            METRICS["snippets_total"].labels(type=snippet.type).inc()
            logger.info("Scraped page", url=page.url, snippet_type=snippet.type)
        return snippet

    return scrape


def url_scraper(request: Request, plugins: Optional[Sequence[Plugin]] = None) -> ScrapeUrl:
    """Build a scrape function that fetches a URL before scraping it.

    Raises:
        TransportError: the response status is not 2xx.
    """
    scrape = scraper(request, plugins)

    async def scrape_url(url: str) -> Snippet:
        page = await request(url)
        if not 200 <= page.status < 300:
            await page.release()
            raise TransportError(page.url, status=page.status)
        return await scrape(page)

    return scrape_url
