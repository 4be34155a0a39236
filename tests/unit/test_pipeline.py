"""
Tests for plugin composition and the scrape entry points.
"""

import pytest
from unfurlkit.observability.metrics import METRICS
from unfurlkit.pipeline import compose, scraper, url_scraper
from unfurlkit.protocols import DoubleDispatchError, TransportError
from unfurlkit.snippets import HtmlSnippet, LinkSnippet

from tests.helpers import FakeTransport, histogram_observes, make_page, metric_delta


async def passthrough(input, next):
    return await next(input)


async def claim_all(input, next):
    await input.page.body.resume()
    return HtmlSnippet(url=input.page.url, headline="claimed")


async def double_next(input, next):
    await next(input)
    return await next(input)


async def forgetful(input, next):
    return None


@pytest.mark.unit
class TestCompose:
    @pytest.mark.asyncio
    async def test_unclaimed_page_becomes_link(self, transport):
        page = make_page("https://example.com/file.bin", b"data", content_type="application/zip")

        snippet = await scraper(transport, [passthrough])(page)

        assert snippet == LinkSnippet(url="https://example.com/file.bin")
        assert page.body.destroyed

    @pytest.mark.asyncio
    async def test_first_claiming_plugin_wins(self, transport):
        calls = []

        async def recording(input, next):
            calls.append("recording")
            return await next(input)

        snippet = await scraper(transport, [recording, claim_all, recording])(make_page())

        assert snippet.headline == "claimed"
        assert calls == ["recording"]

    @pytest.mark.asyncio
    async def test_calling_next_twice_fails(self, transport):
        with pytest.raises(DoubleDispatchError):
            await scraper(transport, [double_next])(make_page())

    @pytest.mark.asyncio
    async def test_returning_nothing_fails(self, transport):
        with pytest.raises(DoubleDispatchError):
            await scraper(transport, [forgetful])(make_page())

    @pytest.mark.asyncio
    async def test_double_dispatch_error_is_a_type_error(self, transport):
        with pytest.raises(TypeError):
            await scraper(transport, [double_next])(make_page())

    @pytest.mark.asyncio
    async def test_composed_chains_nest(self, transport):
        inner = compose([passthrough, claim_all])

        snippet = await scraper(transport, [passthrough, inner])(make_page())

        assert snippet.headline == "claimed"

    @pytest.mark.asyncio
    async def test_empty_chain(self, transport):
        snippet = await scraper(transport, [])(make_page("https://example.com/x"))

        assert snippet == LinkSnippet(url="https://example.com/x")


@pytest.mark.unit
class TestScraperLifecycle:
    @pytest.mark.asyncio
    async def test_page_released_after_success(self, transport):
        page = make_page()

        await scraper(transport, [claim_all])(page)

        assert page.body.destroyed
        assert page.abort.calls >= 1

    @pytest.mark.asyncio
    async def test_page_released_after_failure(self, transport):
        page = make_page()

        async def broken(input, next):
            raise RuntimeError("plugin bug")

        with pytest.raises(RuntimeError):
            await scraper(transport, [broken])(page)

        assert page.body.destroyed
        assert page.abort.calls >= 1

    @pytest.mark.asyncio
    async def test_metrics_are_recorded(self, transport):
        with metric_delta(METRICS["snippets_total"].labels(type="link")):
            with histogram_observes(METRICS["scrape_duration_seconds"]):
                await scraper(transport, [])(make_page())


@pytest.mark.unit
class TestUrlScraper:
    @pytest.mark.asyncio
    async def test_fetches_and_scrapes(self):
        transport = FakeTransport()
        transport.add("https://example.com/a", b"zip", content_type="application/zip")

        snippet = await url_scraper(transport, [passthrough])("https://example.com/a")

        assert snippet == LinkSnippet(url="https://example.com/a")
        assert transport.calls == [("https://example.com/a", None)]

    @pytest.mark.asyncio
    async def test_non_2xx_raises_transport_error(self):
        transport = FakeTransport()
        transport.add("https://example.com/gone", b"not found", status=410)

        with pytest.raises(TransportError) as exc_info:
            await url_scraper(transport, [passthrough])("https://example.com/gone")

        assert exc_info.value.status == 410
        page = transport.pages[0]
        assert page.body.destroyed
        assert page.abort.calls == 1
