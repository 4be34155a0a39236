"""
Tests for the HTML plugin: dispatch, the teed baseline and auxiliary fetches.
"""

import pytest
from unfurlkit.config import ExtractionSettings
from unfurlkit.extractor import HtmlPlugin, probe_favicon
from unfurlkit.metadata.models import Icon
from unfurlkit.observability.metrics import METRICS
from unfurlkit.pipeline import scraper
from unfurlkit.protocols import Page, TokenizeError
from unfurlkit.snippets import HtmlSnippet, LinkSnippet

from tests.helpers import AbortCounter, FailingStream, FakeTransport, make_page, metric_delta

PAGE_URL = "https://example.com/page"

OEMBED_PAGE = """
<html><head>
<title>Page title</title>
<link rel="alternate" type="application/json+oembed" href="https://example.com/oembed?url=page">
<link rel="icon" href="/icon.png">
</head></html>
"""


class StaticExpander:
    """Expander returning a fixed expansion and recording its inputs."""

    def __init__(self, expanded=None, error=None):
        self.expanded = expanded or []
        self.error = error
        self.calls = []

    async def expand(self, document, *, base, document_loader):
        self.calls.append((document, base))
        if self.error is not None:
            raise self.error
        return self.expanded


def _plugin(**kwargs):
    kwargs.setdefault("settings", ExtractionSettings(fallback_on_favicon=False))
    return HtmlPlugin(**kwargs)


@pytest.mark.unit
class TestHtmlPluginDispatch:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("concurrent", [True, False])
    async def test_claims_html(self, transport, sample_html, concurrent):
        page = make_page(PAGE_URL, sample_html)

        snippet = await scraper(transport, [_plugin(concurrent=concurrent)])(page)

        assert isinstance(snippet, HtmlSnippet)
        assert snippet.headline == "Test Article"
        assert snippet.canonical_url == "https://example.com/articles/test"
        assert snippet.encoding_format == "text/html"

    @pytest.mark.asyncio
    async def test_claims_xhtml(self, transport):
        page = make_page(PAGE_URL, "<html><head><title>X</title></head></html>", content_type="application/xhtml+xml")

        snippet = await scraper(transport, [_plugin()])(page)

        assert snippet.headline == "X"
        assert snippet.encoding_format == "application/xhtml+xml"

    @pytest.mark.asyncio
    async def test_passes_other_types_on(self, transport):
        page = make_page(PAGE_URL, b"{}", content_type="application/json")

        snippet = await scraper(transport, [_plugin()])(page)

        assert snippet == LinkSnippet(url=PAGE_URL)

    @pytest.mark.asyncio
    async def test_charset_from_headers(self, transport):
        html = "<html><head><title>Café</title></head></html>".encode("latin-1")
        page = make_page(PAGE_URL, html, content_type="text/html; charset=iso-8859-1")

        snippet = await scraper(transport, [_plugin()])(page)

        assert snippet.headline == "Café"

    @pytest.mark.asyncio
    async def test_concurrent_mode_follows_settings(self):
        assert HtmlPlugin(settings=ExtractionSettings(concurrent_html=True)).concurrent is True
        assert HtmlPlugin(settings=ExtractionSettings(concurrent_html=False)).concurrent is False
        assert HtmlPlugin(settings=ExtractionSettings(concurrent_html=True), concurrent=False).concurrent is False


def _failing_page():
    stream = FailingStream([b"<html><head><title>Half"], ConnectionResetError("reset"))
    return Page(
        url=PAGE_URL,
        status=200,
        headers={"content-type": "text/html"},
        body=stream,
        abort=AbortCounter(),
    )


@pytest.mark.unit
class TestHtmlPluginFailures:
    @pytest.mark.asyncio
    async def test_concurrent_failure_returns_baseline(self, transport):
        with metric_delta(METRICS["plugin_failures_total"].labels(plugin="html")):
            snippet = await scraper(transport, [_plugin(concurrent=True)])(_failing_page())

        assert snippet == LinkSnippet(url=PAGE_URL)

    @pytest.mark.asyncio
    async def test_sequential_failure_propagates(self, transport):
        page = _failing_page()

        with pytest.raises(TokenizeError):
            await scraper(transport, [_plugin(concurrent=False)])(page)

        assert page.body.destroyed

    @pytest.mark.asyncio
    async def test_baseline_failure_is_raised(self, transport, sample_html):
        async def broken(input, next):
            raise RuntimeError("downstream")

        with pytest.raises(RuntimeError, match="downstream"):
            await scraper(transport, [_plugin(concurrent=True), broken])(make_page(PAGE_URL, sample_html))

    @pytest.mark.asyncio
    async def test_enrichment_failure_returns_baseline(self, transport, sample_html, monkeypatch):
        def explode(*args, **kwargs):
            raise ValueError("fusion failed")

        monkeypatch.setattr("unfurlkit.extractor.html_plugin.fuse", explode)

        snippet = await scraper(transport, [_plugin(concurrent=True)])(make_page(PAGE_URL, sample_html))

        assert snippet == LinkSnippet(url=PAGE_URL)


@pytest.mark.unit
class TestHtmlPluginEnrichment:
    @pytest.mark.asyncio
    async def test_oembed_document_is_fused(self):
        transport = FakeTransport()
        transport.add(
            "https://example.com/oembed?url=page",
            '{"title": "From oEmbed", "provider_name": "Example"}',
            content_type="application/json",
        )

        snippet = await scraper(transport, [_plugin()])(make_page(PAGE_URL, OEMBED_PAGE))

        assert snippet.headline == "From oEmbed"
        assert snippet.provider.name == "Example"
        assert transport.calls == [("https://example.com/oembed?url=page", "application/json")]

    @pytest.mark.asyncio
    async def test_oembed_skipped_for_non_200_pages(self):
        transport = FakeTransport()
        transport.add("https://example.com/oembed?url=page", '{"title": "From oEmbed"}', content_type="application/json")

        snippet = await scraper(transport, [_plugin()])(make_page(PAGE_URL, OEMBED_PAGE, status=203))

        assert snippet.headline == "Page title"
        assert transport.calls == []

    @pytest.mark.asyncio
    async def test_favicon_probe_when_no_icons(self):
        transport = FakeTransport()
        transport.add("https://example.com/favicon.ico", b"\x00\x00\x01\x00", content_type="image/x-icon")
        plugin = HtmlPlugin(settings=ExtractionSettings(fallback_on_favicon=True))

        snippet = await scraper(transport, [plugin])(make_page(PAGE_URL, "<title>No icons</title>"))

        assert snippet.icon.href == "https://example.com/favicon.ico"
        assert snippet.icon.type == "image/x-icon"

    @pytest.mark.asyncio
    async def test_favicon_not_probed_when_icons_declared(self, sample_html):
        transport = FakeTransport()
        plugin = HtmlPlugin(settings=ExtractionSettings(fallback_on_favicon=True))

        await scraper(transport, [plugin])(make_page(PAGE_URL, sample_html))

        assert not transport.requested("https://example.com/favicon.ico")

    @pytest.mark.asyncio
    async def test_linked_data_passed_to_expander(self, transport):
        html = """
        <script type="application/ld+json">
        {"@context": "https://schema.org", "@type": "Article", "headline": "LD"}
        </script>
        """
        expander = StaticExpander(
            [{"@type": ["http://schema.org/Article"], "http://schema.org/description": [{"@value": "From LD"}]}]
        )

        snippet = await scraper(transport, [_plugin(expander=expander)])(make_page(PAGE_URL, html))

        assert len(expander.calls) == 1
        document, base = expander.calls[0]
        assert base == PAGE_URL
        assert document[0]["headline"] == "LD"
        assert snippet.description == "From LD"

    @pytest.mark.asyncio
    async def test_expander_failure_keeps_html_snippet(self, transport):
        html = '<title>Still here</title><script type="application/ld+json">{"@type": "Thing"}</script>'
        expander = StaticExpander(error=ValueError("bad context"))

        snippet = await scraper(transport, [_plugin(expander=expander)])(make_page(PAGE_URL, html))

        assert isinstance(snippet, HtmlSnippet)
        assert snippet.headline == "Still here"


@pytest.mark.unit
class TestProbeFavicon:
    @pytest.mark.asyncio
    async def test_found(self):
        transport = FakeTransport()
        transport.add("https://example.com/favicon.ico", b"icon", content_type="image/vnd.microsoft.icon")

        icon = await probe_favicon(transport, "https://example.com/deep/page?q=1")

        assert icon == Icon(href="https://example.com/favicon.ico", type="image/vnd.microsoft.icon")
        assert transport.calls == [("https://example.com/favicon.ico", "image/*")]
        assert transport.pages[0].abort.calls == 1

    @pytest.mark.asyncio
    async def test_missing(self, transport):
        assert await probe_favicon(transport, PAGE_URL) is None

    @pytest.mark.asyncio
    async def test_not_an_image(self):
        transport = FakeTransport()
        transport.add("https://example.com/favicon.ico", "<html></html>", content_type="text/html")

        assert await probe_favicon(transport, PAGE_URL) is None

    @pytest.mark.asyncio
    async def test_transport_error_is_swallowed(self):
        async def unreachable(url, *, accept=None):
            raise ConnectionError("refused")

        assert await probe_favicon(unreachable, PAGE_URL) is None
