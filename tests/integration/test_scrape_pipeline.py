"""
End-to-end scrapes through the aiohttp transport, with the network mocked by
aioresponses.
"""

from __future__ import annotations

import pytest
import pytest_asyncio
from aioresponses import aioresponses
from unfurlkit.config import Config, ExtractionSettings
from unfurlkit.crawler import HttpClient
from unfurlkit.extractor import ExifPlugin, HtmlPlugin
from unfurlkit.pipeline import url_scraper
from unfurlkit.protocols import TransportError
from unfurlkit.snippets import HtmlSnippet, ImageSnippet, LinkSnippet

from tests.helpers import FakeExifExtractor

ARTICLE_URL = "https://news.example/2020/article"

ARTICLE_HTML = """<!DOCTYPE html>
<html lang="en-GB">
<head>
  <meta charset="utf-8">
  <title>Fallback title</title>
  <meta property="og:type" content="article">
  <meta property="og:image" content="/cover.jpg">
  <meta property="og:image:width" content="1200">
  <meta name="twitter:site" content="@news">
  <link rel="alternate" type="application/json+oembed" href="https://news.example/oembed?url=article">
  <script type="application/ld+json">
  {
    "@context": {"@vocab": "http://schema.org/"},
    "@type": "NewsArticle",
    "description": "Linked-data description",
    "author": {"@type": "Person", "name": "Jane Reporter"}
  }
  </script>
</head>
<body><p>Body text</p></body>
</html>
"""

OEMBED_JSON = '{"type": "rich", "title": "oEmbed title", "provider_name": "News", "html": "<div></div>"}'


@pytest_asyncio.fixture
async def client():
    config = Config()
    config.crawler.max_retries = 0
    async with HttpClient(config) as http_client:
        yield http_client


def _plugins(extractor=None):
    return [
        HtmlPlugin(settings=ExtractionSettings()),
        ExifPlugin(extractor=extractor or FakeExifExtractor(None), settings=ExtractionSettings()),
    ]


@pytest.mark.integration
class TestScrapePipeline:
    @pytest.mark.asyncio
    async def test_article_with_auxiliary_documents(self, client):
        with aioresponses() as m:
            m.get(ARTICLE_URL, status=200, body=ARTICLE_HTML, content_type="text/html")
            m.get("https://news.example/oembed?url=article", status=200, body=OEMBED_JSON, content_type="application/json")
            m.get("https://news.example/favicon.ico", status=200, body=b"\x00\x00\x01\x00", content_type="image/x-icon")

            snippet = await url_scraper(client, _plugins())(ARTICLE_URL)

        assert isinstance(snippet, HtmlSnippet)
        assert snippet.headline == "oEmbed title"
        assert snippet.description == "Linked-data description"
        assert snippet.author.name == "Jane Reporter"
        assert snippet.provider.name == "News"
        assert snippet.image[0].url == "https://news.example/cover.jpg"
        assert snippet.image[0].width == 1200
        assert snippet.icon.href == "https://news.example/favicon.ico"
        assert snippet.twitter.site_handle == "news"
        assert snippet.locale.primary == "en-GB"
        assert snippet.entity.type == "article"

        data = snippet.to_dict()
        assert data["type"] == "html"
        assert data["encodingFormat"] == "text/html"

    @pytest.mark.asyncio
    async def test_image_is_projected(self, client):
        extractor = FakeExifExtractor({"MIMEType": "image/jpeg", "ImageWidth": 640, "ImageHeight": 480})
        with aioresponses() as m:
            m.get("https://cdn.example/photo.jpg", status=200, body=b"\xff\xd8\xff" * 50, content_type="image/jpeg")

            snippet = await url_scraper(client, _plugins(extractor))("https://cdn.example/photo.jpg")

        assert snippet == ImageSnippet(
            url="https://cdn.example/photo.jpg", encoding_format="image/jpeg", width=640, height=480
        )
        assert extractor.bytes_read == 150

    @pytest.mark.asyncio
    async def test_unclaimed_type_is_link(self, client):
        with aioresponses() as m:
            m.get("https://files.example/archive.zip", status=200, body=b"PK\x03\x04", content_type="application/zip")

            snippet = await url_scraper(client, _plugins())("https://files.example/archive.zip")

        assert snippet == LinkSnippet(url="https://files.example/archive.zip")

    @pytest.mark.asyncio
    async def test_error_status_raises(self, client):
        with aioresponses() as m:
            m.get(ARTICLE_URL, status=404, body="Not Found", content_type="text/html")

            with pytest.raises(TransportError) as exc_info:
                await url_scraper(client, _plugins())(ARTICLE_URL)

        assert exc_info.value.status == 404
