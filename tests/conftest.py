"""
Shared fixtures: fake capabilities, sample pages and settings isolated from
any configuration file in the working directory.
"""

# Standard library imports
import asyncio
import os
from typing import AsyncGenerator

# Third-party imports
import pytest
import pytest_asyncio

# Local imports
from unfurlkit.config import Config, ExtractionSettings, LazyConfig
from unfurlkit.metadata import MetadataBag, tokenize
from unfurlkit.utils.streams import BytesStream

from tests.helpers import FakeExifExtractor, FakeTransport

# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config):
    """Register the unit and integration markers."""
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "integration: Integration tests across modules")


# ============================================================================
# Core Test Fixtures
# ============================================================================


@pytest_asyncio.fixture(autouse=True)
async def cleanup_tasks() -> AsyncGenerator[None, None]:
    """Cancel any task a test leaves behind so it cannot leak into the next one."""
    tasks_before = asyncio.all_tasks()
    yield
    new_tasks = asyncio.all_tasks() - tasks_before

    for task in new_tasks:
        if not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Keep the lazy global settings away from the developer's working directory."""
    monkeypatch.chdir(tmp_path)
    for name in list(os.environ):
        if name.startswith("UNFURL_"):
            monkeypatch.delenv(name, raising=False)
    LazyConfig.reset()
    yield
    LazyConfig.reset()


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def config() -> Config:
    """Configuration with fast, deterministic transport settings."""
    cfg = Config()
    cfg.crawler.timeout = 5.0
    cfg.crawler.max_retries = 3
    return cfg


@pytest.fixture
def extraction_settings() -> ExtractionSettings:
    """Extraction settings with the favicon probe disabled."""
    return ExtractionSettings(fallback_on_favicon=False)


# ============================================================================
# Capability Fakes
# ============================================================================


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def exif_extractor() -> FakeExifExtractor:
    return FakeExifExtractor(
        {
            "MIMEType": "image/png",
            "ImageWidth": 800,
            "ImageHeight": 600,
        }
    )


# ============================================================================
# HTML Fixtures
# ============================================================================


@pytest.fixture
def sample_html() -> str:
    """Article page carrying several overlapping metadata vocabularies."""
    return """
    <!DOCTYPE html>
    <html lang="en">
    <head>
        <title>Test Article | Example</title>
        <meta name="description" content="Plain description">
        <meta name="keywords" content="python, metadata,  previews">
        <meta property="og:title" content="Test Article">
        <meta property="og:type" content="article">
        <meta property="og:description" content="Open Graph description">
        <meta property="og:image" content="/img/cover.png">
        <meta property="og:image:width" content="1200">
        <meta property="og:site_name" content="Example">
        <meta property="article:published_time" content="2020-01-02T03:04:05Z">
        <meta name="twitter:card" content="summary_large_image">
        <meta name="twitter:site" content="@example">
        <meta name="twitter:image" content="https://example.com/img/cover.png">
        <meta name="twitter:image:height" content="630">
        <link rel="canonical" href="/articles/test">
        <link rel="icon" href="/favicon-16.png" sizes="16x16">
        <link rel="icon" href="/favicon-64.png" sizes="64x64">
    </head>
    <body>
        <article>
            <h1>Test Article Title</h1>
            <p>This is a sample paragraph.</p>
        </article>
    </body>
    </html>
    """


@pytest.fixture
def parse_html():
    """Tokenize an HTML string as if fetched from ``url``."""

    async def _parse(html: str, url: str = "https://example.com/page") -> MetadataBag:
        return await tokenize(BytesStream(html, chunk_size=32), url)

    return _parse
