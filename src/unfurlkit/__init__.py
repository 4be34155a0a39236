"""
unfurlkit - link-preview snippets from arbitrary URLs.
"""

from __future__ import annotations

__version__ = "0.1.0"

from .config import Config
from .metadata import tokenize
from .pipeline import DEFAULT_PLUGINS, compose, scraper, url_scraper
from .protocols import DoubleDispatchError, Page, ScrapeInput, TokenizeError, TransportError, UnfurlError
from .snippets import (
    AudioSnippet,
    DocumentSnippet,
    HtmlSnippet,
    ImageSnippet,
    LinkSnippet,
    Snippet,
    VideoSnippet,
    fuse,
    project_exif,
)

__all__ = [
    "__version__",
    "AudioSnippet",
    "Config",
    "DEFAULT_PLUGINS",
    "DocumentSnippet",
    "DoubleDispatchError",
    "HtmlSnippet",
    "ImageSnippet",
    "LinkSnippet",
    "Page",
    "ScrapeInput",
    "Snippet",
    "TokenizeError",
    "TransportError",
    "UnfurlError",
    "VideoSnippet",
    "compose",
    "fuse",
    "project_exif",
    "scraper",
    "tokenize",
    "url_scraper",
]
