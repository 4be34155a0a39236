"""
unfurlkit extraction plugins.

- HtmlPlugin: HTML/XHTML metadata tokenization, auxiliary fetches and fusion
- ExifPlugin: image, video, audio and PDF metadata through exiftool
"""

from .exif_plugin import ExifPlugin
from .exiftool import ExifExtractor, ExifToolExtractor
from .html_plugin import HtmlPlugin, probe_favicon

__all__ = [
    "ExifExtractor",
    "ExifPlugin",
    "ExifToolExtractor",
    "HtmlPlugin",
    "probe_favicon",
]
