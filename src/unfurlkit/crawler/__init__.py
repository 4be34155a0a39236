"""
Transport layer: aiohttp client producing streaming pages.
"""

from .http_client import HttpClient, collect_headers

__all__ = ["HttpClient", "collect_headers"]
