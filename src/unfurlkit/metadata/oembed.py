"""
oEmbed discovery: fetch the JSON document advertised by a page's alternate links.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Optional, Sequence

import structlog

from ..observability.metrics import record_auxiliary
from ..protocols import Request
from ..utils.streams import content_type, read_json
from .models import Alternate

logger = structlog.get_logger(__name__)

OEMBED_LINK_TYPES = frozenset({"application/json+oembed", "text/json+oembed"})
OEMBED_CONTENT_TYPE = re.compile(r"^(?:application|text)/(?:json|json\+oembed)$", re.IGNORECASE)


def find_oembed_link(alternates: Sequence[Alternate]) -> Optional[Alternate]:
    for alternate in alternates:
        if alternate.type and alternate.type.strip().lower() in OEMBED_LINK_TYPES:
            return alternate
    return None


async def fetch_oembed(
    request: Request, alternates: Sequence[Alternate], max_bytes: int = 1024 * 1024
) -> Optional[Dict[str, Any]]:
    """Fetch and decode the page's oEmbed document.

    Returns ``None`` when the page advertises no JSON oEmbed endpoint or the
    endpoint does not answer with a JSON object. Never raises.
    """
    link = find_oembed_link(alternates)
    if link is None:
        return None

    try:
        page = await request(link.href, accept="application/json")
    except Exception as e:
        logger.warning("oEmbed fetch failed", url=link.href, error=str(e))
        record_auxiliary("oembed", "error")
        return None

    try:
        if page.status != 200 or not OEMBED_CONTENT_TYPE.match(content_type(page.headers)):
            logger.debug("oEmbed endpoint returned no JSON", url=link.href, status=page.status)
            record_auxiliary("oembed", "miss")
            return None
        document = await read_json(page.body, max_bytes)
    except Exception as e:
        logger.warning("oEmbed document unreadable", url=link.href, error=str(e))
        record_auxiliary("oembed", "error")
        return None
    finally:
        await page.release()

    if not isinstance(document, dict):
        record_auxiliary("oembed", "miss")
        return None
    record_auxiliary("oembed", "success")
    return document
