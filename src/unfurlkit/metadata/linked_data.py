"""
Linked-data (JSON-LD) expansion.

Inline JSON-LD blocks are expanded with pyld. Remote contexts are fetched
through the same ``Request`` used for the page, bounded per document, and the
expanded output is flattened to the nodes that describe the page itself.
"""

from __future__ import annotations

import asyncio
import re
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Sequence

import structlog
from pyld import jsonld

from ..observability.metrics import record_auxiliary
from ..protocols import Request
from ..utils.streams import content_type, read_json

logger = structlog.get_logger(__name__)

JSON_LD_CONTENT_TYPE = re.compile(r"^application/(?:ld\+)?json$", re.IGNORECASE)
LOADER_TIMEOUT = 30.0

RemoteDocument = Dict[str, Any]
DocumentLoader = Callable[[str], Awaitable[RemoteDocument]]


class Expander(Protocol):
    """Linked-data expansion capability."""

    async def expand(self, document: Any, *, base: str, document_loader: DocumentLoader) -> List[Dict[str, Any]]:
        ...


def empty_context(url: str) -> RemoteDocument:
    """Stand-in for a remote context that could not be loaded."""
    return {"contextUrl": None, "documentUrl": url, "document": {"@context": {}}}


def make_document_loader(request: Request, *, max_remote_contexts: int, max_bytes: int = 1024 * 1024) -> DocumentLoader:
    """Build a loader that fetches remote contexts through ``request``.

    Each loader allows ``max_remote_contexts`` fetches. A context past that
    budget, or one that cannot be fetched, loads as an empty context, so the
    terms it would have defined are dropped and the rest of the document
    still expands. Never raises.
    """
    loaded = 0

    async def load(url: str) -> RemoteDocument:
        nonlocal loaded
        if loaded >= max_remote_contexts:
            logger.debug("Remote context limit reached", url=url, limit=max_remote_contexts)
            record_auxiliary("linked_data", "miss")
            return empty_context(url)
        loaded += 1

        try:
            page = await request(url, accept="application/ld+json")
        except Exception as e:
            logger.warning("Remote context fetch failed", url=url, error=str(e))
            record_auxiliary("linked_data", "error")
            return empty_context(url)

        try:
            if page.status != 200 or not JSON_LD_CONTENT_TYPE.match(content_type(page.headers)):
                logger.debug("Remote context unavailable", url=url, status=page.status)
                record_auxiliary("linked_data", "miss")
                return empty_context(url)
            document = await read_json(page.body, max_bytes)
        except Exception as e:
            logger.warning("Remote context unreadable", url=url, error=str(e))
            record_auxiliary("linked_data", "error")
            return empty_context(url)
        finally:
            await page.release()

        if not isinstance(document, dict):
            record_auxiliary("linked_data", "miss")
            return empty_context(url)
        record_auxiliary("linked_data", "success")
        return {"contextUrl": None, "documentUrl": page.url, "document": document}

    return load


class PyLdExpander:
    """Runs ``pyld.jsonld.expand`` in a worker thread.

    pyld calls its document loader synchronously, so the loader hops back to
    the event loop with ``run_coroutine_threadsafe`` for each remote context.
    """

    def __init__(self, loader_timeout: float = LOADER_TIMEOUT) -> None:
        self.loader_timeout = loader_timeout

    async def expand(self, document: Any, *, base: str, document_loader: DocumentLoader) -> List[Dict[str, Any]]:
        loop = asyncio.get_running_loop()

        def load_sync(url: str, options: Optional[Dict[str, Any]] = None) -> RemoteDocument:
            future = asyncio.run_coroutine_threadsafe(document_loader(url), loop)
            return future.result(timeout=self.loader_timeout)

        return await asyncio.to_thread(jsonld.expand, document, {"base": base, "documentLoader": load_sync})


def normalize_graph(expanded: Sequence[Dict[str, Any]], url: str) -> List[Dict[str, Any]]:
    """Flatten ``@graph`` containers and keep the nodes describing ``url``.

    A node is kept when it has no ``@id``, or its ``@id`` is the page URL
    (without fragment) or a fragment of it.
    """
    id_prefix = url.split("#", 1)[0]
    nodes: List[Dict[str, Any]] = []
    for item in expanded:
        if not isinstance(item, dict):
            continue
        members = item.get("@graph")
        candidates = members if isinstance(members, list) else [item]
        for node in candidates:
            if not isinstance(node, dict):
                continue
            node_id = node.get("@id", "")
            if node_id == "" or node_id == id_prefix or node_id.startswith(f"{id_prefix}#"):
                nodes.append(node)
    return nodes


async def expand_linked_data(
    documents: Sequence[Any],
    url: str,
    request: Request,
    *,
    expander: Optional[Expander] = None,
    max_remote_contexts: int = 4,
) -> Optional[List[Dict[str, Any]]]:
    """Expand the inline JSON-LD payloads of a page.

    Returns ``None`` when there is nothing to expand or expansion fails.
    """
    if not documents:
        return None
    expander = expander or PyLdExpander()
    loader = make_document_loader(request, max_remote_contexts=max_remote_contexts)
    try:
        expanded = await expander.expand(list(documents), base=url, document_loader=loader)
    except Exception as e:
        logger.warning("Linked-data expansion failed", url=url, error=str(e))
        return None
    return normalize_graph(expanded, url)
