"""
Protocol definitions and shared types for the unfurlkit pipeline.

Everything that crosses a component boundary lives here: the fetched
``Page`` envelope, the plugin calling convention and the error taxonomy.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Awaitable, Callable, Dict, List, Optional, Protocol, Union, runtime_checkable

from .utils.streams import ByteStream, TeeBranch

if TYPE_CHECKING:
    from .snippets.models import Snippet

Headers = Dict[str, Union[str, List[str]]]


# --- Errors ---


class UnfurlError(Exception):
    """Base class for all unfurlkit errors."""


class TransportError(UnfurlError):
    """The primary resource could not be fetched."""

    def __init__(self, url: str, status: Optional[int] = None, reason: str = "") -> None:
        self.url = url
        self.status = status
        self.reason = reason
        detail = f"status {status}" if status is not None else reason or "connection failed"
        super().__init__(f"Failed to fetch {url}: {detail}")


class TokenizeError(UnfurlError):
    """The HTML token stream could not be read to the end."""


class DoubleDispatchError(UnfurlError, TypeError):
    """A plugin broke the call-``next``-exactly-once contract."""


# --- Envelope ---


@dataclass(frozen=True)
class Page:
    """A fetched resource: final URL, status, lower-cased headers and a streaming body."""

    url: str
    status: int
    headers: Headers
    body: "ByteStream"
    abort: Optional[Callable[[], None]] = None

    def with_body(self, body: "ByteStream") -> "Page":
        """Return a copy of this page reading from a different body stream."""
        return replace(self, body=body)

    async def release(self) -> None:
        """Destroy the body and abort the transport.

        A tee branch only detaches: its sibling still reads from the same
        connection, which the owner of the source aborts.
        """
        await self.body.destroy()
        if self.abort is not None and not isinstance(self.body, TeeBranch):
            self.abort()


@dataclass(frozen=True)
class ScrapeInput:
    """Input handed to every plugin."""

    page: Page
    request: "Request"
    scrape: "Scrape"

    def with_body(self, body: "ByteStream") -> "ScrapeInput":
        return replace(self, page=self.page.with_body(body))


@runtime_checkable
class Request(Protocol):
    """Transport capability used for the primary and auxiliary fetches."""

    async def __call__(self, url: str, *, accept: Optional[str] = None) -> Page:
        ...


Scrape = Callable[[Page], Awaitable["Snippet"]]
ScrapeUrl = Callable[[str], Awaitable["Snippet"]]
Next = Callable[[ScrapeInput], Awaitable["Snippet"]]
Plugin = Callable[[ScrapeInput, Next], Awaitable["Snippet"]]
