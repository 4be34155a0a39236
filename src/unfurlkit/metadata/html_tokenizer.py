"""
Token-event interface over the standard library HTML parser.

``HtmlTokenStream`` is fed decoded text chunk by chunk and forwards
open-tag, text, close-tag and end events to a ``TokenSink``. Void elements
get their close event immediately, so a sink always sees balanced events
for them; explicit end tags for void elements are dropped.
"""

from __future__ import annotations

from html.parser import HTMLParser
from typing import Dict, List, Optional, Protocol, Tuple

VOID_ELEMENTS = frozenset(
    {"area", "base", "br", "col", "embed", "hr", "img", "input", "link", "meta", "param", "source", "track", "wbr"}
)


class TokenSink(Protocol):
    """Receiver of tokenizer events."""

    def on_open_tag(self, name: str, attrs: Dict[str, str]) -> None:
        ...

    def on_text(self, text: str) -> None:
        ...

    def on_close_tag(self, name: str) -> None:
        ...

    def on_end(self) -> None:
        ...


def _attr_dict(attrs: List[Tuple[str, Optional[str]]]) -> Dict[str, str]:
    result: Dict[str, str] = {}
    for key, value in attrs:
        # First occurrence wins, as in browsers.
        if key not in result:
            result[key] = value if value is not None else ""
    return result


class HtmlTokenStream(HTMLParser):
    """Incremental HTML tokenizer with entity decoding enabled."""

    def __init__(self, sink: TokenSink) -> None:
        super().__init__(convert_charrefs=True)
        self.sink = sink
        self._ended = False

    def handle_starttag(self, tag: str, attrs: List[Tuple[str, Optional[str]]]) -> None:
        self.sink.on_open_tag(tag, _attr_dict(attrs))
        if tag in VOID_ELEMENTS:
            self.sink.on_close_tag(tag)

    def handle_startendtag(self, tag: str, attrs: List[Tuple[str, Optional[str]]]) -> None:
        self.sink.on_open_tag(tag, _attr_dict(attrs))
        self.sink.on_close_tag(tag)

    def handle_endtag(self, tag: str) -> None:
        if tag not in VOID_ELEMENTS:
            self.sink.on_close_tag(tag)

    def handle_data(self, data: str) -> None:
        if data:
            self.sink.on_text(data)

    def close(self) -> None:
        super().close()
        if not self._ended:
            self._ended = True
            self.sink.on_end()
