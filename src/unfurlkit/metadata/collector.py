"""
Flat/graph metadata collector.

A single streaming pass over HTML token events that fills the flat dialect
maps (Twitter, App Links, Dublin Core, Sailthru, plain HTML meta), an
RDFa-style triple graph with nested ``vocab``/``prefix``/``resource`` scoping,
and a second graph holding microdata items (``itemscope``/``itemtype``/``itemprop``).
"""

from __future__ import annotations

import codecs
import json
import re
from collections import ChainMap
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, MutableMapping, Optional, Tuple
from urllib.parse import urljoin

import structlog

from ..protocols import TokenizeError
from ..utils.streams import ByteStream
from .html_tokenizer import HtmlTokenStream
from .models import (
    Alternate,
    AppLinksDialect,
    Dialect,
    DublinCoreDialect,
    HtmlDialect,
    Icon,
    MetadataBag,
    RdfaGraph,
    SailthruDialect,
    TwitterDialect,
)
from .prefixes import DEFAULT_PREFIXES, SCHEMA

logger = structlog.get_logger(__name__)

HTML_META_NAMES = frozenset(
    {"date", "keywords", "author", "description", "language", "application-name", "apple-mobile-web-app-title"}
)
JSON_LD_TYPES = frozenset({"application/ld+json", "application/json+ld"})
# Elements whose text is code, never a property value.
RAW_TEXT_TAGS = frozenset({"script", "style"})

# Tag -> attribute holding the implicit value of a ``property``.
IMPLICIT_URL_ATTRS = {
    "a": "href",
    "link": "href",
    "area": "href",
    "img": "src",
    "audio": "src",
    "video": "src",
    "embed": "src",
    "iframe": "src",
    "source": "src",
    "track": "src",
    "object": "data",
}

# Microdata reads ``value`` on these in place of text.
ITEM_VALUE_ATTRS = {"data": "value", "meter": "value"}

SCHEMA_HTTPS = "https://schema.org/"

_PREFIX_PAIR = re.compile(r"([A-Za-z_][\w.-]*):\s+(\S+)")
_ABSOLUTE_IRI = re.compile(r"^https?://", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")
_ITEM_VOCAB = re.compile(r"^(.*[/#])[^/#]*$")


def parse_prefix_attr(value: str) -> Dict[str, str]:
    """``"og: http://ogp.me/ns# dc: http://purl.org/dc/terms/"`` -> mapping."""
    return {name.lower(): iri for name, iri in _PREFIX_PAIR.findall(value)}


def _clean_text(parts: List[str]) -> str:
    return _WHITESPACE.sub(" ", "".join(parts)).strip()


def item_vocabulary(item_type: str) -> Optional[str]:
    """``"https://schema.org/NewsArticle"`` -> ``"http://schema.org/"``."""
    match = _ITEM_VOCAB.match(item_type)
    if match is None:
        return None
    vocab = match.group(1)
    return SCHEMA if vocab == SCHEMA_HTTPS else vocab


@dataclass
class _Frame:
    tag: str
    vocab: Optional[str]
    prefixes: MutableMapping[str, str]
    subject: str
    # (subject, property) pairs that take the element's text as their value.
    pending: List[Tuple[str, str]] = field(default_factory=list)
    text: Optional[List[str]] = None
    script_type: Optional[str] = None
    # Innermost microdata item and the vocabulary its ``itemprop`` names resolve against.
    item: Optional[str] = None
    item_vocab: Optional[str] = None
    item_pending: List[Tuple[str, str]] = field(default_factory=list)


class MetadataCollector:
    """``TokenSink`` that builds a ``MetadataBag``."""

    def __init__(self, base_url: str, prefixes: Mapping[str, str] = DEFAULT_PREFIXES) -> None:
        self.document_url = base_url
        self.base_url = base_url
        self._base_seen = False
        self._root = _Frame(tag="#document", vocab=None, prefixes=ChainMap({}, prefixes), subject="")
        self._stack: List[_Frame] = [self._root]
        self._dialects: Dict[str, Dialect] = {
            "html": HtmlDialect(),
            "twitter": TwitterDialect(),
            "dublin_core": DublinCoreDialect(),
            "sailthru": SailthruDialect(),
            "app_links": AppLinksDialect(),
        }
        self.rdfa = RdfaGraph()
        self.microdata = RdfaGraph()
        self._anonymous_items = 0
        self.json_ld: List[object] = []
        self.alternates: List[Alternate] = []
        self.icons: List[Icon] = []
        self._result: Optional[MetadataBag] = None

    # --- Token events ---

    def on_open_tag(self, name: str, attrs: Dict[str, str]) -> None:
        parent = self._stack[-1]

        prefixes = parent.prefixes
        if "prefix" in attrs:
            prefixes = parent.prefixes.new_child(parse_prefix_attr(attrs["prefix"]))  # type: ignore[attr-defined]
        vocab = attrs["vocab"].strip() or None if "vocab" in attrs else parent.vocab

        subject = parent.subject
        if "about" in attrs:
            subject = self._resolve(attrs["about"])
        child_subject = subject
        resource = self._resolve(attrs["resource"]) if "resource" in attrs else None
        if resource is not None:
            child_subject = resource

        frame = _Frame(
            tag=name,
            vocab=vocab,
            prefixes=prefixes,
            subject=child_subject,
            item=parent.item,
            item_vocab=parent.item_vocab,
        )
        self._stack.append(frame)

        if "typeof" in attrs:
            for type_iri in self._resolve_terms(attrs["typeof"], frame):
                self.rdfa.add(child_subject, "@type", type_iri)

        if "property" in attrs:
            properties = self._resolve_terms(attrs["property"], frame)
            value = self._property_value(name, attrs, resource)
            for prop in properties:
                if value is None:
                    frame.pending.append((subject, prop))
                elif value:
                    self.rdfa.add(subject, prop, value)
            if value is None and properties:
                frame.text = []

        if "itemscope" in attrs or "itemprop" in attrs:
            self._enter_item(frame, parent, attrs)

        handler = getattr(self, f"_open_{name}", None)
        if handler is not None:
            handler(frame, attrs)

    def on_text(self, text: str) -> None:
        innermost = self._stack[-1]
        if innermost.tag in RAW_TEXT_TAGS:
            if innermost.script_type is not None:
                innermost.text.append(text)  # type: ignore[union-attr]
            return
        for frame in self._stack:
            if frame.text is not None:
                frame.text.append(text)

    def on_close_tag(self, name: str) -> None:
        # Stray close tags are ignored; unclosed descendants close with their ancestor.
        for index in range(len(self._stack) - 1, 0, -1):
            if self._stack[index].tag == name:
                while len(self._stack) > index:
                    self._close_frame(self._stack.pop())
                return

    def on_end(self) -> None:
        while len(self._stack) > 1:
            self._close_frame(self._stack.pop())

    # --- Microdata ---

    def _enter_item(self, frame: _Frame, parent: _Frame, attrs: Dict[str, str]) -> None:
        """Microdata: ``itemscope`` starts an item, ``itemprop`` adds to the enclosing one.

        An item that is itself a property value is linked from its owner by
        subject; every other item describes the document.
        """
        owner = parent.item if "itemprop" in attrs else None
        value: Optional[str] = None

        if "itemscope" in attrs:
            frame.item = self._item_subject(attrs, nested=owner is not None)
            types = [token for token in attrs.get("itemtype", "").split() if _ABSOLUTE_IRI.match(token)]
            for item_type in types:
                self.microdata.add(frame.item, "@type", item_type)
            if types:
                frame.item_vocab = item_vocabulary(types[0])
            value = frame.item

        if owner is None:
            return
        properties = self._resolve_itemprops(attrs["itemprop"], parent.item_vocab)
        if value is None:
            value = self._item_value(frame.tag, attrs)
        for prop in properties:
            if value is None:
                frame.item_pending.append((owner, prop))
            elif value:
                self.microdata.add(owner, prop, value)
        if value is None and properties and frame.text is None:
            frame.text = []

    # --- Tag handlers ---

    def _open_html(self, frame: _Frame, attrs: Dict[str, str]) -> None:
        if attrs.get("lang"):
            self._dialects["html"].add("lang", attrs["lang"].strip())

    def _open_base(self, frame: _Frame, attrs: Dict[str, str]) -> None:
        if self._base_seen or not attrs.get("href"):
            return
        self._base_seen = True
        self.base_url = urljoin(self.document_url, attrs["href"].strip())

    def _open_title(self, frame: _Frame, attrs: Dict[str, str]) -> None:
        if frame.text is None:
            frame.text = []

    def _open_script(self, frame: _Frame, attrs: Dict[str, str]) -> None:
        script_type = attrs.get("type", "").split(";", 1)[0].strip().lower()
        if script_type in JSON_LD_TYPES:
            frame.script_type = script_type
            frame.text = []

    def _open_meta(self, frame: _Frame, attrs: Dict[str, str]) -> None:
        content = attrs.get("content")
        if content is None:
            return
        content = content.strip()
        if not content:
            return

        name = attrs.get("name", "").strip()
        prop = attrs.get("property", "").strip()
        lower_name = name.lower()
        lower_prop = prop.lower()

        if lower_name.startswith("twitter:"):
            self._dialects["twitter"].add(lower_name[8:], content)
        elif lower_prop.startswith("twitter:"):
            self._dialects["twitter"].add(lower_prop[8:], content)

        if lower_prop.startswith("al:"):
            self._dialects["app_links"].add(lower_prop[3:], content)

        if lower_name.startswith("dc."):
            self._dialects["dublin_core"].add(lower_name[3:], content)
        elif lower_name.startswith("dcterms."):
            self._dialects["dublin_core"].add(lower_name[8:], content)
        elif lower_name.startswith("sailthru."):
            self._dialects["sailthru"].add(lower_name[9:], content)
        elif lower_name in HTML_META_NAMES:
            self._dialects["html"].add(lower_name, content)

    def _open_link(self, frame: _Frame, attrs: Dict[str, str]) -> None:
        href = attrs.get("href", "").strip()
        if not href:
            return
        rel = attrs.get("rel", "").lower().split()
        url = self._resolve(href)

        if "canonical" in rel:
            self._dialects["html"].add("canonical", url)
        if "alternate" in rel:
            self.alternates.append(Alternate(href=url, type=attrs.get("type") or None, title=attrs.get("title") or None))
        if any("icon" in token for token in rel):
            self.icons.append(Icon(href=url, sizes=attrs.get("sizes") or None, type=attrs.get("type") or None))

    # --- Helpers ---

    def _close_frame(self, frame: _Frame) -> None:
        if frame.text is None:
            return
        if frame.script_type is not None:
            self._read_json_ld("".join(frame.text))
            return
        text = _clean_text(frame.text)
        if not text:
            return
        if frame.tag == "title":
            self._dialects["html"].add("title", text)
        for subject, prop in frame.pending:
            self.rdfa.add(subject, prop, text)
        for subject, prop in frame.item_pending:
            self.microdata.add(subject, prop, text)

    def _read_json_ld(self, text: str) -> None:
        if not text.strip():
            return
        try:
            self.json_ld.append(json.loads(text))
        except ValueError as e:
            logger.debug("Ignoring malformed JSON-LD block", url=self.document_url, error=str(e))

    def _resolve(self, value: str) -> str:
        return urljoin(self.base_url, value.strip())

    def _property_value(self, tag: str, attrs: Dict[str, str], resource: Optional[str]) -> Optional[str]:
        if "content" in attrs:
            return attrs["content"].strip()
        if resource is not None:
            return resource
        attr = IMPLICIT_URL_ATTRS.get(tag)
        if attr is not None and attrs.get(attr):
            return self._resolve(attrs[attr])
        if tag == "time" and "datetime" in attrs:
            return attrs["datetime"].strip()
        return None

    def _resolve_terms(self, value: str, frame: _Frame) -> List[str]:
        terms: List[str] = []
        for token in value.split():
            iri = self._resolve_term(token, frame)
            if iri is None:
                logger.debug("Dropping unresolved RDFa term", term=token, url=self.document_url)
            else:
                terms.append(iri)
        return terms

    def _item_subject(self, attrs: Dict[str, str], nested: bool) -> str:
        item_id = self._resolve(attrs["itemid"]) if attrs.get("itemid", "").strip() else None
        if not nested:
            # Top-level items describe the page unless their itemid names something else.
            if item_id is None or item_id.split("#", 1)[0] == self.document_url.split("#", 1)[0]:
                return ""
            return item_id
        if item_id is not None:
            return item_id
        self._anonymous_items += 1
        return f"_:item{self._anonymous_items}"

    def _item_value(self, tag: str, attrs: Dict[str, str]) -> Optional[str]:
        attr = ITEM_VALUE_ATTRS.get(tag)
        if attr is not None and attr in attrs:
            return attrs[attr].strip()
        return self._property_value(tag, attrs, None)

    @staticmethod
    def _resolve_itemprops(value: str, vocab: Optional[str]) -> List[str]:
        properties: List[str] = []
        for token in value.split():
            if _ABSOLUTE_IRI.match(token):
                properties.append(token)
            elif vocab:
                properties.append(vocab + token)
        return properties

    @staticmethod
    def _resolve_term(token: str, frame: _Frame) -> Optional[str]:
        if _ABSOLUTE_IRI.match(token):
            return token
        prefix, sep, name = token.partition(":")
        if sep:
            iri = frame.prefixes.get(prefix.lower())
            return iri + name if iri is not None else None
        if frame.vocab:
            return frame.vocab + token
        return None

    def result(self) -> MetadataBag:
        """Return the frozen bag. Empty dialects are left unset."""
        if self._result is None:
            bag = MetadataBag(
                rdfa=self.rdfa,
                microdata=self.microdata,
                json_ld=self.json_ld,
                alternates=self.alternates,
                icons=self.icons,
            )
            for name, dialect in self._dialects.items():
                if dialect:
                    setattr(bag, name, dialect)
            self._result = bag.freeze()
        return self._result


def _decoder(encoding: str) -> codecs.IncrementalDecoder:
    try:
        return codecs.getincrementaldecoder(encoding)(errors="replace")
    except LookupError:
        logger.debug("Unknown charset, decoding as utf-8", encoding=encoding)
        return codecs.getincrementaldecoder("utf-8")(errors="replace")


async def tokenize(
    stream: ByteStream,
    base_url: str,
    *,
    encoding: str = "utf-8",
    prefixes: Mapping[str, str] = DEFAULT_PREFIXES,
) -> MetadataBag:
    """Read ``stream`` to the end and return the metadata it carries.

    Args:
        stream: HTML body.
        base_url: URL the document was fetched from; relative links resolve against it.
        encoding: Charset used to decode the body.
        prefixes: RDFa prefix table in effect at the document root.

    Raises:
        TokenizeError: the stream or the tokenizer failed before the end of input.
    """
    collector = MetadataCollector(base_url, prefixes=prefixes)
    parser = HtmlTokenStream(collector)
    decoder = _decoder(encoding)
    try:
        async for chunk in stream:
            parser.feed(decoder.decode(chunk))
        parser.feed(decoder.decode(b"", final=True))
        parser.close()
    except Exception as e:
        raise TokenizeError(f"Failed to tokenize {base_url}: {e}") from e
    return collector.result()
