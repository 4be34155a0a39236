"""
Typed containers produced by the metadata tokenizer.

Each flat dialect is a map with a closed set of known keys and an
``extensions`` bucket for everything else. Keys are stored without their
namespace prefix (``twitter:card`` is stored as ``card``).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, ClassVar, Dict, FrozenSet, Iterator, List, Optional, Union

Value = Union[str, List[str]]


class FrozenMetadataError(RuntimeError):
    """Raised when a frozen metadata container is written to."""


def append_value(target: Dict[str, Any], key: str, value: Any) -> None:
    """Add ``value`` under ``key``; a repeated key becomes a list in encounter order."""
    if key not in target:
        target[key] = value
        return
    existing = target[key]
    if isinstance(existing, list):
        existing.append(value)
    else:
        target[key] = [existing, value]


def _values(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, list):
        return list(value)
    return [value]


class Dialect:
    """Flat key/value metadata for one vendor convention."""

    name: ClassVar[str] = "dialect"
    KNOWN_KEYS: ClassVar[FrozenSet[str]] = frozenset()

    def __init__(self) -> None:
        self.values: Dict[str, Value] = {}
        self.extensions: Dict[str, Value] = {}
        self._frozen = False

    def add(self, key: str, value: str) -> None:
        if self._frozen:
            raise FrozenMetadataError(f"{self.name} dialect is frozen")
        target = self.values if key in self.KNOWN_KEYS else self.extensions
        append_value(target, key, value)

    def get(self, key: str) -> Optional[str]:
        """First non-empty value recorded for ``key``."""
        for value in self.get_all(key):
            if value:
                return value
        return None

    def get_all(self, key: str) -> List[str]:
        if key in self.values:
            return _values(self.values[key])
        return _values(self.extensions.get(key))

    def freeze(self) -> None:
        self._frozen = True

    def as_dict(self) -> Dict[str, Value]:
        return {**self.values, **self.extensions}

    def __contains__(self, key: object) -> bool:
        return key in self.values or key in self.extensions

    def __iter__(self) -> Iterator[str]:
        yield from self.values
        yield from self.extensions

    def __bool__(self) -> bool:
        return bool(self.values or self.extensions)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Dialect):
            return NotImplemented
        return type(self) is type(other) and self.as_dict() == other.as_dict()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.as_dict()!r})"


class HtmlDialect(Dialect):
    """Plain ``<meta name>`` values plus ``<title>``, ``<html lang>`` and the canonical link."""

    name = "html"
    KNOWN_KEYS = frozenset(
        {
            "title",
            "lang",
            "canonical",
            "date",
            "keywords",
            "author",
            "description",
            "language",
            "application-name",
            "apple-mobile-web-app-title",
        }
    )


class TwitterDialect(Dialect):
    """Twitter card values (``twitter:*`` meta tags)."""

    name = "twitter"
    KNOWN_KEYS = frozenset(
        {
            "card",
            "site",
            "site:id",
            "creator",
            "creator:id",
            "url",
            "title",
            "text:title",
            "description",
            "image",
            "image0",
            "image:src",
            "image:alt",
            "image:width",
            "image:height",
            "player",
            "player:width",
            "player:height",
            "player:stream",
            "player:stream:content_type",
            "app:id:iphone",
            "app:name:iphone",
            "app:url:iphone",
            "app:id:ipad",
            "app:name:ipad",
            "app:url:ipad",
            "app:id:googleplay",
            "app:name:googleplay",
            "app:url:googleplay",
            "app:country",
            "domain",
        }
    )


class DublinCoreDialect(Dialect):
    """Dublin Core values (``dc.*`` / ``dcterms.*`` meta names, lower-cased)."""

    name = "dublin_core"
    KNOWN_KEYS = frozenset(
        {
            "title",
            "creator",
            "subject",
            "description",
            "publisher",
            "contributor",
            "date",
            "type",
            "format",
            "identifier",
            "source",
            "language",
            "relation",
            "coverage",
            "rights",
        }
    )


class SailthruDialect(Dialect):
    """Sailthru Horizon values (``sailthru.*`` meta names)."""

    name = "sailthru"
    KNOWN_KEYS = frozenset(
        {"title", "description", "author", "date", "tags", "image.full", "image.thumb", "expire_date"}
    )


class AppLinksDialect(Dialect):
    """App Links values (``al:*`` meta properties)."""

    name = "app_links"
    KNOWN_KEYS = frozenset(
        {
            "ios:url",
            "ios:app_store_id",
            "ios:app_name",
            "iphone:url",
            "iphone:app_store_id",
            "iphone:app_name",
            "ipad:url",
            "ipad:app_store_id",
            "ipad:app_name",
            "android:url",
            "android:package",
            "android:class",
            "android:app_name",
            "windows_phone:url",
            "windows_phone:app_id",
            "windows_phone:app_name",
            "windows:url",
            "windows:app_id",
            "windows:app_name",
            "windows_universal:url",
            "windows_universal:app_id",
            "windows_universal:app_name",
            "web:url",
            "web:should_fallback",
        }
    )


DIALECT_TYPES = {
    cls.name: cls for cls in (HtmlDialect, TwitterDialect, DublinCoreDialect, SailthruDialect, AppLinksDialect)
}


class RdfaGraph:
    """Triples keyed by subject then property URI. The document itself is subject ``""``.

    Holds RDFa statements and, separately, microdata items. Anonymous nested
    microdata items use ``_:item<n>`` subjects.
    """

    def __init__(self) -> None:
        self.nodes: Dict[str, Dict[str, Value]] = {}
        self._frozen = False

    def add(self, subject: str, predicate: str, value: str) -> None:
        if self._frozen:
            raise FrozenMetadataError("rdfa graph is frozen")
        append_value(self.nodes.setdefault(subject, {}), predicate, value)

    def node(self, subject: str = "") -> Dict[str, Value]:
        return self.nodes.get(subject, {})

    def get_all(self, subject: str, predicate: str) -> List[str]:
        return _values(self.node(subject).get(predicate))

    def freeze(self) -> None:
        self._frozen = True

    def __bool__(self) -> bool:
        return bool(self.nodes)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RdfaGraph):
            return NotImplemented
        return self.nodes == other.nodes

    def __repr__(self) -> str:
        return f"RdfaGraph({self.nodes!r})"


@dataclass(frozen=True)
class Icon:
    href: str
    sizes: Optional[str] = None
    type: Optional[str] = None


@dataclass(frozen=True)
class Alternate:
    href: str
    type: Optional[str] = None
    title: Optional[str] = None


@dataclass
class MetadataBag:
    """Everything one pass of the tokenizer collected from a document.

    Dialect attributes are ``None`` when the document carried no values for
    them; use ``dialect()`` to read one without caring about absence.
    """

    html: Optional[HtmlDialect] = None
    twitter: Optional[TwitterDialect] = None
    dublin_core: Optional[DublinCoreDialect] = None
    sailthru: Optional[SailthruDialect] = None
    app_links: Optional[AppLinksDialect] = None
    rdfa: RdfaGraph = field(default_factory=RdfaGraph)
    microdata: RdfaGraph = field(default_factory=RdfaGraph)
    json_ld: List[Any] = field(default_factory=list)
    alternates: List[Alternate] = field(default_factory=list)
    icons: List[Icon] = field(default_factory=list)

    def dialect(self, name: str) -> Dialect:
        value = getattr(self, name, None)
        if value is None:
            return DIALECT_TYPES[name]()
        return value

    def freeze(self) -> "MetadataBag":
        for name in DIALECT_TYPES:
            value = getattr(self, name)
            if value is not None:
                value.freeze()
        self.rdfa.freeze()
        self.microdata.freeze()
        self.json_ld = tuple(self.json_ld)  # type: ignore[assignment]
        self.alternates = tuple(self.alternates)  # type: ignore[assignment]
        self.icons = tuple(self.icons)  # type: ignore[assignment]
        return self

    def as_dict(self) -> Dict[str, Any]:
        """JSON-serialisable view; missing dialects and empty groups are omitted."""
        data: Dict[str, Any] = {}
        for name in DIALECT_TYPES:
            value = getattr(self, name)
            if value:
                data[name] = value.as_dict()
        if self.rdfa:
            data["rdfa"] = self.rdfa.nodes
        if self.microdata:
            data["microdata"] = self.microdata.nodes
        if self.json_ld:
            data["json_ld"] = list(self.json_ld)
        if self.alternates:
            data["alternates"] = [asdict(a) for a in self.alternates]
        if self.icons:
            data["icons"] = [asdict(i) for i in self.icons]
        return data
