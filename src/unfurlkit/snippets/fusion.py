"""
Snippet fusion.

Combines the tokenizer's dialect maps and RDFa graph with the auxiliary
oEmbed document and expanded linked-data nodes into one ``HtmlSnippet``.
Every scalar field is resolved by a fixed precedence chain in which the first
non-empty source wins; the order of each chain is part of the output
contract. ``fuse`` performs no I/O.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..metadata.models import Icon, MetadataBag, RdfaGraph
from ..metadata.prefixes import CC, DCTERMS, OGP, OGP_ARTICLE, SCHEMA
from ..utils.values import parse_date, resolve_url, to_number, twitter_handle
from .apps import resolve_apps
from .icons import select_icon
from .models import (
    ArticleEntity,
    AudioObject,
    Author,
    Entity,
    HtmlSnippet,
    IconInfo,
    ImageEntity,
    ImageObject,
    Locale,
    Player,
    Provider,
    RichEntity,
    TwitterInfo,
    VideoEntity,
    VideoObject,
)

IMAGE_CARD_TYPES = frozenset({"summary_large_image", "photo", "gallery"})
_KEYWORD_SEPARATOR = re.compile(r"\s*,\s*")


@dataclass(frozen=True)
class FusionAux:
    """Auxiliary documents fetched after the primary pass."""

    oembed: Optional[Mapping[str, Any]] = None
    graph: Optional[Sequence[Mapping[str, Any]]] = None
    favicon: Optional[Icon] = None


@dataclass(frozen=True)
class FusionOptions:
    preferred_icon_size: int = 32
    encoding_format: str = "text/html"


def _first(*candidates: Optional[str]) -> Optional[str]:
    for candidate in candidates:
        if candidate:
            return candidate
    return None


def _literal(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, Mapping):
        for key in ("@value", "@id"):
            if key in value:
                return _literal(value[key])
    return None


class GraphView:
    """Read-only lookups over the document's RDFa node, the expanded linked-data
    nodes and the microdata items describing the document, consulted in that order.
    """

    def __init__(self, bag: MetadataBag, nodes: Optional[Sequence[Mapping[str, Any]]] = None) -> None:
        # Each source carries the graph its node references resolve in.
        self.sources: List[Tuple[Mapping[str, Any], RdfaGraph]] = [(bag.rdfa.node(""), bag.rdfa)]
        self.sources.extend((node, bag.rdfa) for node in nodes or ())
        self.sources.append((bag.microdata.node(""), bag.microdata))

    @staticmethod
    def _raw(source: Mapping[str, Any], predicate: str) -> List[Any]:
        value = source.get(predicate)
        if value is None:
            return []
        return list(value) if isinstance(value, (list, tuple)) else [value]

    def values(self, *predicates: str) -> List[str]:
        """All literals of the first source carrying any of ``predicates``."""
        for source, _ in self.sources:
            for predicate in predicates:
                literals = [item for item in map(_literal, self._raw(source, predicate)) if item]
                if literals:
                    return literals
        return []

    def value(self, *predicates: str) -> Optional[str]:
        values = self.values(*predicates)
        return values[0] if values else None

    def nested_value(self, predicate: str, inner: str) -> Optional[str]:
        """Literal ``inner`` of the node(s) referenced by ``predicate`` (e.g. author -> name)."""
        for source, graph in self.sources:
            for item in self._raw(source, predicate):
                if isinstance(item, Mapping) and inner in item:
                    node: Mapping[str, Any] = item
                else:
                    reference = _literal(item)
                    node = graph.node(reference) if reference else {}
                for candidate in self._raw(node, inner):
                    literal = _literal(candidate)
                    if literal:
                        return literal
        return None


class _MediaMerge:
    """URL-keyed list where later sources only fill fields left unset."""

    def __init__(self) -> None:
        self.entries: List[Dict[str, Any]] = []

    def add(self, entry: Dict[str, Any], append: bool = True) -> None:
        if not entry.get("url"):
            return
        for existing in self.entries:
            if existing["url"] == entry["url"]:
                for key, value in entry.items():
                    if value is not None and existing.get(key) is None:
                        existing[key] = value
                return
        if append:
            self.entries.append(dict(entry))

    def __bool__(self) -> bool:
        return bool(self.entries)


def _at(values: Sequence[str], index: int) -> Optional[str]:
    return values[index] if index < len(values) else None


def _oembed_text(oembed: Mapping[str, Any], key: str) -> Optional[str]:
    value = oembed.get(key)
    if isinstance(value, str) and value.strip():
        return html.unescape(value.strip())
    return None


class _Fusion:
    def __init__(self, bag: MetadataBag, aux: FusionAux, url: str, options: FusionOptions) -> None:
        self.bag = bag
        self.aux = aux
        self.url = url
        self.options = options
        self.graph = GraphView(bag, aux.graph)
        self.oembed: Mapping[str, Any] = aux.oembed or {}
        self.html = bag.dialect("html")
        self.twitter = bag.dialect("twitter")
        self.dublin_core = bag.dialect("dublin_core")
        self.sailthru = bag.dialect("sailthru")
        self.app_links = bag.dialect("app_links")

    def _resolve(self, value: Optional[str]) -> Optional[str]:
        return resolve_url(value, self.url)

    # --- Scalars ---

    def headline(self) -> Optional[str]:
        return _first(
            self.twitter.get("title"),
            _oembed_text(self.oembed, "title"),
            self.graph.value(OGP + "title"),
            self.graph.value(DCTERMS + "title"),
            self.dublin_core.get("title"),
            self.sailthru.get("title"),
            self.twitter.get("text:title"),
            self.html.get("title"),
        )

    def description(self) -> Optional[str]:
        return _first(
            self.graph.value(OGP + "description"),
            self.graph.value(SCHEMA + "description"),
            _oembed_text(self.oembed, "summary"),
            self.twitter.get("description"),
            self.dublin_core.get("description"),
            self.sailthru.get("description"),
            self.html.get("description"),
        )

    def canonical_url(self) -> Optional[str]:
        return self._resolve(
            _first(
                self.twitter.get("url"),
                self.graph.value(OGP + "url"),
                self.html.get("canonical"),
                self.app_links.get("web:url"),
                _oembed_text(self.oembed, "url"),
            )
        )

    def provider(self) -> Optional[Provider]:
        name = _first(
            self.graph.value(OGP + "site_name"),
            _oembed_text(self.oembed, "provider_name"),
            self.html.get("application-name"),
            self.html.get("apple-mobile-web-app-title"),
            self.twitter.get("app:name:iphone"),
            self.twitter.get("app:name:ipad"),
            self.twitter.get("app:name:googleplay"),
            self.app_links.get("ios:app_name"),
            self.app_links.get("ipad:app_name"),
            self.app_links.get("iphone:app_name"),
            self.app_links.get("android:app_name"),
        )
        url = self._resolve(_oembed_text(self.oembed, "provider_url"))
        if name is None and url is None:
            return None
        return Provider(name=name, url=url)

    def author(self) -> Optional[Author]:
        name = _first(
            self.html.get("author"),
            _oembed_text(self.oembed, "author_name"),
            self.graph.value(OGP_ARTICLE + "author"),
            self.graph.value(CC + "attributionName"),
            self.graph.nested_value(SCHEMA + "author", SCHEMA + "name"),
            self.dublin_core.get("creator"),
            self.sailthru.get("author"),
        )
        url = self._resolve(_oembed_text(self.oembed, "author_url"))
        if name is None and url is None:
            return None
        return Author(name=name, url=url)

    def ttl(self) -> Optional[float]:
        return to_number(_first(self.graph.value(OGP + "ttl"), _literal(self.oembed.get("cache_age"))))

    def tags(self) -> List[str]:
        keywords = self.html.get("keywords")
        if keywords and keywords.strip():
            return [tag for tag in _KEYWORD_SEPARATOR.split(keywords.strip()) if tag]
        return self.graph.values(OGP + "video:tag")

    def locale(self) -> Optional[Locale]:
        primary = _first(self.graph.value(OGP + "locale"), self.html.get("language"), self.html.get("lang"))
        alternate = tuple(self.graph.values(OGP + "locale:alternate"))
        if primary is None and not alternate:
            return None
        return Locale(primary=primary, alternate=alternate)

    def twitter_info(self) -> Optional[TwitterInfo]:
        info = TwitterInfo(
            site_id=self.twitter.get("site:id"),
            site_handle=twitter_handle(self.twitter.get("site")),
            creator_id=self.twitter.get("creator:id"),
            creator_handle=twitter_handle(self.twitter.get("creator")),
        )
        return None if info == TwitterInfo() else info

    def player(self) -> Optional[Player]:
        if self.twitter.get("card") != "player":
            return None
        url = self._resolve(self.twitter.get("player"))
        width = to_number(self.twitter.get("player:width"))
        height = to_number(self.twitter.get("player:height"))
        if not url or not width or not height:
            return None
        return Player(
            url=url,
            width=width,
            height=height,
            stream_url=self._resolve(self.twitter.get("player:stream")),
            stream_content_type=self.twitter.get("player:stream:content_type"),
        )

    def icon(self) -> Optional[IconInfo]:
        icon = select_icon(self.bag.icons, self.options.preferred_icon_size) or self.aux.favicon
        if icon is None:
            return None
        return IconInfo(href=icon.href, type=icon.type, sizes=icon.sizes)

    # --- Lists ---

    def images(self) -> List[ImageObject]:
        merge = _MediaMerge()

        og_urls = self.graph.values(OGP + "image", OGP + "image:url")
        secure_urls = self.graph.values(OGP + "image:secure_url")
        types = self.graph.values(OGP + "image:type")
        widths = self.graph.values(OGP + "image:width")
        heights = self.graph.values(OGP + "image:height")
        for index, value in enumerate(og_urls):
            merge.add(
                {
                    "url": self._resolve(value),
                    "secure_url": self._resolve(_at(secure_urls, index)),
                    "encoding_format": _at(types, index),
                    "width": to_number(_at(widths, index)),
                    "height": to_number(_at(heights, index)),
                }
            )

        twitter_urls = (
            self.twitter.get_all("image") or self.twitter.get_all("image0") or self.twitter.get_all("image:src")
        )
        alts = self.twitter.get_all("image:alt")
        twitter_widths = self.twitter.get_all("image:width")
        twitter_heights = self.twitter.get_all("image:height")
        for index, value in enumerate(twitter_urls):
            merge.add(
                {
                    "url": self._resolve(value),
                    "description": _at(alts, index),
                    "width": to_number(_at(twitter_widths, index)),
                    "height": to_number(_at(twitter_heights, index)),
                },
                append=not og_urls,
            )

        if not merge:
            merge.add({"url": self._resolve(self.sailthru.get("image.full"))})

        return [ImageObject(**entry) for entry in merge.entries]

    def videos(self) -> List[VideoObject]:
        merge = _MediaMerge()
        urls = self.graph.values(OGP + "video", OGP + "video:url")
        secure_urls = self.graph.values(OGP + "video:secure_url")
        types = self.graph.values(OGP + "video:type")
        widths = self.graph.values(OGP + "video:width")
        heights = self.graph.values(OGP + "video:height")
        for index, value in enumerate(urls):
            merge.add(
                {
                    "url": self._resolve(value),
                    "secure_url": self._resolve(_at(secure_urls, index)),
                    "encoding_format": _at(types, index),
                    "width": to_number(_at(widths, index)),
                    "height": to_number(_at(heights, index)),
                }
            )
        return [VideoObject(**entry) for entry in merge.entries]

    def audios(self) -> List[AudioObject]:
        merge = _MediaMerge()
        urls = self.graph.values(OGP + "audio", OGP + "audio:url")
        secure_urls = self.graph.values(OGP + "audio:secure_url")
        types = self.graph.values(OGP + "audio:type")
        for index, value in enumerate(urls):
            merge.add(
                {
                    "url": self._resolve(value),
                    "secure_url": self._resolve(_at(secure_urls, index)),
                    "encoding_format": _at(types, index),
                }
            )
        return [AudioObject(**entry) for entry in merge.entries]

    # --- Entity ---

    def entity(self) -> Optional[Entity]:
        og_type = self.graph.value(OGP + "type")
        oembed_type = _literal(self.oembed.get("type"))
        width = to_number(self.oembed.get("width"))
        height = to_number(self.oembed.get("height"))

        if og_type == "article":
            return ArticleEntity(
                section=self.graph.value(OGP_ARTICLE + "section"),
                publisher=self.graph.value(OGP_ARTICLE + "publisher"),
                date_published=parse_date(
                    _first(self.graph.value(OGP_ARTICLE + "published_time"), self.graph.value(SCHEMA + "datePublished"))
                ),
                date_modified=parse_date(
                    _first(self.graph.value(OGP_ARTICLE + "modified_time"), self.graph.value(SCHEMA + "dateModified"))
                ),
                date_expires=parse_date(self.graph.value(OGP_ARTICLE + "expiration_time")),
            )
        if oembed_type == "video":
            return VideoEntity(html=_literal(self.oembed.get("html")), width=width, height=height)
        if oembed_type == "rich":
            return RichEntity(html=_literal(self.oembed.get("html")), width=width, height=height)
        if self.twitter.get("card") in IMAGE_CARD_TYPES or oembed_type == "photo":
            return ImageEntity(url=self._resolve(_oembed_text(self.oembed, "url")), width=width, height=height)
        return None

    def snippet(self) -> HtmlSnippet:
        return HtmlSnippet(
            url=self.url,
            encoding_format=self.options.encoding_format,
            canonical_url=self.canonical_url(),
            headline=self.headline(),
            description=self.description(),
            image=tuple(self.images()),
            video=tuple(self.videos()),
            audio=tuple(self.audios()),
            player=self.player(),
            icon=self.icon(),
            entity=self.entity(),
            author=self.author(),
            provider=self.provider(),
            twitter=self.twitter_info(),
            locale=self.locale(),
            apps=resolve_apps(self.twitter, self.app_links),
            tags=tuple(self.tags()),
            ttl=self.ttl(),
        )


def fuse(
    bag: MetadataBag,
    aux: Optional[FusionAux] = None,
    url: str = "",
    options: Optional[FusionOptions] = None,
) -> HtmlSnippet:
    """Fuse a page's metadata into its canonical ``HtmlSnippet``.

    Args:
        bag: Tokenizer output for the page.
        aux: oEmbed document, expanded linked-data nodes and favicon probe result.
        url: URL the page was fetched from; relative URLs resolve against it.
        options: Icon size preference and the page's encoding format.

    Returns:
        The fused snippet. Identical inputs always give equal snippets.
    """
    return _Fusion(bag, aux or FusionAux(), url, options or FusionOptions()).snippet()

