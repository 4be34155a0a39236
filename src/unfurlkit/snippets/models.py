"""
Snippet data models.

Every snippet and sub-record is an immutable value object. ``to_dict()``
renders the JSON shape handed to callers: camelCase keys, absent fields and
empty groups omitted, datetimes as ISO-8601 UTC.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, is_dataclass
from datetime import datetime
from typing import Any, ClassVar, Dict, Optional, Tuple, Union

from ..utils.values import format_date

Number = Union[int, float]


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def serialize(value: Any) -> Any:
    """Convert a snippet (or any part of one) into JSON-compatible data."""
    if is_dataclass(value) and not isinstance(value, type):
        data: Dict[str, Any] = {}
        field_names = {f.name for f in fields(value)}
        tag = getattr(type(value), "type", None)
        if isinstance(tag, str) and "type" not in field_names:
            data["type"] = tag
        for f in fields(value):
            item = serialize(getattr(value, f.name))
            if item is None or item == [] or item == {}:
                continue
            data[_camel(f.name)] = item
        return data
    if isinstance(value, datetime):
        return format_date(value)
    if isinstance(value, (list, tuple)):
        return [serialize(item) for item in value]
    return value


# --- Media ---


@dataclass(slots=True, frozen=True)
class ImageObject:
    url: str
    secure_url: Optional[str] = None
    encoding_format: Optional[str] = None
    description: Optional[str] = None
    width: Optional[Number] = None
    height: Optional[Number] = None


@dataclass(slots=True, frozen=True)
class VideoObject:
    url: str
    secure_url: Optional[str] = None
    encoding_format: Optional[str] = None
    width: Optional[Number] = None
    height: Optional[Number] = None


@dataclass(slots=True, frozen=True)
class AudioObject:
    url: str
    secure_url: Optional[str] = None
    encoding_format: Optional[str] = None


@dataclass(slots=True, frozen=True)
class Player:
    """Embeddable Twitter card player."""

    url: str
    width: Number
    height: Number
    stream_url: Optional[str] = None
    stream_content_type: Optional[str] = None


# --- Page records ---


@dataclass(slots=True, frozen=True)
class AppLink:
    id: str
    name: str
    url: str


@dataclass(slots=True, frozen=True)
class Apps:
    iphone: Optional[AppLink] = None
    ipad: Optional[AppLink] = None
    android: Optional[AppLink] = None
    windows: Optional[AppLink] = None
    windows_phone: Optional[AppLink] = None


@dataclass(slots=True, frozen=True)
class Locale:
    primary: Optional[str] = None
    alternate: Tuple[str, ...] = ()


@dataclass(slots=True, frozen=True)
class TwitterInfo:
    site_id: Optional[str] = None
    site_handle: Optional[str] = None
    creator_id: Optional[str] = None
    creator_handle: Optional[str] = None


@dataclass(slots=True, frozen=True)
class IconInfo:
    href: str
    type: Optional[str] = None
    sizes: Optional[str] = None


@dataclass(slots=True, frozen=True)
class Author:
    name: Optional[str] = None
    url: Optional[str] = None


@dataclass(slots=True, frozen=True)
class Provider:
    name: Optional[str] = None
    url: Optional[str] = None


@dataclass(slots=True, frozen=True)
class Camera:
    make: Optional[str] = None
    model: Optional[str] = None
    lens_make: Optional[str] = None
    lens_model: Optional[str] = None
    software: Optional[str] = None
    orientation: Optional[str] = None
    megapixels: Optional[Number] = None


# --- Entities ---


@dataclass(slots=True, frozen=True)
class ArticleEntity:
    type: ClassVar[str] = "article"

    section: Optional[str] = None
    publisher: Optional[str] = None
    date_published: Optional[datetime] = None
    date_modified: Optional[datetime] = None
    date_expires: Optional[datetime] = None


@dataclass(slots=True, frozen=True)
class ImageEntity:
    type: ClassVar[str] = "image"

    url: Optional[str] = None
    width: Optional[Number] = None
    height: Optional[Number] = None


@dataclass(slots=True, frozen=True)
class VideoEntity:
    type: ClassVar[str] = "video"

    html: Optional[str] = None
    width: Optional[Number] = None
    height: Optional[Number] = None


@dataclass(slots=True, frozen=True)
class RichEntity:
    type: ClassVar[str] = "rich"

    html: Optional[str] = None
    width: Optional[Number] = None
    height: Optional[Number] = None


Entity = Union[ArticleEntity, ImageEntity, VideoEntity, RichEntity]


# --- Snippets ---


@dataclass(slots=True, frozen=True)
class BaseSnippet:
    type: ClassVar[str] = "link"

    url: str

    def to_dict(self) -> Dict[str, Any]:
        return serialize(self)


@dataclass(slots=True, frozen=True)
class LinkSnippet(BaseSnippet):
    type: ClassVar[str] = "link"

    encoding_format: Optional[str] = None


@dataclass(slots=True, frozen=True)
class HtmlSnippet(BaseSnippet):
    type: ClassVar[str] = "html"

    encoding_format: Optional[str] = "text/html"
    canonical_url: Optional[str] = None
    headline: Optional[str] = None
    description: Optional[str] = None
    image: Tuple[ImageObject, ...] = ()
    video: Tuple[VideoObject, ...] = ()
    audio: Tuple[AudioObject, ...] = ()
    player: Optional[Player] = None
    icon: Optional[IconInfo] = None
    entity: Optional[Entity] = None
    author: Optional[Author] = None
    provider: Optional[Provider] = None
    twitter: Optional[TwitterInfo] = None
    locale: Optional[Locale] = None
    apps: Optional[Apps] = None
    tags: Tuple[str, ...] = ()
    ttl: Optional[Number] = None


@dataclass(slots=True, frozen=True)
class ImageSnippet(BaseSnippet):
    type: ClassVar[str] = "image"

    encoding_format: Optional[str] = None
    width: Optional[Number] = None
    height: Optional[Number] = None
    date_created: Optional[datetime] = None
    date_modified: Optional[datetime] = None
    camera: Optional[Camera] = None


@dataclass(slots=True, frozen=True)
class VideoSnippet(BaseSnippet):
    type: ClassVar[str] = "video"

    encoding_format: Optional[str] = None
    width: Optional[Number] = None
    height: Optional[Number] = None
    date_created: Optional[datetime] = None
    date_modified: Optional[datetime] = None


@dataclass(slots=True, frozen=True)
class AudioSnippet(BaseSnippet):
    type: ClassVar[str] = "audio"

    encoding_format: Optional[str] = None
    duration: Optional[Number] = None


@dataclass(slots=True, frozen=True)
class DocumentSnippet(BaseSnippet):
    type: ClassVar[str] = "document"

    encoding_format: Optional[str] = None
    headline: Optional[str] = None
    author: Optional[str] = None
    creator: Optional[str] = None
    producer: Optional[str] = None
    page_count: Optional[int] = None
    date_created: Optional[datetime] = None
    date_modified: Optional[datetime] = None


Snippet = Union[LinkSnippet, HtmlSnippet, ImageSnippet, VideoSnippet, AudioSnippet, DocumentSnippet]
