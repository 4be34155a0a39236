"""Snippet models, fusion and projections."""

from .apps import resolve_apps
from .exif import project_exif
from .fusion import FusionAux, FusionOptions, GraphView, fuse
from .icons import select_icon
from .models import (
    AppLink,
    Apps,
    ArticleEntity,
    AudioObject,
    AudioSnippet,
    Author,
    Camera,
    DocumentSnippet,
    HtmlSnippet,
    IconInfo,
    ImageEntity,
    ImageObject,
    ImageSnippet,
    LinkSnippet,
    Locale,
    Player,
    Provider,
    RichEntity,
    Snippet,
    TwitterInfo,
    VideoEntity,
    VideoObject,
    VideoSnippet,
)

__all__ = [
    "AppLink",
    "Apps",
    "ArticleEntity",
    "AudioObject",
    "AudioSnippet",
    "Author",
    "Camera",
    "DocumentSnippet",
    "FusionAux",
    "FusionOptions",
    "GraphView",
    "HtmlSnippet",
    "IconInfo",
    "ImageEntity",
    "ImageObject",
    "ImageSnippet",
    "LinkSnippet",
    "Locale",
    "Player",
    "Provider",
    "RichEntity",
    "Snippet",
    "TwitterInfo",
    "VideoEntity",
    "VideoObject",
    "VideoSnippet",
    "fuse",
    "project_exif",
    "resolve_apps",
    "select_icon",
]
