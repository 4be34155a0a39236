"""
Projection of flat binary-metadata records (exiftool output) onto snippets.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Optional

from ..utils.values import parse_exif_date, to_int, to_number
from .models import AudioSnippet, Camera, DocumentSnippet, ImageSnippet, LinkSnippet, Snippet, VideoSnippet

PDF_TYPE = "application/pdf"

DATE_CREATED_KEYS = (
    "SubSecDateTimeOriginal",
    "DateTimeOriginal",
    "DateTimeCreated",
    "DigitalCreationDateTime",
    "CreateDate",
)


def _text(exif: Mapping[str, Any], key: str) -> Optional[str]:
    value = exif.get(key)
    if value is None or value == "":
        return None
    return str(value)


def _first_date(exif: Mapping[str, Any], *keys: str) -> Optional[datetime]:
    for key in keys:
        value = parse_exif_date(exif.get(key))
        if value is not None:
            return value
    return None


def _duration(value: Any) -> Optional[float]:
    """exiftool durations: ``12.5``, ``"12.5 s"`` or ``"0:01:23"``."""
    number = to_number(value)
    if number is not None or not isinstance(value, str):
        return number
    text = value.strip().split(" ", 1)[0].rstrip("s")
    seconds = 0.0
    for part in text.split(":"):
        part_value = to_number(part)
        if part_value is None:
            return None
        seconds = seconds * 60 + part_value
    return seconds


def _camera(exif: Mapping[str, Any]) -> Optional[Camera]:
    camera = Camera(
        make=_text(exif, "Make"),
        model=_text(exif, "Model"),
        lens_make=_text(exif, "LensMake"),
        lens_model=_text(exif, "LensModel"),
        software=_text(exif, "Software"),
        orientation=_text(exif, "Orientation"),
        megapixels=to_number(exif.get("Megapixels")),
    )
    return camera if camera != Camera() else None


def type_only_snippet(url: str, encoding_format: str) -> Snippet:
    """The ``{type, url}`` snippet used when no metadata could be extracted."""
    if encoding_format.startswith("image/"):
        return ImageSnippet(url=url)
    if encoding_format.startswith("video/"):
        return VideoSnippet(url=url)
    if encoding_format.startswith("audio/"):
        return AudioSnippet(url=url)
    if encoding_format == PDF_TYPE:
        return DocumentSnippet(url=url)
    return LinkSnippet(url=url)


def project_exif(exif: Optional[Mapping[str, Any]], url: str, fallback_encoding_format: str = "") -> Snippet:
    """Map an exiftool record to the snippet shape selected by its MIME type.

    ``exif["MIMEType"]`` takes precedence over ``fallback_encoding_format``.
    Dates are parsed best-effort; an unparsable date leaves the field unset.
    """
    if exif is None:
        return type_only_snippet(url, fallback_encoding_format)

    encoding_format = (_text(exif, "MIMEType") or fallback_encoding_format).lower()

    if encoding_format.startswith("image/"):
        return ImageSnippet(
            url=url,
            encoding_format=encoding_format,
            width=to_number(exif.get("ImageWidth")),
            height=to_number(exif.get("ImageHeight")),
            date_created=_first_date(exif, *DATE_CREATED_KEYS),
            date_modified=_first_date(exif, "ModifyDate"),
            camera=_camera(exif),
        )

    if encoding_format.startswith("video/"):
        return VideoSnippet(
            url=url,
            encoding_format=encoding_format,
            width=to_number(exif.get("ImageWidth")),
            height=to_number(exif.get("ImageHeight")),
            date_created=_first_date(exif, "CreateDate"),
            date_modified=_first_date(exif, "ModifyDate"),
        )

    if encoding_format.startswith("audio/"):
        return AudioSnippet(url=url, encoding_format=encoding_format, duration=_duration(exif.get("Duration")))

    if encoding_format == PDF_TYPE:
        return DocumentSnippet(
            url=url,
            encoding_format=encoding_format,
            headline=_text(exif, "Title"),
            author=_text(exif, "Author"),
            creator=_text(exif, "Creator"),
            producer=_text(exif, "Producer"),
            page_count=to_int(exif.get("PageCount")),
            date_created=_first_date(exif, "CreateDate"),
            date_modified=_first_date(exif, "ModifyDate"),
        )

    return LinkSnippet(url=url, encoding_format=encoding_format or None)
