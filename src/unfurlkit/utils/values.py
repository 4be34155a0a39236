"""
Value normalisation helpers shared by the fusion engine and the EXIF projection.
"""

from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from typing import Any, Optional, Union
from urllib.parse import urljoin

from dateutil import parser as dateutil_parser

_EXIF_DATE_PATTERN = re.compile(
    r"^(?P<year>\d{4}):(?P<month>\d{2}):(?P<day>\d{2})[ T](?P<time>\d{2}:\d{2}:\d{2}(?:\.\d+)?)(?P<offset>.*)$"
)
_OFFSET_PATTERN = re.compile(r"(?:Z|[+-]\d{2}:?\d{2})$", re.IGNORECASE)


def to_number(value: Any) -> Optional[Union[int, float]]:
    """Parse ``"800"`` -> ``800``, ``"1.5"`` -> ``1.5``. Non-finite or invalid -> ``None``."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else None
    text = str(value).strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return int(number) if number.is_integer() else number


def to_int(value: Any) -> Optional[int]:
    number = to_number(value)
    return int(number) if number is not None else None


def parse_date(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 (or loosely formatted) date.

    Values without a timezone are taken as UTC. Unparsable input gives ``None``.
    """
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    try:
        parsed = dateutil_parser.isoparse(text)
    except (ValueError, OverflowError):
        try:
            parsed = dateutil_parser.parse(text)
        except (ValueError, OverflowError):
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_exif_date(value: Any) -> Optional[datetime]:
    """Parse an EXIF style date (``2020:01:02 03:04:05``).

    A value lacking a ``Z`` or ``+HH:MM`` suffix is read as UTC; an explicit
    offset is preserved.
    """
    if isinstance(value, datetime):
        return parse_date(value)
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    match = _EXIF_DATE_PATTERN.match(text)
    if match:
        if match.group("year") == "0000":
            return None
        text = "{year}-{month}-{day}T{time}{offset}".format(**match.groupdict())
    if not _OFFSET_PATTERN.search(text):
        text = f"{text}Z"
    try:
        return dateutil_parser.isoparse(text)
    except (ValueError, OverflowError):
        return None


def format_date(value: datetime) -> str:
    """Serialise as ISO-8601 UTC (``2020-01-02T03:04:05Z``)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def resolve_url(value: Optional[str], base_url: str) -> Optional[str]:
    if not value:
        return None
    return urljoin(base_url, value.strip())


def twitter_handle(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    return value[1:] if value.startswith("@") else value
