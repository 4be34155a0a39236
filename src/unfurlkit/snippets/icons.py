"""
Icon selection by nearest preferred size.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional

from ..metadata.models import Icon

_SIZE_TOKEN = re.compile(r"^(\d+)[xX](\d+)$")


def icon_size(sizes: Optional[str]) -> Optional[int]:
    """Largest edge declared in a ``sizes`` attribute (``"16x16 32x32"`` -> 32).

    ``any`` and malformed tokens are ignored; ``None`` when nothing usable is declared.
    """
    if not sizes:
        return None
    best: Optional[int] = None
    for token in sizes.split():
        match = _SIZE_TOKEN.match(token)
        if not match:
            continue
        edge = max(int(match.group(1)), int(match.group(2)))
        if edge and (best is None or edge > best):
            best = edge
    return best


def select_icon(icons: Iterable[Icon], preferred_size: int = 32) -> Optional[Icon]:
    """Pick the icon whose declared size is nearest ``preferred_size``.

    The first icon is the tentative choice. A sized icon replaces the current
    choice when the current one is unsized or the new one is strictly closer,
    so among equally close candidates the first one seen is kept.
    """
    selected: Optional[Icon] = None
    selected_size: Optional[int] = None
    for icon in icons:
        size = icon_size(icon.sizes)
        if selected is None:
            selected, selected_size = icon, size
            continue
        if size is None:
            continue
        if selected_size is None or abs(preferred_size - size) < abs(preferred_size - selected_size):
            selected, selected_size = icon, size
    return selected
