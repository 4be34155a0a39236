"""
Per-platform app deep-link resolution.
"""

from __future__ import annotations

from typing import Optional, Sequence, Tuple

from ..metadata.models import Dialect
from .models import AppLink, Apps

# Twitter app card platform name per snippet platform.
TWITTER_PLATFORMS = {"iphone": "iphone", "ipad": "ipad", "android": "googleplay"}

# App Links platform chain per snippet platform, most specific first.
APP_LINKS_PLATFORMS = {
    "iphone": ("iphone", "ios"),
    "ipad": ("ipad", "ios"),
    "android": ("android",),
    "windows": ("windows", "windows_universal"),
    "windows_phone": ("windows_phone", "windows_universal"),
}

# App Links key holding the store id, by platform.
APP_LINKS_ID_KEYS = {
    "ios": "app_store_id",
    "iphone": "app_store_id",
    "ipad": "app_store_id",
    "android": "package",
    "windows": "app_id",
    "windows_phone": "app_id",
    "windows_universal": "app_id",
}


def _complete(id_: Optional[str], name: Optional[str], url: Optional[str]) -> Optional[AppLink]:
    if id_ and name and url:
        return AppLink(id=id_, name=name, url=url)
    return None


def _twitter_app(twitter: Dialect, platform: str) -> Optional[AppLink]:
    return _complete(
        twitter.get(f"app:id:{platform}"),
        twitter.get(f"app:name:{platform}"),
        twitter.get(f"app:url:{platform}"),
    )


def _app_links_app(app_links: Dialect, platforms: Sequence[str]) -> Optional[AppLink]:
    for platform in platforms:
        app = _complete(
            app_links.get(f"{platform}:{APP_LINKS_ID_KEYS[platform]}"),
            app_links.get(f"{platform}:app_name"),
            app_links.get(f"{platform}:url"),
        )
        if app is not None:
            return app
    return None


def resolve_app(twitter: Dialect, app_links: Dialect, platform: str) -> Optional[AppLink]:
    """Twitter app card first, then App Links for the platform, then the shared App Links entry."""
    twitter_platform = TWITTER_PLATFORMS.get(platform)
    if twitter_platform is not None:
        app = _twitter_app(twitter, twitter_platform)
        if app is not None:
            return app
    return _app_links_app(app_links, APP_LINKS_PLATFORMS[platform])


def resolve_apps(twitter: Dialect, app_links: Dialect) -> Optional[Apps]:
    """All resolvable platforms, or ``None`` when none resolves."""
    resolved: Tuple[Tuple[str, Optional[AppLink]], ...] = tuple(
        (platform, resolve_app(twitter, app_links, platform)) for platform in APP_LINKS_PLATFORMS
    )
    found = {platform: app for platform, app in resolved if app is not None}
    if not found:
        return None
    return Apps(**found)
