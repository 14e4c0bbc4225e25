"""Canonical cache keys for source URLs.

Two surface URLs that denote the same video should map to the same key
so the resolution cache can serve both.  Platform-native ids are used
where the URL shape is known; anything else falls back to a normalized
form of the URL itself.  The fallback is a cache-miss risk (equivalent
URLs on unknown platforms get distinct keys), never a correctness
problem.
"""

from __future__ import annotations

import re
from urllib.parse import parse_qs, urlsplit, urlunsplit

_YOUTUBE_HOSTS: tuple[str, ...] = ("youtube.com", "youtube-nocookie.com")
_YOUTUBE_PATH_ID = re.compile(r"^/(?:shorts|embed|live|v)/([\w-]{6,})")
_TWITTER_HOSTS: tuple[str, ...] = ("twitter.com", "x.com")
_TWITTER_STATUS = re.compile(r"/status(?:es)?/(\d+)")
_TIKTOK_VIDEO = re.compile(r"/video/(\d+)")


def _host_matches(host: str, domains: tuple[str, ...]) -> bool:
    return any(host == d or host.endswith("." + d) for d in domains)


def platform_video_id(url: str) -> str | None:
    """Return ``"<platform>:<id>"`` when *url* has a recognised shape."""
    parts = urlsplit(url.strip())
    host = (parts.hostname or "").lower()
    path = parts.path

    if _host_matches(host, _YOUTUBE_HOSTS):
        video_id = parse_qs(parts.query).get("v", [None])[0]
        if not video_id:
            match = _YOUTUBE_PATH_ID.match(path)
            video_id = match.group(1) if match else None
        return f"youtube:{video_id}" if video_id else None

    if host == "youtu.be":
        video_id = path.strip("/").split("/")[0]
        return f"youtube:{video_id}" if video_id else None

    if _host_matches(host, _TWITTER_HOSTS):
        match = _TWITTER_STATUS.search(path)
        return f"twitter:{match.group(1)}" if match else None

    if _host_matches(host, ("tiktok.com",)):
        match = _TIKTOK_VIDEO.search(path)
        return f"tiktok:{match.group(1)}" if match else None

    return None


def normalize_url(url: str) -> str:
    """Lower-case scheme and host, drop the fragment and trailing slash."""
    parts = urlsplit(url.strip())
    netloc = parts.netloc.lower()
    path = parts.path.rstrip("/")
    return urlunsplit((parts.scheme.lower(), netloc, path, parts.query, ""))


def canonical_key(url: str) -> str:
    """Derive the cache key for *url*.

    Identical input always yields an identical key.
    """
    return platform_video_id(url) or normalize_url(url)
