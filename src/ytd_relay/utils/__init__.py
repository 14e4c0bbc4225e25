"""Shared utilities — small pure helpers used across layers.

Rules
-----
* No business logic.
* No I/O.
* Importable by any layer.
"""

from __future__ import annotations

import re

_UNSAFE_CHARS = re.compile(r'[\\/*?:"<>|\x00-\x1f]')
_WHITESPACE = re.compile(r"\s+")

MAX_STEM_LENGTH: int = 120


def safe_filename(title: str, ext: str, *, fallback: str = "download") -> str:
    """Build ``"<title>.<ext>"`` with characters invalid on common filesystems removed.

    >>> safe_filename('a/b: "c"?', "mp4")
    'ab c.mp4'
    """
    stem = _UNSAFE_CHARS.sub("", _WHITESPACE.sub(" ", title)).strip().strip(".")
    stem = stem[:MAX_STEM_LENGTH].rstrip() or fallback
    ext = _UNSAFE_CHARS.sub("", ext).strip(". ")
    return f"{stem}.{ext}" if ext else stem
