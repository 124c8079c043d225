"""Small string helpers shared by topic and discovery builders."""
from __future__ import annotations

import hashlib
import re

_NON_SLUG_RE = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    """
    Lowercase ``text`` and collapse anything that is not [a-z0-9] into '_'.

    >>> slugify("CPU Load (1 min)")
    'cpu_load_1_min'
    """
    return _NON_SLUG_RE.sub("_", text.lower()).strip("_")


def md5(text: str) -> str:
    """Hex MD5 digest of a UTF-8 string (identifiers only, not security)."""
    return hashlib.md5(text.encode("utf-8")).hexdigest()
