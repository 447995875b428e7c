from __future__ import annotations

import re
from urllib.parse import urlparse

_DOMAIN_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^[a-z0-9.-]+\.[a-z]{2,}$", re.IGNORECASE),  # example.com
    re.compile(r"^www\.[a-z0-9.-]+\.[a-z]{2,}$", re.IGNORECASE),  # www.example.com
    re.compile(r"^https?://[a-z0-9.-]+\.[a-z]{2,}", re.IGNORECASE),  # http(s)://example.com/...
)


def looks_like_domain(text: str) -> bool:
    """Check if a search query is a bare domain or a URL."""
    if not text or not isinstance(text, str):
        return False
    clean = text.strip().lower()
    if len(clean) > 2048 or " " in clean:
        return False
    return any(pattern.match(clean) for pattern in _DOMAIN_PATTERNS)


def extract_domain(text: str) -> str:
    """Host part of a domain-like query, without scheme, ``www.``, path or query."""
    clean = text.strip().lower()
    parsed = urlparse(clean if "://" in clean else f"//{clean}")
    host = parsed.hostname or clean.split("/", 1)[0]
    return host.removeprefix("www.")
