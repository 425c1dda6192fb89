"""Resolve which known caller site an upload came from."""

from typing import Iterable, Mapping, Optional
from urllib.parse import urlsplit


def normalize_origin(value: Optional[str]) -> Optional[str]:
    """scheme://host[:port] in lower case, or None if value is not an http(s) URL."""
    if not value:
        return None
    parts = urlsplit(value.strip())
    if parts.scheme not in ("http", "https") or not parts.netloc:
        return None
    return f"{parts.scheme}://{parts.netloc}".lower()


def resolve_origin(
    headers: Mapping[str, str],
    allowed: Iterable[str],
    override_header: str = "X-Origin-Website",
) -> Optional[str]:
    """
    Pick the caller origin: the override header, else Origin, else a Referer
    that starts with an allowed origin. Anything outside the allow-list is
    treated as unresolved.
    """
    allowed_set = {a.lower().rstrip("/") for a in allowed}
    lowered = {k.lower(): v for k, v in headers.items()}

    for name in (override_header.lower(), "origin"):
        candidate = normalize_origin(lowered.get(name))
        if candidate and candidate in allowed_set:
            return candidate

    referer = (lowered.get("referer") or "").strip().lower()
    if referer:
        for origin in sorted(allowed_set, key=len, reverse=True):
            if referer == origin or referer.startswith(origin + "/"):
                return origin
    return None
