"""URL canonicalization and root-domain matching for the site crawler."""

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import SplitResult, urlsplit

_HTTP_SCHEMES = frozenset({"http", "https"})
_DEFAULT_PORTS = {"http": 80, "https": 443}
_UNSAFE_LABEL_CHARS = re.compile(r"[^A-Za-z0-9 \-_./]")


def _split(url: str) -> Optional[SplitResult]:
    """Parse *url* into parts, returning None for anything malformed."""
    if not isinstance(url, str) or not url.strip():
        return None
    try:
        parts = urlsplit(url.strip())
        # Accessing .port validates it (raises ValueError on garbage ports)
        parts.port
    except ValueError:
        return None
    if not parts.scheme or not parts.hostname:
        return None
    return parts


def is_http_url(url: str) -> bool:
    """Return True if *url* is an absolute http(s) URL with a host."""
    parts = _split(url)
    return parts is not None and parts.scheme.lower() in _HTTP_SCHEMES


def normalize_url(url: str) -> str:
    """Canonicalize a URL for visited-set membership.

    Drops query and fragment, strips one trailing slash and a leading
    ``www.`` label. Scheme, host, explicit port and path are kept.
    Unparseable input is returned unchanged.
    """
    parts = _split(url)
    if parts is None:
        return url

    scheme = parts.scheme.lower()
    host = parts.hostname or ""
    if host.startswith("www."):
        host = host[4:]

    port = parts.port
    netloc = host
    if port is not None and port != _DEFAULT_PORTS.get(scheme):
        netloc = f"{host}:{port}"

    path = parts.path
    if path.endswith("/"):
        path = path[:-1]

    return f"{scheme}://{netloc}{path}"


def root_domain(host: Optional[str]) -> str:
    """Return the last two dot-separated labels of *host*."""
    if not host:
        return ""
    labels = host.lower().rstrip(".").split(".")
    if len(labels) >= 2:
        return ".".join(labels[-2:])
    return labels[0]


def is_same_domain(root_url: str, candidate_url: str) -> bool:
    """Check whether two URLs share a root domain (subdomains included).

    Malformed URLs are never considered same-domain.
    """
    root = _split(root_url)
    candidate = _split(candidate_url)
    if root is None or candidate is None:
        return False
    return root_domain(root.hostname) == root_domain(candidate.hostname)


def url_to_label(url: str) -> str:
    """Build an ASCII-safe ``host+path`` label for *url*."""
    parts = _split(url)
    if parts is not None:
        label = f"{parts.hostname}{parts.path}"
    else:
        label = url
    cleaned = _UNSAFE_LABEL_CHARS.sub("", label).strip()
    return cleaned or "page"
