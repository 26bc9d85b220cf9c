"""URL canonicalization used for every identity comparison in a crawl."""

from __future__ import annotations

import re
from enum import Enum
from typing import Optional
from urllib.parse import parse_qsl, quote, urlencode, urljoin, urlsplit, urlunsplit

ALLOWED_SCHEMES = frozenset({"http", "https"})
DEFAULT_PORTS = {"http": 80, "https": 443}

EXCLUDED_EXTENSIONS: tuple[str, ...] = (".pdf", ".jpg", ".jpeg", ".png", ".gif", ".zip")
EXCLUDED_PATH_MARKERS: tuple[str, ...] = ("/admin", "/login", "/logout", "/register", "/api/")

# Prefix match: "reference" or "sources" are dropped too.
TRACKING_PARAM = re.compile(r"^(utm_|fbclid|gclid|msclkid|trk_|ref|source)", re.IGNORECASE)
_REPEATED_SLASHES = re.compile(r"/{2,}")
_PERCENT_ESCAPE = re.compile(r"%[0-9a-fA-F]{2}")
# RFC 3986 pchar plus "/"; "%" is kept so existing escapes survive re-quoting.
PATH_SAFE_CHARS = "/%:@!$&'()*+,;=-._~"


class RejectionReason(Enum):
    INVALID_URL = "invalid_url"
    UNSUPPORTED_SCHEME = "unsupported_scheme"
    EXCLUDED_EXTENSION = "excluded_extension"
    EXCLUDED_PATH = "excluded_path"


class URLRejected(ValueError):
    """Raised when a URL has no canonical form the crawler accepts."""

    def __init__(self, url: str, reason: RejectionReason) -> None:
        super().__init__(f"{reason.value}: {url}")
        self.url = url
        self.reason = reason


def _normalize_path(path: str) -> str:
    path = _REPEATED_SLASHES.sub("/", path or "/")
    if not path.startswith("/"):
        path = "/" + path
    if len(path) > 1:
        path = path.rstrip("/") or "/"
    # "/my page" and "/my%20page" name the same resource
    path = quote(path, safe=PATH_SAFE_CHARS)
    return _PERCENT_ESCAPE.sub(lambda match: match.group(0).upper(), path)


def _normalize_query(query: str) -> str:
    if not query:
        return ""
    params = [
        (key, value)
        for key, value in parse_qsl(query, keep_blank_values=True)
        if not TRACKING_PARAM.match(key)
    ]
    return urlencode(params)


def _normalize_host(hostname: str) -> str:
    """Lowercased ASCII host with every leading ``www.`` label removed.

    Raises ``UnicodeError`` for hosts IDNA cannot encode.
    """

    hostname = hostname.lower().rstrip(".")
    while hostname.startswith("www."):
        hostname = hostname[4:]
    if not hostname.isascii():
        hostname = hostname.encode("idna").decode("ascii")
    return hostname


def canonicalize(raw: str, base_url: Optional[str] = None) -> str:
    """Return the canonical form of ``raw`` or raise :class:`URLRejected`.

    - Resolves ``raw`` against ``base_url`` when given.
    - Lowercases scheme + host, drops leading ``www.`` labels and default ports.
    - IDNA-encodes non-ASCII hosts.
    - Strips fragments and userinfo.
    - Collapses repeated slashes and drops the trailing slash (root keeps ``/``).
    - Percent-encodes the path, with upper-case escapes.
    - Removes tracking query parameters, keeping the rest in original order.
    """

    candidate = (raw or "").strip()
    if not candidate:
        raise URLRejected(raw, RejectionReason.INVALID_URL)

    try:
        if base_url:
            candidate = urljoin(base_url, candidate)
        parsed = urlsplit(candidate)
        scheme = parsed.scheme.lower()
        hostname = (parsed.hostname or "").lower()
        port = parsed.port
    except ValueError as exc:
        raise URLRejected(raw, RejectionReason.INVALID_URL) from exc

    if not scheme:
        raise URLRejected(raw, RejectionReason.INVALID_URL)
    if scheme not in ALLOWED_SCHEMES:
        raise URLRejected(raw, RejectionReason.UNSUPPORTED_SCHEME)

    try:
        hostname = _normalize_host(hostname)
    except UnicodeError as exc:
        raise URLRejected(raw, RejectionReason.INVALID_URL) from exc
    if not hostname:
        raise URLRejected(raw, RejectionReason.INVALID_URL)

    path = _normalize_path(parsed.path)
    path_lower = path.lower()
    if path_lower.endswith(EXCLUDED_EXTENSIONS):
        raise URLRejected(raw, RejectionReason.EXCLUDED_EXTENSION)
    if any(marker in path_lower for marker in EXCLUDED_PATH_MARKERS):
        raise URLRejected(raw, RejectionReason.EXCLUDED_PATH)

    netloc = f"[{hostname}]" if ":" in hostname else hostname
    if port is not None and port != DEFAULT_PORTS[scheme]:
        netloc = f"{netloc}:{port}"

    return urlunsplit((scheme, netloc, path, _normalize_query(parsed.query), ""))


def host_of(url: str) -> str:
    """Canonical host (no port, no ``www.``) used for domain scoping."""

    try:
        return _normalize_host(urlsplit(url).hostname or "")
    except ValueError:
        return ""
