"""
Scope Filter
=============
Strict subtree membership for link discovery.

A page crawled under a subpath-enabled rule only follows links that stay
inside the rule's URL: the candidate must equal the rule URL or extend it
with a path separator.  ``/posts`` does **not** cover ``/posts-extra``.

Both URLs go through ``_canonicalize()`` so that the comparison is immune
to cosmetic differences:

- Fragment removal
- Percent-encoding normalisation (decode unreserved, no double-decode)
- Dot-segment resolution (``/a/../b`` → ``/b``)
- Trailing-slash normalisation
- Host case normalisation + default-port stripping
- Path case is **preserved** (servers are case-sensitive)

Public API
----------
- ``is_within_scope(candidate_url, root_url)`` — one-shot boolean check
"""

from __future__ import annotations

import logging
import posixpath
import re
from typing import NamedTuple, Optional
from urllib.parse import urlparse, urlunparse

logger = logging.getLogger(__name__)


class _CanonURL(NamedTuple):
    """Immutable, fully-normalised URL components for scope comparison."""
    scheme: str
    host: str        # lower-cased, www-stripped, default-port stripped
    path: str        # dot-segments resolved, trailing-slash stripped, case preserved
    raw: str         # reconstructed URL string (no query, no fragment)


# RFC 3986 §2.3: unreserved characters that should be decoded
_UNRESERVED_RE = re.compile(r"%([0-9A-Fa-f]{2})")

_UNRESERVED_CHARS = frozenset(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"
    "0123456789-._~"
)


def _decode_unreserved(path: str) -> str:
    """
    Decode percent-encoded *unreserved* characters only.

    Encoded reserved characters (``/``, ``?``, ``#``, ...) keep their
    encoding, with the hex digits upper-cased.
    """

    def _replace(m: re.Match) -> str:
        char = chr(int(m.group(1), 16))
        if char in _UNRESERVED_CHARS:
            return char
        return f"%{m.group(1).upper()}"

    return _UNRESERVED_RE.sub(_replace, path)


def _strip_default_port(netloc: str, scheme: str) -> str:
    """Remove ``:80`` for http and ``:443`` for https from *netloc*."""
    if ":" not in netloc:
        return netloc
    host, _, port = netloc.rpartition(":")
    if scheme == "http" and port == "80":
        return host
    if scheme == "https" and port == "443":
        return host
    return netloc


def _canonicalize(url: str) -> Optional[_CanonURL]:
    """
    Produce a canonical ``_CanonURL`` from a raw URL string.

    Returns ``None`` for empty, non-HTTP(S) or host-less URLs.
    """
    if not url:
        return None
    url = url.strip()
    if url.lower().startswith(("javascript:", "mailto:", "tel:", "data:", "#")):
        return None

    try:
        p = urlparse(url)
    except ValueError:
        return None

    if p.scheme not in ("http", "https") or not p.netloc:
        return None

    scheme = p.scheme.lower()
    netloc = _strip_default_port(p.netloc.lower(), scheme)
    host = netloc.removeprefix("www.")

    raw_path = _decode_unreserved(p.path or "/")
    raw_path = posixpath.normpath(raw_path)
    # normpath turns "" into "." and keeps a leading "//"
    if not raw_path.startswith("/"):
        raw_path = "/" + raw_path
    raw_path = "/" + raw_path.lstrip("/")
    if raw_path != "/" and raw_path.endswith("/"):
        raw_path = raw_path.rstrip("/")

    raw = urlunparse((scheme, host, raw_path, "", "", ""))
    return _CanonURL(scheme=scheme, host=host, path=raw_path, raw=raw)


def is_within_scope(
    candidate_url: str,
    root_url: str,
    *,
    allow_cross_scheme: bool = True,
) -> bool:
    """
    Check whether *candidate_url* lies inside the subtree rooted at *root_url*.

    Rules
    -----
    1. Host must match (case-insensitive, www-stripped, default-port stripped).
    2. If ``allow_cross_scheme`` is False, scheme must also match.
    3. If the root path is ``/``, any path on the host is in scope.
    4. Otherwise the candidate path must **equal** the root path or begin
       with ``root_path + "/"``.
    """
    root = _canonicalize(root_url)
    cand = _canonicalize(candidate_url)
    if root is None or cand is None:
        return False

    if cand.host != root.host:
        return False
    if not allow_cross_scheme and cand.scheme != root.scheme:
        return False

    if root.path == "/":
        return True
    return cand.path == root.path or cand.path.startswith(root.path + "/")
