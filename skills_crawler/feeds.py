"""
Feed Mining
===========
Recognises sitemaps, RSS and Atom documents and pulls page URLs out of them.

Feeds are never turned into skill documents.  Their entries are enqueued as
ordinary crawl targets under the rule that led to the feed.

Public API
----------
- ``is_feed(url, content_type, body)`` — classify a response
- ``mine_feed_links(xml, base_url)``   — sitemap ``<loc>``, RSS
  ``<item><link>`` and Atom ``<entry><link href>`` URLs in document order
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from .utils import normalize_url

logger = logging.getLogger(__name__)

_FEED_ROOTS = ("rss", "urlset", "feed", "sitemapindex")

# Optional XML declaration, comments and doctype before the root element
_FEED_ROOT_RE = re.compile(
    r"^\s*(?:<\?xml[^>]*\?>\s*)?(?:<!--.*?-->\s*|<!DOCTYPE[^>]*>\s*)*"
    r"<(?:[\w-]+:)?(" + "|".join(_FEED_ROOTS) + r")\b",
    re.IGNORECASE | re.DOTALL,
)


def _is_html_type(content_type: str) -> bool:
    ct = content_type.lower()
    return "text/html" in ct or "xhtml" in ct


def is_html(content_type: str) -> bool:
    """True when the response should go through HTML extraction."""
    return _is_html_type(content_type or "")


def is_feed(url: str, content_type: str = "", body: str = "") -> bool:
    """
    Decide whether a response is a sitemap or syndication feed.

    A ``.xml`` URL suffix or an XML/RSS content type is enough.  HTML content
    types (including XHTML) are never feeds unless the URL ends in ``.xml``.
    Otherwise the body is sniffed for an XML declaration or a
    ``rss``/``urlset``/``feed``/``sitemapindex`` root element.
    """
    if urlparse(url).path.lower().endswith(".xml"):
        return True

    ct = (content_type or "").lower()
    if _is_html_type(ct):
        return False
    if "xml" in ct or "rss" in ct:
        return True

    head = (body or "")[:2048].lstrip("\ufeff")
    if head.lstrip().startswith("<?xml"):
        return True
    return _FEED_ROOT_RE.match(head) is not None


def mine_feed_links(xml: str, base_url: Optional[str] = None) -> List[str]:
    """
    Extract page URLs from a sitemap, RSS or Atom document.

    Entries are normalized against *base_url* and de-duplicated.  A
    document that cannot be parsed yields no links.
    """
    try:
        soup = BeautifulSoup(xml, "xml")
    except Exception as e:
        logger.warning(f"[FEED] Could not parse feed {base_url or ''}: {e}")
        return []

    raw: List[str] = []

    for loc in soup.find_all("loc"):
        raw.append(loc.get_text(strip=True))

    for item in soup.find_all("item"):
        link = item.find("link", recursive=False)
        if link is not None:
            raw.append(link.get_text(strip=True))

    for entry in soup.find_all("entry"):
        for link in entry.find_all("link", recursive=False):
            if link.get("href"):
                raw.append(link["href"].strip())

    links = []
    seen = set()
    for candidate in raw:
        absolute = normalize_url(candidate, base_url)
        if absolute and absolute not in seen:
            seen.add(absolute)
            links.append(absolute)

    logger.debug(f"[FEED] {len(links)} entries in {base_url or 'feed'}")
    return links
