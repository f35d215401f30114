"""
Content Extractor
Pulls title, description, article fragment and outgoing links from an HTML
page, and hands the fragment to markdownify for conversion.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from bs4 import BeautifulSoup, Comment
from markdownify import markdownify

from .exceptions import ExtractionError
from .utils import normalize_url

logger = logging.getLogger(__name__)

_BS_PARSER = "lxml"

DEFAULT_TITLE = "Untitled"
DEFAULT_DESCRIPTION = "No description available."


@dataclass
class ExtractedPage:
    """
    Metadata and cleaned content of one HTML page.
    """
    title: str = DEFAULT_TITLE
    description: str = DEFAULT_DESCRIPTION
    content_html: str = ""
    links: List[str] = field(default_factory=list)


class ContentExtractor:
    """
    Extracts the article fragment of a documentation page.

    The fragment is the first ``<article>``, else the main-content element,
    else ``<body>``.  Site chrome is removed before the fragment is chosen.
    """

    # Removed before the content fragment is selected
    CHROME_SELECTORS = [
        'header#site-content-title',
        'header',
        'nav',
        '[role="navigation"]',
        '.breadcrumb', '.breadcrumbs', '[aria-label="breadcrumb"]',
        'script', 'style', 'noscript', 'template',
        '.toc', '#toc', '.table-of-contents',
    ]

    # Tried in order after <article>
    MAIN_CONTENT_SELECTORS = ['main', '[role="main"]']

    def extract(self, html: str, page_url: Optional[str] = None) -> ExtractedPage:
        """
        Parse *html* and extract its metadata and content fragment.

        Args:
            html: Page markup
            page_url: When given, outgoing links are resolved against it

        Raises:
            ExtractionError: if the markup cannot be parsed
        """
        try:
            soup = BeautifulSoup(html, _BS_PARSER)
        except Exception as e:
            raise ExtractionError(f"could not parse HTML: {e}") from e

        page = ExtractedPage(
            title=self._extract_title(soup),
            description=self._extract_description(soup),
        )
        if page_url:
            page.links = self._extract_links(soup, page_url)

        self._remove_chrome(soup)
        fragment = self._select_fragment(soup)
        page.content_html = fragment.decode_contents() if fragment is not None else ""
        return page

    def _extract_title(self, soup: BeautifulSoup) -> str:
        og_title = soup.find('meta', property='og:title')
        if og_title and og_title.get('content', '').strip():
            return og_title['content'].strip()

        title_tag = soup.find('title')
        if title_tag and title_tag.get_text(strip=True):
            return title_tag.get_text(strip=True)

        return DEFAULT_TITLE

    def _extract_description(self, soup: BeautifulSoup) -> str:
        og_desc = soup.find('meta', property='og:description')
        if og_desc and og_desc.get('content', '').strip():
            return og_desc['content'].strip()

        meta = soup.find('meta', attrs={'name': 'description'})
        if meta and meta.get('content', '').strip():
            return meta['content'].strip()

        return DEFAULT_DESCRIPTION

    def _extract_links(self, soup: BeautifulSoup, page_url: str) -> List[str]:
        """Absolute, fragment-free, de-duplicated hyperlinks in page order."""
        base = page_url
        base_tag = soup.find('base', href=True)
        if base_tag:
            base = normalize_url(base_tag['href'], page_url) or page_url

        links = []
        seen = set()
        for anchor in soup.find_all('a', href=True):
            href = anchor['href'].strip()
            if not href or href.startswith('#'):
                continue
            absolute = normalize_url(href, base)
            if absolute and absolute not in seen:
                seen.add(absolute)
                links.append(absolute)
        return links

    def _remove_chrome(self, soup: BeautifulSoup) -> None:
        for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
            comment.extract()
        for selector in self.CHROME_SELECTORS:
            for element in soup.select(selector):
                element.decompose()

    def _select_fragment(self, soup: BeautifulSoup):
        article = soup.find('article')
        if article is not None:
            return article
        for selector in self.MAIN_CONTENT_SELECTORS:
            element = soup.select_one(selector)
            if element is not None:
                return element
        logger.debug("No main content container found, using the whole body")
        return soup.body or soup


def extract_content(html: str, page_url: Optional[str] = None) -> ExtractedPage:
    """Convenience wrapper around ``ContentExtractor().extract``."""
    return ContentExtractor().extract(html, page_url)


def extract_links(html: str, page_url: str) -> List[str]:
    """Outgoing hyperlinks of *html* resolved against *page_url*."""
    return ContentExtractor().extract(html, page_url).links


def render_markdown(content_html: str) -> str:
    """Convert a cleaned HTML fragment to Markdown."""
    try:
        markdown = markdownify(content_html, heading_style="ATX", code_language="")
    except Exception as e:
        raise ExtractionError(f"could not convert HTML to Markdown: {e}") from e
    return markdown.strip() + "\n"
