"""
HTTP Fetcher
Thin adapter over ``requests.Session`` that turns responses into
``FetchResult`` objects and transport problems into ``TransportError``.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

import requests

from .exceptions import TransportError

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "AgentSkillsGenerator/1.0"

NOT_MODIFIED = 304


@dataclass
class FetchResult:
    """
    One HTTP response, reduced to what the crawl pipeline needs.
    """
    url: str
    status_code: int
    content_type: str = ""
    body: str = ""
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def not_modified(self) -> bool:
        return self.status_code == NOT_MODIFIED

    def header(self, name: str) -> str:
        """Case-insensitive header lookup, ``""`` when absent."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return ""


def create_session(user_agent: str = DEFAULT_USER_AGENT) -> requests.Session:
    """Create a requests session with the crawler's default headers."""
    session = requests.Session()
    session.headers.update({
        'User-Agent': user_agent,
        'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
        'Accept-Language': 'en-US,en;q=0.9',
        'Accept-Encoding': 'gzip, deflate',
    })
    return session


class Fetcher:
    """
    Performs single GET requests, optionally conditional.

    Only 2xx and 304 responses come back as ``FetchResult``; any other status
    raises ``TransportError`` carrying the status code so the retry handler
    can decide whether it is transient.
    """

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = 30):
        self.session = session if session is not None else create_session()
        self.timeout = timeout

    def fetch(self, url: str, if_modified_since: Optional[str] = None) -> FetchResult:
        """
        GET *url*.

        Args:
            url: Normalized target URL
            if_modified_since: Stored HTTP-date sent as ``If-Modified-Since``

        Raises:
            TransportError: on connection failure, timeout or unexpected status
        """
        headers = {}
        if if_modified_since:
            headers['If-Modified-Since'] = if_modified_since

        try:
            response = self.session.get(
                url,
                headers=headers,
                timeout=self.timeout,
                allow_redirects=True,
            )
        except requests.Timeout as e:
            raise TransportError(url, f"request timed out: {e}") from e
        except requests.RequestException as e:
            raise TransportError(url, str(e)) from e

        status = response.status_code
        if status != NOT_MODIFIED and not 200 <= status < 300:
            raise TransportError(url, f"unexpected status {status}", status_code=status)

        result = FetchResult(
            url=url,
            status_code=status,
            content_type=response.headers.get('Content-Type', ''),
            body=response.text if status != NOT_MODIFIED else "",
            headers=dict(response.headers),
        )
        logger.debug(f"[CRAWL] {status} {url} ({result.content_type or 'no content type'})")
        return result

    def close(self) -> None:
        self.session.close()
