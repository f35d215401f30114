"""
Utility Functions
URL normalization, retry logic, and progress tracking.
"""

import logging
import random
import time
from threading import Lock
from typing import Any, Callable, Optional
from urllib.parse import urljoin, urlparse, urlunparse

from .exceptions import TransportError

logger = logging.getLogger(__name__)


def normalize_url(url: str, base_url: Optional[str] = None) -> Optional[str]:
    """
    Normalize a URL into the crawl's dedup key.

    Relative URLs are resolved against *base_url*, the fragment is removed
    and scheme and host are lower-cased.  An empty path becomes ``/``; path
    and query are otherwise kept verbatim because they feed output-path
    derivation.

    Returns:
        Normalized URL string or None if it is not an HTTP(S) URL
    """
    if not url:
        return None

    url = url.strip()
    if url.lower().startswith(('javascript:', 'mailto:', 'tel:', 'data:')):
        return None

    if base_url:
        url = urljoin(base_url, url)

    try:
        parsed = urlparse(url)
    except ValueError:
        return None

    if parsed.scheme.lower() not in ('http', 'https'):
        return None
    if not parsed.netloc:
        return None

    return urlunparse((
        parsed.scheme.lower(),
        parsed.netloc.lower(),
        parsed.path or '/',
        parsed.params,
        parsed.query,
        '',
    ))


class RetryHandler:
    """
    Handles retry logic with exponential backoff.

    Only transient transport failures are retried: connection-level errors
    (no status code) and the status codes in ``RETRYABLE_STATUS_CODES``.
    """

    RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}

    def __init__(
        self,
        max_retries: int = 2,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        exponential_base: float = 2.0,
        jitter: bool = True,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the retry handler.

        Args:
            max_retries: Maximum number of retry attempts
            base_delay: Initial delay between retries in seconds
            max_delay: Maximum delay between retries
            exponential_base: Base for exponential backoff
            jitter: Add random jitter to prevent thundering herd
            sleep: Sleep function (replaced in tests)
        """
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter
        self._sleep = sleep

    def calculate_delay(self, attempt: int) -> float:
        """Delay in seconds before retry number *attempt* (0-indexed)."""
        delay = self.base_delay * (self.exponential_base ** attempt)
        delay = min(delay, self.max_delay)

        if self.jitter:
            jitter_range = delay * 0.25
            delay += random.uniform(-jitter_range, jitter_range)

        return max(0, delay)

    def is_retryable(self, error: Exception) -> bool:
        """True for transport errors worth another attempt."""
        if not isinstance(error, TransportError):
            return False
        return error.status_code is None or error.status_code in self.RETRYABLE_STATUS_CODES

    def execute_with_retry(self, func: Callable, *args, **kwargs) -> Any:
        """
        Execute function with retry logic.

        Raises:
            The last exception once attempts are exhausted, or immediately
            for non-retryable errors
        """
        for attempt in range(self.max_retries + 1):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                if attempt >= self.max_retries or not self.is_retryable(e):
                    raise
                delay = self.calculate_delay(attempt)
                logger.warning(
                    f"Attempt {attempt + 1} failed: {e}. "
                    f"Retrying in {delay:.2f}s..."
                )
                self._sleep(delay)


class ProgressTracker:
    """
    Tracks per-target outcomes for the end-of-run message.
    """

    def __init__(self):
        self.pages_written = 0
        self.feeds_parsed = 0
        self.pages_not_modified = 0
        self.pages_rejected = 0
        self.pages_failed = 0
        self.start_time = None
        self.end_time = None
        self._lock = Lock()

    def start(self) -> None:
        """Mark crawl start."""
        self.start_time = time.time()

    def finish(self) -> None:
        """Mark crawl end."""
        self.end_time = time.time()

    def increment(self, counter: str) -> int:
        """Increment one of the ``pages_*`` / ``feeds_*`` counters."""
        with self._lock:
            value = getattr(self, counter) + 1
            setattr(self, counter, value)
            return value

    @property
    def total_processed(self) -> int:
        """Total targets processed."""
        return (
            self.pages_written + self.feeds_parsed + self.pages_not_modified
            + self.pages_rejected + self.pages_failed
        )

    @property
    def elapsed_time(self) -> float:
        """Elapsed time in seconds."""
        if self.start_time is None:
            return 0
        end = self.end_time or time.time()
        return end - self.start_time

    def get_stats(self) -> dict:
        """Get current statistics."""
        return {
            'pages_written': self.pages_written,
            'feeds_parsed': self.feeds_parsed,
            'pages_not_modified': self.pages_not_modified,
            'pages_rejected': self.pages_rejected,
            'pages_failed': self.pages_failed,
            'total_processed': self.total_processed,
            'elapsed_time': round(self.elapsed_time, 2),
        }
