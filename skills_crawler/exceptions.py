"""Custom exceptions for the skills crawler."""

from typing import Optional


class SkillsCrawlerError(Exception):
    """Base exception for all skills crawler errors."""

    pass


class ConfigError(SkillsCrawlerError):
    """Raised when the configuration document is malformed."""

    pass


class RuleCompileError(SkillsCrawlerError):
    """Raised when a scope pattern cannot be compiled."""

    def __init__(self, pattern: str, reason: str):
        super().__init__(f"invalid pattern '{pattern}': {reason}")
        self.pattern = pattern
        self.reason = reason


class TransportError(SkillsCrawlerError):
    """Raised when a page cannot be fetched."""

    def __init__(self, url: str, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class ContentTypeMismatch(SkillsCrawlerError):
    """Raised when a response is neither HTML nor a feed."""

    pass


class ExtractionError(SkillsCrawlerError):
    """Raised when HTML content cannot be parsed or converted."""

    pass


class WriteError(SkillsCrawlerError):
    """Raised when output files cannot be written or removed."""

    pass
