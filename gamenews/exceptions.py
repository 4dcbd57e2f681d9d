"""
Error types for GameNews.

Feed and item failures are absorbed by the ingestion path and only show up in
logs and run reports. Query and extraction failures propagate to the caller.
"""
from typing import Optional


class GameNewsError(Exception):
    """Base class for all GameNews errors."""


class FeedError(GameNewsError):
    """A single feed could not be fetched or parsed."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Feed {url} failed: {reason}")
        self.url = url
        self.reason = reason


class ItemPersistError(GameNewsError):
    """A single candidate could not be evicted, inserted or updated."""

    def __init__(self, link: str, reason: str):
        super().__init__(f"Failed to persist {link}: {reason}")
        self.link = link
        self.reason = reason


class QueryError(GameNewsError):
    """Storage was unreachable while serving a read."""


class ExtractionFetchError(GameNewsError):
    """An article page could not be retrieved."""

    def __init__(self, url: str, reason: str, status: Optional[int] = None):
        super().__init__(f"Error fetching {url}: {reason}")
        self.url = url
        self.reason = reason
        self.status = status


class ValidationError(GameNewsError):
    """Malformed request input."""
