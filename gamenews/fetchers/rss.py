"""
RSS/Atom feed fetcher for GameNews.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

import aiohttp
import feedparser
from dateutil.parser import parse as parse_date

from gamenews.core.article import Article, PLACEHOLDER_IMAGE, UNKNOWN_AUTHOR
from gamenews.exceptions import FeedError
from gamenews.utils.http import REQUEST_TIMEOUT, browser_headers, fetch_bytes
from gamenews.utils.nlp import clean_description, source_for_url

# Configure logging
logger = logging.getLogger(__name__)


@dataclass
class FeedResult:
    """
    What one feed produced: candidates on success, an error otherwise.
    """
    url: str
    source: str
    articles: List[Article] = field(default_factory=list)
    error: Optional[FeedError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _first_url(items) -> Optional[str]:
    if not items:
        return None
    if isinstance(items, dict):
        items = [items]
    first = items[0]
    return first.get('url') or first.get('href')


def _entry_date(entry) -> Optional[datetime]:
    """
    Publish date of an entry, falling back to its updated date.
    """
    for key in ('published', 'updated'):
        parsed = entry.get(f'{key}_parsed')
        if parsed:
            return datetime(*parsed[:6], tzinfo=timezone.utc)
        raw = entry.get(key)
        if raw:
            try:
                return parse_date(raw)
            except (ValueError, OverflowError):
                logger.debug(f"Unparseable {key} date: {raw!r}")
    return None


def _entry_image(entry) -> str:
    return (
        _first_url(entry.get('enclosures'))
        or _first_url(entry.get('media_content'))
        or _first_url(entry.get('media_thumbnail'))
        or PLACEHOLDER_IMAGE
    )


def _entry_author(entry) -> str:
    author = entry.get('author')
    if not author and entry.get('authors'):
        author = entry['authors'][0].get('name')
    return author or UNKNOWN_AUTHOR


def _entry_description(entry) -> str:
    text = entry.get('summary')
    if not text and entry.get('content'):
        text = entry['content'][0].get('value')
    return clean_description(text or '')


def parse_feed(url: str, content) -> List[Article]:
    """
    Parse a feed document into candidate articles.

    Entries without a title, a link, or any usable date are dropped.

    Args:
        url: The feed URL, used to tag the source
        content: Raw feed body (bytes or str)

    Returns:
        List of candidates, category not yet assigned

    Raises:
        FeedError: if the document is not a feed at all
    """
    feed = feedparser.parse(content)
    if feed.bozo and not feed.entries:
        raise FeedError(url, f"unparseable feed: {feed.get('bozo_exception')}")

    source = source_for_url(url)
    articles = []
    for entry in feed.entries:
        title = (entry.get('title') or '').strip()
        link = (entry.get('link') or '').strip()
        if not title or not link:
            continue

        pub_date = _entry_date(entry)
        if pub_date is None:
            continue

        articles.append(Article(
            link=link,
            title=title,
            pub_date=pub_date,
            description=_entry_description(entry),
            image=_entry_image(entry),
            author=_entry_author(entry),
            source=source,
        ))

    return articles


class FeedFetcher:
    """
    Fetches and parses syndication feeds.
    """
    def __init__(self, timeout: float = REQUEST_TIMEOUT, user_agent: Optional[str] = None):
        """
        Initialize the FeedFetcher.

        Args:
            timeout: Per-feed request timeout in seconds
            user_agent: Override for the User-Agent header
        """
        self.timeout = timeout
        self.headers = browser_headers(user_agent)
        self.headers['Accept'] = 'application/rss+xml, application/atom+xml, application/xml;q=0.9, */*;q=0.8'
        self._session = None

    @property
    def session(self) -> aiohttp.ClientSession:
        """
        Lazy initialization of aiohttp session.

        Returns:
            aiohttp.ClientSession: The HTTP session
        """
        if self._session is None:
            self._session = aiohttp.ClientSession(headers=self.headers)
        return self._session

    async def close_session(self):
        """Close aiohttp session."""
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def download(self, url: str) -> bytes:
        return await fetch_bytes(self.session, url, self.timeout)

    async def fetch(self, url: str) -> FeedResult:
        """
        Fetch one feed. Failures are logged and reported, never raised.

        Args:
            url: The feed URL

        Returns:
            FeedResult with candidates or the error that stopped this feed
        """
        source = source_for_url(url)
        try:
            content = await self.download(url)
            articles = parse_feed(url, content)
        except FeedError as e:
            logger.error(str(e))
            return FeedResult(url=url, source=source, error=e)
        except asyncio.TimeoutError:
            error = FeedError(url, f"timed out after {self.timeout}s")
            logger.error(str(error))
            return FeedResult(url=url, source=source, error=error)
        except aiohttp.ClientError as e:
            error = FeedError(url, str(e) or e.__class__.__name__)
            logger.error(str(error))
            return FeedResult(url=url, source=source, error=error)

        logger.info(f"Fetched {len(articles)} items from {url}")
        return FeedResult(url=url, source=source, articles=articles)
