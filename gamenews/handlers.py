"""
Request handlers: the JSON-shaped surface an HTTP layer mounts.

Routing, auth and rate limiting live outside this package. Handlers only turn
already-parsed parameters into calls on the core and the core's errors into
envelopes.
"""
import asyncio
import logging
from datetime import datetime
from typing import Dict, Optional

from gamenews.config import Config
from gamenews.core.cache import TieredCache
from gamenews.core.ingest import IngestionCoordinator, Upserter
from gamenews.core.processor import ArticleExtractor
from gamenews.core.query import REGION_OTHER, QueryService, region_for_country
from gamenews.core.store import SQLiteArticleStore
from gamenews.exceptions import ExtractionFetchError, QueryError, ValidationError
from gamenews.fetchers.rss import FeedFetcher

logger = logging.getLogger(__name__)


def _check_iso(value: Optional[str], name: str):
    if value in (None, ""):
        return
    try:
        datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"{name} must be in ISO format (YYYY-MM-DD)")


def _positive_int(value, name: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a positive integer")
    if number < 1:
        raise ValidationError(f"{name} must be a positive integer")
    return number


def _failure(message: str) -> Dict:
    return {"success": False, "message": message}


class NewsHandlers:
    """
    Entry points for fetch, latest, search, by-date and extract.
    """
    def __init__(self, coordinator: IngestionCoordinator, query: QueryService,
                 extractor: ArticleExtractor, eu_countries=()):
        self.coordinator = coordinator
        self.query = query
        self.extractor = extractor
        self.eu_countries = tuple(eu_countries)

    @classmethod
    def from_config(cls, config: Config) -> "NewsHandlers":
        """Wire the store, cache and services from configuration."""
        store = SQLiteArticleStore(config.get("storage.path"))
        ttl = config.get("cache.ttl_seconds")
        cache = TieredCache.from_url(
            config.get("cache.redis_url"), ttl=ttl,
            timeout=config.get("cache.redis_timeout_seconds"),
        )
        timeout = config.get("http.timeout_seconds")
        user_agent = config.get("http.user_agent")

        upserter = Upserter(store, cache, max_articles=config.get("storage.max_articles"))
        coordinator = IngestionCoordinator(
            config.feeds,
            FeedFetcher(timeout=timeout, user_agent=user_agent),
            upserter,
            max_concurrent=config.get("http.max_concurrent"),
        )
        query = QueryService(
            store, cache,
            restricted_sources=config.get("query.restricted_sources"),
            cache_ttl=ttl,
        )
        extractor = ArticleExtractor(timeout=timeout, user_agent=user_agent)
        return cls(coordinator, query, extractor, config.get("query.eu_countries") or ())

    def region(self, country: Optional[str]) -> str:
        return region_for_country(country, self.eu_countries)

    async def run(self) -> Dict:
        """On-demand ingestion. Item failures only show up in the logs."""
        report = await self.coordinator.run()
        if report is None:
            return {"success": True, "message": "Fetch already in progress"}
        return {"success": True, "message": "News fetched and saved"}

    def latest(self, page=1, limit=10, category: Optional[str] = None, date: Optional[str] = None,
               date_from: Optional[str] = None, date_to: Optional[str] = None,
               region: str = REGION_OTHER) -> Dict:
        try:
            page = _positive_int(page, "page")
            limit = _positive_int(limit, "limit")
            for value, name in ((date, "date"), (date_from, "from"), (date_to, "to")):
                _check_iso(value, name)
            return self.query.list(page, limit, category, date, date_from, date_to, region)
        except (ValidationError, QueryError) as e:
            return _failure(str(e))

    def search(self, q: Optional[str]) -> Dict:
        if not q or not q.strip():
            return _failure("Search query is required")
        try:
            return self.query.search(q.strip())
        except QueryError as e:
            return _failure(str(e))

    def by_date(self, date: Optional[str]) -> Dict:
        try:
            if not date:
                raise ValidationError("Date must be in ISO format (YYYY-MM-DD)")
            _check_iso(date, "date")
            response = self.query.by_date(date)
        except (ValidationError, QueryError) as e:
            return _failure(str(e))
        if not response["data"]:
            return _failure("No news found")
        return response

    async def extract(self, link: Optional[str]) -> Dict:
        if not link:
            return {"success": False, "error": "Link required"}
        try:
            blocks = await self.extractor.extract(link)
        except ExtractionFetchError as e:
            logger.error(str(e))
            return {"success": False, "error": "Failed to fetch article"}
        return {"content": [block.to_dict() for block in blocks]}

    def run_sync(self) -> Dict:
        return asyncio.run(self.run())

    def extract_sync(self, link: Optional[str]) -> Dict:
        return asyncio.run(self.extract(link))
