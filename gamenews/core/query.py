"""
Filtered, paginated reads over the article store.
"""
import logging
from datetime import date as date_type, datetime, time, timezone
from typing import Dict, Iterable, Optional, Sequence, Union

from gamenews.core.cache import KEY_PREFIX, TieredCache
from gamenews.core.store import ArticleFilter, ArticleStore
from gamenews.exceptions import QueryError

logger = logging.getLogger(__name__)

REGION_EU = "eu"
REGION_OTHER = "other"

DEFAULT_RESTRICTED_SOURCES = ("polygon", "gamerant", "thegamer")

DateLike = Union[str, date_type, datetime, None]


def _as_date(value: DateLike) -> Optional[date_type]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date_type):
        return value
    return datetime.fromisoformat(value[:10]).date()


def _as_datetime(value: DateLike) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date_type):
        parsed = datetime.combine(value, time.min)
    else:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def day_bounds(day: DateLike) -> tuple:
    """First and last millisecond of a calendar day, in UTC."""
    day = _as_date(day)
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    end = datetime.combine(day, time(23, 59, 59, 999000), tzinfo=timezone.utc)
    return start, end


def region_for_country(country: Optional[str], eu_countries: Iterable[str]) -> str:
    """
    Coarse region class for an ISO country code. Unknown countries are
    treated as outside the EU group.
    """
    if country and country.upper() in {c.upper() for c in eu_countries}:
        return REGION_EU
    return REGION_OTHER


class QueryService:
    """
    Builds storage filters from request parameters and serves them through
    the cache.
    """
    def __init__(self, store: ArticleStore, cache: Optional[TieredCache] = None,
                 restricted_sources: Sequence[str] = DEFAULT_RESTRICTED_SOURCES,
                 cache_ttl: Optional[float] = None):
        self.store = store
        self.cache = cache
        self.restricted_sources = tuple(restricted_sources)
        self.cache_ttl = cache_ttl

    def build_filter(self, category: Optional[str] = None, date: DateLike = None,
                     date_from: DateLike = None, date_to: DateLike = None,
                     region: str = REGION_OTHER) -> ArticleFilter:
        """
        Translate request parameters into a storage filter.

        A single day takes precedence over a from/to range. Requesters outside
        the EU group never see the restricted sources.
        """
        filters = ArticleFilter(category=category or None)
        if date:
            filters.date_from, filters.date_to = day_bounds(date)
        else:
            filters.date_from = _as_datetime(date_from)
            filters.date_to = _as_datetime(date_to)
        if region != REGION_EU:
            filters.exclude_sources = self.restricted_sources
        return filters

    @staticmethod
    def cache_key(page: int, limit: int, category: Optional[str] = None, date: DateLike = None,
                  date_from: DateLike = None, date_to: DateLike = None,
                  region: str = REGION_OTHER) -> str:
        def part(value):
            return "*" if value in (None, "") else str(value)

        # The day overrides the range, so a range next to it must not split the key
        if date:
            date_from = date_to = None
        region = REGION_EU if region == REGION_EU else REGION_OTHER
        return KEY_PREFIX + ":".join([
            str(page), str(limit), part(category), part(date),
            part(date_from), part(date_to), region,
        ])

    def list(self, page: int = 1, limit: int = 10, category: Optional[str] = None,
             date: DateLike = None, date_from: DateLike = None, date_to: DateLike = None,
             region: str = REGION_OTHER) -> Dict:
        """
        One page of articles, newest first.

        Returns:
            {success, data, pagination: {current, total, hasMore}}

        Raises:
            QueryError: if storage fails
        """
        key = self.cache_key(page, limit, category, date, date_from, date_to, region)
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        filters = self.build_filter(category, date, date_from, date_to, region)
        try:
            articles = self.store.find(filters, skip=(page - 1) * limit, limit=limit)
            total = self.store.count(filters)
        except Exception as e:
            logger.error(f"News fetch error: {e}", extra={"query": key})
            raise QueryError("Failed to fetch news") from e

        response = {
            "success": True,
            "data": [article.to_dict() for article in articles],
            "pagination": {
                "current": page,
                "total": total,
                "hasMore": page * limit < total,
            },
        }
        if self.cache is not None:
            self.cache.put(key, response, self.cache_ttl)
        return response

    def search(self, q: str) -> Dict:
        """
        Articles whose title or description contains q, ignoring case.
        Not paginated and not cached.
        """
        try:
            articles = self.store.search(q)
        except Exception as e:
            logger.error(f"Search error: {e}", extra={"q": q})
            raise QueryError("Failed to search news") from e
        return {"success": True, "data": [article.to_dict() for article in articles]}

    def by_date(self, date: DateLike) -> Dict:
        """
        Every article published on one calendar day, newest first.
        """
        start, end = day_bounds(date)
        try:
            articles = self.store.find(ArticleFilter(date_from=start, date_to=end))
        except Exception as e:
            logger.error(f"Date fetch error: {e}", extra={"date": str(date)})
            raise QueryError("Failed to fetch news by date") from e
        return {"success": True, "data": [article.to_dict() for article in articles]}
