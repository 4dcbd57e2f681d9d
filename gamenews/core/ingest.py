"""
Feed ingestion for GameNews: dedup/upsert with a capacity cap, and the
coordinator that runs one pass over every configured feed.
"""
import asyncio
import enum
import logging
import threading
from typing import Iterable, List, Optional

from gamenews.core.article import Article, Outcome, RunReport
from gamenews.core.cache import TieredCache
from gamenews.core.store import ArticleStore
from gamenews.exceptions import FeedError, ItemPersistError
from gamenews.fetchers.rss import FeedFetcher, FeedResult
from gamenews.utils.http import MAX_CONCURRENT_REQUESTS
from gamenews.utils.nlp import categorize, source_for_url

logger = logging.getLogger(__name__)


class Upserter:
    """
    Writes candidates to storage keyed on link, keeping the record count at
    or below max_articles.

    Eviction removes the record with the oldest pub_date, whichever feed or
    category it came from. A feed that dominates volume can therefore push a
    whole category out of the store.
    """
    def __init__(self, store: ArticleStore, cache: Optional[TieredCache] = None,
                 max_articles: Optional[int] = None):
        if max_articles is not None and max_articles < 1:
            raise ValueError(f"max_articles must be at least 1, got {max_articles}")
        self.store = store
        self.cache = cache
        self.max_articles = max_articles
        self._lock = threading.Lock()
        self._count = 0

    def _evict_oldest(self):
        oldest = self.store.find_oldest()
        if oldest is None:
            return
        if self.store.delete(oldest.link):
            self._count -= 1
            logger.debug(f"Evicted {oldest.link} ({oldest.pub_date.isoformat()})")

    def upsert(self, article: Article) -> str:
        """
        Insert or refresh one candidate.

        Must be called with the lock held.

        Returns:
            'inserted' or 'updated'
        """
        existing = self.store.get(article.link)
        if existing is not None:
            self.store.update(article)
            return 'updated'

        if self.max_articles is not None and self._count >= self.max_articles:
            self._evict_oldest()
        self.store.insert(article)
        self._count += 1
        return 'inserted'

    def upsert_all(self, candidates: Iterable[Article]) -> List[Outcome]:
        """
        Write every candidate, absorbing per-item failures.

        Args:
            candidates: Categorized candidates

        Returns:
            One outcome per candidate
        """
        outcomes = []
        with self._lock:
            self._count = self.store.count()
            for article in candidates:
                try:
                    action = self.upsert(article)
                except Exception as e:
                    error = ItemPersistError(article.link, str(e))
                    logger.error(str(error))
                    outcomes.append(Outcome(kind='item', target=article.link, ok=False, error=error))
                    continue
                outcomes.append(Outcome(kind='item', target=article.link, ok=True, action=action))

        if self.cache is not None and any(o.ok for o in outcomes):
            self.cache.invalidate_all()
        return outcomes


class RunState(enum.Enum):
    IDLE = 'idle'
    RUNNING = 'running'


class IngestionCoordinator:
    """
    Runs fetch -> categorize -> upsert over all configured feeds. At most one
    run is active at a time; triggers that arrive mid-run are dropped.
    """
    def __init__(self, feeds: List[str], fetcher: FeedFetcher, upserter: Upserter,
                 max_concurrent: int = MAX_CONCURRENT_REQUESTS):
        self.feeds = [url for url in feeds if url]
        self.fetcher = fetcher
        self.upserter = upserter
        self.max_concurrent = max_concurrent
        self.state = RunState.IDLE
        self._state_lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self.state is RunState.RUNNING

    def _try_start(self) -> bool:
        with self._state_lock:
            if self.state is RunState.RUNNING:
                return False
            self.state = RunState.RUNNING
            return True

    def _finish(self):
        with self._state_lock:
            self.state = RunState.IDLE

    async def _fetch_all(self) -> List[FeedResult]:
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def fetch_with_semaphore(url: str) -> FeedResult:
            async with semaphore:
                try:
                    return await self.fetcher.fetch(url)
                except Exception as e:
                    logger.exception(f"Unexpected error fetching feed {url}: {e}")
                    error = FeedError(url, str(e) or e.__class__.__name__)
                    return FeedResult(url, source_for_url(url), error=error)

        try:
            return await asyncio.gather(*(fetch_with_semaphore(url) for url in self.feeds))
        finally:
            await self.fetcher.close_session()

    async def run(self) -> Optional[RunReport]:
        """
        Perform one ingestion pass.

        Returns:
            The run report, or None when another run was already active
        """
        if not self._try_start():
            logger.info("Ingestion already running, skipping trigger")
            return None

        report = RunReport()
        try:
            logger.info(f"Fetching {len(self.feeds)} feeds...")
            for result in await self._fetch_all():
                report.outcomes.append(Outcome(
                    kind='feed', target=result.url, ok=result.ok,
                    action='fetched' if result.ok else None, error=result.error,
                ))
                report.candidates.extend(result.articles)

            for article in report.candidates:
                article.category = categorize(article.title, article.description)

            report.outcomes.extend(
                await asyncio.to_thread(self.upserter.upsert_all, report.candidates)
            )
            logger.info(
                f"Ingestion finished: {len(report.candidates)} candidates, "
                f"{report.written} written, {len(report.failed_items)} failed items, "
                f"{len(report.failed_feeds)} failed feeds"
            )
        except Exception as e:
            logger.exception(f"Ingestion run aborted: {e}")
        finally:
            self._finish()

        return report

    def run_sync(self) -> Optional[RunReport]:
        """Run one pass from synchronous code."""
        return asyncio.run(self.run())
