import asyncio

import aiohttp
import pytest

from gamenews.core.cache import TieredCache
from gamenews.core.ingest import IngestionCoordinator, RunState, Upserter
from gamenews.exceptions import ItemPersistError
from gamenews.fetchers.rss import FeedFetcher

from tests.test_rss import FEED_URL, RSS

BROKEN_URL = "https://www.polygon.com/rss/index.xml"


def test_upsert_is_idempotent(store, make_article):
    upserter = Upserter(store)
    first = make_article(1, title="Old title", description="Old", category="update")
    second = make_article(1, title="New title", description="New", category="rumors")

    outcomes = upserter.upsert_all([first]) + upserter.upsert_all([second])

    assert [o.action for o in outcomes] == ["inserted", "updated"]
    assert store.count() == 1
    stored = store.get(first.link)
    assert stored.title == "New title"
    assert stored.description == "New"
    assert stored.category == "rumors"


def test_duplicate_links_in_one_batch(store, make_article):
    upserter = Upserter(store, max_articles=10)

    upserter.upsert_all([make_article(1), make_article(1, title="Again")])

    assert store.count() == 1
    assert store.get(make_article(1).link).title == "Again"


def test_capacity_evicts_oldest_pub_date(store, make_article):
    upserter = Upserter(store, max_articles=5)
    upserter.upsert_all([make_article(n) for n in range(5)])
    oldest = make_article(0)

    upserter.upsert_all([make_article(100)])

    assert store.count() == 5
    assert store.get(oldest.link) is None
    assert store.get(make_article(100).link) is not None


def test_capacity_ignores_write_recency(store, make_article):
    upserter = Upserter(store, max_articles=3)
    upserter.upsert_all([make_article(n) for n in range(3)])
    # Refreshing the oldest record does not protect it
    upserter.upsert_all([make_article(0, title="Refreshed")])

    upserter.upsert_all([make_article(50)])

    assert store.get(make_article(0).link) is None
    assert store.count() == 3


def test_capacity_never_exceeded(store, make_article):
    upserter = Upserter(store, max_articles=4)

    for start in range(0, 30, 3):
        upserter.upsert_all([make_article(n) for n in (start, start + 1, start + 2, start)])
        assert store.count() <= 4

    remaining = sorted(a.pub_date for a in store.find())
    assert remaining == [make_article(n).pub_date for n in (26, 27, 28, 29)]


def test_updates_do_not_evict_at_ceiling(store, make_article):
    upserter = Upserter(store, max_articles=3)
    upserter.upsert_all([make_article(n) for n in range(3)])

    upserter.upsert_all([make_article(n, title="Refreshed") for n in range(3)])

    assert store.count() == 3
    assert all(a.title == "Refreshed" for a in store.find())


@pytest.mark.parametrize("ceiling", [0, -5])
def test_ceiling_below_one_is_rejected(store, ceiling):
    with pytest.raises(ValueError, match="max_articles"):
        Upserter(store, max_articles=ceiling)


class FlakyStore:
    """Delegates to a real store but fails inserts for one link."""

    def __init__(self, store, bad_link):
        self.store = store
        self.bad_link = bad_link

    def __getattr__(self, name):
        return getattr(self.store, name)

    def insert(self, article):
        if article.link == self.bad_link:
            raise RuntimeError("disk full")
        self.store.insert(article)


def test_item_failure_does_not_stop_batch(store, make_article):
    bad = make_article(2)
    upserter = Upserter(FlakyStore(store, bad.link))

    outcomes = upserter.upsert_all([make_article(1), bad, make_article(3)])

    assert [o.ok for o in outcomes] == [True, False, True]
    assert isinstance(outcomes[1].error, ItemPersistError)
    assert store.count() == 2


def test_cache_invalidated_after_write(store, make_article):
    cache = TieredCache(ttl=60)
    cache.put("news:1:10:*:*:*:*:other", {"stale": True})
    upserter = Upserter(store, cache)

    upserter.upsert_all([make_article(1)])

    assert cache.get("news:1:10:*:*:*:*:other") is None


def test_cache_kept_when_nothing_written(store, make_article):
    cache = TieredCache(ttl=60)
    cache.put("news:1:10:*:*:*:*:other", {"stale": True})
    bad = make_article(1)
    upserter = Upserter(FlakyStore(store, bad.link), cache)

    upserter.upsert_all([bad])

    assert cache.get("news:1:10:*:*:*:*:other") == {"stale": True}


class StaticFetcher(FeedFetcher):
    def __init__(self, bodies, gate=None):
        super().__init__(timeout=1)
        self.bodies = bodies
        self.gate = gate
        self.calls = []

    async def download(self, url):
        self.calls.append(url)
        if self.gate is not None:
            await self.gate.wait()
        body = self.bodies[url]
        if isinstance(body, BaseException):
            raise body
        return body


def make_coordinator(store, bodies, gate=None, cache=None):
    fetcher = StaticFetcher(bodies, gate)
    return IngestionCoordinator(list(bodies), fetcher, Upserter(store, cache, max_articles=100))


def test_run_survives_failed_feed(store):
    coordinator = make_coordinator(store, {
        BROKEN_URL: aiohttp.ClientConnectionError("refused"),
        FEED_URL: RSS,
    })

    report = asyncio.run(coordinator.run())

    assert len(report.candidates) == 2
    assert [o.target for o in report.failed_feeds] == [BROKEN_URL]
    assert report.written == 2
    assert store.count() == 2
    assert coordinator.state is RunState.IDLE


def test_unexpected_feed_error_keeps_other_feeds(store):
    coordinator = make_coordinator(store, {
        BROKEN_URL: RuntimeError("decoder exploded"),
        FEED_URL: RSS,
    })

    report = asyncio.run(coordinator.run())

    assert [o.target for o in report.failed_feeds] == [BROKEN_URL]
    assert "decoder exploded" in str(report.failed_feeds[0].error)
    assert report.written == 2
    assert coordinator.state is RunState.IDLE


def test_run_categorizes_candidates(store):
    coordinator = make_coordinator(store, {FEED_URL: RSS})

    asyncio.run(coordinator.run())

    assert store.get("https://www.ign.com/articles/zelda").category == "rumors"
    assert store.get("https://www.ign.com/articles/poll").category == "polls"


def test_run_skips_empty_feed_entries(store):
    fetcher = StaticFetcher({FEED_URL: RSS})
    coordinator = IngestionCoordinator(["", None, FEED_URL], fetcher, Upserter(store))

    asyncio.run(coordinator.run())

    assert fetcher.calls == [FEED_URL]


def test_concurrent_trigger_is_dropped(store):
    async def scenario():
        gate = asyncio.Event()
        coordinator = make_coordinator(store, {FEED_URL: RSS}, gate=gate)
        first = asyncio.ensure_future(coordinator.run())
        await asyncio.sleep(0)
        assert coordinator.running
        second = await coordinator.run()
        gate.set()
        return await first, second, coordinator

    first, second, coordinator = asyncio.run(scenario())

    assert second is None
    assert first is not None and first.written == 2
    assert coordinator.state is RunState.IDLE


class ExplodingUpserter(Upserter):
    def upsert_all(self, candidates):
        raise RuntimeError("boom")


def test_state_reset_after_unexpected_failure(store):
    coordinator = IngestionCoordinator(
        [FEED_URL], StaticFetcher({FEED_URL: RSS}), ExplodingUpserter(store),
    )

    report = asyncio.run(coordinator.run())

    assert report is not None
    assert coordinator.state is RunState.IDLE
    assert asyncio.run(coordinator.run()) is not None
