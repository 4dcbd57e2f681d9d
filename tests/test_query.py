from datetime import datetime, timezone

import pytest

from gamenews.core.cache import TieredCache
from gamenews.core.ingest import Upserter
from gamenews.core.query import QueryService, day_bounds, region_for_country
from gamenews.core.store import ArticleFilter
from gamenews.exceptions import QueryError


@pytest.fixture
def cache():
    return TieredCache(ttl=60)


@pytest.fixture
def service(store, cache):
    return QueryService(store, cache)


def seed(store, articles):
    for article in articles:
        store.insert(article)


def test_pagination_scenario(store, service, make_article):
    seed(store, [make_article(n, category="rumors") for n in range(25)])
    seed(store, [make_article(100 + n, category="update") for n in range(5)])

    response = service.list(page=2, limit=10, category="rumors")

    assert response["success"] is True
    assert len(response["data"]) == 10
    assert response["pagination"] == {"current": 2, "total": 25, "hasMore": True}
    assert all(item["category"] == "rumors" for item in response["data"])


@pytest.mark.parametrize("page,limit,has_more,size", [
    (1, 10, True, 10),
    (3, 10, False, 5),
    (4, 10, False, 0),
    (5, 5, False, 5),
    (1, 25, False, 25),
])
def test_has_more(store, service, make_article, page, limit, has_more, size):
    seed(store, [make_article(n) for n in range(25)])

    response = service.list(page=page, limit=limit)

    assert response["pagination"]["hasMore"] is has_more
    assert len(response["data"]) == size


def test_results_sorted_newest_first(store, service, make_article):
    seed(store, [make_article(n) for n in (3, 1, 2)])

    response = service.list(page=1, limit=10)

    assert [item["title"] for item in response["data"]] == ["Story 3", "Story 2", "Story 1"]


def test_day_bounds():
    start, end = day_bounds("2025-01-06")

    assert start == datetime(2025, 1, 6, 0, 0, 0, 0, tzinfo=timezone.utc)
    assert end == datetime(2025, 1, 6, 23, 59, 59, 999000, tzinfo=timezone.utc)


def test_date_takes_precedence_over_range(service):
    filters = service.build_filter(date="2025-01-06", date_from="2020-01-01", date_to="2030-01-01")

    assert filters.date_from == datetime(2025, 1, 6, tzinfo=timezone.utc)
    assert filters.date_to.date().isoformat() == "2025-01-06"


def test_open_range(service):
    filters = service.build_filter(date_from="2025-01-06T15:00:00Z")

    assert filters.date_from == datetime(2025, 1, 6, 15, tzinfo=timezone.utc)
    assert filters.date_to is None


def test_range_filter(store, service, make_article):
    # BASE_TIME is 2025-01-06 12:00 UTC, story n is n hours later
    seed(store, [make_article(n) for n in range(0, 48, 6)])

    response = service.list(date_from="2025-01-07T00:00:00Z", date_to="2025-01-07T12:00:00Z")

    assert [item["title"] for item in response["data"]] == ["Story 24", "Story 18", "Story 12"]


def test_single_day_filter(store, service, make_article):
    seed(store, [make_article(n) for n in range(0, 48, 6)])

    response = service.list(date="2025-01-06")

    assert response["pagination"]["total"] == 2


def test_region_hides_restricted_sources(store, service, make_article):
    seed(store, [
        make_article(1, source="ign"),
        make_article(2, source="polygon"),
        make_article(3, source="gamerant"),
        make_article(4, source="thegamer"),
    ])

    outside = service.list(region="other")
    inside = service.list(region="eu")

    assert [item["source"] for item in outside["data"]] == ["ign"]
    assert inside["pagination"]["total"] == 4


def test_region_for_country():
    eu = ["DE", "FR"]
    assert region_for_country("de", eu) == "eu"
    assert region_for_country("US", eu) == "other"
    assert region_for_country(None, eu) == "other"


def test_cache_hit_returns_cached_payload(store, service, cache, make_article):
    seed(store, [make_article(1)])
    first = service.list(page=1, limit=10)

    store.insert(make_article(2))  # bypasses the upserter, so no invalidation
    second = service.list(page=1, limit=10)

    assert second == first
    assert second["pagination"]["total"] == 1


def test_cache_coherent_after_ingestion(store, service, cache, make_article):
    seed(store, [make_article(n, category="rumors") for n in range(3)])
    before = service.list(page=1, limit=10, category="rumors")
    Upserter(store, cache).upsert_all([make_article(99, category="rumors")])

    after = service.list(page=1, limit=10, category="rumors")

    assert before["pagination"]["total"] == 3
    assert after["pagination"]["total"] == 4
    assert after["data"][0]["link"] == make_article(99).link


def test_cache_key_canonical():
    key = QueryService.cache_key(1, 10, None, "2025-01-06", "2020-01-01", None, "us")

    assert key == "news:1:10:*:2025-01-06:*:*:other"
    assert QueryService.cache_key(1, 10, region="eu") != QueryService.cache_key(1, 10)


def test_search_matches_description_ignoring_case(store, service, make_article):
    seed(store, [
        make_article(1, title="Remake news", description="A new Dragon Quest remake"),
        make_article(2, title="DRAGONS everywhere", description=""),
        make_article(3, title="Nothing", description="Unrelated"),
    ])

    response = service.search("dragon")

    assert response["success"] is True
    assert [item["title"] for item in response["data"]] == ["DRAGONS everywhere", "Remake news"]
    assert "pagination" not in response


def test_search_treats_query_literally(store, service, make_article):
    seed(store, [make_article(1, title="Is C++ (still) fun?")])

    assert len(service.search("c++ (still)")["data"]) == 1
    assert service.search(".*")["data"] == []


def test_by_date(store, service, make_article):
    seed(store, [make_article(n) for n in range(0, 48, 6)])

    response = service.by_date("2025-01-07")

    assert [item["title"] for item in response["data"]] == ["Story 30", "Story 24", "Story 18", "Story 12"]


class BrokenStore:
    def find(self, *args, **kwargs):
        raise RuntimeError("database is locked")

    count = search = find


def test_storage_failure_raises_query_error():
    service = QueryService(BrokenStore(), TieredCache())

    with pytest.raises(QueryError):
        service.list()
    with pytest.raises(QueryError):
        service.search("x")
    with pytest.raises(QueryError):
        service.by_date("2025-01-06")


def test_store_filter_combination(store, make_article):
    seed(store, [make_article(1, category="polls", source="polygon"), make_article(2, category="polls")])

    filters = ArticleFilter(category="polls", exclude_sources=("polygon",))

    assert store.count(filters) == 1
    assert store.count() == 2
