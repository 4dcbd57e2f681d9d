from datetime import datetime, timedelta, timezone

import pytest

from gamenews.core.article import Article
from gamenews.core.store import SQLiteArticleStore

BASE_TIME = datetime(2025, 1, 6, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def store(tmp_path):
    store = SQLiteArticleStore(str(tmp_path / "news.db"))
    yield store
    store.close()


@pytest.fixture
def make_article():
    def factory(n: int, **overrides) -> Article:
        fields = {
            "link": f"https://www.ign.com/articles/story-{n}",
            "title": f"Story {n}",
            "description": f"Description {n}",
            "pub_date": BASE_TIME + timedelta(hours=n),
            "source": "ign",
        }
        fields.update(overrides)
        return Article(**fields)

    return factory
