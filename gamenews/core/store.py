"""
Article storage for GameNews.
"""
import re
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Iterator, List, Optional, Protocol, Sequence

from gamenews.core.article import Article, format_timestamp, parse_timestamp

COLUMNS = ("link", "title", "description", "pub_date", "image", "author", "category", "source")


@dataclass
class ArticleFilter:
    """
    Storage-level filter. Every field is optional; an empty filter matches
    every record.
    """
    category: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    exclude_sources: Sequence[str] = field(default_factory=tuple)


class ArticleStore(Protocol):
    """What the ingestion and query paths need from a document store."""

    def get(self, link: str) -> Optional[Article]: ...
    def insert(self, article: Article) -> None: ...
    def update(self, article: Article) -> None: ...
    def delete(self, link: str) -> bool: ...
    def find_oldest(self) -> Optional[Article]: ...
    def find(self, filters: Optional[ArticleFilter] = None, skip: int = 0,
             limit: Optional[int] = None) -> List[Article]: ...
    def count(self, filters: Optional[ArticleFilter] = None) -> int: ...
    def search(self, text: str) -> List[Article]: ...


def _regexp(pattern: str, value: Optional[str]) -> bool:
    return value is not None and re.search(pattern, value) is not None


class SQLiteArticleStore:
    """
    Stores articles in one SQLite table keyed by link.

    A single connection is shared by every thread using the store, so access
    is serialized through a lock.
    """
    def __init__(self, path: str = "gamenews.db"):
        self.path = path
        if path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.create_function("REGEXP", 2, _regexp)
        self._init_db()

    def _init_db(self):
        """Initialize the articles table."""
        with self._transaction() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS articles (
                    link TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    description TEXT,
                    pub_date TEXT NOT NULL,
                    image TEXT,
                    author TEXT,
                    category TEXT NOT NULL,
                    source TEXT
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_articles_pub_date ON articles (pub_date)")

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            with self._conn:
                yield self._conn

    def close(self):
        with self._lock:
            self._conn.close()

    @staticmethod
    def _row_to_article(row: sqlite3.Row) -> Article:
        return Article(
            link=row["link"],
            title=row["title"],
            description=row["description"] or "",
            pub_date=parse_timestamp(row["pub_date"]),
            image=row["image"],
            author=row["author"],
            category=row["category"],
            source=row["source"],
        )

    @staticmethod
    def _values(article: Article) -> tuple:
        return (
            article.link,
            article.title,
            article.description,
            format_timestamp(article.pub_date),
            article.image,
            article.author,
            article.category,
            article.source,
        )

    @staticmethod
    def _where(filters: Optional[ArticleFilter]) -> tuple:
        if filters is None:
            return "", []

        clauses, params = [], []
        if filters.category:
            clauses.append("category = ?")
            params.append(filters.category)
        if filters.date_from is not None:
            clauses.append("pub_date >= ?")
            params.append(format_timestamp(filters.date_from))
        if filters.date_to is not None:
            clauses.append("pub_date <= ?")
            params.append(format_timestamp(filters.date_to))
        if filters.exclude_sources:
            placeholders = ", ".join("?" for _ in filters.exclude_sources)
            clauses.append(f"source NOT IN ({placeholders})")
            params.extend(filters.exclude_sources)

        if not clauses:
            return "", []
        return " WHERE " + " AND ".join(clauses), params

    def get(self, link: str) -> Optional[Article]:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM articles WHERE link = ?", (link,)).fetchone()
        return self._row_to_article(row) if row else None

    def insert(self, article: Article) -> None:
        """Insert a new record; raises sqlite3.IntegrityError on a duplicate link."""
        with self._transaction() as conn:
            conn.execute(
                f"INSERT INTO articles ({', '.join(COLUMNS)}) VALUES ({', '.join('?' for _ in COLUMNS)})",
                self._values(article),
            )

    def update(self, article: Article) -> None:
        """Overwrite every mutable field of the record with the same link."""
        values = self._values(article)
        with self._transaction() as conn:
            conn.execute(
                """
                UPDATE articles
                SET title = ?, description = ?, pub_date = ?, image = ?,
                    author = ?, category = ?, source = ?
                WHERE link = ?
                """,
                values[1:] + (values[0],),
            )

    def delete(self, link: str) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM articles WHERE link = ?", (link,))
        return cursor.rowcount > 0

    def find_oldest(self) -> Optional[Article]:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM articles ORDER BY pub_date ASC, link ASC LIMIT 1"
            ).fetchone()
        return self._row_to_article(row) if row else None

    def find(self, filters: Optional[ArticleFilter] = None, skip: int = 0,
             limit: Optional[int] = None) -> List[Article]:
        """
        Matching records, newest first.

        Args:
            filters: Optional filter
            skip: Number of records to skip
            limit: Maximum number of records to return (None = all)

        Returns:
            List of articles
        """
        where, params = self._where(filters)
        sql = f"SELECT * FROM articles{where} ORDER BY pub_date DESC, link ASC LIMIT ? OFFSET ?"
        params += [-1 if limit is None else limit, skip]
        with self._transaction() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._row_to_article(row) for row in rows]

    def count(self, filters: Optional[ArticleFilter] = None) -> int:
        where, params = self._where(filters)
        with self._transaction() as conn:
            return conn.execute(f"SELECT COUNT(*) FROM articles{where}", params).fetchone()[0]

    def search(self, text: str) -> List[Article]:
        """
        Case-insensitive substring match on title or description.

        Args:
            text: Literal text to look for

        Returns:
            Matching articles, newest first
        """
        pattern = "(?i)" + re.escape(text)
        with self._transaction() as conn:
            rows = conn.execute(
                """
                SELECT * FROM articles
                WHERE title REGEXP ? OR description REGEXP ?
                ORDER BY pub_date DESC
                """,
                (pattern, pattern),
            ).fetchall()
        return [self._row_to_article(row) for row in rows]
