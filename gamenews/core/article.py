"""
Article data model for GameNews.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

PLACEHOLDER_IMAGE = "https://via.placeholder.com/150"
UNKNOWN_AUTHOR = "Unknown"

CATEGORIES = ("rumors", "recommendations", "polls", "soon", "update")
DEFAULT_CATEGORY = "update"

MISSING_CONTENT = "Content missing."


def to_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime, treating naive values as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Fixed-width ISO-8601 form, so stored timestamps sort lexically."""
    return to_utc(value).isoformat(timespec="milliseconds")


def parse_timestamp(value: str) -> datetime:
    return to_utc(datetime.fromisoformat(value))


@dataclass
class Article:
    """
    A normalized feed item. Before it is stored it is a candidate; once stored
    it is identified by its link.
    """
    link: str
    title: str
    pub_date: datetime
    description: str = ""
    image: str = PLACEHOLDER_IMAGE
    author: str = UNKNOWN_AUTHOR
    category: str = DEFAULT_CATEGORY
    source: str = "unknown"

    def __post_init__(self):
        self.pub_date = to_utc(self.pub_date)
        if self.category not in CATEGORIES:
            raise ValueError(f"Unknown category: {self.category}")

    def to_dict(self) -> Dict:
        return {
            "title": self.title,
            "description": self.description,
            "link": self.link,
            "pubDate": format_timestamp(self.pub_date),
            "image": self.image,
            "author": self.author,
            "category": self.category,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "Article":
        pub_date = data["pubDate"]
        if isinstance(pub_date, str):
            pub_date = parse_timestamp(pub_date)
        return cls(
            link=data["link"],
            title=data["title"],
            pub_date=pub_date,
            description=data.get("description") or "",
            image=data.get("image") or PLACEHOLDER_IMAGE,
            author=data.get("author") or UNKNOWN_AUTHOR,
            category=data.get("category") or DEFAULT_CATEGORY,
            source=data.get("source") or "unknown",
        )


@dataclass
class ContentBlock:
    """One unit of extracted article body: plain text or serialized markup."""
    type: str
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"type": self.type, "content": self.content}


@dataclass
class Outcome:
    """
    Result of one unit of ingestion work (a feed fetch or a candidate write).
    """
    kind: str  # "feed" or "item"
    target: str
    ok: bool
    action: Optional[str] = None  # "inserted", "updated", "fetched"
    error: Optional[Exception] = None


@dataclass
class RunReport:
    """
    Everything one ingestion pass produced. Not persisted.
    """
    candidates: List[Article] = field(default_factory=list)
    outcomes: List[Outcome] = field(default_factory=list)

    @property
    def failed_feeds(self) -> List[Outcome]:
        return [o for o in self.outcomes if o.kind == "feed" and not o.ok]

    @property
    def failed_items(self) -> List[Outcome]:
        return [o for o in self.outcomes if o.kind == "item" and not o.ok]

    @property
    def written(self) -> int:
        return sum(1 for o in self.outcomes if o.kind == "item" and o.ok)
