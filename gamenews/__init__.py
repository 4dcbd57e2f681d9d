"""
GameNews - Gaming News Aggregator

Pulls gaming-news articles from a fixed set of RSS/Atom feeds into a bounded,
deduplicated store, serves cached filtered reads over it, and extracts the
readable body of single article pages on demand.
"""

__version__ = "1.0.0"
