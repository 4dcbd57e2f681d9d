"""
Rule-based text helpers: feed description cleanup and category assignment.
"""
import re
from typing import Dict, List, Tuple

from bs4 import BeautifulSoup

from gamenews.core.article import DEFAULT_CATEGORY

# Ordered: the first category with a hit wins. Keywords are substrings, so
# "announc" covers announce, announced and announcement.
CATEGORY_KEYWORDS: List[Tuple[str, List[str]]] = [
    ('rumors', ['rumor', 'слух']),
    ('soon', ['announc', 'анонс']),
    ('polls', ['poll', 'опрос']),
    ('recommendations', ['recommend', 'рекоменд']),
]

# Checked in order; the first keyword found in the URL names the source.
SOURCE_KEYWORDS: Dict[str, str] = {
    'ign': 'ign',
    'gamespot': 'gamespot',
    'polygon': 'polygon',
    'eurogamer': 'eurogamer',
    'pcgamer': 'pcgamer',
    'gamerant': 'gamerant',
    'thegamer': 'thegamer',
}

UNKNOWN_SOURCE = 'unknown'


def categorize(title: str, description: str = "") -> str:
    """
    Assign one category to an article.

    The title is checked against every keyword set before the description is
    looked at, so a title hit always beats a description hit.

    Args:
        title: Article title
        description: Article description

    Returns:
        Category label, 'update' when nothing matches
    """
    for text in (title or "", description or ""):
        lowered = text.lower()
        for category, keywords in CATEGORY_KEYWORDS:
            if any(keyword in lowered for keyword in keywords):
                return category
    return DEFAULT_CATEGORY


def source_for_url(url: str) -> str:
    """
    Map a feed or article URL to a source id.

    Args:
        url: Any URL belonging to a known site

    Returns:
        Source id, or 'unknown'
    """
    lowered = (url or "").lower()
    for keyword, source in SOURCE_KEYWORDS.items():
        if keyword in lowered:
            return source
    return UNKNOWN_SOURCE


def clean_description(text: str) -> str:
    """
    Turn a feed summary into a single line of plain text.

    Markup is dropped, runs of blank lines are collapsed and the remaining
    newlines become spaces.
    """
    if not text:
        return ""
    if '<' in text:
        text = BeautifulSoup(text, 'html.parser').get_text()
    text = re.sub(r'\n\s*\n', '\n', text)
    return text.replace('\n', ' ').strip()
