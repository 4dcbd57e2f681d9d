"""
Article body extraction for GameNews.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union
from urllib.parse import urlparse

import aiohttp
from bs4 import BeautifulSoup, Tag

from gamenews.core.article import ContentBlock, MISSING_CONTENT
from gamenews.exceptions import ExtractionFetchError
from gamenews.utils.http import REQUEST_TIMEOUT, browser_headers, fetch_bytes
from gamenews.utils.nlp import UNKNOWN_SOURCE, source_for_url

logger = logging.getLogger(__name__)

BLOCK_TAGS = ('table', 'h2', 'h3', 'ol', 'ul', 'video')

NOISE_CLASSES = (
    'ad-block', 'sponsored', 'affiliate',
    'newsletter-form__wrapper', 'newsletter-form__wrapper--inbodyContent',
    'slice-container', 'slice-author-bio', 'authorBio-swuqazpYSZeXGJMSzXNqBJ',
    'slice-container-authorBio', 'person-wrapper',
    'person-nBZd4MkT7sYaFmc8BsVcQ5-fSwi155TTodmvyQm7jW5mmjqEoPoLFik',
    'slice-container-person', 'display-card-main-content-wrapper',
)

NOISE_TEXTS = (
    'The biggest gaming news, reviews and hardware deals',
    'Keep up to date with the most important stories and the best deals, as picked by the PC Gamer team',
    'Please enable JavaScript to see our live coverage of this event.',
    'You must confirm your public display name before commenting',
    'Please logout and then login again, you will then be prompted to enter your display name.',
)


def _scoped(containers: Tuple[str, ...], tags: Tuple[str, ...]) -> str:
    return ', '.join(f'{container} {tag}' for tag in tags for container in containers)


GENERIC_SELECTOR = _scoped(
    ('article', '.content', '.entry-content', '.post-content', '.article-body'),
    ('p', 'h2', 'h3', 'table', 'ol', 'ul'),
)

_NOISE_NOT = ', '.join(f'.{cls}' for cls in NOISE_CLASSES)


@dataclass(frozen=True)
class SelectorRule:
    """
    Where the article body lives on one site.
    """
    primary: str
    fallback: str = GENERIC_SELECTOR
    noise_classes: Tuple[str, ...] = NOISE_CLASSES
    noise_texts: Tuple[str, ...] = NOISE_TEXTS


SELECTOR_RULES: Dict[str, SelectorRule] = {
    'ign': SelectorRule(
        '.article-content p:not(.advertisement), .article-content h2, .article-content h3, '
        '.article-content table, .article-content ol, .article-content ul'
    ),
    'gamespot': SelectorRule(
        '.article-body p:not(.ad, .sponsored), .article-body h2, .article-body h3, '
        '.article-body table, .article-body ol, .article-body ul'
    ),
    'pcgamer': SelectorRule(
        f'.content-wrapper p:not({_NOISE_NOT}, figcaption, figure, aside), '
        '.content-wrapper h2:not(:has(p, a, span)), .content-wrapper h3, '
        '.content-wrapper table, .content-wrapper ol, .content-wrapper ul'
    ),
    'gamerant': SelectorRule('.article-body *, .content-block-regular *, video'),
    'thegamer': SelectorRule(
        '.content p:not(.ad, .sponsored), .content h2, .content h3, .content table, '
        '.content ol, .content ul, .content-block-regular p:not(.ad, .sponsored), '
        '.content-block-regular h2, .content-block-regular h3, .content-block-regular table, '
        '.content-block-regular ol, .content-block-regular ul'
    ),
    'eurogamer': SelectorRule('.article_body *:not(figure, aside)'),
    'polygon': SelectorRule('.content-block-regular *'),
    UNKNOWN_SOURCE: SelectorRule(
        f'article p:not({_NOISE_NOT}), article h2, article h3, article table, article ol, '
        'article ul, .content p, .content h2, .content h3, .content table, .content ol, .content ul'
    ),
}


def rule_for_url(url: str) -> SelectorRule:
    """Selector rule for the site hosting url."""
    source = source_for_url(urlparse(url).netloc)
    return SELECTOR_RULES.get(source, SELECTOR_RULES[UNKNOWN_SOURCE])


def _has_noise_class(element: Tag, noise_classes: Tuple[str, ...]) -> bool:
    for node in (element, *element.parents):
        classes = node.get('class') or ()
        if any(cls in noise_classes for cls in classes):
            return True
    return False


def extract_blocks(url: str, html: Union[bytes, str]) -> List[ContentBlock]:
    """
    Pull the article body out of a page as ordered content blocks.

    Paragraphs are merged into text blocks separated by blank lines; tables,
    headings, lists and videos are kept as markup and break the running text.

    Args:
        url: Page URL, used to pick the site's selector rule
        html: Page markup; bytes are decoded with BeautifulSoup's charset detection

    Returns:
        Non-empty list of content blocks
    """
    soup = BeautifulSoup(html, 'html.parser')
    for aside in soup.find_all('aside'):
        aside.decompose()

    rule = rule_for_url(url)
    elements = soup.select(rule.primary)
    if not elements:
        logger.debug(f"No match for site selector on {url}, using fallback")
        elements = soup.select(rule.fallback)

    blocks: List[ContentBlock] = []
    paragraphs: List[str] = []

    def flush():
        if paragraphs:
            blocks.append(ContentBlock('text', '\n\n'.join(paragraphs)))
            paragraphs.clear()

    for element in elements:
        text = element.get_text().strip()
        if not text:
            continue
        if _has_noise_class(element, rule.noise_classes) or text in rule.noise_texts:
            continue

        if element.name == 'p':
            if element.find_parent('table') is None:
                paragraphs.append(text)
        elif element.name in BLOCK_TAGS:
            flush()
            blocks.append(ContentBlock('html', str(element)))

    flush()
    if not blocks:
        blocks.append(ContentBlock('text', MISSING_CONTENT))
    return blocks


class ArticleExtractor:
    """
    Fetches article pages and extracts their readable body.
    """
    def __init__(self, timeout: float = REQUEST_TIMEOUT, user_agent: Optional[str] = None):
        self.timeout = timeout
        self.headers = browser_headers(user_agent)

    async def fetch_page(self, url: str) -> bytes:
        """
        Fetch a page once, without retries.

        Raises:
            ExtractionFetchError: on network errors, bad statuses and timeouts
        """
        try:
            async with aiohttp.ClientSession(headers=self.headers) as session:
                return await fetch_bytes(session, url, self.timeout)
        except asyncio.TimeoutError as e:
            raise ExtractionFetchError(url, f"timed out after {self.timeout}s") from e
        except aiohttp.ClientResponseError as e:
            raise ExtractionFetchError(url, e.message, status=e.status) from e
        except aiohttp.ClientError as e:
            raise ExtractionFetchError(url, str(e) or e.__class__.__name__) from e

    async def extract(self, url: str) -> List[ContentBlock]:
        """
        Fetch an article and return its body as content blocks.

        Args:
            url: The article URL

        Returns:
            Non-empty list of content blocks
        """
        html = await self.fetch_page(url)
        try:
            blocks = extract_blocks(url, html)
        except UnicodeError as e:
            raise ExtractionFetchError(url, f"undecodable page: {e}") from e
        logger.info(f"Extracted {len(blocks)} blocks from {url}")
        return blocks
