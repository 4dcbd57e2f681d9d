"""
HTTP utilities for GameNews.
"""
import logging
from typing import Dict, Optional

import aiohttp
import async_timeout

# Configure logging
logger = logging.getLogger(__name__)

MAX_CONCURRENT_REQUESTS = 5
REQUEST_TIMEOUT = 30  # seconds

USER_AGENT = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36'
)


def browser_headers(user_agent: Optional[str] = None) -> Dict[str, str]:
    """
    Request headers that look like a desktop browser.

    Args:
        user_agent: Override for the User-Agent header
    """
    return {
        'User-Agent': user_agent or USER_AGENT,
        'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
        'Accept-Language': 'en-US,en;q=0.5',
    }


async def fetch_bytes(session: aiohttp.ClientSession, url: str, timeout: float = REQUEST_TIMEOUT) -> bytes:
    """
    Fetch a URL and return the raw body, leaving decoding to the caller.

    Args:
        session: Open aiohttp session
        url: The URL to fetch
        timeout: Upper bound in seconds for the whole request

    Raises:
        aiohttp.ClientError: on connection failures and non-2xx statuses
        asyncio.TimeoutError: when the timeout elapses
    """
    async with async_timeout.timeout(timeout):
        async with session.get(url) as response:
            response.raise_for_status()
            return await response.read()
