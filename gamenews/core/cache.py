"""
Cache management for GameNews query results.
"""
import json
import logging
import threading
import time
from typing import Any, Dict, Optional, Tuple

import redis

logger = logging.getLogger(__name__)

KEY_PREFIX = "news:"
# Outside KEY_PREFIX so the invalidation purge never resets it
GENERATION_KEY = "news-generation"
DEFAULT_TTL = 60  # seconds
DEFAULT_REDIS_TIMEOUT = 1.0  # seconds


class TieredCache:
    """
    Read-through cache for paginated query responses.

    The first tier is an in-process dict; the optional second tier is Redis,
    shared between processes. Every Redis failure is logged and treated as a
    miss, so callers always fall through to storage.

    With Redis configured, memory entries are tagged with the shared
    generation counter they were stored under. invalidate_all bumps the
    counter, so every process drops its memory copies on the next read.
    """
    def __init__(self, ttl: float = DEFAULT_TTL, redis_client: Optional[redis.Redis] = None):
        self.ttl = ttl
        self.redis = redis_client
        self._entries: Dict[str, Tuple[float, Optional[int], Any]] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_url(cls, redis_url: Optional[str], ttl: float = DEFAULT_TTL,
                 timeout: float = DEFAULT_REDIS_TIMEOUT) -> "TieredCache":
        """
        Build a cache, with a Redis tier when a URL is configured.

        Args:
            redis_url: e.g. redis://localhost:6379/0, or None for memory only
            ttl: Entry lifetime in seconds
            timeout: Connect and read timeout for Redis, in seconds
        """
        client = None
        if redis_url:
            client = redis.Redis.from_url(
                redis_url, socket_connect_timeout=timeout, socket_timeout=timeout,
            )
        return cls(ttl=ttl, redis_client=client)

    def _generation(self) -> Optional[int]:
        """Current shared generation, or None without a reachable Redis."""
        if self.redis is None:
            return None
        try:
            return int(self.redis.get(GENERATION_KEY) or 0)
        except redis.RedisError as e:
            logger.warning(f"Redis unavailable on generation read: {e}")
            return None

    def get(self, key: str) -> Optional[Any]:
        """
        Get a cached value if present and fresh.

        Args:
            key: Cache key

        Returns:
            The cached value, or None on a miss
        """
        now = time.monotonic()
        generation = self._generation()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                expires_at, stored_generation, value = entry
                if now < expires_at and stored_generation == generation:
                    return value
                # Expired or invalidated elsewhere
                del self._entries[key]

        if self.redis is None:
            return None

        try:
            raw = self.redis.get(key)
        except redis.RedisError as e:
            logger.warning(f"Redis unavailable on get {key}: {e}")
            return None
        if raw is None:
            return None

        value = json.loads(raw)
        try:
            remaining = self.redis.ttl(key)
        except redis.RedisError:
            remaining = None
        ttl = remaining if remaining and remaining > 0 else self.ttl
        with self._lock:
            self._entries[key] = (now + ttl, generation, value)
        return value

    def put(self, key: str, value: Any, ttl: Optional[float] = None):
        """
        Cache a value.

        Args:
            key: Cache key
            value: JSON-serializable payload
            ttl: Lifetime in seconds, defaults to the cache's TTL
        """
        ttl = self.ttl if ttl is None else ttl
        generation = self._generation()
        with self._lock:
            self._entries[key] = (time.monotonic() + ttl, generation, value)

        if self.redis is None:
            return
        try:
            self.redis.set(key, json.dumps(value), ex=max(1, int(ttl)))
        except redis.RedisError as e:
            logger.warning(f"Redis unavailable on put {key}: {e}")

    def invalidate_all(self) -> int:
        """
        Drop every query-result entry from both tiers, and from the memory
        tier of every other process sharing the Redis tier.

        Returns:
            Number of entries removed from the local memory tier
        """
        with self._lock:
            removed = [key for key in self._entries if key.startswith(KEY_PREFIX)]
            for key in removed:
                del self._entries[key]

        if self.redis is not None:
            try:
                self.redis.incr(GENERATION_KEY)
                keys = list(self.redis.scan_iter(match=f"{KEY_PREFIX}*"))
                if keys:
                    self.redis.delete(*keys)
            except redis.RedisError as e:
                logger.warning(f"Redis unavailable on invalidate: {e}")

        logger.debug(f"Invalidated {len(removed)} cached query results")
        return len(removed)
