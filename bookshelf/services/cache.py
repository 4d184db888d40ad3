"""
Redis Caching Service

Caches book detail responses in Redis.

Features:
- JSON serialization of cached values
- Per-book invalidation on edit/delete and after trigger writes
- Graceful degradation: with Redis disabled or unreachable every lookup is
  a miss and every write a no-op

The cache is built once in create_app() and reached through the
get_book_cache dependency.

Usage:
    cache = create_book_cache(settings)
    data = cache.get(book_id)
    if data is None:
        data = load_book(...)
        cache.set(book_id, data)
"""

import json
import logging
from typing import Any

import redis
from redis.exceptions import RedisError

from bookshelf.config import Settings

logger = logging.getLogger(__name__)


def make_cache_key(prefix: str, *args) -> str:
    """
    Build a cache key from a prefix and arguments.

    Example:
        >>> make_cache_key("book", "b1")
        'book:b1'
    """
    return ":".join([prefix, *(str(arg) for arg in args if arg is not None)])


class BookCache:
    """Book detail cache over a Redis client (or no client at all)."""

    def __init__(self, client: redis.Redis | None, ttl: int = 300):
        self._client = client
        self.ttl = ttl

    @property
    def enabled(self) -> bool:
        return self._client is not None

    def get(self, book_id: str) -> dict[str, Any] | None:
        if self._client is None:
            return None

        key = make_cache_key("book", book_id)
        try:
            value = self._client.get(key)
        except RedisError as e:
            logger.warning(f"Cache get error for {key}: {e}")
            return None

        if value is None:
            logger.debug(f"Cache MISS: {key}")
            return None

        try:
            logger.debug(f"Cache HIT: {key}")
            return json.loads(value)
        except json.JSONDecodeError as e:
            logger.warning(f"Cache JSON decode error for {key}: {e}")
            return None

    def set(self, book_id: str, value: dict[str, Any]) -> bool:
        if self._client is None:
            return False

        key = make_cache_key("book", book_id)
        try:
            self._client.setex(key, self.ttl, json.dumps(value, default=str))
            logger.debug(f"Cache SET: {key} (TTL: {self.ttl}s)")
            return True
        except RedisError as e:
            logger.warning(f"Cache set error for {key}: {e}")
            return False
        except (TypeError, ValueError) as e:
            logger.warning(f"Cache serialization error for {key}: {e}")
            return False

    def invalidate(self, book_id: str) -> bool:
        if self._client is None:
            return False

        key = make_cache_key("book", book_id)
        try:
            self._client.delete(key)
            logger.debug(f"Cache DELETE: {key}")
            return True
        except RedisError as e:
            logger.warning(f"Cache delete error for {key}: {e}")
            return False

    def stats(self) -> dict:
        """Cache statistics for the health endpoint."""
        if self._client is None:
            return {"status": "disabled"}

        try:
            info = self._client.info("stats")
            return {
                "status": "connected",
                "hits": info.get("keyspace_hits", 0),
                "misses": info.get("keyspace_misses", 0),
                "keys": self._client.dbsize(),
            }
        except RedisError:
            return {"status": "error"}

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
            logger.info("Redis connection closed")


def create_book_cache(settings: Settings) -> BookCache:
    """
    Connect to Redis and wrap the client in a BookCache.

    Returns a disabled cache when caching is turned off or Redis does not
    answer a ping.
    """
    if not settings.cache_enabled:
        logger.info("Book cache disabled by configuration")
        return BookCache(None, settings.cache_ttl_books)

    try:
        client = redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
        )
        client.ping()
    except RedisError as e:
        logger.warning(f"Failed to connect to Redis: {e}. Caching disabled.")
        return BookCache(None, settings.cache_ttl_books)

    logger.info("Successfully connected to Redis")
    return BookCache(client, settings.cache_ttl_books)
