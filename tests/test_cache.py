"""
Tests for the book detail cache and the health endpoint

The Redis client is a MagicMock; errors from it must never reach callers.
"""

import json
from unittest.mock import MagicMock

from fastapi import status
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError

from bookshelf.dependencies import get_book_cache
from bookshelf.main import app
from bookshelf.models import Book
from bookshelf.services.cache import BookCache, make_cache_key
from bookshelf.triggers import TriggerContext


class TestBookCache:
    def test_cache_key(self):
        assert make_cache_key("book", "b1") == "book:b1"

    def test_disabled_cache_always_misses(self):
        cache = BookCache(None)

        assert cache.get("b1") is None
        assert cache.set("b1", {"id": "b1"}) is False
        assert cache.invalidate("b1") is False
        assert cache.stats() == {"status": "disabled"}

    def test_set_and_get(self):
        redis_client = MagicMock()
        cache = BookCache(redis_client, ttl=60)

        cache.set("b1", {"id": "b1", "title": "Kindred"})
        redis_client.get.return_value = redis_client.setex.call_args.args[2]

        assert redis_client.setex.call_args.args[:2] == ("book:b1", 60)
        assert cache.get("b1") == {"id": "b1", "title": "Kindred"}

    def test_redis_errors_are_misses(self):
        redis_client = MagicMock()
        redis_client.get.side_effect = RedisConnectionError("down")
        redis_client.delete.side_effect = RedisConnectionError("down")
        cache = BookCache(redis_client)

        assert cache.get("b1") is None
        assert cache.invalidate("b1") is False

    def test_corrupt_entry_is_a_miss(self):
        redis_client = MagicMock()
        redis_client.get.return_value = "{not json"

        assert BookCache(redis_client).get("b1") is None

    def test_trigger_context_invalidates(self):
        redis_client = MagicMock()
        ctx = TriggerContext(db=MagicMock(), cache=BookCache(redis_client))

        ctx.invalidate_book("b1")

        redis_client.delete.assert_called_once_with("book:b1")


class TestCachedBookDetail:
    def test_detail_served_from_cache(self, client: TestClient, sample_book: Book):
        redis_client = MagicMock()
        cached = {
            "id": sample_book.id,
            "title": "Cached Title",
            "author_id": sample_book.author_id,
            "author_name": sample_book.author_name,
            "cover_url": "",
            "genre": "Fiction",
            "tags": [],
            "published_date": None,
            "description": "",
            "pages": 304,
            "avg_rating": 0.0,
            "rating_count": 0,
            "created_at": "2026-01-01T00:00:00",
            "updated_at": "2026-01-01T00:00:00",
        }
        redis_client.get.return_value = json.dumps(cached)
        app.dependency_overrides[get_book_cache] = lambda: BookCache(redis_client)

        response = client.get(f"/api/v1/books/{sample_book.id}")

        assert response.json()["title"] == "Cached Title"


class TestHealth:
    def test_health(self, client: TestClient):
        response = client.get("/health")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["status"] == "healthy"
        assert data["cache"] == {"status": "disabled"}
        assert data["elasticsearch"]["healthy"] is False
        assert data["triggers"] == ["calculate_avg_rating", "sync_book_info", "sync_author_name"]

    def test_root(self, client: TestClient):
        assert client.get("/").json()["health"] == "/health"
