"""
Tests for Search

- Database fallback (no Elasticsearch): matching, filters, facets
- Elasticsearch path with a mocked client: query building and response
  mapping, and falling back when Elasticsearch errors
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import status
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from bookshelf.models import Book, User
from bookshelf.services.search import SearchIndex, search_books


@pytest.fixture
def catalogue(db_session: Session, author: User, other_author: User) -> list[Book]:
    books = [
        Book(title="The Left Hand of Darkness", author_id=author.id, author_name=author.display_name,
             genre="Science Fiction", tags=["classic", "hugo"], pages=304, avg_rating=4.5, rating_count=2),
        Book(title="The Lathe of Heaven", author_id=author.id, author_name=author.display_name,
             genre="Science Fiction", tags=["classic"], pages=184, avg_rating=3.0, rating_count=1),
        Book(title="Kindred", author_id=other_author.id, author_name=other_author.display_name,
             genre="Fiction", tags=["classic", "time travel"], pages=264, avg_rating=4.8, rating_count=5),
    ]
    db_session.add_all(books)
    db_session.commit()
    return books


class TestDatabaseFallback:
    """GET /api/v1/search/books without Elasticsearch"""

    def test_match_title(self, client: TestClient, catalogue):
        response = client.get("/api/v1/search/books?q=lathe")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["fallback"] is True
        assert [b["title"] for b in data["items"]] == ["The Lathe of Heaven"]
        assert data["items"][0]["relevance_score"] is None

    def test_match_author_name(self, client: TestClient, catalogue):
        data = client.get("/api/v1/search/books?q=butler").json()

        assert [b["title"] for b in data["items"]] == ["Kindred"]

    def test_ordered_by_rating(self, client: TestClient, catalogue):
        data = client.get("/api/v1/search/books").json()

        assert [b["title"] for b in data["items"]] == [
            "Kindred",
            "The Left Hand of Darkness",
            "The Lathe of Heaven",
        ]

    def test_filters(self, client: TestClient, catalogue):
        by_genre = client.get("/api/v1/search/books?genre=Fiction").json()
        by_tags = client.get("/api/v1/search/books?tags=classic&tags=hugo").json()
        by_rating = client.get("/api/v1/search/books?min_rating=4.6").json()

        assert by_genre["total"] == 1
        assert [b["title"] for b in by_tags["items"]] == ["The Left Hand of Darkness"]
        assert [b["title"] for b in by_rating["items"]] == ["Kindred"]

    def test_facets(self, client: TestClient, catalogue):
        facets = client.get("/api/v1/search/books").json()["facets"]

        assert facets["genres"] == [
            {"name": "Science Fiction", "count": 2},
            {"name": "Fiction", "count": 1},
        ]
        assert facets["tags"][0] == {"name": "classic", "count": 3}

    def test_pagination(self, client: TestClient, catalogue):
        data = client.get("/api/v1/search/books?size=2&page=2").json()

        assert data["total"] == 3
        assert data["pages"] == 2
        assert len(data["items"]) == 1


def es_response() -> dict:
    return {
        "hits": {
            "total": {"value": 1},
            "hits": [
                {
                    "_score": 2.5,
                    "_source": {
                        "id": "b1",
                        "title": "Kindred",
                        "author_id": "a1",
                        "author_name": "Octavia Butler",
                        "genre": "Fiction",
                        "tags": ["classic"],
                        "avg_rating": 4.8,
                        "rating_count": 5,
                    },
                }
            ],
        },
        "aggregations": {
            "genres": {"buckets": [{"key": "Fiction", "doc_count": 1}]},
            "tags": {"buckets": [{"key": "classic", "doc_count": 1}]},
        },
    }


class TestElasticsearch:
    @pytest.mark.asyncio
    async def test_uses_elasticsearch_when_available(self, db_session: Session):
        es = MagicMock()
        es.search = AsyncMock(return_value=es_response())

        result = await search_books(db_session, SearchIndex(es), query="kindrd", genre="Fiction", tags=["classic"])

        assert result["fallback"] is False
        assert result["items"][0]["relevance_score"] == 2.5
        assert result["facets"]["genres"] == [{"name": "Fiction", "count": 1}]

        query = es.search.call_args.kwargs["query"]
        match = query["bool"]["must"][0]["multi_match"]
        assert match["query"] == "kindrd"
        assert match["fuzziness"] == "AUTO"
        assert {"term": {"genre": "Fiction"}} in query["bool"]["filter"]
        assert {"term": {"tags": "classic"}} in query["bool"]["filter"]

    @pytest.mark.asyncio
    async def test_exact_search_without_fuzziness(self, db_session: Session):
        es = MagicMock()
        es.search = AsyncMock(return_value=es_response())

        await search_books(db_session, SearchIndex(es), query="kindred", fuzzy=False)

        match = es.search.call_args.kwargs["query"]["bool"]["must"][0]["multi_match"]
        assert "fuzziness" not in match

    @pytest.mark.asyncio
    async def test_falls_back_when_elasticsearch_fails(self, db_session: Session, catalogue):
        es = MagicMock()
        es.search = AsyncMock(side_effect=ConnectionError("cluster down"))

        result = await search_books(db_session, SearchIndex(es), query="kindred")

        assert result["fallback"] is True
        assert [b["title"] for b in result["items"]] == ["Kindred"]

    @pytest.mark.asyncio
    async def test_unavailable_index_is_noop(self):
        index = SearchIndex(None)

        assert await index.index_document("b1", {"id": "b1"}) is False
        assert await index.delete_document("b1") is False
        assert await index.is_healthy() is False
        assert await index.search(query="anything") is None
