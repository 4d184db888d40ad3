"""
Search Service

Book search backed by Elasticsearch, with a SQL fallback when Elasticsearch
is disabled, unreachable or failing.

Features:
- Full-text search across title, author name and description
- Fuzzy matching for typo tolerance
- Facets on genre and tags
- Graceful degradation to LIKE matching in the database

The SearchIndex is created once in create_app() (see main.py) and reached
through the get_search_index dependency. Book writes hand it plain
documents, built while the request's session is still open:

    background_tasks.add_task(search_index.index_document, book.id, book_to_document(book))
"""

import logging
import math
from collections import Counter
from typing import Any

from elasticsearch import AsyncElasticsearch, NotFoundError
from elasticsearch.helpers import async_bulk
from sqlalchemy import String, cast, func, or_, select
from sqlalchemy.orm import Session

from bookshelf.config import Settings
from bookshelf.models import Book

logger = logging.getLogger(__name__)

FACET_SIZE = 20


# =============================================================================
# Index Mapping
# =============================================================================

BOOK_INDEX_MAPPING = {
    "settings": {
        "number_of_shards": 1,
        "number_of_replicas": 0,
        "analysis": {
            "analyzer": {
                "book_analyzer": {
                    "type": "custom",
                    "tokenizer": "standard",
                    "filter": ["lowercase", "english_stemmer", "english_possessive_stemmer"]
                }
            },
            "filter": {
                "english_stemmer": {"type": "stemmer", "language": "english"},
                "english_possessive_stemmer": {"type": "stemmer", "language": "possessive_english"},
            }
        }
    },
    "mappings": {
        "properties": {
            "id": {"type": "keyword"},
            "title": {
                "type": "text",
                "analyzer": "book_analyzer",
                "fields": {"keyword": {"type": "keyword"}},
            },
            "author_id": {"type": "keyword"},
            "author_name": {
                "type": "text",
                "analyzer": "book_analyzer",
                "fields": {"keyword": {"type": "keyword"}},
            },
            "description": {"type": "text", "analyzer": "book_analyzer"},
            "cover_url": {"type": "keyword", "index": False},
            "genre": {"type": "keyword"},
            "tags": {"type": "keyword"},
            "avg_rating": {"type": "float"},
            "rating_count": {"type": "integer"},
            "published_date": {"type": "date"},
            "updated_at": {"type": "date"},
        }
    }
}


def book_to_document(book: Book) -> dict[str, Any]:
    """Convert a Book model into an Elasticsearch document."""
    return {
        "id": book.id,
        "title": book.title,
        "author_id": book.author_id,
        "author_name": book.author_name,
        "description": book.description or "",
        "cover_url": book.cover_url or "",
        "genre": book.genre,
        "tags": list(book.tags or []),
        "avg_rating": float(book.avg_rating or 0.0),
        "rating_count": book.rating_count or 0,
        "published_date": book.published_date.isoformat() if book.published_date else None,
        "updated_at": book.updated_at.isoformat() if book.updated_at else None,
    }


def tag_filter(column, tag: str):
    """
    Match rows whose JSON tag list contains tag.

    Compares against the serialized list, which works on every backend
    without JSON operators.
    """
    return cast(column, String).like(f'%"{tag}"%')


# =============================================================================
# Elasticsearch Index
# =============================================================================


class SearchIndex:
    """
    The books index in Elasticsearch.

    Every method degrades to a no-op (or None for searches) when there is
    no client, so callers never have to check availability first.
    """

    def __init__(self, client: AsyncElasticsearch | None, index_prefix: str = "bookshelf_"):
        self._client = client
        self.index_name = f"{index_prefix}books"

    @property
    def available(self) -> bool:
        return self._client is not None

    @classmethod
    async def connect(cls, settings: Settings) -> "SearchIndex":
        """
        Connect to Elasticsearch and make sure the books index exists.

        Returns an unavailable index when disabled or unreachable.
        """
        if not settings.elasticsearch_enabled:
            logger.info("Elasticsearch is disabled, skipping initialization")
            return cls(None, settings.elasticsearch_index_prefix)

        client = AsyncElasticsearch(
            hosts=[settings.elasticsearch_url],
            request_timeout=settings.elasticsearch_timeout,
            retry_on_timeout=True,
            max_retries=3,
        )
        try:
            info = await client.info()
        except Exception as e:
            logger.warning(f"Failed to connect to Elasticsearch: {e}")
            logger.warning("Search will fall back to the database")
            await client.close()
            return cls(None, settings.elasticsearch_index_prefix)

        logger.info(
            f"Connected to Elasticsearch {info['version']['number']} "
            f"at {settings.elasticsearch_url}"
        )
        index = cls(client, settings.elasticsearch_index_prefix)
        await index.create_index()
        return index

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
            logger.info("Elasticsearch connection closed")

    async def is_healthy(self) -> bool:
        if self._client is None:
            return False
        try:
            health = await self._client.cluster.health()
            return health["status"] in ("green", "yellow")
        except Exception:
            return False

    async def create_index(self) -> bool:
        if self._client is None:
            return False
        try:
            if not await self._client.indices.exists(index=self.index_name):
                await self._client.indices.create(index=self.index_name, body=BOOK_INDEX_MAPPING)
                logger.info(f"Created Elasticsearch index: {self.index_name}")
            return True
        except Exception as e:
            logger.error(f"Failed to create index {self.index_name}: {e}")
            return False

    async def count(self) -> int:
        if self._client is None:
            return 0
        try:
            response = await self._client.count(index=self.index_name)
            return response["count"]
        except Exception:
            return 0

    # -------------------------------------------------------------------------
    # Documents
    # -------------------------------------------------------------------------

    async def index_document(self, book_id: str, document: dict[str, Any]) -> bool:
        if self._client is None:
            return False
        try:
            await self._client.index(
                index=self.index_name,
                id=book_id,
                document=document,
                refresh=True,
            )
            logger.debug(f"Indexed book {book_id}")
            return True
        except Exception as e:
            logger.error(f"Failed to index book {book_id}: {e}")
            return False

    async def delete_document(self, book_id: str) -> bool:
        if self._client is None:
            return False
        try:
            await self._client.delete(index=self.index_name, id=book_id, refresh=True)
            logger.debug(f"Deleted book {book_id} from index")
            return True
        except NotFoundError:
            return True
        except Exception as e:
            logger.error(f"Failed to delete book {book_id} from index: {e}")
            return False

    async def bulk_index(self, documents: list[dict[str, Any]]) -> tuple[int, int]:
        """
        Index many documents at once.

        Returns:
            Tuple of (success_count, error_count)
        """
        if self._client is None or not documents:
            return 0, len(documents)

        actions = (
            {"_index": self.index_name, "_id": doc["id"], "_source": doc}
            for doc in documents
        )
        try:
            success, errors = await async_bulk(
                self._client, actions, raise_on_error=False, refresh=True
            )
        except Exception as e:
            logger.error(f"Bulk indexing failed: {e}")
            return 0, len(documents)

        error_count = len(errors) if isinstance(errors, list) else 0
        logger.info(f"Bulk indexed {success} books, {error_count} errors")
        return success, error_count

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    async def search(
        self,
        query: str | None = None,
        genre: str | None = None,
        tags: list[str] | None = None,
        min_rating: float | None = None,
        page: int = 1,
        size: int = 20,
        fuzzy: bool = True,
    ) -> dict[str, Any] | None:
        """
        Search the books index.

        Returns:
            Result dict with items, total and facets, or None when
            Elasticsearch is unavailable or the request failed
        """
        if self._client is None:
            return None

        must_clauses: list[dict] = []
        filter_clauses: list[dict] = []

        if query:
            match: dict[str, Any] = {
                "query": query,
                "fields": ["title^3", "author_name^2", "description"],
            }
            if fuzzy:
                match.update({"fuzziness": "AUTO", "prefix_length": 2})
            must_clauses.append({"multi_match": match})

        if genre:
            filter_clauses.append({"term": {"genre": genre}})
        for tag in tags or []:
            filter_clauses.append({"term": {"tags": tag}})
        if min_rating is not None:
            filter_clauses.append({"range": {"avg_rating": {"gte": min_rating}}})

        if must_clauses or filter_clauses:
            es_query = {
                "bool": {
                    "must": must_clauses or [{"match_all": {}}],
                    "filter": filter_clauses,
                }
            }
        else:
            es_query = {"match_all": {}}

        aggs = {
            "genres": {"terms": {"field": "genre", "size": FACET_SIZE}},
            "tags": {"terms": {"field": "tags", "size": FACET_SIZE}},
        }

        try:
            response = await self._client.search(
                index=self.index_name,
                query=es_query,
                aggs=aggs,
                from_=(page - 1) * size,
                size=size,
                source=True,
            )
        except Exception as e:
            logger.error(f"Elasticsearch search failed: {e}")
            return None

        total = response["hits"]["total"]["value"]
        items = []
        for hit in response["hits"]["hits"]:
            item = dict(hit["_source"])
            item["relevance_score"] = hit["_score"]
            items.append(item)

        aggregations = response["aggregations"]
        return {
            "items": items,
            "total": total,
            "page": page,
            "size": size,
            "pages": math.ceil(total / size) if total else 0,
            "facets": {
                "genres": [
                    {"name": b["key"], "count": b["doc_count"]}
                    for b in aggregations["genres"]["buckets"]
                ],
                "tags": [
                    {"name": b["key"], "count": b["doc_count"]}
                    for b in aggregations["tags"]["buckets"]
                ],
            },
            "fallback": False,
        }


# =============================================================================
# Search with Fallback
# =============================================================================


async def search_books(
    db: Session,
    index: SearchIndex,
    query: str | None = None,
    genre: str | None = None,
    tags: list[str] | None = None,
    min_rating: float | None = None,
    page: int = 1,
    size: int = 20,
    fuzzy: bool = True,
) -> dict[str, Any]:
    """Search with Elasticsearch, falling back to the database."""
    if index.available:
        result = await index.search(
            query=query,
            genre=genre,
            tags=tags,
            min_rating=min_rating,
            page=page,
            size=size,
            fuzzy=fuzzy,
        )
        if result is not None:
            return result

    logger.debug("Falling back to the database for search")
    return search_books_sql(
        db,
        query=query,
        genre=genre,
        tags=tags,
        min_rating=min_rating,
        page=page,
        size=size,
    )


def search_books_sql(
    db: Session,
    query: str | None = None,
    genre: str | None = None,
    tags: list[str] | None = None,
    min_rating: float | None = None,
    page: int = 1,
    size: int = 20,
) -> dict[str, Any]:
    """
    Search books with LIKE matching.

    No fuzzy matching or relevance scores; results are ordered by rating.
    """
    conditions = []

    if query:
        term = f"%{query.lower()}%"
        conditions.append(
            or_(
                func.lower(Book.title).like(term),
                func.lower(Book.author_name).like(term),
                func.lower(Book.description).like(term),
            )
        )
    if genre:
        conditions.append(Book.genre == genre)
    for tag in tags or []:
        conditions.append(tag_filter(Book.tags, tag))
    if min_rating is not None:
        conditions.append(Book.avg_rating >= min_rating)

    total = db.execute(
        select(func.count()).select_from(Book).where(*conditions)
    ).scalar() or 0

    books = db.execute(
        select(Book)
        .where(*conditions)
        .order_by(Book.avg_rating.desc(), Book.title)
        .offset((page - 1) * size)
        .limit(size)
    ).scalars().all()

    items = []
    for book in books:
        item = book_to_document(book)
        item["relevance_score"] = None
        items.append(item)

    return {
        "items": items,
        "total": total,
        "page": page,
        "size": size,
        "pages": math.ceil(total / size) if total else 0,
        "facets": _build_sql_facets(db, conditions),
        "fallback": True,
    }


def _build_sql_facets(db: Session, conditions: list) -> dict[str, list]:
    """Genre and tag counts over every matching book."""
    genre_rows = db.execute(
        select(Book.genre, func.count(Book.id))
        .where(*conditions)
        .group_by(Book.genre)
        .order_by(func.count(Book.id).desc(), Book.genre)
        .limit(FACET_SIZE)
    ).all()

    tag_counts: Counter[str] = Counter()
    for tags in db.execute(select(Book.tags).where(*conditions)).scalars():
        tag_counts.update(set(tags or []))

    return {
        "genres": [{"name": name, "count": count} for name, count in genre_rows],
        "tags": [
            {"name": name, "count": count}
            for name, count in sorted(tag_counts.items(), key=lambda kv: (-kv[1], kv[0]))[:FACET_SIZE]
        ],
    }
