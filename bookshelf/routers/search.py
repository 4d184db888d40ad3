"""
Search Router

Book search using Elasticsearch with a database fallback.

Features:
- Full-text search with fuzzy matching
- Facets on genre and tags
- Pagination
"""

from typing import Annotated

from fastapi import APIRouter, Query, Request

from bookshelf.config import get_settings
from bookshelf.dependencies import DbSession, Search
from bookshelf.schemas.search import SearchResponse
from bookshelf.services.rate_limiter import limiter
from bookshelf.services.search import search_books

settings = get_settings()

router = APIRouter(
    prefix="/search",
    tags=["Search"],
)


@router.get(
    "/books",
    response_model=SearchResponse,
    summary="Search books",
    description="""
Search books by title, author name and description.

**Filters:**
- `genre`: Exact genre
- `tags`: Books carrying every given tag (repeat the parameter)
- `min_rating`: Minimum average rating

**Fallback:**
If Elasticsearch is unavailable, falls back to database search
(no fuzzy matching or relevance scoring).
""",
)
@limiter.limit(settings.rate_limit_search)
async def search_books_endpoint(
    request: Request,
    db: DbSession,
    search_index: Search,
    q: Annotated[
        str | None,
        Query(min_length=1, max_length=200, examples=["left hand", "Le Guin"]),
    ] = None,
    genre: Annotated[str | None, Query(max_length=100)] = None,
    tags: Annotated[list[str] | None, Query()] = None,
    min_rating: Annotated[float | None, Query(ge=0.0, le=5.0)] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    size: Annotated[int, Query(ge=1, le=100)] = 20,
    fuzzy: Annotated[bool, Query(description="Enable fuzzy matching")] = True,
) -> SearchResponse:
    result = await search_books(
        db,
        search_index,
        query=q,
        genre=genre,
        tags=tags,
        min_rating=min_rating,
        page=page,
        size=size,
        fuzzy=fuzzy,
    )
    return SearchResponse.model_validate(result)
