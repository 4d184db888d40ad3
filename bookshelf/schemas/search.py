"""
Search Pydantic Schemas
"""

from datetime import date

from pydantic import BaseModel, Field


class SearchBookItem(BaseModel):
    """Book item in search results."""

    id: str
    title: str
    author_id: str
    author_name: str
    description: str = ""
    cover_url: str = ""
    genre: str
    tags: list[str] = Field(default_factory=list)
    avg_rating: float = 0.0
    rating_count: int = 0
    published_date: date | None = None
    relevance_score: float | None = Field(default=None, description="Relevance score (Elasticsearch only)")


class FacetBucket(BaseModel):
    name: str
    count: int


class SearchFacets(BaseModel):
    genres: list[FacetBucket] = Field(default_factory=list)
    tags: list[FacetBucket] = Field(default_factory=list)


class SearchResponse(BaseModel):
    """Search response with facets."""

    items: list[SearchBookItem]
    total: int
    page: int
    size: int
    pages: int
    facets: SearchFacets
    fallback: bool = Field(
        default=False,
        description="True if the database fallback was used instead of Elasticsearch",
    )
