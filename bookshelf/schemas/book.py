"""
Book Pydantic Schemas

- BookCreate: new book, author fields come from the caller
- BookUpdate: content fields only; the rating summary and author fields are
  never client-writable
- BookResponse / BookDetailResponse / BookListResponse
"""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _normalize_tags(tags: list[str]) -> list[str]:
    """Strip whitespace, drop blanks and duplicates, keep order."""
    seen: list[str] = []
    for tag in tags:
        cleaned = tag.strip()
        if cleaned and cleaned not in seen:
            seen.append(cleaned)
    return seen


class BookBase(BaseModel):
    """Shared book content fields."""

    title: str = Field(
        ...,
        min_length=1,
        max_length=500,
        examples=["The Left Hand of Darkness"],
    )
    cover_url: str = Field(default="", max_length=2000)
    genre: str = Field(..., min_length=1, max_length=100, examples=["Science Fiction"])
    tags: list[str] = Field(default_factory=list, max_length=20, examples=[["classic", "hugo"]])
    published_date: date | None = Field(default=None, examples=["1969-03-01"])
    description: str = Field(default="", max_length=5000)
    pages: int = Field(..., gt=0, le=50000, examples=[304])

    @field_validator("title", "genre")
    @classmethod
    def must_not_be_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Field cannot be empty or whitespace")
        return v.strip()

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v: list[str]) -> list[str]:
        return _normalize_tags(v)


class BookCreate(BookBase):
    """
    Schema for publishing a new book.

    Example request body:
    {
        "title": "The Dispossessed",
        "genre": "Science Fiction",
        "tags": ["utopia"],
        "pages": 387
    }
    """


class BookUpdate(BaseModel):
    """
    Partial update of content fields.

    Any other field in the body (avg_rating, author_id, ...) is rejected.
    """

    title: str | None = Field(default=None, min_length=1, max_length=500)
    cover_url: str | None = Field(default=None, max_length=2000)
    genre: str | None = Field(default=None, min_length=1, max_length=100)
    tags: list[str] | None = Field(default=None, max_length=20)
    published_date: date | None = None
    description: str | None = Field(default=None, max_length=5000)
    pages: int | None = Field(default=None, gt=0, le=50000)

    model_config = ConfigDict(extra="forbid")

    @field_validator("title", "genre")
    @classmethod
    def must_not_be_blank(cls, v: str | None) -> str | None:
        if v is None:
            return v
        if not v.strip():
            raise ValueError("Field cannot be empty or whitespace")
        return v.strip()

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v: list[str] | None) -> list[str] | None:
        if v is None:
            return v
        return _normalize_tags(v)


class BookResponse(BookBase):
    """Book as returned by the API."""

    id: str
    author_id: str
    author_name: str
    avg_rating: float
    rating_count: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BookDetailResponse(BookResponse):
    """Single book, with the caller's own rating (0 when unrated or anonymous)."""

    my_rating: int = 0


class BookListResponse(BaseModel):
    """Paginated list of books."""

    items: list[BookResponse]
    total: int
    page: int
    per_page: int
    pages: int
