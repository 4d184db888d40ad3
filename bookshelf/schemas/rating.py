"""
Rating Pydantic Schemas
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from bookshelf.models import MAX_RATING, MIN_RATING


class RatingCreate(BaseModel):
    """
    Create or overwrite the caller's rating.

    Example request body:
    {
        "value": 4
    }
    """

    value: int = Field(..., ge=MIN_RATING, le=MAX_RATING, strict=True, examples=[4])


class RatingResponse(BaseModel):
    """
    The caller's rating of a book.

    value is 0 when the caller has not rated the book.
    """

    book_id: str
    user_id: str
    value: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class BookRatingStats(BaseModel):
    """Aggregated rating statistics for a book."""

    book_id: str
    avg_rating: float
    rating_count: int
    distribution: dict[int, int] = Field(
        ...,
        description="Count of ratings per star value (1-5)",
        examples=[{1: 0, 2: 1, 3: 2, 4: 5, 5: 3}],
    )
