"""
SavedBook Pydantic Schemas
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class SavedBookResponse(BaseModel):
    """A book in the caller's saved list, as last synced from the canonical book."""

    book_id: str
    title: str
    author_id: str
    author_name: str
    cover_url: str
    avg_rating: float
    genre: str
    tags: list[str]
    saved_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SavedBookListResponse(BaseModel):
    items: list[SavedBookResponse]
    total: int
    page: int
    per_page: int
    pages: int
