"""
Pydantic Schemas Package

Request/response models, kept separate from the SQLAlchemy models so the
API controls exactly which fields are exposed and which are writable.

Schema Naming Convention:
- XxxCreate: Fields required when creating a record
- XxxUpdate: Fields allowed when updating (all optional)
- XxxResponse: Fields returned in API responses
"""

from bookshelf.schemas.book import (
    BookCreate,
    BookDetailResponse,
    BookListResponse,
    BookResponse,
    BookUpdate,
)
from bookshelf.schemas.rating import BookRatingStats, RatingCreate, RatingResponse
from bookshelf.schemas.saved_book import SavedBookListResponse, SavedBookResponse
from bookshelf.schemas.search import SearchResponse
from bookshelf.schemas.user import (
    PasswordChange,
    RefreshTokenRequest,
    TokenResponse,
    UserCreate,
    UserResponse,
    UserUpdate,
)

__all__ = [
    "BookCreate",
    "BookDetailResponse",
    "BookListResponse",
    "BookRatingStats",
    "BookResponse",
    "BookUpdate",
    "PasswordChange",
    "RatingCreate",
    "RatingResponse",
    "RefreshTokenRequest",
    "SavedBookListResponse",
    "SavedBookResponse",
    "SearchResponse",
    "TokenResponse",
    "UserCreate",
    "UserResponse",
    "UserUpdate",
]
