"""
SQLAlchemy Models Package

Canonical records:
- User: profile, role claim, and the source of cached author names
- Book: book content plus the derived rating summary
- Rating: one per (book, user)

Projections:
- SavedBook: per-user denormalized copy of a Book

Import all models here so Alembic discovers them and the application has
a single import point.
"""

from bookshelf.models.user import User, UserRole
from bookshelf.models.book import Book
from bookshelf.models.rating import MAX_RATING, MIN_RATING, Rating
from bookshelf.models.saved_book import SavedBook

__all__ = [
    "User",
    "UserRole",
    "Book",
    "Rating",
    "MIN_RATING",
    "MAX_RATING",
    "SavedBook",
]
