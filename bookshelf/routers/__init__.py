"""
API Routers Package

Router Structure:
- auth.py: /api/v1/auth/* (registration, login, token refresh)
- users.py: /api/v1/users/me/* (profile, published and saved books)
- books.py: /api/v1/books/* (catalogue CRUD)
- ratings.py: /api/v1/books/{book_id}/rating* (ratings and statistics)
- search.py: /api/v1/search/* (full-text and faceted search)
- admin.py: /api/v1/admin/* (maintenance, superusers only)

Each router is imported and registered in main.py.
"""

from bookshelf.routers.admin import router as admin_router
from bookshelf.routers.auth import router as auth_router
from bookshelf.routers.books import router as books_router
from bookshelf.routers.ratings import router as ratings_router
from bookshelf.routers.search import router as search_router
from bookshelf.routers.users import router as users_router

__all__ = [
    "admin_router",
    "auth_router",
    "books_router",
    "ratings_router",
    "search_router",
    "users_router",
]
