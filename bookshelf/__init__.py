"""
Bookshelf API Application Package

A book-cataloguing service: readers browse, search, rate and save books;
authors publish and manage their own books.

Package Structure:
- config.py: Application configuration using Pydantic Settings
- database.py: SQLAlchemy database connection and session management
- main.py: FastAPI application factory and configuration
- dependencies.py: Dependency injection functions
- models/: SQLAlchemy ORM models (canonical records and saved-book projections)
- schemas/: Pydantic request/response schemas
- routers/: API route handlers
- services/: Business logic (ratings, projections, caching, search)
- triggers/: Change handlers that keep denormalized data in sync
- client/: Python SDK with optimistic rating display state
"""

__version__ = "0.1.0"
