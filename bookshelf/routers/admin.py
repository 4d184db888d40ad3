"""
Admin Router

Superuser-only maintenance endpoints:
- POST /admin/ratings/recalculate - Recompute every book's rating summary
- POST /admin/saved-books/prune - Delete saved copies of deleted books
- POST /admin/search/reindex - Re-index every book in Elasticsearch
"""

import logging

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import select

from bookshelf.dependencies import Cache, DbSession, Search, SuperUser
from bookshelf.models import Book
from bookshelf.services.projections import prune_orphaned_saved_books
from bookshelf.services.ratings import recalculate_all_book_ratings
from bookshelf.services.search import book_to_document

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
    responses={403: {"description": "Superuser privileges required"}},
)


class MaintenanceResult(BaseModel):
    processed: int
    errors: int = 0


@router.post(
    "/ratings/recalculate",
    response_model=MaintenanceResult,
    summary="Recalculate all rating summaries",
)
def recalculate_ratings(db: DbSession, admin: SuperUser, cache: Cache) -> MaintenanceResult:
    """
    Rebuild avg_rating/rating_count of every book from its ratings.

    Saved copies are not touched; they pick up the summary on the next
    rating of each book.
    """
    count = recalculate_all_book_ratings(db)
    for book_id in db.execute(select(Book.id)).scalars():
        cache.invalidate(book_id)
    logger.info(f"Admin {admin.id} recalculated ratings of {count} books")
    return MaintenanceResult(processed=count)


@router.post(
    "/saved-books/prune",
    response_model=MaintenanceResult,
    summary="Prune saved copies of deleted books",
)
def prune_saved_books(db: DbSession, admin: SuperUser) -> MaintenanceResult:
    removed = prune_orphaned_saved_books(db)
    logger.info(f"Admin {admin.id} pruned {removed} saved books")
    return MaintenanceResult(processed=removed)


@router.post(
    "/search/reindex",
    response_model=MaintenanceResult,
    summary="Re-index all books",
)
async def reindex_books(db: DbSession, admin: SuperUser, search_index: Search) -> MaintenanceResult:
    books = db.execute(select(Book).order_by(Book.id)).scalars().all()
    success, errors = await search_index.bulk_index([book_to_document(b) for b in books])
    logger.info(f"Admin {admin.id} re-indexed {success} books ({errors} errors)")
    return MaintenanceResult(processed=success, errors=errors)
