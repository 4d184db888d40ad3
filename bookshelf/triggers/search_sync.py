"""
Search Index Refresh after Triggers

The rating and author triggers rewrite fields the search documents carry
(avg_rating, rating_count, author_name). Routers hand changes to
dispatch_and_reindex instead of the bare dispatcher, so the books a trigger
touched are re-indexed once it has committed.
"""

import logging

from sqlalchemy import select
from starlette.concurrency import run_in_threadpool

from bookshelf.models import Book
from bookshelf.services.search import SearchIndex, book_to_document
from bookshelf.triggers.changes import DocumentChange
from bookshelf.triggers.registry import TriggerDispatcher, TriggerResult

logger = logging.getLogger(__name__)


async def dispatch_and_reindex(
    dispatcher: TriggerDispatcher,
    search_index: SearchIndex,
    change: DocumentChange,
) -> list[TriggerResult]:
    """
    Dispatch a change, then re-index every book the triggers rewrote.

    Dispatch runs in the threadpool since handlers use the sync session.
    Indexing failures are logged by SearchIndex and do not fail the change.

    Returns:
        The dispatcher's results
    """
    results = await run_in_threadpool(dispatcher.dispatch, change)

    book_ids = sorted({book_id for result in results for book_id in result.book_ids})
    if not book_ids or not search_index.available:
        return results

    with dispatcher.session_factory() as db:
        books = db.execute(select(Book).where(Book.id.in_(book_ids))).scalars().all()
        documents = [book_to_document(book) for book in books]

    success, errors = await search_index.bulk_index(documents)
    logger.info(f"Re-indexed {success} books after {change.path} ({errors} errors)")
    return results
