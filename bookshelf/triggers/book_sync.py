"""
Book Content Sync Trigger

Fires on update of books/{book_id}. Copies changed title, cover_url, genre
and tags into every SavedBook projection of the book. Only the changed
fields are written; an update touching none of them writes nothing.

Values are read from the book as it is now and stamped with its
updated_at, so an edit delivered after a newer one still reaches the
projections with the newest values.
"""

import logging

from bookshelf.models import Book, SavedBook
from bookshelf.services.projections import changed_fields, patch_saved_books
from bookshelf.triggers.changes import DocumentChange
from bookshelf.triggers.registry import TriggerContext, TriggerResult

logger = logging.getLogger(__name__)


def sync_book_info(
    ctx: TriggerContext,
    change: DocumentChange,
    params: dict[str, str],
) -> TriggerResult:
    """
    Propagate a book edit to the saved copies of the book.

    Args:
        ctx: Invocation context
        change: Before/after snapshots of the book
        params: Path parameters, book_id

    Returns:
        APPLIED with the number of saved copies written, or SKIPPED when no
        synced field changed or the book is gone

    Raises:
        PropagationError: A batch failed; the dispatcher re-runs the invocation
    """
    book_id = params["book_id"]

    changed = changed_fields(change.before, change.after)
    if not changed:
        logger.debug(f"Book {book_id} updated without synced field changes")
        return TriggerResult.skipped("no synced fields changed")

    book = ctx.db.get(Book, book_id, populate_existing=True)
    if book is None:
        logger.info(f"Book {book_id} not found, edit not propagated")
        return TriggerResult.skipped("book not found")

    patch = {field: getattr(book, field) for field in changed}
    updated = patch_saved_books(
        ctx.db,
        [SavedBook.book_id == book_id],
        patch,
        SavedBook.content_synced_at,
        book.updated_at,
        batch_size=ctx.batch_size,
    )

    logger.info(
        f"Synced {sorted(patch)} of book {book_id} to {updated} saved copies"
    )
    return TriggerResult.applied(updated=updated)
