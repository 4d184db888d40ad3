"""
Rating Aggregation Trigger

Fires on every write to books/{book_id}/ratings/{user_id}:

- created / updated: fold the rating into the book's summary
  (see services/ratings.apply_rating)
- deleted: recompute the summary from the remaining ratings

then copies the new avg_rating into every saved projection of the book.
"""

import logging

from bookshelf.models import MAX_RATING, MIN_RATING, SavedBook
from bookshelf.services.projections import patch_saved_books
from bookshelf.services.ratings import apply_rating, recalculate_book_rating
from bookshelf.triggers.changes import ChangeKind, DocumentChange
from bookshelf.triggers.registry import TriggerContext, TriggerResult

logger = logging.getLogger(__name__)


def is_valid_rating(value) -> bool:
    """A rating value is an integer from 1 to 5 inclusive."""
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and MIN_RATING <= value <= MAX_RATING
    )


def calculate_avg_rating(
    ctx: TriggerContext,
    change: DocumentChange,
    params: dict[str, str],
) -> TriggerResult:
    """
    Fold a rating write into its book's summary and saved copies.

    Args:
        ctx: Invocation context
        change: Before/after snapshots of the rating (before is None on
            create, after is None on delete)
        params: Path parameters, book_id and user_id

    Returns:
        APPLIED with the saved copies written and the book id to re-index,
        or SKIPPED with the reason

    Raises:
        RatingConflictError: Every compare-and-swap attempt lost the race
        PropagationError: A batch of saved-copy writes failed
    """
    book_id = params["book_id"]
    user_id = params["user_id"]

    if change.kind == ChangeKind.DELETED:
        summary = recalculate_book_rating(ctx.db, book_id)
    else:
        value = change.after.get("value")
        if not is_valid_rating(value):
            logger.warning(f"Invalid rating data at {change.path}: {value!r}")
            return TriggerResult.skipped("invalid rating value")

        if change.kind == ChangeKind.UPDATED and change.before.get("value") == value:
            logger.debug(f"Rating at {change.path} unchanged, nothing to do")
            return TriggerResult.skipped("rating value unchanged")

        summary = apply_rating(
            ctx.db, book_id, user_id, max_attempts=ctx.rating_cas_max_attempts
        )

    if summary is None:
        logger.info(f"Book {book_id} not found, rating change ignored")
        return TriggerResult.skipped("book not found")

    ctx.invalidate_book(book_id)
    logger.info(
        f"Book {book_id} rating summary: {summary.avg_rating:.3f} "
        f"from {summary.rating_count} ratings"
    )

    updated = patch_saved_books(
        ctx.db,
        [SavedBook.book_id == book_id],
        {"avg_rating": summary.avg_rating},
        SavedBook.rating_synced_at,
        summary.updated_at,
        batch_size=ctx.batch_size,
    )
    if updated:
        logger.info(f"Updated avg_rating on {updated} saved copies of book {book_id}")

    return TriggerResult.applied(updated=updated, book_ids=[book_id])
