"""
Ratings Service

Maintains the denormalized rating summary on the Book model:
- avg_rating: The mean of all rating values (0 when unrated)
- rating_count: Number of distinct raters

The summary is updated incrementally when a single rating is created or
corrected, and recomputed from scratch when a rating is deleted or when an
admin reconciles all books.

Incremental Mean Update
=======================
    new rating:       avg' = (avg * n + v) / (n + 1)          n' = n + 1
    corrected rating: avg' = (avg * n - old + v) / n          n' = n

Concurrency
===========
Two raters on the same book race on read-modify-write of the summary.
apply_rating() commits under the book's version counter and, when another
writer got there first (StaleDataError), re-reads and tries again.

Which value a rating contributed is tracked in Rating.counted_value, so
applying the same rating twice (a retried trigger invocation) leaves the
summary unchanged.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from bookshelf.models import Book, Rating
from bookshelf.utils import utcnow
from bookshelf.utils.mean import mean_with_corrected_rating, mean_with_new_rating

logger = logging.getLogger(__name__)


class RatingConflictError(RuntimeError):
    """The book kept changing underneath every compare-and-swap attempt."""


@dataclass(frozen=True)
class RatingSummary:
    """A book's rating summary as committed."""

    book_id: str
    avg_rating: float
    rating_count: int
    updated_at: datetime

    @classmethod
    def of(cls, book: Book) -> "RatingSummary":
        return cls(
            book_id=book.id,
            avg_rating=book.avg_rating,
            rating_count=book.rating_count,
            updated_at=book.updated_at,
        )


# =============================================================================
# Summary Updates
# =============================================================================


def apply_rating(
    db: Session,
    book_id: str,
    user_id: str,
    max_attempts: int = 5,
) -> RatingSummary | None:
    """
    Fold a user's current rating into the book's summary.

    Reads the rating's value and counted_value to decide between a new
    rating and a correction, then commits the new summary and marks the
    rating as counted in one transaction guarded by the book's version.

    Args:
        db: Database session
        book_id: Rated book
        user_id: Rater
        max_attempts: Compare-and-swap attempts before giving up

    Returns:
        The committed summary, or None if the book no longer exists

    Raises:
        RatingConflictError: Every attempt lost the race
    """
    for attempt in range(1, max_attempts + 1):
        book = db.get(Book, book_id, populate_existing=True)
        if book is None:
            return None

        rating = db.get(Rating, (book_id, user_id), populate_existing=True)
        if rating is None or rating.counted_value == rating.value:
            # Deleted meanwhile, or already reflected in the summary
            return RatingSummary.of(book)

        prior = rating.counted_value
        if prior is None:
            avg, count = mean_with_new_rating(
                book.avg_rating, book.rating_count, rating.value
            )
        elif book.rating_count < 1:
            logger.warning(
                f"Book {book_id} has a counted rating but an empty summary, recomputing"
            )
            return recalculate_book_rating(db, book_id)
        else:
            avg, count = mean_with_corrected_rating(
                book.avg_rating, book.rating_count, prior, rating.value
            )

        now = utcnow()
        book.avg_rating = avg
        book.rating_count = count
        book.updated_at = now
        rating.counted_value = rating.value

        try:
            db.commit()
        except StaleDataError:
            db.rollback()
            logger.info(
                f"Book {book_id} changed concurrently, retrying rating update "
                f"({attempt}/{max_attempts})"
            )
            continue

        return RatingSummary(
            book_id=book_id,
            avg_rating=avg,
            rating_count=count,
            updated_at=now,
        )

    raise RatingConflictError(
        f"Could not update rating summary for book {book_id} "
        f"after {max_attempts} attempts"
    )


def recalculate_book_rating(db: Session, book_id: str) -> RatingSummary | None:
    """
    Recalculate a book's rating summary from all of its ratings.

    Every remaining rating is marked as counted, so triggers still in flight
    for those ratings find nothing left to apply.

    Args:
        db: Database session
        book_id: ID of the book to update

    Returns:
        The committed summary, or None if the book no longer exists

    Note:
        This function commits the changes to the database.
    """
    stmt = select(
        func.avg(Rating.value),
        func.count(),
    ).where(Rating.book_id == book_id)
    avg_rating, rating_count = db.execute(stmt).one()

    book = db.get(Book, book_id, populate_existing=True)
    if book is None:
        return None

    now = utcnow()
    book.avg_rating = float(avg_rating) if avg_rating is not None else 0.0
    book.rating_count = rating_count
    book.updated_at = now

    db.execute(
        update(Rating)
        .where(Rating.book_id == book_id)
        .values(counted_value=Rating.value)
        .execution_options(synchronize_session=False)
    )
    db.commit()

    return RatingSummary(
        book_id=book_id,
        avg_rating=book.avg_rating,
        rating_count=rating_count,
        updated_at=now,
    )


def recalculate_all_book_ratings(db: Session) -> int:
    """
    Recalculate rating summaries for all books.

    Useful for data migrations or fixing inconsistencies.

    Returns:
        Number of books updated
    """
    book_ids = db.execute(select(Book.id)).scalars().all()

    for book_id in book_ids:
        recalculate_book_rating(db, book_id)

    logger.info(f"Recalculated rating summaries for {len(book_ids)} books")
    return len(book_ids)


def get_rating_distribution(db: Session, book_id: str) -> dict[int, int]:
    """Count of ratings per star value (1-5) for a book."""
    distribution = {1: 0, 2: 0, 3: 0, 4: 0, 5: 0}
    stmt = (
        select(Rating.value, func.count())
        .where(Rating.book_id == book_id)
        .group_by(Rating.value)
    )
    for value, count in db.execute(stmt).all():
        distribution[value] = count
    return distribution
