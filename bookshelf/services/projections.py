"""
Saved-Book Projections Service

Creates, removes and patches SavedBook projections.

Propagation Flow:
1. Look up the keys of every projection matching the change
   (indexed query on book_id or author_id, never a scan of all users)
2. Build one conditional UPDATE per projection
3. Commit them in batches of at most 100 (see services/batch.py)

Every propagated patch is stamped with the source update's timestamp and
only lands on projections that do not already hold a newer one.
"""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.orm import InstrumentedAttribute, Session

from bookshelf.config import MAX_BATCH_WRITES
from bookshelf.models import Book, SavedBook
from bookshelf.services.batch import commit_in_batches

logger = logging.getLogger(__name__)

# Book fields copied into every projection and kept in sync on book edits
SYNCED_BOOK_FIELDS = ("title", "cover_url", "genre", "tags")


def changed_fields(
    before: dict[str, Any],
    after: dict[str, Any],
    fields: tuple[str, ...] = SYNCED_BOOK_FIELDS,
) -> dict[str, Any]:
    """
    Build a minimal patch of the fields whose value differs.

    Example:
        >>> changed_fields({"title": "A", "genre": "Fiction"},
        ...                {"title": "A", "genre": "Mystery"})
        {'genre': 'Mystery'}
    """
    return {
        field: after.get(field)
        for field in fields
        if before.get(field) != after.get(field)
    }


def build_saved_book(user_id: str, book: Book) -> SavedBook:
    """Copy the projected fields of a book into a new SavedBook."""
    return SavedBook(
        user_id=user_id,
        book_id=book.id,
        title=book.title,
        author_id=book.author_id,
        author_name=book.author_name,
        cover_url=book.cover_url or "",
        avg_rating=book.avg_rating,
        genre=book.genre,
        tags=list(book.tags or []),
        content_synced_at=book.updated_at,
        rating_synced_at=book.updated_at,
    )


def save_book_for_user(db: Session, user_id: str, book: Book) -> SavedBook:
    """
    Save (or re-save) a book into the user's saved books.

    Re-saving replaces the projection with a fresh copy of the book.
    """
    existing = db.get(SavedBook, (user_id, book.id))
    if existing is not None:
        db.delete(existing)
        db.flush()

    saved = build_saved_book(user_id, book)
    db.add(saved)
    db.commit()
    db.refresh(saved)
    return saved


def remove_saved_book(db: Session, user_id: str, book_id: str) -> bool:
    """Unsave a book. Returns False if it was not saved."""
    saved = db.get(SavedBook, (user_id, book_id))
    if saved is None:
        return False
    db.delete(saved)
    db.commit()
    return True


def list_saved_books(
    db: Session,
    user_id: str,
    query: str | None = None,
    offset: int = 0,
    limit: int = 10,
) -> tuple[list[SavedBook], int]:
    """
    A user's saved books ordered by title, optionally filtered by a
    case-insensitive match on title or author name.

    Returns:
        (page of projections, total matching)
    """
    conditions = [SavedBook.user_id == user_id]
    if query:
        term = f"%{query.lower()}%"
        conditions.append(
            or_(
                func.lower(SavedBook.title).like(term),
                func.lower(SavedBook.author_name).like(term),
            )
        )

    total = db.execute(
        select(func.count()).select_from(SavedBook).where(*conditions)
    ).scalar() or 0
    items = db.execute(
        select(SavedBook)
        .where(*conditions)
        .order_by(SavedBook.title, SavedBook.book_id)
        .offset(offset)
        .limit(limit)
    ).scalars().all()
    return list(items), total


def find_projection_keys(db: Session, *criteria) -> list[tuple[str, str]]:
    """Return (user_id, book_id) of every projection matching the criteria."""
    stmt = select(SavedBook.user_id, SavedBook.book_id).where(*criteria)
    return [(row.user_id, row.book_id) for row in db.execute(stmt).all()]


def patch_saved_books(
    db: Session,
    criteria: list,
    patch: dict[str, Any],
    stamp_column: InstrumentedAttribute,
    stamp: datetime,
    batch_size: int = MAX_BATCH_WRITES,
) -> int:
    """
    Apply a patch to every matching projection, newest-write-wins.

    Args:
        db: Database session
        criteria: WHERE clauses selecting the projections
        patch: Field values to write
        stamp_column: The projection's last-write stamp for this field group
        stamp: Timestamp of the source update
        batch_size: Writes per atomic batch

    Returns:
        Number of projections actually updated

    Raises:
        PropagationError: A batch failed part way through
    """
    if not patch:
        return 0

    keys = find_projection_keys(db, *criteria)
    if not keys:
        return 0

    values = {**patch, stamp_column.key: stamp}
    statements = (
        update(SavedBook)
        .where(
            SavedBook.user_id == user_id,
            SavedBook.book_id == book_id,
            or_(stamp_column.is_(None), stamp_column <= stamp),
        )
        .values(**values)
        for user_id, book_id in keys
    )

    updated = commit_in_batches(db, statements, batch_size=batch_size)

    skipped = len(keys) - updated
    if skipped:
        logger.info(
            f"Skipped {skipped} saved books already holding a newer {stamp_column.key}"
        )
    return updated


def prune_orphaned_saved_books(db: Session) -> int:
    """
    Delete projections whose canonical book no longer exists.

    Book deletion does not cascade to projections; this explicit sweep does
    the cleanup.

    Returns:
        Number of projections removed
    """
    result = db.execute(
        delete(SavedBook)
        .where(SavedBook.book_id.not_in(select(Book.id)))
        .execution_options(synchronize_session=False)
    )
    db.commit()
    removed = result.rowcount or 0
    logger.info(f"Pruned {removed} saved books whose book was deleted")
    return removed
