"""
Author Name Sync Trigger

Fires on update of users/{user_id}. When an author's display name changes:

1. Rewrite author_name on every Book the author published
   (batched UPDATEs that also bump updated_at and version)
2. Rewrite author_name on the saved projections of those books

The name written is the user's current display name, stamped with the
user's updated_at, not the name carried by the change. A rename delivered
after a newer one therefore rewrites the newer name instead of rolling
books back to a stale one.

Projection Matching
===================
author_name_match selects how projections are found:

- "author_id" (default): SavedBook.author_id == user_id
- "name": SavedBook.author_name == the old display name. Two authors
  sharing a name are indistinguishable under this strategy.
"""

import logging

from sqlalchemy import select, update

from bookshelf.models import Book, SavedBook, User, UserRole
from bookshelf.services.batch import commit_in_batches
from bookshelf.services.projections import patch_saved_books
from bookshelf.triggers.changes import DocumentChange
from bookshelf.triggers.registry import TriggerContext, TriggerResult
from bookshelf.utils import utcnow

logger = logging.getLogger(__name__)


def rename_author_books(ctx: TriggerContext, user_id: str, new_name: str) -> list[str]:
    """
    Rewrite the cached author name on every book by user_id.

    Books already showing new_name are left alone, so their version is
    only bumped by a real change.

    Returns:
        IDs of the author's books
    """
    book_ids = ctx.db.execute(
        select(Book.id).where(Book.author_id == user_id)
    ).scalars().all()
    if not book_ids:
        return []

    now = utcnow()
    statements = (
        update(Book)
        .where(Book.id == book_id, Book.author_name != new_name)
        .values(author_name=new_name, updated_at=now, version=Book.version + 1)
        for book_id in book_ids
    )
    commit_in_batches(ctx.db, statements, batch_size=ctx.batch_size)

    for book_id in book_ids:
        ctx.invalidate_book(book_id)
    return list(book_ids)


def sync_author_name(
    ctx: TriggerContext,
    change: DocumentChange,
    params: dict[str, str],
) -> TriggerResult:
    """
    Propagate an author's new display name to their books and saved copies.

    Args:
        ctx: Invocation context (session, batch size, match strategy)
        change: Before/after snapshots of the user
        params: Path parameters, user_id

    Returns:
        APPLIED with the number of books and saved copies written, or
        SKIPPED with the reason nothing was done

    Raises:
        PropagationError: A batch failed; the dispatcher re-runs the invocation
    """
    user_id = params["user_id"]
    old_name = change.before.get("display_name")

    if old_name == change.after.get("display_name"):
        return TriggerResult.skipped("display name unchanged")

    user = ctx.db.get(User, user_id, populate_existing=True)
    if user is None:
        logger.info(f"User {user_id} not found, author rename ignored")
        return TriggerResult.skipped("user not found")
    if user.role != UserRole.AUTHOR.value:
        logger.debug(f"User {user_id} is not an author, no books to rename")
        return TriggerResult.skipped("user is not an author")

    new_name = user.display_name
    book_ids = rename_author_books(ctx, user_id, new_name)
    if not book_ids:
        logger.info(f"Author {user_id} has no books, nothing to sync")
        return TriggerResult.skipped("author has no books")

    if ctx.author_name_match == "name":
        criteria = [SavedBook.author_name == old_name]
    else:
        criteria = [SavedBook.author_id == user_id]

    updated = patch_saved_books(
        ctx.db,
        criteria,
        {"author_name": new_name},
        SavedBook.author_synced_at,
        user.updated_at,
        batch_size=ctx.batch_size,
    )

    logger.info(
        f"Renamed author {user_id} to '{new_name}' on {len(book_ids)} books "
        f"and {updated} saved copies"
    )
    return TriggerResult.applied(updated=len(book_ids) + updated, book_ids=book_ids)
