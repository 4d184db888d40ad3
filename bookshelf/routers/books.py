"""
Books Router

CRUD endpoints for books.

Endpoints:
- GET /books - List books (paginated by title; genre, tag, author filters)
- GET /books/{book_id} - Book detail with the caller's own rating
- POST /books - Publish a book (authors only)
- PATCH /books/{book_id} - Edit content fields (owning author only)
- DELETE /books/{book_id} - Delete a book (owning author only)

Business Rules:
- Only the owning author edits or deletes a book
- avg_rating, rating_count and the author fields are never client-writable
- Every committed write is handed to the trigger dispatcher after the
  response is sent; saved copies of the book are updated from there
- Deleting a book leaves saved copies in place
  (see POST /admin/saved-books/prune)
"""

import logging
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, HTTPException, Query, Request, status
from sqlalchemy import func, select
from sqlalchemy.orm.exc import StaleDataError

from bookshelf.config import get_settings
from bookshelf.dependencies import (
    AuthorUser,
    Cache,
    DbSession,
    Dispatcher,
    OptionalUser,
    Pagination,
    Search,
    get_book_or_404,
)
from bookshelf.models import Book, Rating, User
from bookshelf.schemas.book import (
    BookCreate,
    BookDetailResponse,
    BookListResponse,
    BookResponse,
    BookUpdate,
)
from bookshelf.services.rate_limiter import limiter
from bookshelf.services.search import book_to_document, tag_filter
from bookshelf.triggers import DocumentChange, book_path, snapshot
from bookshelf.utils import utcnow

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(
    prefix="/books",
    tags=["Books"],
    responses={
        404: {"description": "Book not found"},
    },
)


def get_owned_book_or_403(db: DbSession, book_id: str, user: User) -> Book:
    """Get a book the user authored, 404 if missing, 403 if not theirs."""
    book = get_book_or_404(db, book_id)
    if book.author_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the book's author can modify it",
        )
    return book


# =============================================================================
# Read Endpoints
# =============================================================================


@router.get(
    "",
    response_model=BookListResponse,
    summary="List books",
    description="Paginated list of books ordered by title.",
)
@limiter.limit(settings.rate_limit_default)
def list_books(
    request: Request,
    db: DbSession,
    pagination: Pagination,
    genre: Annotated[str | None, Query(max_length=100)] = None,
    tag: Annotated[str | None, Query(max_length=100)] = None,
    author_id: Annotated[str | None, Query(max_length=36)] = None,
) -> BookListResponse:
    conditions = []
    if genre:
        conditions.append(Book.genre == genre)
    if tag:
        conditions.append(tag_filter(Book.tags, tag))
    if author_id:
        conditions.append(Book.author_id == author_id)

    total = db.execute(
        select(func.count()).select_from(Book).where(*conditions)
    ).scalar() or 0
    books = db.execute(
        select(Book)
        .where(*conditions)
        .order_by(Book.title, Book.id)
        .offset(pagination.skip)
        .limit(pagination.per_page)
    ).scalars().all()

    return BookListResponse(
        items=[BookResponse.model_validate(b) for b in books],
        total=total,
        page=pagination.page,
        per_page=pagination.per_page,
        pages=pagination.pages(total),
    )


@router.get(
    "/{book_id}",
    response_model=BookDetailResponse,
    summary="Get a book",
    description="Book detail. Authenticated callers also get their own rating in my_rating.",
)
@limiter.limit(settings.rate_limit_default)
def get_book(
    request: Request,
    book_id: str,
    db: DbSession,
    cache: Cache,
    current_user: OptionalUser,
) -> BookDetailResponse:
    cached = cache.get(book_id)
    if cached is not None:
        book_data = BookResponse.model_validate(cached)
    else:
        book_data = BookResponse.model_validate(get_book_or_404(db, book_id))
        cache.set(book_id, book_data.model_dump(mode="json"))

    my_rating = 0
    if current_user is not None:
        my_rating = db.execute(
            select(Rating.value).where(
                Rating.book_id == book_id,
                Rating.user_id == current_user.id,
            )
        ).scalar() or 0

    return BookDetailResponse(**book_data.model_dump(), my_rating=my_rating)


# =============================================================================
# Write Endpoints
# =============================================================================


@router.post(
    "",
    response_model=BookResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Publish a book",
)
@limiter.limit(settings.rate_limit_write)
def create_book(
    request: Request,
    book_data: BookCreate,
    db: DbSession,
    current_user: AuthorUser,
    search_index: Search,
    dispatcher: Dispatcher,
    background_tasks: BackgroundTasks,
) -> BookResponse:
    book = Book(
        **book_data.model_dump(),
        author_id=current_user.id,
        author_name=current_user.display_name,
    )
    db.add(book)
    db.commit()
    db.refresh(book)

    background_tasks.add_task(search_index.index_document, book.id, book_to_document(book))
    background_tasks.add_task(
        dispatcher.dispatch,
        DocumentChange(book_path(book.id), None, snapshot(book)),
    )

    logger.info(f"Author {current_user.id} published book {book.id}: {book.title}")
    return BookResponse.model_validate(book)


@router.patch(
    "/{book_id}",
    response_model=BookResponse,
    summary="Edit a book",
    description="Update content fields. Saved copies pick up title, cover, genre and tags.",
    responses={409: {"description": "The book changed concurrently, retry"}},
)
@limiter.limit(settings.rate_limit_write)
def update_book(
    request: Request,
    book_id: str,
    update_data: BookUpdate,
    db: DbSession,
    current_user: AuthorUser,
    cache: Cache,
    search_index: Search,
    dispatcher: Dispatcher,
    background_tasks: BackgroundTasks,
) -> BookResponse:
    book = get_owned_book_or_403(db, book_id, current_user)

    fields = update_data.model_dump(exclude_unset=True)
    for name in ("title", "genre", "pages", "tags", "cover_url", "description"):
        if name in fields and fields[name] is None:
            del fields[name]

    if not fields:
        return BookResponse.model_validate(book)

    before = snapshot(book)
    for name, value in fields.items():
        setattr(book, name, value)
    book.updated_at = utcnow()

    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="The book was modified concurrently, please retry",
        )
    db.refresh(book)
    after = snapshot(book)

    cache.invalidate(book_id)
    background_tasks.add_task(search_index.index_document, book.id, book_to_document(book))
    background_tasks.add_task(
        dispatcher.dispatch,
        DocumentChange(book_path(book.id), before, after),
    )

    logger.info(f"Book {book_id} updated: {sorted(fields)}")
    return BookResponse.model_validate(book)


@router.delete(
    "/{book_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a book",
)
@limiter.limit(settings.rate_limit_write)
def delete_book(
    request: Request,
    book_id: str,
    db: DbSession,
    current_user: AuthorUser,
    cache: Cache,
    search_index: Search,
    dispatcher: Dispatcher,
    background_tasks: BackgroundTasks,
) -> None:
    book = get_owned_book_or_403(db, book_id, current_user)
    before = snapshot(book)

    db.delete(book)
    db.commit()

    cache.invalidate(book_id)
    background_tasks.add_task(search_index.delete_document, book_id)
    background_tasks.add_task(
        dispatcher.dispatch,
        DocumentChange(book_path(book_id), before, None),
    )
    logger.info(f"Book {book_id} deleted by author {current_user.id}")
