"""
Users Router

Endpoints for the authenticated user's own profile, published books and
saved books.

Endpoints:
- GET /users/me - Current user's profile
- PATCH /users/me - Update display name / email
- PUT /users/me/password - Change password
- GET /users/me/books - Books the current user published
- GET /users/me/saved-books - Saved books (paginated, optional search)
- PUT /users/me/saved-books/{book_id} - Save a book
- DELETE /users/me/saved-books/{book_id} - Unsave a book

Business Rules:
- Users only read and write their own profile and saved books
- A display name change of an author is propagated to their books and to
  every saved copy of them (see triggers/author_sync.py)
"""

import logging
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, HTTPException, Query, Request, status
from sqlalchemy import func, select

from bookshelf.config import get_settings
from bookshelf.dependencies import (
    ActiveUser,
    DbSession,
    Dispatcher,
    Pagination,
    Search,
    get_book_or_404,
)
from bookshelf.models import Book, User
from bookshelf.schemas.book import BookListResponse, BookResponse
from bookshelf.schemas.saved_book import SavedBookListResponse, SavedBookResponse
from bookshelf.schemas.user import PasswordChange, UserResponse, UserUpdate
from bookshelf.services.projections import (
    list_saved_books,
    remove_saved_book,
    save_book_for_user,
)
from bookshelf.services.rate_limiter import limiter
from bookshelf.services.security import hash_password, verify_password
from bookshelf.triggers import DocumentChange, snapshot, user_path
from bookshelf.triggers.search_sync import dispatch_and_reindex

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(
    prefix="/users",
    tags=["Users"],
)


# =============================================================================
# Profile
# =============================================================================


@router.get("/me", response_model=UserResponse, summary="Get my profile")
def get_my_profile(current_user: ActiveUser) -> UserResponse:
    return UserResponse.model_validate(current_user)


@router.patch("/me", response_model=UserResponse, summary="Update my profile")
@limiter.limit(settings.rate_limit_write)
def update_my_profile(
    request: Request,
    update_data: UserUpdate,
    db: DbSession,
    current_user: ActiveUser,
    dispatcher: Dispatcher,
    search_index: Search,
    background_tasks: BackgroundTasks,
) -> UserResponse:
    """
    Update display name and/or email.

    Raises:
        HTTPException: 409 if the new email is taken by another user
    """
    fields = update_data.model_dump(exclude_unset=True, exclude_none=True)

    if "email" in fields and fields["email"] != current_user.email:
        taken = db.execute(
            select(User.id).where(User.email == fields["email"], User.id != current_user.id)
        ).first()
        if taken:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Email already registered",
            )

    before = snapshot(current_user)
    for field, value in fields.items():
        setattr(current_user, field, value)

    db.commit()
    db.refresh(current_user)
    after = snapshot(current_user)

    if any(before[field] != after[field] for field in fields):
        background_tasks.add_task(
            dispatch_and_reindex,
            dispatcher,
            search_index,
            DocumentChange(user_path(current_user.id), before, after),
        )
        logger.info(f"User {current_user.id} updated {sorted(fields)}")

    return UserResponse.model_validate(current_user)


@router.put(
    "/me/password",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Change password",
    description="Change my password. The current password must be supplied.",
)
@limiter.limit("5/minute")
def change_password(
    request: Request,
    password_data: PasswordChange,
    db: DbSession,
    current_user: ActiveUser,
) -> None:
    """
    Raises:
        HTTPException: 400 if the current password is wrong
    """
    if not verify_password(password_data.current_password, current_user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect",
        )

    current_user.hashed_password = hash_password(password_data.new_password)
    db.commit()
    logger.info(f"User {current_user.id} changed their password")


@router.get("/me/books", response_model=BookListResponse, summary="List my published books")
def list_my_books(
    db: DbSession,
    current_user: ActiveUser,
    pagination: Pagination,
) -> BookListResponse:
    total = db.execute(
        select(func.count()).select_from(Book).where(Book.author_id == current_user.id)
    ).scalar() or 0
    books = db.execute(
        select(Book)
        .where(Book.author_id == current_user.id)
        .order_by(Book.created_at.desc(), Book.id)
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


# =============================================================================
# Saved Books
# =============================================================================


@router.get(
    "/me/saved-books",
    response_model=SavedBookListResponse,
    summary="List my saved books",
)
@limiter.limit(settings.rate_limit_default)
def get_saved_books(
    request: Request,
    db: DbSession,
    current_user: ActiveUser,
    pagination: Pagination,
    q: Annotated[
        str | None,
        Query(min_length=1, max_length=100, description="Filter by title or author name"),
    ] = None,
) -> SavedBookListResponse:
    items, total = list_saved_books(
        db,
        current_user.id,
        query=q,
        offset=pagination.skip,
        limit=pagination.per_page,
    )
    return SavedBookListResponse(
        items=[SavedBookResponse.model_validate(s) for s in items],
        total=total,
        page=pagination.page,
        per_page=pagination.per_page,
        pages=pagination.pages(total),
    )


@router.put(
    "/me/saved-books/{book_id}",
    response_model=SavedBookResponse,
    summary="Save a book",
    description="Copy the book into my saved books. Saving again refreshes the copy.",
)
@limiter.limit(settings.rate_limit_write)
def save_book(
    request: Request,
    book_id: str,
    db: DbSession,
    current_user: ActiveUser,
) -> SavedBookResponse:
    book = get_book_or_404(db, book_id)
    saved = save_book_for_user(db, current_user.id, book)
    logger.info(f"User {current_user.id} saved book {book_id}")
    return SavedBookResponse.model_validate(saved)


@router.delete(
    "/me/saved-books/{book_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Unsave a book",
)
@limiter.limit(settings.rate_limit_write)
def unsave_book(
    request: Request,
    book_id: str,
    db: DbSession,
    current_user: ActiveUser,
) -> None:
    if not remove_saved_book(db, current_user.id, book_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Book {book_id} is not in your saved books",
        )
    logger.info(f"User {current_user.id} unsaved book {book_id}")
