"""
Ratings Router

Endpoints:
- PUT /books/{book_id}/rating - Create or overwrite my rating
- GET /books/{book_id}/rating - My rating (value 0 when unrated)
- DELETE /books/{book_id}/rating - Remove my rating
- GET /books/{book_id}/rating-stats - Summary and distribution

Business Rules:
- One rating per user per book; rating again overwrites it
- The rater is always the authenticated user
- The book's avg_rating/rating_count are updated by the rating trigger
  after the response is sent, so a client reading the book right away may
  still see the previous summary
"""

import logging

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request, status

from bookshelf.config import get_settings
from bookshelf.dependencies import ActiveUser, DbSession, Dispatcher, Search, get_book_or_404
from bookshelf.models import Rating
from bookshelf.schemas.rating import BookRatingStats, RatingCreate, RatingResponse
from bookshelf.services.rate_limiter import limiter
from bookshelf.services.ratings import get_rating_distribution
from bookshelf.triggers import DocumentChange, rating_path, snapshot
from bookshelf.triggers.search_sync import dispatch_and_reindex

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(
    prefix="/books/{book_id}",
    tags=["Ratings"],
    responses={
        404: {"description": "Book not found"},
    },
)


@router.put(
    "/rating",
    response_model=RatingResponse,
    summary="Rate a book",
    description="Create or overwrite my 1-5 star rating of the book.",
)
@limiter.limit(settings.rate_limit_write)
def rate_book(
    request: Request,
    book_id: str,
    rating_data: RatingCreate,
    db: DbSession,
    current_user: ActiveUser,
    dispatcher: Dispatcher,
    search_index: Search,
    background_tasks: BackgroundTasks,
) -> RatingResponse:
    get_book_or_404(db, book_id)

    rating = db.get(Rating, (book_id, current_user.id))
    if rating is None:
        before = None
        rating = Rating(book_id=book_id, user_id=current_user.id, value=rating_data.value)
        db.add(rating)
    else:
        before = snapshot(rating)
        rating.value = rating_data.value

    db.commit()
    db.refresh(rating)

    background_tasks.add_task(
        dispatch_and_reindex,
        dispatcher,
        search_index,
        DocumentChange(rating_path(book_id, current_user.id), before, snapshot(rating)),
    )

    logger.info(f"User {current_user.id} rated book {book_id}: {rating.value}")
    return RatingResponse.model_validate(rating)


@router.get(
    "/rating",
    response_model=RatingResponse,
    summary="Get my rating",
)
def get_my_rating(
    book_id: str,
    db: DbSession,
    current_user: ActiveUser,
) -> RatingResponse:
    get_book_or_404(db, book_id)

    rating = db.get(Rating, (book_id, current_user.id))
    if rating is None:
        return RatingResponse(book_id=book_id, user_id=current_user.id, value=0)
    return RatingResponse.model_validate(rating)


@router.delete(
    "/rating",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove my rating",
)
@limiter.limit(settings.rate_limit_write)
def delete_my_rating(
    request: Request,
    book_id: str,
    db: DbSession,
    current_user: ActiveUser,
    dispatcher: Dispatcher,
    search_index: Search,
    background_tasks: BackgroundTasks,
) -> None:
    rating = db.get(Rating, (book_id, current_user.id))
    if rating is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="You have not rated this book",
        )

    before = snapshot(rating)
    db.delete(rating)
    db.commit()

    background_tasks.add_task(
        dispatch_and_reindex,
        dispatcher,
        search_index,
        DocumentChange(rating_path(book_id, current_user.id), before, None),
    )
    logger.info(f"User {current_user.id} removed their rating of book {book_id}")


@router.get(
    "/rating-stats",
    response_model=BookRatingStats,
    summary="Get book rating statistics",
)
@limiter.limit(settings.rate_limit_default)
def get_rating_stats(
    request: Request,
    book_id: str,
    db: DbSession,
) -> BookRatingStats:
    book = get_book_or_404(db, book_id)
    return BookRatingStats(
        book_id=book.id,
        avg_rating=book.avg_rating,
        rating_count=book.rating_count,
        distribution=get_rating_distribution(db, book_id),
    )
