"""
FastAPI Dependencies Module

Dependencies are reusable components injected into route handlers.
FastAPI's Depends() function manages their lifecycle, and tests replace
them through app.dependency_overrides.

Provided here:
- DbSession: per-request database session
- Pagination: page/per_page query parameters
- CurrentUser / ActiveUser / AuthorUser / SuperUser / OptionalUser:
  JWT authentication and role checks
- Dispatcher / Search / Cache: application services built in create_app()
  and stored on app.state
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Query, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from bookshelf.database import get_db
from bookshelf.models import Book, User, UserRole
from bookshelf.services.cache import BookCache
from bookshelf.services.search import SearchIndex
from bookshelf.services.security import verify_token_type
from bookshelf.triggers import TriggerDispatcher

DbSession = Annotated[Session, Depends(get_db)]


# =============================================================================
# Pagination Parameters
# =============================================================================
class PaginationParams:
    """
    Common pagination parameters for list endpoints.

    Usage in route:
        @router.get("/books")
        def list_books(db: DbSession, pagination: Pagination):
            stmt = stmt.offset(pagination.skip).limit(pagination.per_page)
    """

    def __init__(
        self,
        page: int = Query(
            default=1,
            ge=1,
            description="Page number (1-indexed)",
        ),
        per_page: int = Query(
            default=10,
            ge=1,
            le=100,
            description="Number of items per page (max 100)",
        ),
    ) -> None:
        self.page = page
        self.per_page = per_page

    @property
    def skip(self) -> int:
        """Rows to skip: page 1 → 0, page 2 → per_page, ..."""
        return (self.page - 1) * self.per_page

    def pages(self, total: int) -> int:
        return (total + self.per_page - 1) // self.per_page


Pagination = Annotated[PaginationParams, Depends()]


# =============================================================================
# Lookups
# =============================================================================
def get_book_or_404(db: Session, book_id: str) -> Book:
    """Get a book by ID or raise 404."""
    book = db.get(Book, book_id)
    if book is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Book with id {book_id} not found",
        )
    return book


# =============================================================================
# Application Services
# =============================================================================
def get_trigger_dispatcher(request: Request) -> TriggerDispatcher:
    return request.app.state.trigger_dispatcher


def get_search_index(request: Request) -> SearchIndex:
    return request.app.state.search_index


def get_book_cache(request: Request) -> BookCache:
    return request.app.state.book_cache


Dispatcher = Annotated[TriggerDispatcher, Depends(get_trigger_dispatcher)]
Search = Annotated[SearchIndex, Depends(get_search_index)]
Cache = Annotated[BookCache, Depends(get_book_cache)]


# =============================================================================
# JWT Authentication
# =============================================================================
# OAuth2PasswordBearer extracts the token from "Authorization: Bearer <token>"
# and adds the "Authorize" button to Swagger UI.

oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl="/api/v1/auth/login",
    auto_error=True,
)

oauth2_scheme_optional = OAuth2PasswordBearer(
    tokenUrl="/api/v1/auth/login",
    auto_error=False,
)


def _user_from_token(db: Session, token: str) -> User | None:
    payload = verify_token_type(token, "access")
    if payload is None:
        return None

    user_id = payload.get("sub")
    if user_id is None:
        return None

    return db.get(User, user_id)


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """
    Extract and validate the current user from the JWT access token.

    Raises:
        HTTPException: 401 if the token is invalid or the user is gone
    """
    user = _user_from_token(db, token)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def get_current_active_user(
    current_user: User = Depends(get_current_user),
) -> User:
    """Reject disabled accounts with 403."""
    if not current_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is inactive",
        )
    return current_user


def get_current_author(
    current_user: User = Depends(get_current_active_user),
) -> User:
    """Only users with the author role may publish or edit books."""
    if current_user.role != UserRole.AUTHOR.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Author role required",
        )
    return current_user


def get_current_superuser(
    current_user: User = Depends(get_current_active_user),
) -> User:
    """Admin-only endpoints."""
    if not current_user.is_superuser:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Superuser privileges required",
        )
    return current_user


def get_optional_current_user(
    token: str | None = Depends(oauth2_scheme_optional),
    db: Session = Depends(get_db),
) -> User | None:
    """
    Current user if a valid token was sent, None otherwise.

    Used where anonymous access is allowed but authenticated callers
    get extra data (e.g. their own rating on book detail).
    """
    if not token:
        return None
    return _user_from_token(db, token)


CurrentUser = Annotated[User, Depends(get_current_user)]
ActiveUser = Annotated[User, Depends(get_current_active_user)]
AuthorUser = Annotated[User, Depends(get_current_author)]
SuperUser = Annotated[User, Depends(get_current_superuser)]
OptionalUser = Annotated[User | None, Depends(get_optional_current_user)]
