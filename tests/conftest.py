"""
pytest Fixtures for Bookshelf API Tests

Shared fixtures used across all test files.

FIXTURE SCOPES:
- session: the SQLite engine (created once, tables created once)
- function: database session, HTTP client and sample data (fresh per test)

Triggers
========
The API hands committed writes to the trigger dispatcher as background
tasks. TestClient runs background tasks before returning the response, so
by the time a request returns, saved books and rating summaries are
already up to date. The test dispatcher runs every invocation inside the
test's own session, so trigger writes are rolled back with the rest of
the test.
"""

# =============================================================================
# TEST ENVIRONMENT SETUP
# =============================================================================
# IMPORTANT: Set environment variables BEFORE importing the app
import os

os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["CACHE_ENABLED"] = "false"
os.environ["ELASTICSEARCH_ENABLED"] = "false"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["TRIGGER_RETRY_BACKOFF_SECONDS"] = "0"
os.environ["SECRET_KEY"] = "test-secret-key-for-unit-tests-at-least-32-characters-long"

from collections.abc import Generator
from contextlib import nullcontext

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from bookshelf.database import Base, get_db
from bookshelf.dependencies import (
    get_book_cache,
    get_search_index,
    get_trigger_dispatcher,
)
from bookshelf.main import app
from bookshelf.models import Book, Rating, SavedBook, User, UserRole
from bookshelf.services.cache import BookCache
from bookshelf.services.projections import save_book_for_user
from bookshelf.services.search import SearchIndex
from bookshelf.services.security import create_access_token, hash_password
from bookshelf.triggers import TriggerDispatcher, create_trigger_registry

# =============================================================================
# DATABASE FIXTURES
# =============================================================================
# SQLite in-memory for speed. StaticPool keeps the single connection alive
# for the whole session; check_same_thread=False because sync routes and
# background tasks run in a worker thread.


@pytest.fixture(scope="session")
def engine():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(engine) -> Generator[Session, None, None]:
    """
    Fresh session per test, wrapped in a transaction that is rolled back.

    Commits made by the code under test only release to this outer
    transaction, so nothing leaks between tests.
    """
    TestSessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
    )

    connection = engine.connect()
    transaction = connection.begin()
    session = TestSessionLocal(bind=connection)

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def dispatcher(db_session: Session) -> TriggerDispatcher:
    """Trigger dispatcher running every invocation in the test session."""
    return TriggerDispatcher(
        create_trigger_registry(),
        lambda: nullcontext(db_session),
        max_attempts=3,
        backoff_seconds=0,
    )


@pytest.fixture(scope="function")
def client(
    db_session: Session,
    dispatcher: TriggerDispatcher,
) -> Generator[TestClient, None, None]:
    """
    Test client wired to the test database and the test dispatcher.

    Search and cache are disconnected, so search uses the database fallback
    and every cache lookup misses.
    """

    def override_get_db():
        try:
            yield db_session
        finally:
            pass  # Session cleanup handled by db_session fixture

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_trigger_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_search_index] = lambda: SearchIndex(None)
    app.dependency_overrides[get_book_cache] = lambda: BookCache(None)

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# =============================================================================
# AUTH HELPERS
# =============================================================================


def auth_header(user: User) -> dict:
    """Authorization header carrying an access token for the user."""
    token = create_access_token({"sub": user.id, "role": user.role})
    return {"Authorization": f"Bearer {token}"}


# =============================================================================
# SAMPLE DATA FIXTURES
# =============================================================================


def make_user(
    db: Session,
    email: str,
    display_name: str,
    role: UserRole = UserRole.READER,
    **kwargs,
) -> User:
    user = User(
        email=email,
        display_name=display_name,
        hashed_password=hash_password("SecurePass123"),
        role=role.value,
        is_active=True,
        **kwargs,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def author(db_session: Session) -> User:
    """An author who publishes the sample books."""
    return make_user(db_session, "ursula@example.com", "Ursula K. Le Guin", UserRole.AUTHOR)


@pytest.fixture
def other_author(db_session: Session) -> User:
    return make_user(db_session, "octavia@example.com", "Octavia Butler", UserRole.AUTHOR)


@pytest.fixture
def reader(db_session: Session) -> User:
    return make_user(db_session, "reader@example.com", "Avid Reader")


@pytest.fixture
def second_reader(db_session: Session) -> User:
    return make_user(db_session, "second@example.com", "Second Reader")


@pytest.fixture
def superuser(db_session: Session) -> User:
    return make_user(db_session, "admin@example.com", "Admin", is_superuser=True)


@pytest.fixture
def sample_book(db_session: Session, author: User) -> Book:
    """An unrated book by the sample author."""
    book = Book(
        title="The Left Hand of Darkness",
        author_id=author.id,
        author_name=author.display_name,
        cover_url="https://covers.example.com/lhod.jpg",
        genre="Fiction",
        tags=["classic", "hugo"],
        description="An envoy visits the planet Gethen.",
        pages=304,
    )
    db_session.add(book)
    db_session.commit()
    db_session.refresh(book)
    return book


@pytest.fixture
def rated_book(db_session: Session, sample_book: Book, second_reader: User, other_author: User) -> Book:
    """
    sample_book with two counted ratings (3 and 5), average 4.0.
    """
    db_session.add_all([
        Rating(book_id=sample_book.id, user_id=second_reader.id, value=3, counted_value=3),
        Rating(book_id=sample_book.id, user_id=other_author.id, value=5, counted_value=5),
    ])
    sample_book.avg_rating = 4.0
    sample_book.rating_count = 2
    db_session.commit()
    db_session.refresh(sample_book)
    return sample_book


def save_copy(db: Session, user: User, book: Book) -> SavedBook:
    """Save a projection of book for user, as PUT /users/me/saved-books does."""
    return save_book_for_user(db, user.id, book)
