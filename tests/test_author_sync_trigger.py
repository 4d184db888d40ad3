"""
Tests for the author name sync trigger

When an author's display name changes, sync_author_name rewrites the cached
author name on their books and on every saved copy of those books.
"""

from sqlalchemy.orm import Session

from bookshelf.models import Book, SavedBook, User
from bookshelf.triggers import (
    DocumentChange,
    TriggerContext,
    TriggerStatus,
    snapshot,
    user_path,
)
from bookshelf.triggers.author_sync import sync_author_name

from tests.conftest import save_copy


def rename(db: Session, user: User, new_name: str) -> DocumentChange:
    before = snapshot(user)
    user.display_name = new_name
    db.commit()
    db.refresh(user)
    return DocumentChange(user_path(user.id), before, snapshot(user))


def run(db: Session, change: DocumentChange, user_id: str, **ctx_options):
    ctx = TriggerContext(db=db, **ctx_options)
    return sync_author_name(ctx, change, {"user_id": user_id})


def add_book(db: Session, author: User, title: str) -> Book:
    book = Book(
        title=title,
        author_id=author.id,
        author_name=author.display_name,
        genre="Fiction",
        tags=[],
        pages=200,
    )
    db.add(book)
    db.commit()
    db.refresh(book)
    return book


class TestSyncAuthorName:
    def test_rename_reaches_books_and_saved_copies(
        self,
        db_session: Session,
        author: User,
        sample_book: Book,
        reader: User,
        second_reader: User,
    ):
        save_copy(db_session, reader, sample_book)
        save_copy(db_session, second_reader, sample_book)
        version = sample_book.version

        result = run(db_session, rename(db_session, author, "U. K. Le Guin"), author.id)

        assert result.status == TriggerStatus.APPLIED
        db_session.expire_all()
        book = db_session.get(Book, sample_book.id)
        assert book.author_name == "U. K. Le Guin"
        assert book.version == version + 1
        for user in (reader, second_reader):
            assert db_session.get(SavedBook, (user.id, sample_book.id)).author_name == "U. K. Le Guin"

    def test_every_book_of_author_renamed(self, db_session: Session, author: User):
        books = [add_book(db_session, author, f"Volume {i}") for i in range(3)]

        run(db_session, rename(db_session, author, "Renamed"), author.id, batch_size=2)

        db_session.expire_all()
        assert {db_session.get(Book, b.id).author_name for b in books} == {"Renamed"}

    def test_other_authors_untouched(
        self,
        db_session: Session,
        author: User,
        other_author: User,
        sample_book: Book,
        reader: User,
    ):
        other_book = add_book(db_session, other_author, "Kindred")
        save_copy(db_session, reader, other_book)

        run(db_session, rename(db_session, author, "Renamed"), author.id)

        db_session.expire_all()
        assert db_session.get(Book, other_book.id).author_name == "Octavia Butler"
        assert db_session.get(SavedBook, (reader.id, other_book.id)).author_name == "Octavia Butler"

    def test_unchanged_name_is_skipped(self, db_session: Session, author: User, sample_book: Book):
        data = snapshot(author)
        change = DocumentChange(user_path(author.id), data, {**data, "email": "new@example.com"})

        result = run(db_session, change, author.id)

        assert result.status == TriggerStatus.SKIPPED
        assert result.detail == "display name unchanged"

    def test_reader_rename_is_skipped(self, db_session: Session, reader: User):
        result = run(db_session, rename(db_session, reader, "New Reader Name"), reader.id)

        assert result.status == TriggerStatus.SKIPPED
        assert result.detail == "user is not an author"

    def test_author_without_books_is_skipped(self, db_session: Session, other_author: User):
        result = run(db_session, rename(db_session, other_author, "O. E. Butler"), other_author.id)

        assert result.status == TriggerStatus.SKIPPED
        assert result.detail == "author has no books"

    def test_missing_user_is_skipped(self, db_session: Session):
        change = DocumentChange(
            user_path("gone"),
            {"display_name": "Old"},
            {"display_name": "New"},
        )

        result = run(db_session, change, "gone")

        assert result.status == TriggerStatus.SKIPPED
        assert result.detail == "user not found"


class TestAuthorNameMatching:
    def test_match_by_name_uses_old_name(
        self,
        db_session: Session,
        author: User,
        sample_book: Book,
        reader: User,
    ):
        saved = save_copy(db_session, reader, sample_book)
        # Copy whose author_id no longer lines up, only its name does
        saved.author_id = "legacy-id"
        db_session.commit()

        run(db_session, rename(db_session, author, "Renamed"), author.id, author_name_match="name")

        db_session.expire_all()
        assert db_session.get(SavedBook, (reader.id, sample_book.id)).author_name == "Renamed"

    def test_match_by_id_ignores_name(
        self,
        db_session: Session,
        author: User,
        sample_book: Book,
        reader: User,
    ):
        saved = save_copy(db_session, reader, sample_book)
        saved.author_id = "legacy-id"
        db_session.commit()

        run(db_session, rename(db_session, author, "Renamed"), author.id, author_name_match="author_id")

        db_session.expire_all()
        assert db_session.get(SavedBook, (reader.id, sample_book.id)).author_name == "Ursula K. Le Guin"


class TestOutOfOrderRenames:
    def test_stale_rename_delivered_last_keeps_newest_name(
        self,
        db_session: Session,
        author: User,
        sample_book: Book,
        reader: User,
    ):
        save_copy(db_session, reader, sample_book)
        first = rename(db_session, author, "Name B")
        second = rename(db_session, author, "Name C")

        run(db_session, second, author.id)
        run(db_session, first, author.id)

        db_session.expire_all()
        assert db_session.get(Book, sample_book.id).author_name == "Name C"
        assert db_session.get(SavedBook, (reader.id, sample_book.id)).author_name == "Name C"

    def test_repeated_delivery_does_not_bump_version(
        self,
        db_session: Session,
        author: User,
        sample_book: Book,
    ):
        change = rename(db_session, author, "Name B")
        run(db_session, change, author.id)
        db_session.expire_all()
        version = db_session.get(Book, sample_book.id).version

        run(db_session, change, author.id)

        db_session.expire_all()
        assert db_session.get(Book, sample_book.id).version == version
