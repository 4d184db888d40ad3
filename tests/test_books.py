"""
Tests for Books

- List books (pagination, genre/tag/author filters)
- Book detail (with the caller's own rating)
- Publish, edit and delete (owning author only)
- Edits reaching saved copies through the book sync trigger
"""

from fastapi import status
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from bookshelf.models import Book, Rating, SavedBook, User

from tests.conftest import auth_header, save_copy


def book_payload(**overrides) -> dict:
    payload = {
        "title": "The Dispossessed",
        "genre": "Science Fiction",
        "tags": ["utopia", " classic ", "utopia"],
        "pages": 387,
        "cover_url": "https://covers.example.com/disp.jpg",
        "description": "An ambiguous utopia.",
    }
    payload.update(overrides)
    return payload


# =============================================================================
# Read Endpoints
# =============================================================================


class TestListBooks:
    """Tests for GET /api/v1/books"""

    def test_list_empty(self, client: TestClient):
        response = client.get("/api/v1/books")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["items"] == []
        assert data["total"] == 0
        assert data["pages"] == 0

    def test_list_ordered_by_title(self, client: TestClient, db_session: Session, author: User):
        for title in ("Zebra", "Alpha", "Middle"):
            db_session.add(Book(title=title, author_id=author.id, author_name=author.display_name, genre="Fiction", pages=100))
        db_session.commit()

        response = client.get("/api/v1/books")

        assert [b["title"] for b in response.json()["items"]] == ["Alpha", "Middle", "Zebra"]

    def test_list_pagination(self, client: TestClient, db_session: Session, author: User):
        for i in range(12):
            db_session.add(Book(title=f"Book {i:02d}", author_id=author.id, author_name=author.display_name, genre="Fiction", pages=100))
        db_session.commit()

        response = client.get("/api/v1/books?page=2&per_page=5")

        data = response.json()
        assert data["total"] == 12
        assert data["pages"] == 3
        assert [b["title"] for b in data["items"]] == [f"Book {i:02d}" for i in range(5, 10)]

    def test_filter_by_genre_and_tag(self, client: TestClient, db_session: Session, sample_book: Book, author: User):
        db_session.add(Book(title="Other", author_id=author.id, author_name=author.display_name, genre="Mystery", tags=["noir"], pages=90))
        db_session.commit()

        by_genre = client.get("/api/v1/books?genre=Mystery").json()
        by_tag = client.get("/api/v1/books?tag=hugo").json()

        assert [b["title"] for b in by_genre["items"]] == ["Other"]
        assert [b["id"] for b in by_tag["items"]] == [sample_book.id]

    def test_filter_by_author(self, client: TestClient, sample_book: Book, other_author: User):
        response = client.get(f"/api/v1/books?author_id={other_author.id}")

        assert response.json()["total"] == 0


class TestGetBook:
    """Tests for GET /api/v1/books/{book_id}"""

    def test_get_book_anonymous(self, client: TestClient, sample_book: Book):
        response = client.get(f"/api/v1/books/{sample_book.id}")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["title"] == "The Left Hand of Darkness"
        assert data["author_name"] == "Ursula K. Le Guin"
        assert data["avg_rating"] == 0.0
        assert data["rating_count"] == 0
        assert data["my_rating"] == 0

    def test_get_book_with_my_rating(self, client: TestClient, db_session: Session, sample_book: Book, reader: User):
        db_session.add(Rating(book_id=sample_book.id, user_id=reader.id, value=4, counted_value=4))
        db_session.commit()

        response = client.get(f"/api/v1/books/{sample_book.id}", headers=auth_header(reader))

        assert response.json()["my_rating"] == 4

    def test_get_book_not_found(self, client: TestClient):
        response = client.get("/api/v1/books/does-not-exist")

        assert response.status_code == status.HTTP_404_NOT_FOUND


# =============================================================================
# Write Endpoints
# =============================================================================


class TestCreateBook:
    """Tests for POST /api/v1/books"""

    def test_author_publishes_book(self, client: TestClient, author: User):
        response = client.post("/api/v1/books", json=book_payload(), headers=auth_header(author))

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["author_id"] == author.id
        assert data["author_name"] == author.display_name
        assert data["tags"] == ["utopia", "classic"]
        assert data["avg_rating"] == 0.0
        assert data["rating_count"] == 0

    def test_rating_fields_ignored_on_create(self, client: TestClient, author: User):
        response = client.post(
            "/api/v1/books",
            json=book_payload(avg_rating=5.0, rating_count=100),
            headers=auth_header(author),
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["avg_rating"] == 0.0
        assert response.json()["rating_count"] == 0

    def test_reader_cannot_publish(self, client: TestClient, reader: User):
        response = client.post("/api/v1/books", json=book_payload(), headers=auth_header(reader))

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_anonymous_cannot_publish(self, client: TestClient):
        response = client.post("/api/v1/books", json=book_payload())

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_invalid_pages(self, client: TestClient, author: User):
        response = client.post("/api/v1/books", json=book_payload(pages=0), headers=auth_header(author))

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


class TestUpdateBook:
    """Tests for PATCH /api/v1/books/{book_id}"""

    def test_owner_edits_book(self, client: TestClient, sample_book: Book, author: User):
        response = client.patch(
            f"/api/v1/books/{sample_book.id}",
            json={"title": "  The Left Hand of Darkness (Ace)  ", "pages": 320},
            headers=auth_header(author),
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["title"] == "The Left Hand of Darkness (Ace)"
        assert data["pages"] == 320
        assert data["genre"] == "Fiction"

    def test_genre_change_reaches_saved_copies(
        self,
        client: TestClient,
        db_session: Session,
        sample_book: Book,
        author: User,
        reader: User,
        second_reader: User,
    ):
        save_copy(db_session, reader, sample_book)
        save_copy(db_session, second_reader, sample_book)

        response = client.patch(
            f"/api/v1/books/{sample_book.id}",
            json={"genre": "Mystery"},
            headers=auth_header(author),
        )

        assert response.status_code == status.HTTP_200_OK
        db_session.expire_all()
        for user in (reader, second_reader):
            saved = db_session.get(SavedBook, (user.id, sample_book.id))
            assert saved.genre == "Mystery"
            assert saved.title == "The Left Hand of Darkness"
            assert saved.cover_url == "https://covers.example.com/lhod.jpg"
            assert saved.tags == ["classic", "hugo"]

    def test_non_owner_cannot_edit(self, client: TestClient, sample_book: Book, other_author: User):
        response = client.patch(
            f"/api/v1/books/{sample_book.id}",
            json={"title": "Stolen"},
            headers=auth_header(other_author),
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_rating_summary_not_writable(self, client: TestClient, sample_book: Book, author: User):
        response = client.patch(
            f"/api/v1/books/{sample_book.id}",
            json={"avg_rating": 5.0},
            headers=auth_header(author),
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    def test_author_fields_not_writable(self, client: TestClient, sample_book: Book, author: User):
        response = client.patch(
            f"/api/v1/books/{sample_book.id}",
            json={"author_name": "Someone Else"},
            headers=auth_header(author),
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    def test_empty_update_is_noop(self, client: TestClient, sample_book: Book, author: User):
        response = client.patch(
            f"/api/v1/books/{sample_book.id}",
            json={},
            headers=auth_header(author),
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["title"] == sample_book.title

    def test_update_missing_book(self, client: TestClient, author: User):
        response = client.patch(
            "/api/v1/books/missing",
            json={"title": "Nothing"},
            headers=auth_header(author),
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestDeleteBook:
    """Tests for DELETE /api/v1/books/{book_id}"""

    def test_owner_deletes_book(self, client: TestClient, db_session: Session, sample_book: Book, author: User):
        book_id = sample_book.id

        response = client.delete(f"/api/v1/books/{book_id}", headers=auth_header(author))

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert client.get(f"/api/v1/books/{book_id}").status_code == status.HTTP_404_NOT_FOUND

    def test_saved_copies_survive_deletion(
        self,
        client: TestClient,
        db_session: Session,
        sample_book: Book,
        author: User,
        reader: User,
    ):
        save_copy(db_session, reader, sample_book)
        book_id = sample_book.id

        client.delete(f"/api/v1/books/{book_id}", headers=auth_header(author))

        db_session.expire_all()
        assert db_session.get(SavedBook, (reader.id, book_id)) is not None

    def test_non_owner_cannot_delete(self, client: TestClient, sample_book: Book, other_author: User):
        response = client.delete(f"/api/v1/books/{sample_book.id}", headers=auth_header(other_author))

        assert response.status_code == status.HTTP_403_FORBIDDEN
