"""
Tests for Ratings

- Rate a book (create and overwrite)
- The book's average and count, updated by the rating trigger
- My rating, removing my rating
- Rating statistics

Business Rules:
- One rating per user per book
- Values are integers from 1 to 5
"""

import pytest
from fastapi import status
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from bookshelf.models import Book, Rating, SavedBook, User

from tests.conftest import auth_header, save_copy


def rate(client: TestClient, book_id: str, user: User, value):
    return client.put(
        f"/api/v1/books/{book_id}/rating",
        json={"value": value},
        headers=auth_header(user),
    )


class TestRateBook:
    """Tests for PUT /api/v1/books/{book_id}/rating"""

    def test_rate_then_change(self, client: TestClient, rated_book: Book, reader: User):
        response = rate(client, rated_book.id, reader, 2)

        assert response.status_code == status.HTTP_200_OK
        book = client.get(f"/api/v1/books/{rated_book.id}", headers=auth_header(reader)).json()
        assert book["avg_rating"] == pytest.approx(3.333, abs=1e-3)
        assert book["rating_count"] == 3
        assert book["my_rating"] == 2

        rate(client, rated_book.id, reader, 5)

        book = client.get(f"/api/v1/books/{rated_book.id}", headers=auth_header(reader)).json()
        assert book["avg_rating"] == pytest.approx(4.333, abs=1e-3)
        assert book["rating_count"] == 3
        assert book["my_rating"] == 5

    def test_rating_same_value_twice(self, client: TestClient, sample_book: Book, reader: User):
        rate(client, sample_book.id, reader, 4)
        rate(client, sample_book.id, reader, 4)

        book = client.get(f"/api/v1/books/{sample_book.id}").json()
        assert book["avg_rating"] == 4.0
        assert book["rating_count"] == 1

    def test_average_reaches_saved_copies(
        self,
        client: TestClient,
        db_session: Session,
        rated_book: Book,
        reader: User,
        superuser: User,
    ):
        save_copy(db_session, superuser, rated_book)

        rate(client, rated_book.id, reader, 2)

        db_session.expire_all()
        saved = db_session.get(SavedBook, (superuser.id, rated_book.id))
        assert saved.avg_rating == pytest.approx(10 / 3)

    @pytest.mark.parametrize("value", [0, 6, 4.5, "4", None])
    def test_invalid_values_rejected(self, client: TestClient, sample_book: Book, reader: User, value):
        response = rate(client, sample_book.id, reader, value)

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    def test_rate_missing_book(self, client: TestClient, reader: User):
        response = rate(client, "missing", reader, 3)

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_rate_requires_login(self, client: TestClient, sample_book: Book):
        response = client.put(f"/api/v1/books/{sample_book.id}/rating", json={"value": 3})

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


class TestMyRating:
    """Tests for GET and DELETE /api/v1/books/{book_id}/rating"""

    def test_unrated_returns_zero(self, client: TestClient, sample_book: Book, reader: User):
        response = client.get(f"/api/v1/books/{sample_book.id}/rating", headers=auth_header(reader))

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["value"] == 0

    def test_returns_my_value(self, client: TestClient, sample_book: Book, reader: User):
        rate(client, sample_book.id, reader, 3)

        response = client.get(f"/api/v1/books/{sample_book.id}/rating", headers=auth_header(reader))

        assert response.json()["value"] == 3
        assert response.json()["user_id"] == reader.id

    def test_delete_recomputes_summary(self, client: TestClient, db_session: Session, rated_book: Book, reader: User):
        rate(client, rated_book.id, reader, 1)

        response = client.delete(f"/api/v1/books/{rated_book.id}/rating", headers=auth_header(reader))

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert db_session.get(Rating, (rated_book.id, reader.id)) is None
        book = client.get(f"/api/v1/books/{rated_book.id}").json()
        assert book["avg_rating"] == 4.0
        assert book["rating_count"] == 2

    def test_delete_without_rating(self, client: TestClient, sample_book: Book, reader: User):
        response = client.delete(f"/api/v1/books/{sample_book.id}/rating", headers=auth_header(reader))

        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestRatingStats:
    """Tests for GET /api/v1/books/{book_id}/rating-stats"""

    def test_distribution(self, client: TestClient, rated_book: Book, reader: User):
        rate(client, rated_book.id, reader, 5)

        response = client.get(f"/api/v1/books/{rated_book.id}/rating-stats")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["rating_count"] == 3
        assert data["avg_rating"] == pytest.approx(13 / 3)
        assert data["distribution"] == {"1": 0, "2": 0, "3": 1, "4": 0, "5": 2}

    def test_stats_missing_book(self, client: TestClient):
        response = client.get("/api/v1/books/missing/rating-stats")

        assert response.status_code == status.HTTP_404_NOT_FOUND
