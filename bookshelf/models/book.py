"""
Book Model

The canonical book record. Content fields are owned by the book's author;
the rating summary (avg_rating, rating_count) is owned by the rating
aggregator and derived solely from the book's Rating children.

Optimistic Concurrency
======================
`version` is SQLAlchemy's version counter (`version_id_col`). Every ORM
UPDATE is issued as:

    UPDATE books SET ..., version = :new WHERE id = :id AND version = :old

and raises StaleDataError when no row matches, i.e. when another writer
got there first. The rating aggregator relies on this as its
compare-and-swap guard.
"""

from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bookshelf.database import Base
from bookshelf.utils import new_id, utcnow

if TYPE_CHECKING:
    from bookshelf.models.rating import Rating
    from bookshelf.models.user import User


class Book(Base):
    """
    Book model representing published books.

    Table: books

    Fields:
    - title, cover_url, genre, tags: copied into every SavedBook projection
    - author_id / author_name: owning author and cached display name
    - avg_rating / rating_count: derived rating summary (unrounded float)

    Indexes:
    - title: listing order
    - author_id: author's published books, author-name sync
    - genre: filtering
    """

    __tablename__ = "books"

    # -------------------------------------------------------------------------
    # Primary Key
    # -------------------------------------------------------------------------
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    # -------------------------------------------------------------------------
    # Content Fields (author-owned)
    # -------------------------------------------------------------------------
    title: Mapped[str] = mapped_column(
        String(500),
        index=True,
        nullable=False,
        comment="Book title"
    )

    author_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
        comment="Publishing author"
    )

    author_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Cached display name of the author"
    )

    cover_url: Mapped[str] = mapped_column(
        Text,
        default="",
        nullable=False,
        comment="Cover image URL"
    )

    genre: Mapped[str] = mapped_column(
        String(100),
        index=True,
        nullable=False,
    )

    tags: Mapped[list[str]] = mapped_column(
        JSON,
        default=list,
        nullable=False,
    )

    published_date: Mapped[date | None] = mapped_column(
        Date,
        index=True,
        nullable=True,
    )

    description: Mapped[str] = mapped_column(
        Text,
        default="",
        nullable=False,
    )

    pages: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Number of pages"
    )

    # -------------------------------------------------------------------------
    # Rating Summary (aggregator-owned)
    # -------------------------------------------------------------------------
    avg_rating: Mapped[float] = mapped_column(
        Float,
        default=0.0,
        nullable=False,
        comment="Mean of all ratings, 0 when unrated"
    )

    rating_count: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # -------------------------------------------------------------------------
    # Timestamps
    # -------------------------------------------------------------------------
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    # -------------------------------------------------------------------------
    # Relationships
    # -------------------------------------------------------------------------
    author: Mapped["User"] = relationship("User", back_populates="books")

    ratings: Mapped[list["Rating"]] = relationship(
        "Rating",
        back_populates="book",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"Book(id={self.id}, title='{self.title}', author_id='{self.author_id}')"
