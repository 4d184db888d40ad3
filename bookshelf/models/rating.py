"""
Rating Model

One rating per (book, user) pair, keyed by the rater's id under the book.

Business Rules:
- Rating value must be 1-5
- user_id is always the authenticated rater (ratings are not transferable)
- Re-rating overwrites the existing record

counted_value is written only by the rating aggregator: it is the value
currently reflected in the parent book's avg_rating/rating_count. NULL means
the aggregator has not counted this rating yet.
"""

from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bookshelf.database import Base
from bookshelf.utils import utcnow

MIN_RATING = 1
MAX_RATING = 5


class Rating(Base):
    """
    Rating model for a user's star rating of a book.

    Attributes:
        book_id: Rated book (part of primary key)
        user_id: Rater (part of primary key)
        value: 1-5 star rating
        counted_value: Value already folded into the book's summary
        created_at: When the rating was first submitted
        updated_at: When the rating was last changed
    """

    __tablename__ = "ratings"

    book_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("books.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )

    value: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Rating from 1-5 stars",
    )
    counted_value: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
        comment="Value reflected in the book's rating summary",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    book = relationship("Book", back_populates="ratings")

    __table_args__ = (
        CheckConstraint(
            f"value >= {MIN_RATING} AND value <= {MAX_RATING}",
            name="ck_rating_value_range",
        ),
    )

    def __repr__(self) -> str:
        return f"<Rating(book_id={self.book_id}, user_id={self.user_id}, value={self.value})>"
