"""
SavedBook Model

A denormalized per-user projection of a Book, created when a user saves a
book and deleted when they unsave it. Its copyable fields are patched by the
sync triggers whenever the canonical book or author changes.

Reverse Index
=============
Rows are keyed by (user_id, book_id) and book_id is indexed, so "every
projection of book X" is a single indexed query instead of a scan over all
users. author_id is indexed for the author-name sync.

There is deliberately no foreign key from book_id to books.id: deleting a
book leaves its projections in place until prune_orphaned_saved_books runs.

Last-Write-Wins Stamps
======================
Each group of propagated fields carries the source update's timestamp:

- content_synced_at: title, cover_url, genre, tags (from books.updated_at)
- rating_synced_at: avg_rating (from books.updated_at)
- author_synced_at: author_name (from users.updated_at)

A patch only applies when the stamp is NULL or not newer than the patch.
"""

from datetime import datetime

from sqlalchemy import JSON, DateTime, Float, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bookshelf.database import Base
from bookshelf.utils import utcnow


class SavedBook(Base):
    """Projection of a Book stored under the owning user's namespace."""

    __tablename__ = "saved_books"

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    book_id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        index=True,
        comment="Canonical book id (no FK, see module docstring)",
    )

    # -------------------------------------------------------------------------
    # Projected Fields
    # -------------------------------------------------------------------------
    title: Mapped[str] = mapped_column(String(500), index=True, nullable=False)
    author_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    author_name: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    cover_url: Mapped[str] = mapped_column(Text, default="", nullable=False)
    avg_rating: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    genre: Mapped[str] = mapped_column(String(100), nullable=False)
    tags: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)

    # -------------------------------------------------------------------------
    # Timestamps
    # -------------------------------------------------------------------------
    saved_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    content_synced_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    rating_synced_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    author_synced_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    user = relationship("User", back_populates="saved_books")

    def __repr__(self) -> str:
        return f"<SavedBook(user_id={self.user_id}, book_id={self.book_id}, title='{self.title}')>"
