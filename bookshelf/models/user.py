"""
User Model

Represents a registered reader or author. The display name doubles as the
cached "author name" on every book the user publishes, so renames are
propagated by the author-name sync trigger.
"""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bookshelf.database import Base
from bookshelf.utils import new_id, utcnow

if TYPE_CHECKING:
    from bookshelf.models.book import Book
    from bookshelf.models.saved_book import SavedBook


class UserRole(str, Enum):
    """
    Role claim attached to a user's identity.

    - AUTHOR: may publish and manage their own books
    - READER: may browse, rate and save books
    """
    AUTHOR = "author"
    READER = "reader"


class User(Base):
    """
    User model representing registered users.

    Table: users

    Relationships:
    - books: One-to-Many with Book (books published by this author)
    - saved_books: One-to-Many with SavedBook (this user's projections)

    Example:
        user = User(
            email="ursula@example.com",
            display_name="Ursula K. Le Guin",
            hashed_password=hash_password("secret123"),
            role=UserRole.AUTHOR.value,
        )
    """

    __tablename__ = "users"

    # -------------------------------------------------------------------------
    # Primary Key
    # -------------------------------------------------------------------------
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    # -------------------------------------------------------------------------
    # Authentication Fields
    # -------------------------------------------------------------------------
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
        comment="User's email address (used for login)"
    )

    hashed_password: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="Bcrypt hashed password"
    )

    # -------------------------------------------------------------------------
    # Profile Fields
    # -------------------------------------------------------------------------
    display_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Public display name, cached as authorName on books"
    )

    role: Mapped[str] = mapped_column(
        String(20),
        default=UserRole.READER.value,
        nullable=False,
        comment="Role claim: author or reader"
    )

    # -------------------------------------------------------------------------
    # Account Status
    # -------------------------------------------------------------------------
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
        comment="Whether the account is active"
    )

    is_superuser: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        comment="Whether user has admin privileges"
    )

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
        onupdate=utcnow,
        nullable=False,
    )

    # -------------------------------------------------------------------------
    # Relationships
    # -------------------------------------------------------------------------
    books: Mapped[list["Book"]] = relationship(
        "Book",
        back_populates="author",
        cascade="all, delete-orphan",
    )

    saved_books: Mapped[list["SavedBook"]] = relationship(
        "SavedBook",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    @property
    def is_author(self) -> bool:
        return self.role == UserRole.AUTHOR.value

    def __repr__(self) -> str:
        return f"User(id={self.id}, email='{self.email}', role='{self.role}')"
