"""initial schema

Creates users, books, ratings and saved_books.

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table('users',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False, comment="User's email address (used for login)"),
        sa.Column('hashed_password', sa.String(length=255), nullable=True, comment='Bcrypt hashed password'),
        sa.Column('display_name', sa.String(length=255), nullable=False, comment='Public display name, cached as authorName on books'),
        sa.Column('role', sa.String(length=20), nullable=False, comment='Role claim: author or reader'),
        sa.Column('is_active', sa.Boolean(), nullable=False, comment='Whether the account is active'),
        sa.Column('is_superuser', sa.Boolean(), nullable=False, comment='Whether user has admin privileges'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)

    op.create_table('books',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('title', sa.String(length=500), nullable=False, comment='Book title'),
        sa.Column('author_id', sa.String(length=36), nullable=False, comment='Publishing author'),
        sa.Column('author_name', sa.String(length=255), nullable=False, comment='Cached display name of the author'),
        sa.Column('cover_url', sa.Text(), nullable=False, comment='Cover image URL'),
        sa.Column('genre', sa.String(length=100), nullable=False),
        sa.Column('tags', sa.JSON(), nullable=False),
        sa.Column('published_date', sa.Date(), nullable=True),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('pages', sa.Integer(), nullable=False, comment='Number of pages'),
        sa.Column('avg_rating', sa.Float(), nullable=False, comment='Mean of all ratings, 0 when unrated'),
        sa.Column('rating_count', sa.Integer(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['author_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_books_title'), 'books', ['title'], unique=False)
    op.create_index(op.f('ix_books_author_id'), 'books', ['author_id'], unique=False)
    op.create_index(op.f('ix_books_genre'), 'books', ['genre'], unique=False)
    op.create_index(op.f('ix_books_published_date'), 'books', ['published_date'], unique=False)

    op.create_table('ratings',
        sa.Column('book_id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('value', sa.Integer(), nullable=False, comment='Rating from 1-5 stars'),
        sa.Column('counted_value', sa.Integer(), nullable=True, comment="Value reflected in the book's rating summary"),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('value >= 1 AND value <= 5', name='ck_rating_value_range'),
        sa.ForeignKeyConstraint(['book_id'], ['books.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('book_id', 'user_id')
    )
    op.create_index(op.f('ix_ratings_user_id'), 'ratings', ['user_id'], unique=False)

    op.create_table('saved_books',
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('book_id', sa.String(length=36), nullable=False, comment='Canonical book id (no FK, see module docstring)'),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('author_id', sa.String(length=36), nullable=False),
        sa.Column('author_name', sa.String(length=255), nullable=False),
        sa.Column('cover_url', sa.Text(), nullable=False),
        sa.Column('avg_rating', sa.Float(), nullable=False),
        sa.Column('genre', sa.String(length=100), nullable=False),
        sa.Column('tags', sa.JSON(), nullable=False),
        sa.Column('saved_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('content_synced_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rating_synced_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('author_synced_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('user_id', 'book_id')
    )
    op.create_index(op.f('ix_saved_books_book_id'), 'saved_books', ['book_id'], unique=False)
    op.create_index(op.f('ix_saved_books_title'), 'saved_books', ['title'], unique=False)
    op.create_index(op.f('ix_saved_books_author_id'), 'saved_books', ['author_id'], unique=False)
    op.create_index(op.f('ix_saved_books_author_name'), 'saved_books', ['author_name'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_saved_books_author_name'), table_name='saved_books')
    op.drop_index(op.f('ix_saved_books_author_id'), table_name='saved_books')
    op.drop_index(op.f('ix_saved_books_title'), table_name='saved_books')
    op.drop_index(op.f('ix_saved_books_book_id'), table_name='saved_books')
    op.drop_table('saved_books')
    op.drop_index(op.f('ix_ratings_user_id'), table_name='ratings')
    op.drop_table('ratings')
    op.drop_index(op.f('ix_books_published_date'), table_name='books')
    op.drop_index(op.f('ix_books_genre'), table_name='books')
    op.drop_index(op.f('ix_books_author_id'), table_name='books')
    op.drop_index(op.f('ix_books_title'), table_name='books')
    op.drop_table('books')
    op.drop_index(op.f('ix_users_email'), table_name='users')
    op.drop_table('users')
