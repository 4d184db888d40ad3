"""
Document Change Events

A DocumentChange describes one committed write to a canonical document:
the document's path plus its state before and after the write.

    created:  before is None, after is the new state
    updated:  both snapshots present
    deleted:  after is None

Paths are slash-separated, collection/id pairs:

    books/{book_id}
    books/{book_id}/ratings/{user_id}
    users/{user_id}
"""

import copy
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import inspect

from bookshelf.utils import new_id, utcnow


class ChangeKind(StrEnum):
    """Kind of write a change represents."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


@dataclass(frozen=True)
class DocumentChange:
    """
    A committed write to one document.

    Attributes:
        path: Document path, e.g. "books/b1/ratings/u1"
        before: Field values before the write (None when created)
        after: Field values after the write (None when deleted)
        event_id: Unique id of this change; retries reuse it
        timestamp: When the write was committed
    """

    path: str
    before: dict[str, Any] | None
    after: dict[str, Any] | None
    event_id: str = field(default_factory=new_id)
    timestamp: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        if self.before is None and self.after is None:
            raise ValueError("A change needs a before or an after snapshot")

    @property
    def kind(self) -> ChangeKind:
        if self.before is None:
            return ChangeKind.CREATED
        if self.after is None:
            return ChangeKind.DELETED
        return ChangeKind.UPDATED

    @property
    def data(self) -> dict[str, Any]:
        """The latest known state: after, or before for a deletion."""
        return self.after if self.after is not None else self.before


def snapshot(instance) -> dict[str, Any]:
    """
    Capture the column values of a model instance.

    Mutable values (JSON lists) are copied so later edits to the instance
    do not leak into the snapshot.
    """
    mapper = inspect(instance).mapper
    return {
        attr.key: copy.deepcopy(getattr(instance, attr.key))
        for attr in mapper.column_attrs
    }


def book_path(book_id: str) -> str:
    return f"books/{book_id}"


def rating_path(book_id: str, user_id: str) -> str:
    return f"books/{book_id}/ratings/{user_id}"


def user_path(user_id: str) -> str:
    return f"users/{user_id}"
