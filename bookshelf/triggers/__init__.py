"""
Triggers Package

Change handlers that keep derived and denormalized data in sync:

| Trigger              | Path                              | Fires on       |
|----------------------|-----------------------------------|----------------|
| calculate_avg_rating | books/{book_id}/ratings/{user_id} | any write      |
| sync_book_info       | books/{book_id}                   | update         |
| sync_author_name     | users/{user_id}                   | update         |
"""

from bookshelf.triggers.author_sync import sync_author_name
from bookshelf.triggers.avg_rating import calculate_avg_rating
from bookshelf.triggers.book_sync import sync_book_info
from bookshelf.triggers.changes import (
    ChangeKind,
    DocumentChange,
    book_path,
    rating_path,
    snapshot,
    user_path,
)
from bookshelf.triggers.registry import (
    TriggerContext,
    TriggerDispatcher,
    TriggerRegistry,
    TriggerResult,
    TriggerStatus,
)


def create_trigger_registry() -> TriggerRegistry:
    """Build the registry with every application trigger subscribed."""
    registry = TriggerRegistry()
    registry.on_document_written("books/{book_id}/ratings/{user_id}")(calculate_avg_rating)
    registry.on_document_updated("books/{book_id}")(sync_book_info)
    registry.on_document_updated("users/{user_id}")(sync_author_name)
    return registry


__all__ = [
    "ChangeKind",
    "DocumentChange",
    "TriggerContext",
    "TriggerDispatcher",
    "TriggerRegistry",
    "TriggerResult",
    "TriggerStatus",
    "book_path",
    "create_trigger_registry",
    "rating_path",
    "snapshot",
    "user_path",
]
