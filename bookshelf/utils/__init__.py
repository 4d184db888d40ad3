"""
Utilities Package

Small helpers shared across models, services and triggers.
"""

from datetime import UTC, datetime
from uuid import uuid4


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


def new_id() -> str:
    """Generate a document id (32 hex characters)."""
    return uuid4().hex
