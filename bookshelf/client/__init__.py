"""
Bookshelf Python Client

- api.py: async HTTP client (httpx) with user-readable errors
- reconciler.py: optimistic rating display state machine
"""

from bookshelf.client.api import BookshelfClient, ClientError
from bookshelf.client.reconciler import (
    InvalidTransitionError,
    RatingDisplayState,
    RatingPhase,
    blended_average,
    optimistic_average,
)

__all__ = [
    "BookshelfClient",
    "ClientError",
    "InvalidTransitionError",
    "RatingDisplayState",
    "RatingPhase",
    "blended_average",
    "optimistic_average",
]
