"""
Client-Side Rating Display State

The server updates a book's avg_rating asynchronously after a rating is
written, so a client that re-reads the book immediately may still see the
old summary. RatingDisplayState shows a provisional summary while the
rating request is in flight and settles it once the outcome is known.

State Machine
=============

    IDLE ──begin(v)──► PENDING ──commit()──────────► COMMITTED
      ▲                   │
      │                   └──rollback(auth?)──────► ROLLED_BACK
      │
      └──refresh(...) from any phase (authoritative read)

- begin(v): remember the authoritative values, show a provisional average
- commit(): the server accepted the rating; keep the provisional values
  until the next authoritative read
- rollback(): the write failed; restore the remembered values, or the
  re-fetched authoritative ones when given
- refresh(): overwrite everything with an authoritative read

Provisional values only live here. They are never sent to the server.
"""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from bookshelf.utils.mean import mean_with_corrected_rating, mean_with_new_rating

MIN_RATING = 1
MAX_RATING = 5


class InvalidTransitionError(RuntimeError):
    """A state machine method was called in a phase that does not allow it."""


class RatingPhase(StrEnum):
    IDLE = "idle"
    PENDING = "pending"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


def optimistic_average(
    avg: float,
    count: int,
    value: int,
    prior: int | None = None,
) -> tuple[float, int]:
    """
    Predict the summary after the caller rates `value`.

    Args:
        avg: Current average
        count: Current number of ratings
        value: The caller's new rating
        prior: The caller's previous rating, None if they had not rated

    Example:
        >>> optimistic_average(4.0, 2, 2)
        (3.3333333333333335, 3)
        >>> optimistic_average(10 / 3, 3, 5, prior=2)
        (4.333333333333333, 3)
    """
    if prior is None or count < 1:
        return mean_with_new_rating(avg, count, value)
    if prior == value:
        return avg, count
    return mean_with_corrected_rating(avg, count, prior, value)


def blended_average(avg: float, value: int) -> float:
    """
    Two-point blend for when the caller's prior rating is unknown.

    Only a display approximation; the server's summary replaces it on the
    next read.
    """
    if avg == 0:
        return float(value)
    return (avg + value) / 2


@dataclass
class RatingDisplayState:
    """
    What the UI shows for one book's rating.

    Attributes:
        book_id: The book
        avg_rating / rating_count: Displayed summary (authoritative or provisional)
        my_rating: The caller's rating, 0 when unrated
        rating_known: Whether my_rating came from the server; when False the
            provisional average falls back to blended_average
        phase: Current state machine phase
    """

    book_id: str
    avg_rating: float = 0.0
    rating_count: int = 0
    my_rating: int = 0
    rating_known: bool = True
    phase: RatingPhase = RatingPhase.IDLE
    _snapshot: tuple[float, int, int] | None = field(default=None, repr=False)

    @classmethod
    def from_book(cls, book: dict[str, Any]) -> "RatingDisplayState":
        """Build from a book detail response (GET /books/{id})."""
        return cls(
            book_id=book["id"],
            avg_rating=float(book.get("avg_rating", 0.0)),
            rating_count=int(book.get("rating_count", 0)),
            my_rating=int(book.get("my_rating", 0)),
            rating_known="my_rating" in book,
        )

    @property
    def is_provisional(self) -> bool:
        return self.phase in (RatingPhase.PENDING, RatingPhase.COMMITTED)

    def begin(self, value: int) -> None:
        if self.phase == RatingPhase.PENDING:
            raise InvalidTransitionError("A rating is already pending")
        if not MIN_RATING <= value <= MAX_RATING:
            raise ValueError(f"Rating must be between {MIN_RATING} and {MAX_RATING}")

        self._snapshot = (self.avg_rating, self.rating_count, self.my_rating)

        if self.rating_known:
            prior = self.my_rating or None
            self.avg_rating, self.rating_count = optimistic_average(
                self.avg_rating, self.rating_count, value, prior
            )
        else:
            self.avg_rating = blended_average(self.avg_rating, value)

        self.my_rating = value
        self.phase = RatingPhase.PENDING

    def commit(self) -> None:
        if self.phase != RatingPhase.PENDING:
            raise InvalidTransitionError(f"Cannot commit from {self.phase}")
        self._snapshot = None
        self.phase = RatingPhase.COMMITTED

    def rollback(self, authoritative: dict[str, Any] | None = None) -> None:
        """
        Undo the provisional values.

        Args:
            authoritative: A freshly fetched book detail; when given it wins
                over the remembered pre-rating values
        """
        if self.phase != RatingPhase.PENDING:
            raise InvalidTransitionError(f"Cannot roll back from {self.phase}")

        if authoritative is not None:
            self._apply(authoritative)
        elif self._snapshot is not None:
            self.avg_rating, self.rating_count, self.my_rating = self._snapshot

        self._snapshot = None
        self.phase = RatingPhase.ROLLED_BACK

    def refresh(self, book: dict[str, Any]) -> None:
        """Overwrite with an authoritative read and return to IDLE."""
        self._apply(book)
        self._snapshot = None
        self.phase = RatingPhase.IDLE

    def _apply(self, book: dict[str, Any]) -> None:
        self.avg_rating = float(book.get("avg_rating", self.avg_rating))
        self.rating_count = int(book.get("rating_count", self.rating_count))
        if "my_rating" in book:
            self.my_rating = int(book["my_rating"])
            self.rating_known = True
