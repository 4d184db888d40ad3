"""
Trigger Registry and Dispatcher

Triggers are change handlers subscribed to document path patterns. A pattern
is a slash-separated path whose `{name}` segments are wildcards:

    "books/{book_id}/ratings/{user_id}"  matches  "books/b1/ratings/u1"
                                          params  {"book_id": "b1", "user_id": "u1"}

Subscribing:
    registry = TriggerRegistry()

    @registry.on_document_updated("books/{book_id}")
    def sync_book_info(ctx, change, params):
        ...

Delivery Model
==============
- Each matching handler runs as an independent invocation with its own
  database session and no state shared with other invocations.
- Delivery is at-least-once: a raising invocation is rolled back and run
  again, up to max_attempts, with exponential backoff between attempts.
  Handlers must therefore be safe to run twice for the same change.
- When the last attempt fails the failure is logged and reported as a
  failed TriggerResult. Nothing is resubmitted by handler code.
- Writes made by handlers are not re-dispatched as new changes.
"""

import logging
import time
from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from sqlalchemy.orm import Session

from bookshelf.config import MAX_BATCH_WRITES, Settings
from bookshelf.triggers.changes import ChangeKind, DocumentChange

if TYPE_CHECKING:
    from bookshelf.services.cache import BookCache

logger = logging.getLogger(__name__)


# =============================================================================
# Results and Context
# =============================================================================


class TriggerStatus(StrEnum):
    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class TriggerResult:
    """
    Outcome of one trigger invocation.

    Attributes:
        status: applied, skipped or failed
        updated: Number of documents the invocation wrote
        detail: Skip reason or error message
        trigger: Name of the handler (filled in by the dispatcher)
        attempts: Attempts used (filled in by the dispatcher)
        book_ids: Books whose rating summary or author name the invocation
            rewrote, for re-indexing in search
    """

    status: TriggerStatus
    updated: int = 0
    detail: str = ""
    trigger: str = ""
    attempts: int = 0
    book_ids: list[str] = field(default_factory=list)

    @classmethod
    def applied(
        cls,
        updated: int = 0,
        detail: str = "",
        book_ids: list[str] | None = None,
    ) -> "TriggerResult":
        return cls(
            status=TriggerStatus.APPLIED,
            updated=updated,
            detail=detail,
            book_ids=list(book_ids or []),
        )

    @classmethod
    def skipped(cls, reason: str) -> "TriggerResult":
        return cls(status=TriggerStatus.SKIPPED, detail=reason)

    @property
    def ok(self) -> bool:
        return self.status != TriggerStatus.FAILED


@dataclass
class TriggerContext:
    """Everything a handler may use during one invocation."""

    db: Session
    batch_size: int = MAX_BATCH_WRITES
    author_name_match: str = "author_id"
    rating_cas_max_attempts: int = 5
    cache: "BookCache | None" = None

    def invalidate_book(self, book_id: str) -> None:
        """Drop a book's cached detail after the handler rewrote it."""
        if self.cache is not None:
            self.cache.invalidate(book_id)


Handler = Callable[[TriggerContext, DocumentChange, dict[str, str]], TriggerResult | None]


# =============================================================================
# Registry
# =============================================================================


ALL_KINDS = frozenset(ChangeKind)


@dataclass(frozen=True)
class Subscription:
    name: str
    pattern: str
    kinds: frozenset[ChangeKind]
    handler: Handler
    segments: tuple[str, ...] = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, "segments", tuple(self.pattern.strip("/").split("/")))

    def match(self, path: str) -> dict[str, str] | None:
        """Return the captured wildcards, or None if the path does not match."""
        parts = path.strip("/").split("/")
        if len(parts) != len(self.segments):
            return None

        params: dict[str, str] = {}
        for segment, part in zip(self.segments, parts):
            if segment.startswith("{") and segment.endswith("}"):
                if not part:
                    return None
                params[segment[1:-1]] = part
            elif segment != part:
                return None
        return params


class TriggerRegistry:
    """Holds the trigger subscriptions of the application."""

    def __init__(self):
        self._subscriptions: list[Subscription] = []

    def __len__(self) -> int:
        return len(self._subscriptions)

    @property
    def names(self) -> list[str]:
        return [s.name for s in self._subscriptions]

    def register(
        self,
        pattern: str,
        handler: Handler,
        kinds: frozenset[ChangeKind] = ALL_KINDS,
        name: str | None = None,
    ) -> Handler:
        subscription = Subscription(
            name=name or handler.__name__,
            pattern=pattern,
            kinds=frozenset(kinds),
            handler=handler,
        )
        self._subscriptions.append(subscription)
        logger.debug(f"Registered trigger {subscription.name} on {pattern}")
        return handler

    def _decorator(self, pattern: str, kinds: frozenset[ChangeKind]):
        def decorator(handler: Handler) -> Handler:
            return self.register(pattern, handler, kinds)
        return decorator

    def on_document_written(self, pattern: str):
        """Fire on create, update and delete."""
        return self._decorator(pattern, ALL_KINDS)

    def on_document_created(self, pattern: str):
        return self._decorator(pattern, frozenset({ChangeKind.CREATED}))

    def on_document_updated(self, pattern: str):
        return self._decorator(pattern, frozenset({ChangeKind.UPDATED}))

    def on_document_deleted(self, pattern: str):
        return self._decorator(pattern, frozenset({ChangeKind.DELETED}))

    def match(self, change: DocumentChange) -> Iterator[tuple[Subscription, dict[str, str]]]:
        """Yield every subscription interested in the change, with its params."""
        kind = change.kind
        for subscription in self._subscriptions:
            if kind not in subscription.kinds:
                continue
            params = subscription.match(change.path)
            if params is not None:
                yield subscription, params


# =============================================================================
# Dispatcher
# =============================================================================


class TriggerDispatcher:
    """
    Runs the handlers matching a change, retrying failed invocations.

    Args:
        registry: Subscriptions to dispatch to
        session_factory: Callable returning a context-managed Session,
            called once per attempt (e.g. SessionLocal)
        max_attempts: Attempts per invocation before giving up
        backoff_seconds: Delay before the second attempt, doubled after each
            further failure (0 disables sleeping)
        cache: Optional book cache handlers invalidate after writing books
    """

    def __init__(
        self,
        registry: TriggerRegistry,
        session_factory: Callable[[], AbstractContextManager[Session]],
        *,
        max_attempts: int = 3,
        backoff_seconds: float = 0.5,
        batch_size: int = MAX_BATCH_WRITES,
        author_name_match: str = "author_id",
        rating_cas_max_attempts: int = 5,
        cache: "BookCache | None" = None,
        sleep: Callable[[float], Any] = time.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.registry = registry
        self.session_factory = session_factory
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.batch_size = batch_size
        self.author_name_match = author_name_match
        self.rating_cas_max_attempts = rating_cas_max_attempts
        self.cache = cache
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        registry: TriggerRegistry,
        session_factory: Callable[[], AbstractContextManager[Session]],
        settings: Settings,
        cache: "BookCache | None" = None,
    ) -> "TriggerDispatcher":
        return cls(
            registry,
            session_factory,
            max_attempts=settings.trigger_max_attempts,
            backoff_seconds=settings.trigger_retry_backoff_seconds,
            batch_size=settings.propagation_batch_size,
            author_name_match=settings.author_name_match,
            rating_cas_max_attempts=settings.rating_cas_max_attempts,
            cache=cache,
        )

    def dispatch(self, change: DocumentChange) -> list[TriggerResult]:
        """
        Deliver a committed change to every matching trigger.

        Returns:
            One TriggerResult per matching subscription
        """
        results = []
        for subscription, params in self.registry.match(change):
            results.append(self._invoke(subscription, change, params))

        if not results:
            logger.debug(f"No triggers for {change.kind} {change.path}")
        return results

    def _invoke(
        self,
        subscription: Subscription,
        change: DocumentChange,
        params: dict[str, str],
    ) -> TriggerResult:
        last_error: Exception | None = None

        for attempt in range(1, self.max_attempts + 1):
            with self.session_factory() as db:
                ctx = TriggerContext(
                    db=db,
                    batch_size=self.batch_size,
                    author_name_match=self.author_name_match,
                    rating_cas_max_attempts=self.rating_cas_max_attempts,
                    cache=self.cache,
                )
                try:
                    result = subscription.handler(ctx, change, params)
                except Exception as e:
                    db.rollback()
                    last_error = e
                    logger.warning(
                        f"Trigger {subscription.name} failed for {change.path} "
                        f"(event {change.event_id}, attempt {attempt}/{self.max_attempts}): {e}"
                    )
                else:
                    result = result or TriggerResult.applied()
                    result.trigger = subscription.name
                    result.attempts = attempt
                    return result

            if attempt < self.max_attempts and self.backoff_seconds > 0:
                self._sleep(self.backoff_seconds * 2 ** (attempt - 1))

        logger.error(
            f"Trigger {subscription.name} gave up on {change.path} "
            f"(event {change.event_id}) after {self.max_attempts} attempts: {last_error}"
        )
        return TriggerResult(
            status=TriggerStatus.FAILED,
            detail=str(last_error),
            trigger=subscription.name,
            attempts=self.max_attempts,
        )
