"""
Batched Writes

Fan-out writes (one canonical change patching many documents) are grouped
into atomic batches, mirroring the store's multi-document batch limit of
100 writes.

Rules:
- A WriteBatch holds at most `limit` UPDATE statements and commits them in
  one transaction.
- commit_in_batches() commits batches in order and stops at the first
  failing batch. The failure surfaces as PropagationError; the batches
  already committed stay committed, the remaining ones are never issued.
"""

import logging
from collections.abc import Iterable

from sqlalchemy.orm import Session
from sqlalchemy.sql.dml import Update

from bookshelf.config import MAX_BATCH_WRITES

logger = logging.getLogger(__name__)


class BatchLimitError(ValueError):
    """Raised when a write is added to a full batch."""


class PropagationError(RuntimeError):
    """
    A fan-out stopped part way through.

    Attributes:
        written: Rows updated by the batches that did commit
        failed_batch: 1-based index of the batch that failed
    """

    def __init__(self, message: str, written: int, failed_batch: int):
        super().__init__(message)
        self.written = written
        self.failed_batch = failed_batch


class WriteBatch:
    """
    An atomic group of UPDATE statements.

    Usage:
        batch = WriteBatch(db)
        batch.update(update(SavedBook).where(...).values(title="New"))
        rows = batch.commit()
    """

    def __init__(self, db: Session, limit: int = MAX_BATCH_WRITES):
        if limit > MAX_BATCH_WRITES:
            raise BatchLimitError(f"Batch limit cannot exceed {MAX_BATCH_WRITES}")
        self._db = db
        self._limit = limit
        self._statements: list[Update] = []
        self._committed = False

    def __len__(self) -> int:
        return len(self._statements)

    @property
    def is_full(self) -> bool:
        return len(self._statements) >= self._limit

    def update(self, statement: Update) -> None:
        if self._committed:
            raise RuntimeError("Batch already committed")
        if self.is_full:
            raise BatchLimitError(f"Batch already holds {self._limit} writes")
        self._statements.append(statement)

    def commit(self) -> int:
        """
        Execute every statement and commit them together.

        Returns:
            Number of rows updated (statements guarded by a stale-timestamp
            check may update nothing)

        Raises:
            Any database error, after rolling the batch back
        """
        if self._committed:
            raise RuntimeError("Batch already committed")

        rows = 0
        try:
            for statement in self._statements:
                result = self._db.execute(
                    statement.execution_options(synchronize_session=False)
                )
                rows += result.rowcount or 0
            self._db.commit()
        except Exception:
            self._db.rollback()
            raise
        self._committed = True
        return rows


def commit_in_batches(
    db: Session,
    statements: Iterable[Update],
    batch_size: int = MAX_BATCH_WRITES,
) -> int:
    """
    Commit statements in atomic batches of at most batch_size writes.

    Args:
        db: Database session
        statements: UPDATE statements, one per target document
        batch_size: Writes per batch (<= 100)

    Returns:
        Total number of rows updated

    Raises:
        PropagationError: A batch failed; later batches were not issued
    """
    written = 0
    batch_number = 0
    batch = WriteBatch(db, limit=batch_size)

    def flush(current: WriteBatch) -> int:
        nonlocal batch_number
        batch_number += 1
        try:
            return current.commit()
        except Exception as e:
            logger.error(
                f"Batch {batch_number} failed after {written} rows were written: {e}"
            )
            raise PropagationError(
                f"Batch {batch_number} failed: {e}",
                written=written,
                failed_batch=batch_number,
            ) from e

    for statement in statements:
        if batch.is_full:
            written += flush(batch)
            batch = WriteBatch(db, limit=batch_size)
        batch.update(statement)

    if len(batch) > 0:
        written += flush(batch)

    logger.debug(f"Committed {batch_number} batches, {written} rows updated")
    return written
