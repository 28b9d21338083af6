"""
Chunked bulk writes.

Rows are committed in chunks of at most `batch_size`. A failure rolls back
the current chunk only; earlier chunks stay committed, so bulk writers must
be idempotent by id and safe to re-run.
"""
import logging
from typing import Iterable, List

from sqlalchemy.orm import Session

from famfin.config import get_settings

logger = logging.getLogger(__name__)


def chunked(items: List, size: int) -> Iterable[List]:
    if size < 1:
        raise ValueError("batch size must be >= 1")
    for start in range(0, len(items), size):
        yield items[start:start + size]


class BatchWriter:
    """
    Usage:
        writer = BatchWriter(db)
        written = writer.add_all(rows)
    """

    def __init__(self, db: Session, batch_size: int | None = None):
        self.db = db
        self.batch_size = batch_size or get_settings().BATCH_SIZE
        self.committed = 0

    def add_all(self, rows: List) -> int:
        """Insert rows chunk by chunk, commit after each chunk."""
        for chunk in chunked(rows, self.batch_size):
            try:
                self.db.add_all(chunk)
                self.db.commit()
            except Exception:
                self.db.rollback()
                logger.error(
                    "Batch write failed after %d committed rows (chunk of %d)",
                    self.committed, len(chunk),
                )
                raise
            self.committed += len(chunk)
        return self.committed

