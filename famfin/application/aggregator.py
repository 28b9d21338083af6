"""
Spend/earn aggregation use cases.

recompute() rebuilds a projection's aggregates from the transactions
currently linked to it, so it serves both incremental updates and repair.
Writes are guarded by the projection's version column: a concurrent writer
causes StaleDataError, and the recompute is retried with exponential backoff.
"""
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Dict, Iterable, List

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from famfin.config import get_settings
from famfin.domain.aggregation import AttributedPayment, aggregate_budget, aggregate_occurrences
from famfin.domain.errors import CoreError
from famfin.domain.obligation import KIND_BUDGET
from famfin.domain.transaction import TX_STATUS_APPROVED
from famfin.infrastructure.db.models import (
    PeriodProjection, SplitProjectionLink, TransactionModel, TransactionSplit,
)

logger = logging.getLogger(__name__)


class ProjectionNotFoundError(CoreError):
    pass


class ConcurrentUpdateError(CoreError):
    pass


@dataclass
class RecomputeSummary:
    recomputed: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)


def load_attributed_payments(db: Session, projection_id: str) -> List[AttributedPayment]:
    """Approved, non-deleted transactions linked to the projection (split amounts summed per transaction)."""
    rows = (
        db.query(TransactionModel.id, TransactionModel.transaction_date, TransactionSplit.amount)
        .join(TransactionSplit, TransactionSplit.transaction_id == TransactionModel.id)
        .join(SplitProjectionLink, SplitProjectionLink.split_id == TransactionSplit.id)
        .filter(
            SplitProjectionLink.projection_id == projection_id,
            TransactionModel.is_deleted.is_(False),
            TransactionModel.status == TX_STATUS_APPROVED,
        )
        .all()
    )

    totals: "OrderedDict[int, list]" = OrderedDict()
    for tx_id, tx_date, amount in rows:
        if tx_id in totals:
            totals[tx_id][1] += Decimal(amount)
        else:
            totals[tx_id] = [tx_date, Decimal(amount)]

    return [AttributedPayment(tx_id, tx_date, amount) for tx_id, (tx_date, amount) in totals.items()]


def apply_aggregates(projection: PeriodProjection, payments: List[AttributedPayment], today: date, due_soon_days: int) -> None:
    if projection.kind == KIND_BUDGET:
        result = aggregate_budget(projection.allocated_amount, payments, today, due_soon_days)
    else:
        due_dates = [date.fromisoformat(d) for d in projection.occurrence_due_dates or []]
        result = aggregate_occurrences(
            due_dates,
            projection.occurrence_transaction_ids or [],
            projection.amount_per_occurrence,
            payments,
            today,
            due_soon_days,
        )
        # New list objects so the JSON columns are marked dirty
        projection.occurrence_due_dates = [d.isoformat() for d in result.occurrence_due_dates]
        projection.occurrence_paid_flags = list(result.occurrence_paid_flags)
        projection.occurrence_transaction_ids = list(result.occurrence_transaction_ids)
        projection.first_due_date = result.first_due_date
        projection.last_due_date = result.last_due_date

    projection.total_amount_due = result.total_amount_due
    projection.total_amount_paid = result.total_amount_paid
    projection.total_amount_unpaid = result.total_amount_unpaid
    projection.spent = result.spent
    projection.remaining = result.remaining
    projection.number_of_occurrences = result.number_of_occurrences
    projection.paid_count = result.paid_count
    projection.payment_progress_pct = result.payment_progress_pct
    projection.dollar_progress_pct = result.dollar_progress_pct
    projection.is_fully_paid = result.is_fully_paid
    projection.is_partially_paid = result.is_partially_paid
    projection.next_unpaid_due_date = result.next_unpaid_due_date
    projection.transaction_ids = list(result.transaction_ids)
    projection.status = result.status
    projection.last_calculated = datetime.utcnow()


class RecomputeProjectionUseCase:
    """
    Use case: full recompute of one or many projections
    """

    def __init__(self, db: Session, sleep: Callable[[float], None] = time.sleep):
        self.db = db
        self.settings = get_settings()
        self._sleep = sleep

    def execute(self, projection_id: str, today: date | None = None) -> PeriodProjection:
        """
        Raises:
            ProjectionNotFoundError: unknown projection id
            ConcurrentUpdateError: version conflict persisted through all retries
        """
        today = today or date.today()
        max_retries = self.settings.RECOMPUTE_MAX_RETRIES

        for attempt in range(max_retries + 1):
            projection = (
                self.db.query(PeriodProjection)
                .populate_existing()
                .filter(PeriodProjection.id == projection_id)
                .first()
            )
            if projection is None:
                raise ProjectionNotFoundError("projection_not_found", f"Projection {projection_id} not found")

            payments = load_attributed_payments(self.db, projection_id)
            apply_aggregates(projection, payments, today, self.settings.DUE_SOON_DAYS)

            try:
                self.db.commit()
                return projection
            except StaleDataError:
                self.db.rollback()
                if attempt == max_retries:
                    break
                delay = self.settings.RECOMPUTE_BACKOFF_SECONDS * (2 ** attempt)
                logger.warning(
                    "Version conflict on projection %s (attempt %d), retrying in %.2fs",
                    projection_id, attempt + 1, delay,
                )
                self._sleep(delay)

        raise ConcurrentUpdateError(
            "concurrent_update",
            f"Projection {projection_id} kept changing, gave up after {max_retries + 1} attempts",
        )

    def execute_many(self, projection_ids: Iterable[str], today: date | None = None) -> RecomputeSummary:
        """Best effort: one projection failing does not stop the others."""
        summary = RecomputeSummary()
        for projection_id in sorted(set(projection_ids)):
            try:
                self.execute(projection_id, today=today)
                summary.recomputed.append(projection_id)
            except Exception as exc:
                self.db.rollback()
                logger.exception("Recompute failed for projection %s", projection_id)
                summary.failed[projection_id] = str(exc)
        return summary
