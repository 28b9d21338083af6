"""
Transaction use cases - create / update / delete monetary events

Each write stores the transaction, its splits and their projection links,
appends an event carrying the projections touched before and after, commits,
then runs the aggregation projector. Aggregation problems never fail the write.
"""
import logging
from datetime import date
from typing import Any, List, Optional, Set

from sqlalchemy.orm import Session

from famfin.application.attribution import linked_projection_ids, relink_split, unlink_transaction
from famfin.domain.obligation import KIND_INFLOW
from famfin.domain.transaction import (
    TX_EXPENSE, TX_INCOME, TX_STATUS_APPROVED, SplitSpec, Transaction, TransactionValidationError,
    validate_transaction,
)
from famfin.infrastructure.db.models import ObligationModel, PeriodProjection, TransactionModel, TransactionSplit
from famfin.infrastructure.eventlog.repository import EventLogRepository
from famfin.readmodels.projectors.projection_aggregates import TRANSACTION_EVENTS, ProjectionAggregatesProjector

logger = logging.getLogger(__name__)


def run_transaction_projectors(db: Session, account_id: int) -> None:
    """Best effort: never raises."""
    try:
        ProjectionAggregatesProjector(db).run(account_id, event_types=TRANSACTION_EVENTS)
    except Exception:
        db.rollback()
        logger.exception("Transaction projectors failed for account %s", account_id)


def _validate_split_targets(db: Session, account_id: int, transaction_type: str, splits: List[SplitSpec]) -> None:
    for split in splits:
        if split.obligation_id is None:
            if split.projection_id:
                raise TransactionValidationError(
                    "obligation_required", "A split pinned to a projection needs its obligation"
                )
            continue

        obligation = db.get(ObligationModel, split.obligation_id)
        if obligation is None or obligation.account_id != account_id:
            raise TransactionValidationError(
                "obligation_not_found", f"Obligation {split.obligation_id} not found"
            )
        if not obligation.is_active:
            raise TransactionValidationError(
                "obligation_inactive", f"Obligation {split.obligation_id} is inactive"
            )
        expected = TX_INCOME if obligation.kind == KIND_INFLOW else TX_EXPENSE
        if transaction_type != expected:
            raise TransactionValidationError(
                "kind_mismatch",
                f"{transaction_type.lower()} cannot be attributed to {obligation.kind.lower()} {obligation.id}",
            )

        if split.projection_id:
            projection = db.get(PeriodProjection, split.projection_id)
            if projection is None or projection.obligation_id != split.obligation_id:
                raise TransactionValidationError(
                    "projection_not_found", f"Projection {split.projection_id} not found for this obligation"
                )


def _write_splits(db: Session, tx: TransactionModel, splits: List[SplitSpec]) -> Set[str]:
    linked: Set[str] = set()
    for spec in splits:
        split = TransactionSplit(
            transaction_id=tx.id,
            amount=spec.amount,
            obligation_id=spec.obligation_id,
            projection_id=spec.projection_id,
        )
        db.add(split)
        db.flush()
        _old, new = relink_split(db, split, tx.transaction_date)
        linked |= new
    return linked


def _get_owned(db: Session, account_id: int, transaction_id: int) -> TransactionModel:
    tx = db.get(TransactionModel, transaction_id)
    if tx is None or tx.account_id != account_id or tx.is_deleted:
        raise TransactionValidationError("transaction_not_found", f"Transaction {transaction_id} not found")
    return tx


class CreateTransactionUseCase:
    """
    Use case: record a transaction (from the feed or by the user)
    """

    def __init__(self, db: Session):
        self.db = db
        self.event_repo = EventLogRepository(db)

    def execute(
        self,
        account_id: int,
        amount: Any,
        transaction_type: str,
        transaction_date: date,
        splits: Optional[List[SplitSpec]] = None,
        status: str = TX_STATUS_APPROVED,
        description: str = "",
        stream_id: Optional[str] = None,
        group_id: Optional[str] = None,
    ) -> int:
        """
        Returns:
            transaction id

        Raises:
            TransactionValidationError
        """
        splits = splits or []
        total = validate_transaction(amount, transaction_type, status, splits)
        _validate_split_targets(self.db, account_id, transaction_type, splits)

        tx = TransactionModel(
            account_id=account_id,
            group_id=group_id,
            amount=total,
            transaction_type=transaction_type,
            status=status,
            transaction_date=transaction_date,
            description=description,
            stream_id=stream_id,
            is_deleted=False,
        )
        self.db.add(tx)
        self.db.flush()

        linked = _write_splits(self.db, tx, splits)

        payload = Transaction.create(
            transaction_id=tx.id,
            account_id=account_id,
            amount=total,
            transaction_type=transaction_type,
            transaction_date=transaction_date,
            splits=splits,
            projection_ids=list(linked),
        )
        self.event_repo.append_event(account_id, "transaction_created", payload)
        self.db.commit()

        run_transaction_projectors(self.db, account_id)
        return tx.id


class UpdateTransactionUseCase:
    """
    Use case: change amount, date, status or splits of a transaction

    Splits are replaced as a whole. Projections linked before and after are
    all recomputed.
    """

    def __init__(self, db: Session):
        self.db = db
        self.event_repo = EventLogRepository(db)

    def execute(
        self,
        account_id: int,
        transaction_id: int,
        amount: Any = None,
        transaction_date: Optional[date] = None,
        splits: Optional[List[SplitSpec]] = None,
        status: Optional[str] = None,
        description: Optional[str] = None,
    ) -> None:
        tx = _get_owned(self.db, account_id, transaction_id)

        current_splits = (
            self.db.query(TransactionSplit).filter(TransactionSplit.transaction_id == tx.id).all()
        )
        new_specs = splits if splits is not None else [
            SplitSpec(amount=s.amount, obligation_id=s.obligation_id, projection_id=s.projection_id)
            for s in current_splits
        ]
        new_amount = amount if amount is not None else tx.amount
        new_status = status or tx.status

        total = validate_transaction(new_amount, tx.transaction_type, new_status, new_specs)
        _validate_split_targets(self.db, account_id, tx.transaction_type, new_specs)

        old_linked = linked_projection_ids(self.db, tx.id)

        tx.amount = total
        tx.status = new_status
        if transaction_date is not None:
            tx.transaction_date = transaction_date
        if description is not None:
            tx.description = description

        if splits is not None:
            unlink_transaction(self.db, tx.id)
            for split in current_splits:
                self.db.delete(split)
            self.db.flush()
            new_linked = _write_splits(self.db, tx, new_specs)
        else:
            new_linked = set()
            for split in current_splits:
                _old, new = relink_split(self.db, split, tx.transaction_date)
                new_linked |= new

        self.event_repo.append_event(
            account_id,
            "transaction_updated",
            Transaction.update(tx.id, list(old_linked), list(new_linked)),
        )
        self.db.commit()

        run_transaction_projectors(self.db, account_id)


class DeleteTransactionUseCase:
    """
    Use case: delete a transaction

    Soft delete; links are dropped so every slot it filled is freed again.
    """

    def __init__(self, db: Session):
        self.db = db
        self.event_repo = EventLogRepository(db)

    def execute(self, account_id: int, transaction_id: int) -> None:
        tx = _get_owned(self.db, account_id, transaction_id)

        old_linked = unlink_transaction(self.db, tx.id)
        tx.is_deleted = True

        self.event_repo.append_event(account_id, "transaction_deleted", Transaction.delete(tx.id, list(old_linked)))
        self.db.commit()

        run_transaction_projectors(self.db, account_id)
