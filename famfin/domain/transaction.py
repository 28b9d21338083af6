"""
Transaction (monetary event) domain entity - validation and event payloads
"""
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from famfin.domain.errors import CoreError


TX_EXPENSE = "EXPENSE"
TX_INCOME = "INCOME"
TX_TYPES = (TX_EXPENSE, TX_INCOME)

TX_STATUS_PENDING = "PENDING"
TX_STATUS_APPROVED = "APPROVED"
TX_STATUSES = (TX_STATUS_PENDING, TX_STATUS_APPROVED)


class TransactionValidationError(CoreError):
    pass


@dataclass(frozen=True)
class SplitSpec:
    """One part of a transaction attributed to an obligation (or unassigned)."""
    amount: Decimal
    obligation_id: Optional[int] = None
    projection_id: Optional[str] = None


def _money(raw: Any, field: str) -> Decimal:
    try:
        value = Decimal(str(raw))
    except (InvalidOperation, ValueError) as exc:
        raise TransactionValidationError("invalid_amount", f"{field} is not a number: {raw!r}") from exc
    if not value.is_finite() or value <= 0:
        raise TransactionValidationError("invalid_amount", f"{field} must be greater than 0")
    return value


def validate_transaction(
    amount: Any,
    transaction_type: str,
    status: str,
    splits: List[SplitSpec],
) -> Decimal:
    """
    Validate a transaction and its splits, return the parsed amount.

    Raises:
        TransactionValidationError
    """
    total = _money(amount, "Amount")

    if transaction_type not in TX_TYPES:
        raise TransactionValidationError("invalid_type", f"Unknown transaction type: {transaction_type}")
    if status not in TX_STATUSES:
        raise TransactionValidationError("invalid_status", f"Unknown transaction status: {status}")

    split_sum = Decimal(0)
    for split in splits:
        split_sum += _money(split.amount, "Split amount")
    if split_sum > total:
        raise TransactionValidationError(
            "splits_exceed_amount",
            f"Splits total {split_sum} exceeds transaction amount {total}",
        )
    return total


def splits_payload(splits: List[SplitSpec]) -> List[Dict[str, Any]]:
    return [
        {
            "amount": str(s.amount),
            "obligation_id": s.obligation_id,
            "projection_id": s.projection_id,
        }
        for s in splits
    ]


class Transaction:

    @staticmethod
    def create(
        transaction_id: int,
        account_id: int,
        amount: Decimal,
        transaction_type: str,
        transaction_date: date,
        splits: List[SplitSpec],
        projection_ids: List[str],
    ) -> Dict[str, Any]:
        """Create transaction_created event payload."""
        return {
            "transaction_id": transaction_id,
            "account_id": account_id,
            "amount": str(amount),
            "transaction_type": transaction_type,
            "transaction_date": transaction_date.isoformat(),
            "splits": splits_payload(splits),
            "old_projection_ids": [],
            "new_projection_ids": sorted(projection_ids),
            "created_at": datetime.utcnow().isoformat(),
        }

    @staticmethod
    def update(
        transaction_id: int,
        old_projection_ids: List[str],
        new_projection_ids: List[str],
    ) -> Dict[str, Any]:
        """
        Create transaction_updated event payload.

        Carries the projections linked before and after the change so the
        aggregation projector can recompute both sides.
        """
        return {
            "transaction_id": transaction_id,
            "old_projection_ids": sorted(old_projection_ids),
            "new_projection_ids": sorted(new_projection_ids),
            "updated_at": datetime.utcnow().isoformat(),
        }

    @staticmethod
    def delete(transaction_id: int, projection_ids: List[str]) -> Dict[str, Any]:
        """Create transaction_deleted event payload."""
        return {
            "transaction_id": transaction_id,
            "old_projection_ids": sorted(projection_ids),
            "new_projection_ids": [],
            "deleted_at": datetime.utcnow().isoformat(),
        }
