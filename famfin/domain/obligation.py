"""
Recurring obligation domain entity (budget / outflow / inflow).

Generates event payloads for event_log and validates input.
The obligation row itself is written by the use case; projections are
built by projectors from the events.
"""
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from famfin.domain.errors import CoreError
from famfin.domain.periods import PERIOD_TYPES


KIND_BUDGET = "BUDGET"
KIND_OUTFLOW = "OUTFLOW"
KIND_INFLOW = "INFLOW"
KINDS = (KIND_BUDGET, KIND_OUTFLOW, KIND_INFLOW)

FREQ_WEEKLY = "WEEKLY"
FREQ_BIWEEKLY = "BIWEEKLY"
FREQ_SEMI_MONTHLY = "SEMI_MONTHLY"
FREQ_MONTHLY = "MONTHLY"
FREQ_ANNUAL = "ANNUAL"
CADENCES = (FREQ_WEEKLY, FREQ_BIWEEKLY, FREQ_SEMI_MONTHLY, FREQ_MONTHLY, FREQ_ANNUAL)


class ObligationValidationError(CoreError):
    pass


def parse_amount(raw: Any) -> Decimal:
    """Parse a positive money amount (str / int / Decimal)."""
    try:
        amount = Decimal(str(raw))
    except (InvalidOperation, ValueError) as exc:
        raise ObligationValidationError("invalid_amount", f"Amount is not a number: {raw!r}") from exc
    if not amount.is_finite() or amount <= 0:
        raise ObligationValidationError("invalid_amount", "Amount must be greater than 0")
    return amount


def validate_obligation(
    kind: str,
    frequency: str,
    start_date: Optional[date],
    end_date: Optional[date],
) -> None:
    """
    Raises:
        ObligationValidationError: unknown kind, frequency not valid for kind,
            end date before start date
    """
    if kind not in KINDS:
        raise ObligationValidationError("invalid_kind", f"Unknown obligation kind: {kind}")

    # Budgets recur on their own period lattice, bills and income on a cadence
    allowed = PERIOD_TYPES if kind == KIND_BUDGET else CADENCES
    if frequency not in allowed:
        raise ObligationValidationError(
            "invalid_frequency",
            f"Frequency {frequency} is not valid for {kind.lower()}",
        )

    if start_date and end_date and end_date < start_date:
        raise ObligationValidationError("invalid_date_range", "End date must not be before start date")


class Obligation:

    @staticmethod
    def create(
        obligation_id: int,
        account_id: int,
        kind: str,
        name: str,
        amount: Decimal,
        frequency: str,
        start_date: Optional[date],
        end_date: Optional[date],
        is_ongoing: bool,
        group_id: Optional[str] = None,
        start_period_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create obligation_created event payload."""
        return {
            "obligation_id": obligation_id,
            "account_id": account_id,
            "kind": kind,
            "name": name,
            "amount": str(amount),
            "frequency": frequency,
            "start_date": start_date.isoformat() if start_date else None,
            "end_date": end_date.isoformat() if end_date else None,
            "is_ongoing": is_ongoing,
            "group_id": group_id,
            "start_period_id": start_period_id,
            "created_at": datetime.utcnow().isoformat(),
        }

    @staticmethod
    def update(obligation_id: int, version: int, changes: Dict[str, Any]) -> Dict[str, Any]:
        """Create obligation_updated event payload (only changed fields)."""
        serialized = {}
        for key, value in changes.items():
            if isinstance(value, (date, Decimal)):
                value = value.isoformat() if isinstance(value, date) else str(value)
            serialized[key] = value
        return {
            "obligation_id": obligation_id,
            "version": version,
            "changes": serialized,
            "updated_at": datetime.utcnow().isoformat(),
        }

    @staticmethod
    def deactivate(obligation_id: int) -> Dict[str, Any]:
        """Create obligation_deactivated event payload."""
        return {
            "obligation_id": obligation_id,
            "deactivated_at": datetime.utcnow().isoformat(),
        }
