"""
Derived status of a period projection.

Priority: paid > partial > overdue > due_soon > pending.
"""
from datetime import date, timedelta
from decimal import Decimal

from famfin.domain.proration import round_money


STATUS_PENDING = "pending"
STATUS_DUE_SOON = "due_soon"
STATUS_PARTIAL = "partial"
STATUS_PAID = "paid"
STATUS_OVERDUE = "overdue"
STATUSES = (STATUS_PENDING, STATUS_DUE_SOON, STATUS_PARTIAL, STATUS_PAID, STATUS_OVERDUE)


def derive_status(
    is_fully_paid: bool,
    is_partially_paid: bool,
    next_unpaid_due_date: date | None,
    today: date,
    due_soon_days: int = 3,
) -> str:
    if is_fully_paid:
        return STATUS_PAID
    if is_partially_paid:
        return STATUS_PARTIAL
    if next_unpaid_due_date is not None:
        if next_unpaid_due_date < today:
            return STATUS_OVERDUE
        if next_unpaid_due_date <= today + timedelta(days=due_soon_days):
            return STATUS_DUE_SOON
    return STATUS_PENDING


def progress_pct(part: Decimal, whole: Decimal) -> Decimal:
    """part / whole in percent, 0 when whole is 0."""
    if not whole:
        return Decimal("0.00")
    return round_money(Decimal(part) * 100 / Decimal(whole))
