"""
Aggregation core shared by every projection kind.

Given the payments currently attributed to a projection, compute its
running totals, occurrence slots, progress and status. Two styles:

- budget style: spent = sum of payments, remaining = allocated - spent
- occurrence style (outflow / inflow): payments fill occurrence slots
  first-fit in chronological order

Invariant for both: total_amount_paid + total_amount_unpaid == total_amount_due.
"""
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional, Sequence

from famfin.domain.occurrences import assign_first_fit
from famfin.domain.status import derive_status, progress_pct


@dataclass(frozen=True)
class AttributedPayment:
    transaction_id: int
    transaction_date: date
    amount: Decimal


@dataclass
class Aggregates:
    total_amount_due: Decimal
    total_amount_paid: Decimal
    total_amount_unpaid: Decimal
    spent: Decimal
    remaining: Decimal
    paid_count: int
    number_of_occurrences: int
    payment_progress_pct: Decimal
    dollar_progress_pct: Decimal
    is_fully_paid: bool
    is_partially_paid: bool
    status: str
    next_unpaid_due_date: Optional[date]
    first_due_date: Optional[date] = None
    last_due_date: Optional[date] = None
    occurrence_due_dates: List[date] = field(default_factory=list)
    occurrence_paid_flags: List[bool] = field(default_factory=list)
    occurrence_transaction_ids: List[Optional[int]] = field(default_factory=list)
    transaction_ids: List[int] = field(default_factory=list)


def _ordered(payments: Sequence[AttributedPayment]) -> List[AttributedPayment]:
    return sorted(payments, key=lambda p: (p.transaction_date, p.transaction_id))


def aggregate_budget(
    allocated_amount: Decimal,
    payments: Sequence[AttributedPayment],
    today: date,
    due_soon_days: int = 3,
) -> Aggregates:
    ordered = _ordered(payments)
    spent = sum((p.amount for p in ordered), Decimal("0.00"))
    due = Decimal(allocated_amount)
    unpaid = due - spent

    is_fully_paid = due > 0 and spent >= due
    is_partially_paid = not is_fully_paid and spent > 0

    return Aggregates(
        total_amount_due=due,
        total_amount_paid=spent,
        total_amount_unpaid=unpaid,
        spent=spent,
        remaining=unpaid,
        paid_count=len(ordered),
        number_of_occurrences=0,
        payment_progress_pct=Decimal("0.00"),
        dollar_progress_pct=progress_pct(spent, due),
        is_fully_paid=is_fully_paid,
        is_partially_paid=is_partially_paid,
        status=derive_status(is_fully_paid, is_partially_paid, None, today, due_soon_days),
        next_unpaid_due_date=None,
        transaction_ids=[p.transaction_id for p in ordered],
    )


def aggregate_occurrences(
    due_dates: Sequence[date],
    current_slot_ids: Sequence[Optional[int]],
    amount_per_occurrence: Decimal,
    payments: Sequence[AttributedPayment],
    today: date,
    due_soon_days: int = 3,
) -> Aggregates:
    """
    Args:
        due_dates: occurrence due dates, chronological
        current_slot_ids: transaction id per slot from the previous pass
            (same length as due_dates; shorter lists are padded)
        amount_per_occurrence: amount expected per slot
        payments: payments attributed right now
    """
    ordered = _ordered(payments)
    n = len(due_dates)
    previous = list(current_slot_ids)[:n] + [None] * max(0, n - len(current_slot_ids))

    slots, _overflow = assign_first_fit(previous, [p.transaction_id for p in ordered])
    paid_flags = [tx is not None for tx in slots]
    paid_count = sum(paid_flags)

    per_slot = Decimal(amount_per_occurrence)
    due = per_slot * n
    paid = per_slot * paid_count
    unpaid = due - paid
    spent = sum((p.amount for p in ordered), Decimal("0.00"))

    next_unpaid = next((d for d, flag in zip(due_dates, paid_flags) if not flag), None)

    is_fully_paid = n > 0 and paid_count == n
    is_partially_paid = 0 < paid_count < n
    # Payment in a window with nothing due counts as settled
    settled = is_fully_paid or (n == 0 and bool(ordered))

    return Aggregates(
        total_amount_due=due,
        total_amount_paid=paid,
        total_amount_unpaid=unpaid,
        spent=spent,
        remaining=unpaid,
        paid_count=paid_count,
        number_of_occurrences=n,
        payment_progress_pct=progress_pct(Decimal(paid_count), Decimal(n)),
        dollar_progress_pct=progress_pct(paid, due),
        is_fully_paid=is_fully_paid,
        is_partially_paid=is_partially_paid,
        status=derive_status(settled, is_partially_paid, next_unpaid, today, due_soon_days),
        next_unpaid_due_date=next_unpaid,
        first_due_date=due_dates[0] if due_dates else None,
        last_due_date=due_dates[-1] if due_dates else None,
        occurrence_due_dates=list(due_dates),
        occurrence_paid_flags=paid_flags,
        occurrence_transaction_ids=slots,
        transaction_ids=[p.transaction_id for p in ordered],
    )
