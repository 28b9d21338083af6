"""
Occurrences of a recurring bill / income inside a period window, and
first-fit assignment of payments onto occurrence slots.
"""
from datetime import date, timedelta
from typing import Iterable, List, Optional, Sequence

from famfin.domain.obligation import (
    FREQ_WEEKLY, FREQ_BIWEEKLY, FREQ_SEMI_MONTHLY, FREQ_MONTHLY, FREQ_ANNUAL,
)
from famfin.domain.periods import add_months
from famfin.domain.proration import is_cycle_event_in_window


_STEP_DAYS = {
    FREQ_WEEKLY: 7,
    FREQ_BIWEEKLY: 14,
    FREQ_SEMI_MONTHLY: 15,
}
_STEP_MONTHS = {
    FREQ_MONTHLY: 1,
    FREQ_ANNUAL: 12,
}


def occurrence_at(anchor: date, frequency: str, k: int) -> date:
    """k-th cycle instant relative to anchor (k may be negative)."""
    if frequency in _STEP_DAYS:
        return anchor + timedelta(days=_STEP_DAYS[frequency] * k)
    if frequency in _STEP_MONTHS:
        # Always offset from the anchor so month-end days do not drift
        return add_months(anchor, _STEP_MONTHS[frequency] * k)
    raise ValueError(f"unknown frequency: {frequency}")


def _approx_step_days(frequency: str) -> int:
    if frequency in _STEP_DAYS:
        return _STEP_DAYS[frequency]
    return 30 * _STEP_MONTHS[frequency]


def occurrences_in_window(
    anchor: date,
    frequency: str,
    window_start: date,
    window_end: date,
    not_before: Optional[date] = None,
    not_after: Optional[date] = None,
) -> List[date]:
    """
    All cycle instants inside [window_start, window_end], chronological.

    The series is anchored at `anchor` (next predicted or last observed due
    date) and extends both ways; `not_before` / `not_after` bound it to the
    obligation's active range.
    """
    if window_end < window_start:
        return []

    k = (window_start - anchor).days // _approx_step_days(frequency)
    while occurrence_at(anchor, frequency, k) >= window_start:
        k -= 1
    while occurrence_at(anchor, frequency, k) < window_start:
        k += 1

    out: List[date] = []
    d = occurrence_at(anchor, frequency, k)
    while is_cycle_event_in_window(d, window_start, window_end):
        if (not_before is None or d >= not_before) and (not_after is None or d <= not_after):
            out.append(d)
        k += 1
        d = occurrence_at(anchor, frequency, k)
    return out


def assign_first_fit(
    slot_transaction_ids: Sequence[Optional[int]],
    attributed_ids: Iterable[int],
) -> tuple[List[Optional[int]], List[int]]:
    """
    Map attributed transactions onto occurrence slots.

    Slots keep transactions that are still attributed; slots of transactions
    no longer attributed are freed; new transactions (in the given order) fill
    the earliest free slot. Returns (slots, overflow) where overflow holds
    transactions left without a slot.
    """
    attributed = list(dict.fromkeys(attributed_ids))
    keep = set(attributed)

    slots: List[Optional[int]] = [tx if tx in keep else None for tx in slot_transaction_ids]
    placed = {tx for tx in slots if tx is not None}

    overflow: List[int] = []
    for tx in attributed:
        if tx in placed:
            continue
        try:
            free = slots.index(None)
        except ValueError:
            overflow.append(tx)
            continue
        slots[free] = tx
        placed.add(tx)

    return slots, overflow
