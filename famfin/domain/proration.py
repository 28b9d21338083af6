"""
Proration engine.

Two models, kept separate on purpose:

1. Daily-rate model (outflows / inflows): amount / cycle_days with a fixed
   cycle table (monthly = 30), times inclusive days of the window.
2. Budget models:
   - calendar model: each day of the window takes the daily rate of the
     budget's own period containing that day (month / half-month / week);
   - fixed multipliers: monthly x1.0, bi-monthly x0.5, weekly x7/30.44
     (used by the rolling extension of recurring budgets).

NOTE: the average month is 30 days for bills and 30.44 days for budget
multipliers. Both constants are kept as they are.
"""
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP

from famfin.domain.obligation import (
    FREQ_WEEKLY, FREQ_BIWEEKLY, FREQ_SEMI_MONTHLY, FREQ_MONTHLY, FREQ_ANNUAL,
)
from famfin.domain.periods import (
    PERIOD_WEEKLY, PERIOD_BI_MONTHLY, PERIOD_MONTHLY, period_containing,
)


CENT = Decimal("0.01")
ZERO = Decimal("0.00")

CYCLE_DAYS = {
    FREQ_WEEKLY: 7,
    FREQ_BIWEEKLY: 14,
    FREQ_SEMI_MONTHLY: 15,
    FREQ_MONTHLY: 30,
    FREQ_ANNUAL: 365,
}

BUDGET_AVERAGE_MONTH_DAYS = Decimal("30.44")

BUDGET_MULTIPLIERS = {
    PERIOD_MONTHLY: Decimal("1.0"),
    PERIOD_BI_MONTHLY: Decimal("0.5"),
    PERIOD_WEEKLY: Decimal(7) / BUDGET_AVERAGE_MONTH_DAYS,
}


def round_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def inclusive_days(start: date, end: date) -> int:
    if end < start:
        return 0
    return (end - start).days + 1


# --- daily-rate model (outflows / inflows) ---

def daily_rate(amount: Decimal, frequency: str) -> Decimal:
    """Unrounded amount per day for a cadence."""
    if frequency not in CYCLE_DAYS:
        raise ValueError(f"unknown frequency: {frequency}")
    return Decimal(amount) / Decimal(CYCLE_DAYS[frequency])


def amount_for_window(rate: Decimal, window_start: date, window_end: date) -> Decimal:
    """rate x inclusive days, rounded half-up to cents."""
    return round_money(rate * inclusive_days(window_start, window_end))


def is_cycle_event_in_window(anchor: date, window_start: date, window_end: date) -> bool:
    return window_start <= anchor <= window_end


# --- budget models ---

def budget_multiplier_amount(
    amount: Decimal,
    target_period_type: str,
    budget_period_type: str = PERIOD_MONTHLY,
) -> Decimal:
    """
    Budget amount for a target period type via the fixed multiplier table.

    A non-monthly budget is first converted to its monthly equivalent.
    """
    for period_type in (target_period_type, budget_period_type):
        if period_type not in BUDGET_MULTIPLIERS:
            raise ValueError(f"invalid period type: {period_type}")
    monthly = Decimal(amount) / BUDGET_MULTIPLIERS[budget_period_type]
    return round_money(monthly * BUDGET_MULTIPLIERS[target_period_type])


def budget_amount_for_window(
    amount: Decimal,
    budget_period_type: str,
    window_start: date,
    window_end: date,
    active_start: date | None = None,
    active_end: date | None = None,
) -> Decimal:
    """
    Share of a budget (`amount` per `budget_period_type`) falling into a window.

    Only days inside [active_start, active_end] count. The window is walked
    one budget period at a time: overlap_days x amount / period_days.
    """
    start = max(window_start, active_start) if active_start else window_start
    end = min(window_end, active_end) if active_end else window_end
    if end < start:
        return ZERO

    amount = Decimal(amount)
    total = Decimal(0)
    cursor = start
    while cursor <= end:
        period = period_containing(budget_period_type, cursor)
        chunk_end = min(period.end_date, end)
        overlap = inclusive_days(cursor, chunk_end)
        if overlap == period.days:
            total += amount
        else:
            total += amount * overlap / period.days
        cursor = chunk_end + timedelta(days=1)

    return round_money(total)
