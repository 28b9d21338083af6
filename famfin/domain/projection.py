"""
Projection of a recurring amount onto one calendar window.

One shape for every obligation kind; the proration strategy differs:

- BudgetCalendarProration:   budgets at creation / gap fill
- BudgetMultiplierProration: rolling extension of recurring budgets
- CadenceProration:          outflows and inflows (daily rate + occurrences)

Strategies read the obligation by attribute (amount, frequency, start_date,
end_date, last_date, predicted_next_date) and never touch the database.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List

from famfin.domain.obligation import KIND_BUDGET, KIND_OUTFLOW, KIND_INFLOW
from famfin.domain.occurrences import occurrences_in_window
from famfin.domain.proration import (
    ZERO, amount_for_window, budget_amount_for_window, budget_multiplier_amount,
    daily_rate, inclusive_days, round_money,
)


def projection_id_for(obligation_id, period_id: str) -> str:
    return f"{obligation_id}_{period_id}"


@dataclass
class ProjectionPlan:
    period_id: str
    period_type: str
    period_start: date
    period_end: date
    allocated_amount: Decimal
    daily_rate: Decimal
    is_due_period: bool = False
    amount_due: Decimal = ZERO
    due_date: date | None = None
    amount_per_occurrence: Decimal = ZERO
    occurrence_due_dates: List[date] = field(default_factory=list)

    @property
    def total_amount_due(self) -> Decimal:
        if self.occurrence_due_dates or self.amount_per_occurrence:
            return self.amount_per_occurrence * len(self.occurrence_due_dates)
        return self.allocated_amount


class ProrationStrategy(ABC):

    @abstractmethod
    def plan(self, obligation, window, active_start: date) -> ProjectionPlan:
        """
        Args:
            obligation: obligation row (or any object with the same attributes)
            window: period with id, period_type, start_date, end_date
            active_start: first active day of the obligation
        """
        pass


class BudgetCalendarProration(ProrationStrategy):

    def plan(self, obligation, window, active_start: date) -> ProjectionPlan:
        allocated = budget_amount_for_window(
            obligation.amount,
            obligation.frequency,
            window.start_date,
            window.end_date,
            active_start=active_start,
            active_end=obligation.end_date,
        )
        days = inclusive_days(window.start_date, window.end_date)
        return ProjectionPlan(
            period_id=window.id,
            period_type=window.period_type,
            period_start=window.start_date,
            period_end=window.end_date,
            allocated_amount=allocated,
            daily_rate=allocated / days,
        )


class BudgetMultiplierProration(ProrationStrategy):

    def plan(self, obligation, window, active_start: date) -> ProjectionPlan:
        allocated = budget_multiplier_amount(obligation.amount, window.period_type, obligation.frequency)
        days = inclusive_days(window.start_date, window.end_date)
        return ProjectionPlan(
            period_id=window.id,
            period_type=window.period_type,
            period_start=window.start_date,
            period_end=window.end_date,
            allocated_amount=allocated,
            daily_rate=allocated / days,
        )


class CadenceProration(ProrationStrategy):

    def plan(self, obligation, window, active_start: date) -> ProjectionPlan:
        rate = daily_rate(obligation.amount, obligation.frequency)
        anchor = obligation.predicted_next_date or obligation.last_date or obligation.start_date or active_start
        due_dates = occurrences_in_window(
            anchor,
            obligation.frequency,
            window.start_date,
            window.end_date,
            not_before=obligation.start_date,
            not_after=obligation.end_date,
        )
        per_occurrence = round_money(Decimal(obligation.amount))
        return ProjectionPlan(
            period_id=window.id,
            period_type=window.period_type,
            period_start=window.start_date,
            period_end=window.end_date,
            allocated_amount=amount_for_window(rate, window.start_date, window.end_date),
            daily_rate=rate,
            is_due_period=bool(due_dates),
            amount_due=per_occurrence * len(due_dates),
            due_date=due_dates[0] if due_dates else None,
            amount_per_occurrence=per_occurrence,
            occurrence_due_dates=due_dates,
        )


_STRATEGIES = {
    KIND_BUDGET: BudgetCalendarProration(),
    KIND_OUTFLOW: CadenceProration(),
    KIND_INFLOW: CadenceProration(),
}


def strategy_for(kind: str) -> ProrationStrategy:
    try:
        return _STRATEGIES[kind]
    except KeyError:
        raise ValueError(f"unknown obligation kind: {kind}") from None
