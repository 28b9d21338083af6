"""
Tests for the proration engine (daily-rate model and budget models)
"""
import pytest
from datetime import date
from decimal import Decimal

from famfin.domain.obligation import FREQ_WEEKLY, FREQ_BIWEEKLY, FREQ_MONTHLY, FREQ_ANNUAL
from famfin.domain.periods import PERIOD_WEEKLY, PERIOD_BI_MONTHLY, PERIOD_MONTHLY, PERIOD_TYPES, generate_periods
from famfin.domain.proration import (
    CYCLE_DAYS, amount_for_window, budget_amount_for_window, budget_multiplier_amount,
    daily_rate, inclusive_days, is_cycle_event_in_window, round_money,
)

CENT = Decimal("0.01")


def test_cycle_days_table():
    assert CYCLE_DAYS == {"WEEKLY": 7, "BIWEEKLY": 14, "SEMI_MONTHLY": 15, "MONTHLY": 30, "ANNUAL": 365}


def test_round_money_half_up():
    assert round_money(Decimal("2.345")) == Decimal("2.35")
    assert round_money(Decimal("2.344")) == Decimal("2.34")


def test_inclusive_days():
    assert inclusive_days(date(2025, 1, 1), date(2025, 1, 1)) == 1
    assert inclusive_days(date(2025, 1, 1), date(2025, 1, 31)) == 31
    assert inclusive_days(date(2025, 1, 2), date(2025, 1, 1)) == 0


def test_daily_rate_unknown_frequency():
    with pytest.raises(ValueError):
        daily_rate(Decimal("10"), "FORTNIGHTLY")


def test_amount_for_window_weekly_bill():
    rate = daily_rate(Decimal("70"), FREQ_WEEKLY)
    assert amount_for_window(rate, date(2025, 1, 1), date(2025, 1, 14)) == Decimal("140.00")


def test_amount_for_window_monthly_uses_thirty_days():
    rate = daily_rate(Decimal("300"), FREQ_MONTHLY)
    # 31-day month: one day more than the cycle
    assert amount_for_window(rate, date(2025, 1, 1), date(2025, 1, 31)) == Decimal("310.00")


def test_cycle_event_in_window_is_inclusive():
    assert is_cycle_event_in_window(date(2025, 1, 15), date(2025, 1, 1), date(2025, 1, 15))
    assert is_cycle_event_in_window(date(2025, 1, 1), date(2025, 1, 1), date(2025, 1, 15))
    assert not is_cycle_event_in_window(date(2025, 1, 16), date(2025, 1, 1), date(2025, 1, 15))


# --- sum law ---

@pytest.mark.parametrize("frequency,amount,windows", [
    (FREQ_MONTHLY, "1000", [(date(2025, 1, 1), date(2025, 1, 15)), (date(2025, 1, 16), date(2025, 1, 30))]),
    (FREQ_BIWEEKLY, "99.99", [(date(2025, 3, 3), date(2025, 3, 9)), (date(2025, 3, 10), date(2025, 3, 16))]),
    (FREQ_ANNUAL, "1200", [(date(2025, 1, 1), date(2025, 3, 31)), (date(2025, 4, 1), date(2025, 12, 31))]),
])
def test_daily_rate_sum_law(frequency, amount, windows):
    rate = daily_rate(Decimal(amount), frequency)
    total = sum(amount_for_window(rate, s, e) for s, e in windows)
    assert abs(total - Decimal(amount)) <= CENT * len(windows)


def test_budget_calendar_sum_law_over_one_month():
    windows = [
        (date(2025, 1, 1), date(2025, 1, 5)),
        (date(2025, 1, 6), date(2025, 1, 12)),
        (date(2025, 1, 13), date(2025, 1, 19)),
        (date(2025, 1, 20), date(2025, 1, 26)),
        (date(2025, 1, 27), date(2025, 1, 31)),
    ]
    total = sum(budget_amount_for_window(Decimal("500"), PERIOD_MONTHLY, s, e) for s, e in windows)
    assert abs(total - Decimal("500")) <= CENT * len(windows)


# --- budget calendar model ---

def test_budget_full_period_is_exact():
    assert budget_amount_for_window(
        Decimal("500"), PERIOD_MONTHLY, date(2025, 2, 1), date(2025, 2, 28)
    ) == Decimal("500.00")


def test_budget_week_spanning_month_boundary():
    # 6 x (500/31) + 1 x (500/28)
    amount = budget_amount_for_window(
        Decimal("500"), PERIOD_MONTHLY, date(2025, 1, 26), date(2025, 2, 1), active_start=date(2025, 1, 1)
    )
    assert amount == Decimal("114.63")


def test_hundred_dollar_budget_week_spanning_month_boundary():
    amount = budget_amount_for_window(
        Decimal("100"), PERIOD_MONTHLY, date(2025, 1, 26), date(2025, 2, 1), active_start=date(2025, 1, 1)
    )
    assert abs(amount - Decimal("22.92")) <= CENT


def test_budget_clipped_to_active_range():
    assert budget_amount_for_window(
        Decimal("310"), PERIOD_MONTHLY, date(2025, 1, 1), date(2025, 1, 31),
        active_start=date(2025, 1, 22),
    ) == Decimal("100.00")
    assert budget_amount_for_window(
        Decimal("310"), PERIOD_MONTHLY, date(2025, 1, 1), date(2025, 1, 31),
        active_start=date(2025, 2, 1),
    ) == Decimal("0.00")


def test_bi_monthly_budget_equal_across_views():
    """$100 per half-month from 2025-02-01 to 2025-04-13 is the same in every view."""
    start, end = date(2025, 2, 1), date(2025, 4, 13)
    expected = Decimal("486.67")

    for view in PERIOD_TYPES:
        windows = generate_periods(view, start, end)
        total = sum(
            budget_amount_for_window(
                Decimal("100"), PERIOD_BI_MONTHLY, w.start_date, w.end_date,
                active_start=start, active_end=end,
            )
            for w in windows
        )
        assert abs(total - expected) <= CENT * len(windows), view

    monthly = generate_periods(PERIOD_MONTHLY, start, end)
    assert sum(
        budget_amount_for_window(Decimal("100"), PERIOD_BI_MONTHLY, w.start_date, w.end_date, start, end)
        for w in monthly
    ) == expected


# --- budget multiplier table ---

def test_budget_multipliers_from_monthly():
    assert budget_multiplier_amount(Decimal("500"), PERIOD_MONTHLY) == Decimal("500.00")
    assert budget_multiplier_amount(Decimal("500"), PERIOD_BI_MONTHLY) == Decimal("250.00")
    assert budget_multiplier_amount(Decimal("500"), PERIOD_WEEKLY) == Decimal("114.98")


def test_budget_multiplier_converts_weekly_budget_to_monthly_first():
    assert budget_multiplier_amount(Decimal("100"), PERIOD_WEEKLY, PERIOD_WEEKLY) == Decimal("100.00")
    assert budget_multiplier_amount(Decimal("100"), PERIOD_BI_MONTHLY, PERIOD_WEEKLY) == Decimal("217.43")


def test_budget_multiplier_rejects_unknown_type():
    with pytest.raises(ValueError):
        budget_multiplier_amount(Decimal("100"), "QUARTERLY")
