"""
Tests for occurrence enumeration and first-fit slot assignment
"""
import pytest
from datetime import date

from famfin.domain.obligation import FREQ_WEEKLY, FREQ_BIWEEKLY, FREQ_SEMI_MONTHLY, FREQ_MONTHLY, FREQ_ANNUAL
from famfin.domain.occurrences import assign_first_fit, occurrence_at, occurrences_in_window


def test_occurrence_at_steps_both_ways():
    anchor = date(2025, 1, 15)
    assert occurrence_at(anchor, FREQ_WEEKLY, 2) == date(2025, 1, 29)
    assert occurrence_at(anchor, FREQ_BIWEEKLY, -1) == date(2025, 1, 1)
    assert occurrence_at(anchor, FREQ_SEMI_MONTHLY, 1) == date(2025, 1, 30)
    assert occurrence_at(anchor, FREQ_MONTHLY, -1) == date(2024, 12, 15)
    assert occurrence_at(anchor, FREQ_ANNUAL, 1) == date(2026, 1, 15)


def test_occurrence_at_unknown_frequency():
    with pytest.raises(ValueError):
        occurrence_at(date(2025, 1, 1), "DAILY", 1)


def test_monthly_due_on_fifteenth_in_half_months():
    anchor = date(2025, 1, 15)
    assert occurrences_in_window(anchor, FREQ_MONTHLY, date(2025, 1, 1), date(2025, 1, 15)) == [date(2025, 1, 15)]
    assert occurrences_in_window(anchor, FREQ_MONTHLY, date(2025, 1, 16), date(2025, 1, 31)) == []


def test_weekly_bill_inside_monthly_window():
    result = occurrences_in_window(date(2025, 1, 6), FREQ_WEEKLY, date(2025, 1, 1), date(2025, 1, 31))
    assert result == [date(2025, 1, 6), date(2025, 1, 13), date(2025, 1, 20), date(2025, 1, 27)]


def test_biweekly_hits_both_window_edges():
    result = occurrences_in_window(date(2025, 1, 3), FREQ_BIWEEKLY, date(2025, 1, 3), date(2025, 1, 31))
    assert result == [date(2025, 1, 3), date(2025, 1, 17), date(2025, 1, 31)]


def test_anchor_after_window_extends_backwards():
    result = occurrences_in_window(date(2025, 3, 15), FREQ_MONTHLY, date(2025, 1, 1), date(2025, 1, 31))
    assert result == [date(2025, 1, 15)]


def test_month_end_anchor_does_not_drift():
    anchor = date(2025, 1, 31)
    assert occurrences_in_window(anchor, FREQ_MONTHLY, date(2025, 2, 1), date(2025, 2, 28)) == [date(2025, 2, 28)]
    assert occurrences_in_window(anchor, FREQ_MONTHLY, date(2025, 3, 1), date(2025, 3, 31)) == [date(2025, 3, 31)]


def test_active_range_bounds_occurrences():
    result = occurrences_in_window(
        date(2025, 1, 6), FREQ_WEEKLY, date(2025, 1, 1), date(2025, 1, 31),
        not_before=date(2025, 1, 10), not_after=date(2025, 1, 25),
    )
    assert result == [date(2025, 1, 13), date(2025, 1, 20)]


def test_empty_window():
    assert occurrences_in_window(date(2025, 1, 6), FREQ_WEEKLY, date(2025, 1, 31), date(2025, 1, 1)) == []


# --- first-fit ---

def test_first_fit_fills_earliest_free_slots():
    assert assign_first_fit([None, None, None], [5, 7]) == ([5, 7, None], [])


def test_first_fit_keeps_existing_assignments():
    slots, overflow = assign_first_fit([None, 5, None], [7, 5])
    assert slots == [7, 5, None]
    assert overflow == []


def test_first_fit_frees_slots_of_removed_transactions():
    assert assign_first_fit([5, None], [7]) == ([7, None], [])
    assert assign_first_fit([5, 6], []) == ([None, None], [])


def test_first_fit_overflow_and_duplicates():
    assert assign_first_fit([5, None], [5, 7, 9]) == ([5, 7], [9])
    assert assign_first_fit([None], [3, 3]) == ([3], [])
