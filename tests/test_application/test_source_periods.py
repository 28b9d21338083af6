"""
Tests for source period generation and the current-period sweep
"""
import pytest
from datetime import date

from famfin.application.source_periods import (
    EnsureSourcePeriodsUseCase, GenerateSourcePeriodsUseCase, SourcePeriodValidationError,
    UpdateCurrentPeriodsUseCase, get_current_period, list_overlapping,
)
from famfin.domain.periods import PERIOD_WEEKLY, PERIOD_BI_MONTHLY, PERIOD_MONTHLY
from famfin.infrastructure.db.models import SourcePeriod


def _current_ids(db):
    rows = db.query(SourcePeriod).filter(SourcePeriod.is_current.is_(True)).all()
    return {p.period_type: p.id for p in rows}


class TestGenerateSourcePeriods:
    def test_generates_full_year(self, db_session):
        summary = GenerateSourcePeriodsUseCase(db_session).execute(
            date(2025, 1, 1), date(2025, 12, 31), today=date(2025, 1, 10)
        )
        assert summary[PERIOD_MONTHLY] == {"created": 12, "existing": 0}
        assert summary[PERIOD_BI_MONTHLY] == {"created": 24, "existing": 0}
        assert summary[PERIOD_WEEKLY] == {"created": 53, "existing": 0}

        feb = db_session.get(SourcePeriod, "2025M02")
        assert feb.start_date == date(2025, 2, 1)
        assert feb.end_date == date(2025, 2, 28)
        assert feb.index == 202502
        assert feb.metadata_json == {"month": 2}

    def test_rerun_is_noop(self, db_session):
        use_case = GenerateSourcePeriodsUseCase(db_session)
        use_case.execute(date(2025, 1, 1), date(2025, 6, 30), today=date(2025, 1, 10))
        summary = use_case.execute(date(2025, 1, 1), date(2025, 12, 31), today=date(2025, 1, 10))

        assert summary[PERIOD_MONTHLY] == {"created": 6, "existing": 6}
        assert db_session.query(SourcePeriod).filter(SourcePeriod.period_type == PERIOD_MONTHLY).count() == 12

    def test_sets_current_flag_for_today(self, db_session):
        GenerateSourcePeriodsUseCase(db_session).execute(
            date(2025, 1, 1), date(2025, 3, 31), today=date(2025, 1, 10)
        )
        assert _current_ids(db_session) == {
            PERIOD_MONTHLY: "2025M01",
            PERIOD_BI_MONTHLY: "2025BM01A",
            PERIOD_WEEKLY: "2025W02",
        }

    def test_rejects_inverted_range(self, db_session):
        with pytest.raises(SourcePeriodValidationError) as exc:
            GenerateSourcePeriodsUseCase(db_session).execute(date(2025, 2, 1), date(2025, 1, 1))
        assert exc.value.code == "invalid_date_range"

    def test_rejects_range_beyond_max_horizon(self, db_session):
        with pytest.raises(SourcePeriodValidationError) as exc:
            GenerateSourcePeriodsUseCase(db_session).execute(date(2025, 1, 1), date(2031, 1, 2))
        assert exc.value.code == "horizon_too_long"

    def test_rejects_unknown_period_type(self, db_session):
        with pytest.raises(SourcePeriodValidationError) as exc:
            GenerateSourcePeriodsUseCase(db_session).execute(
                date(2025, 1, 1), date(2025, 1, 31), period_types=["DAILY"]
            )
        assert exc.value.code == "invalid_period_type"

    def test_ensure_covers_configured_horizon(self, db_session):
        EnsureSourcePeriodsUseCase(db_session).execute(today=date(2025, 1, 10))
        assert db_session.get(SourcePeriod, "2028M01") is not None
        assert db_session.get(SourcePeriod, "2028M02") is None

    def test_list_overlapping(self, db_session):
        GenerateSourcePeriodsUseCase(db_session).execute(date(2025, 1, 1), date(2025, 12, 31))
        rows = list_overlapping(db_session, PERIOD_BI_MONTHLY, date(2025, 1, 15), date(2025, 2, 16))
        assert [p.id for p in rows] == ["2025BM01A", "2025BM01B", "2025BM02A", "2025BM02B"]


class TestCurrentPeriodSweep:
    def test_sweep_moves_flags(self, db_session):
        GenerateSourcePeriodsUseCase(db_session).execute(
            date(2025, 1, 1), date(2025, 12, 31), today=date(2025, 1, 10)
        )
        result = UpdateCurrentPeriodsUseCase(db_session).execute(today=date(2025, 2, 20))

        assert result["updated"] == 6
        assert result["current"] == {
            PERIOD_MONTHLY: "2025M02",
            PERIOD_BI_MONTHLY: "2025BM02B",
            PERIOD_WEEKLY: "2025W08",
        }
        assert _current_ids(db_session) == result["current"]
        assert db_session.query(SourcePeriod).filter(SourcePeriod.is_current.is_(True)).count() == 3

    def test_sweep_is_idempotent(self, db_session):
        GenerateSourcePeriodsUseCase(db_session).execute(
            date(2025, 1, 1), date(2025, 12, 31), today=date(2025, 1, 10)
        )
        use_case = UpdateCurrentPeriodsUseCase(db_session)
        use_case.execute(today=date(2025, 2, 20))
        assert use_case.execute(today=date(2025, 2, 20))["updated"] == 0

    def test_sweep_without_periods_warns(self, db_session, caplog):
        result = UpdateCurrentPeriodsUseCase(db_session).execute(today=date(2025, 2, 20))
        assert result["current"] == {PERIOD_MONTHLY: None, PERIOD_BI_MONTHLY: None, PERIOD_WEEKLY: None}
        assert "No current MONTHLY period" in caplog.text

    def test_sweep_clears_flag_when_horizon_runs_out(self, db_session):
        GenerateSourcePeriodsUseCase(db_session).execute(
            date(2025, 1, 1), date(2025, 1, 31), period_types=[PERIOD_MONTHLY], today=date(2025, 1, 10)
        )
        result = UpdateCurrentPeriodsUseCase(db_session).execute(today=date(2025, 3, 1))
        assert result["current"][PERIOD_MONTHLY] is None
        assert _current_ids(db_session) == {}

    def test_current_period_tolerates_stale_flag(self, db_session):
        GenerateSourcePeriodsUseCase(db_session).execute(
            date(2025, 1, 1), date(2025, 12, 31), today=date(2025, 1, 10)
        )
        # Sweep has not run yet: the flag still sits on January
        current = get_current_period(db_session, PERIOD_MONTHLY, today=date(2025, 2, 20))
        assert current.id == "2025M02"

        assert get_current_period(db_session, PERIOD_MONTHLY, today=date(2025, 1, 20)).id == "2025M01"
        assert get_current_period(db_session, PERIOD_MONTHLY, today=date(2030, 1, 1)) is None
