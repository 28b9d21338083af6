"""
Tests for obligation create / update / deactivate use cases
"""
import pytest
from datetime import date

from famfin.application.obligations import (
    CreateObligationUseCase, DeactivateObligationUseCase, UpdateObligationUseCase,
)
from famfin.domain.obligation import ObligationValidationError
from famfin.infrastructure.db.models import EventLog, ObligationModel


def _create(db, account_id, **overrides):
    kwargs = dict(
        account_id=account_id, kind="BUDGET", name="Groceries", amount="500",
        frequency="MONTHLY", start_date=date(2025, 1, 1), end_date=date(2025, 3, 31),
    )
    kwargs.update(overrides)
    return CreateObligationUseCase(db).execute(**kwargs)


def _event_types(db):
    return [e.event_type for e in db.query(EventLog).order_by(EventLog.id.asc()).all()]


@pytest.mark.parametrize("overrides,code", [
    ({"name": "  "}, "name_required"),
    ({"amount": "abc"}, "invalid_amount"),
    ({"amount": "0"}, "invalid_amount"),
    ({"kind": "LOAN"}, "invalid_kind"),
    ({"frequency": "HOURLY"}, "invalid_frequency"),
    ({"end_date": date(2024, 12, 31)}, "invalid_date_range"),
    ({"kind": "OUTFLOW", "start_date": None}, "anchor_required"),
    ({"start_period_id": "2025X01"}, "period_not_found"),
])
def test_create_validation_codes(db_session, sample_account_id, overrides, code):
    with pytest.raises(ObligationValidationError) as exc:
        _create(db_session, sample_account_id, **overrides)
    assert exc.value.code == code
    assert db_session.query(ObligationModel).count() == 0
    assert _event_types(db_session) == []


def test_create_writes_event_and_marks_bounded(db_session, sample_account_id):
    obligation_id = _create(db_session, sample_account_id)

    obligation = db_session.get(ObligationModel, obligation_id)
    assert obligation.is_ongoing is False
    assert obligation.version == 1

    event = db_session.query(EventLog).one()
    assert event.event_type == "obligation_created"
    assert event.payload_json["obligation_id"] == obligation_id
    assert event.payload_json["kind"] == "BUDGET"


def test_update_and_deactivate_append_events(db_session, sample_account_id):
    obligation_id = _create(db_session, sample_account_id)

    version = UpdateObligationUseCase(db_session).execute(sample_account_id, obligation_id, {"amount": "650"})
    assert version == 2

    use_case = DeactivateObligationUseCase(db_session)
    use_case.execute(sample_account_id, obligation_id)
    # Second call is a no-op
    use_case.execute(sample_account_id, obligation_id)

    assert _event_types(db_session) == ["obligation_created", "obligation_updated", "obligation_deactivated"]
    obligation = db_session.get(ObligationModel, obligation_id)
    assert obligation.is_active is False
    assert obligation.version == 3


def test_inactive_obligation_cannot_be_edited(db_session, sample_account_id):
    obligation_id = _create(db_session, sample_account_id)
    DeactivateObligationUseCase(db_session).execute(sample_account_id, obligation_id)

    with pytest.raises(ObligationValidationError) as exc:
        UpdateObligationUseCase(db_session).execute(sample_account_id, obligation_id, {"name": "Food"})
    assert exc.value.code == "obligation_inactive"


def test_clearing_end_date_makes_obligation_ongoing(db_session, sample_account_id):
    obligation_id = _create(db_session, sample_account_id)
    UpdateObligationUseCase(db_session).execute(sample_account_id, obligation_id, {"end_date": None})

    assert db_session.get(ObligationModel, obligation_id).is_ongoing is True
