"""
Tests for PeriodProjectionsProjector and ProjectionAggregatesProjector
"""
from datetime import date, datetime
from decimal import Decimal

from famfin.application.obligations import CreateObligationUseCase
from famfin.infrastructure.db.models import EventLog, ObligationModel, PeriodProjection, ProjectorCheckpoint
from famfin.readmodels.projectors import period_projections
from famfin.readmodels.projectors.period_projections import PeriodProjectionsProjector
from famfin.readmodels.projectors.projection_aggregates import ProjectionAggregatesProjector


def _obligation_row(db, account_id, **kwargs):
    row = ObligationModel(
        account_id=account_id,
        kind="BUDGET",
        name="Groceries",
        amount=Decimal("300"),
        frequency="MONTHLY",
        start_date=date(2025, 1, 1),
        end_date=date(2025, 2, 28),
        is_ongoing=False,
        is_active=True,
        version=1,
        **kwargs,
    )
    db.add(row)
    db.commit()
    return row.id


def _event(db, account_id, event_type, payload):
    event = EventLog(
        account_id=account_id,
        event_type=event_type,
        payload_json=payload,
        occurred_at=datetime.utcnow(),
    )
    db.add(event)
    db.commit()
    return event.id


def test_projector_materializes_created_obligation(db_session, sample_account_id):
    obligation_id = _obligation_row(db_session, sample_account_id)
    event_id = _event(db_session, sample_account_id, "obligation_created", {"obligation_id": obligation_id})

    projector = PeriodProjectionsProjector(db_session)
    assert projector.run(sample_account_id) == 1

    monthly = db_session.get(PeriodProjection, f"{obligation_id}_2025M02")
    assert monthly is not None
    assert monthly.allocated_amount == Decimal("300.00")
    assert projector.get_checkpoint(sample_account_id) == event_id

    # Nothing new after the checkpoint
    assert projector.run(sample_account_id) == 0


def test_projector_swallows_materialization_failure(db_session, sample_account_id, caplog):
    event_id = _event(db_session, sample_account_id, "obligation_created", {"obligation_id": 999})

    projector = PeriodProjectionsProjector(db_session)
    assert projector.run(sample_account_id) == 1
    assert projector.get_checkpoint(sample_account_id) == event_id
    assert "Projection materialization failed" in caplog.text


def test_obligation_creation_survives_projector_failure(db_session, sample_account_id, monkeypatch):
    def boom(self, obligation_id, horizon_months=None, today=None):
        raise RuntimeError("document store unavailable")

    monkeypatch.setattr(period_projections.MaterializeProjectionsUseCase, "execute", boom)

    obligation_id = CreateObligationUseCase(db_session).execute(
        account_id=sample_account_id, kind="BUDGET", name="Fuel", amount="200",
        frequency="MONTHLY", start_date=date(2025, 1, 1),
    )

    assert db_session.get(ObligationModel, obligation_id) is not None
    assert db_session.query(PeriodProjection).count() == 0


def test_reset_replays_events(db_session, sample_account_id):
    obligation_id = _obligation_row(db_session, sample_account_id)
    _event(db_session, sample_account_id, "obligation_created", {"obligation_id": obligation_id})

    projector = PeriodProjectionsProjector(db_session)
    projector.run(sample_account_id)
    count = db_session.query(PeriodProjection).count()

    projector.reset(sample_account_id)
    assert projector.run(sample_account_id) == 1
    # Replay is idempotent by projection id
    assert db_session.query(PeriodProjection).count() == count
    assert db_session.query(ProjectorCheckpoint).count() == 1


def test_aggregates_projector_tolerates_unknown_projection(db_session, sample_account_id, caplog):
    _event(db_session, sample_account_id, "transaction_created", {
        "transaction_id": 1,
        "old_projection_ids": [],
        "new_projection_ids": ["missing_2025M01"],
    })

    projector = ProjectionAggregatesProjector(db_session)
    assert projector.run(sample_account_id) == 1
    assert "not recomputed" in caplog.text


def test_aggregates_projector_ignores_obligation_events(db_session, sample_account_id):
    obligation_id = _obligation_row(db_session, sample_account_id)
    _event(db_session, sample_account_id, "obligation_created", {"obligation_id": obligation_id})

    projector = ProjectionAggregatesProjector(db_session)
    assert projector.run(sample_account_id) == 1
    assert db_session.query(PeriodProjection).count() == 0
