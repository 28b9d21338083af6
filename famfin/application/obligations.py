"""
Obligation use cases: create / update / deactivate budgets, bills and income streams.

Pattern: write the row + event_log entry, commit, then run projectors.
Projector failures are logged only; the obligation write stands.
"""
import logging
from datetime import date
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from famfin.domain.obligation import (
    KIND_BUDGET, Obligation, ObligationValidationError, parse_amount, validate_obligation,
)
from famfin.domain.periods import period_from_id
from famfin.infrastructure.db.models import ObligationModel, SourcePeriod
from famfin.infrastructure.eventlog.repository import EventLogRepository
from famfin.readmodels.projectors.period_projections import PeriodProjectionsProjector

logger = logging.getLogger(__name__)

OBLIGATION_EVENTS = ["obligation_created", "obligation_updated", "obligation_deactivated"]

_EDITABLE = ("name", "amount", "frequency", "end_date", "last_date", "predicted_next_date", "group_id")


def run_obligation_projectors(db: Session, account_id: int) -> None:
    """Best effort: never raises."""
    try:
        PeriodProjectionsProjector(db).run(account_id, event_types=OBLIGATION_EVENTS)
    except Exception:
        db.rollback()
        logger.exception("Obligation projectors failed for account %s", account_id)


class CreateObligationUseCase:
    """
    Use case: create a budget / outflow / inflow and materialize its periods
    """

    def __init__(self, db: Session):
        self.db = db
        self.event_repo = EventLogRepository(db)

    def execute(
        self,
        account_id: int,
        kind: str,
        name: str,
        amount: Any,
        frequency: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        is_ongoing: bool = True,
        group_id: Optional[str] = None,
        start_period_id: Optional[str] = None,
        last_date: Optional[date] = None,
        predicted_next_date: Optional[date] = None,
    ) -> int:
        """
        Returns:
            obligation id

        Raises:
            ObligationValidationError
        """
        parsed = parse_amount(amount)
        if not name or not name.strip():
            raise ObligationValidationError("name_required", "Name is required")
        validate_obligation(kind, frequency, start_date, end_date)
        if kind != KIND_BUDGET and start_date is None and last_date is None and predicted_next_date is None:
            raise ObligationValidationError(
                "anchor_required", "Bills and income need a first, last or next due date"
            )
        if start_period_id:
            self._check_period_exists(start_period_id)

        obligation = ObligationModel(
            account_id=account_id,
            group_id=group_id,
            kind=kind,
            name=name.strip(),
            amount=parsed,
            frequency=frequency,
            start_date=start_date,
            end_date=end_date,
            last_date=last_date,
            predicted_next_date=predicted_next_date,
            start_period_id=start_period_id,
            # A fixed end date makes the obligation bounded
            is_ongoing=is_ongoing and end_date is None,
            is_active=True,
            version=1,
        )
        self.db.add(obligation)
        self.db.flush()

        payload = Obligation.create(
            obligation_id=obligation.id,
            account_id=account_id,
            kind=kind,
            name=obligation.name,
            amount=parsed,
            frequency=frequency,
            start_date=start_date,
            end_date=end_date,
            is_ongoing=obligation.is_ongoing,
            group_id=group_id,
            start_period_id=start_period_id,
        )
        self.event_repo.append_event(account_id, "obligation_created", payload)
        self.db.commit()

        run_obligation_projectors(self.db, account_id)
        return obligation.id

    def _check_period_exists(self, period_id: str) -> None:
        if self.db.get(SourcePeriod, period_id) is not None:
            return
        try:
            period_from_id(period_id)
        except ValueError:
            raise ObligationValidationError("period_not_found", f"Period {period_id} not found") from None


class UpdateObligationUseCase:
    """
    Use case: edit an obligation

    Bumps version; future projections are re-derived by the projector,
    started ones keep their copies and show up as stale.
    """

    def __init__(self, db: Session):
        self.db = db
        self.event_repo = EventLogRepository(db)

    def execute(self, account_id: int, obligation_id: int, changes: Dict[str, Any]) -> int:
        """
        Returns:
            new version

        Raises:
            ObligationValidationError
        """
        obligation = _get_owned(self.db, account_id, obligation_id)
        if not obligation.is_active:
            raise ObligationValidationError("obligation_inactive", f"Obligation {obligation_id} is inactive")

        unknown = set(changes) - set(_EDITABLE)
        if unknown:
            raise ObligationValidationError("invalid_field", f"Fields cannot be edited: {sorted(unknown)}")

        applied: Dict[str, Any] = {}
        for key, value in changes.items():
            if key == "amount":
                value = parse_amount(value)
            if key == "name":
                if not value or not str(value).strip():
                    raise ObligationValidationError("name_required", "Name is required")
                value = str(value).strip()
            if getattr(obligation, key) != value:
                applied[key] = value

        if not applied:
            return obligation.version

        validate_obligation(
            obligation.kind,
            applied.get("frequency", obligation.frequency),
            obligation.start_date,
            applied.get("end_date", obligation.end_date),
        )

        for key, value in applied.items():
            setattr(obligation, key, value)
        if "end_date" in applied:
            obligation.is_ongoing = obligation.end_date is None
        obligation.version += 1

        self.event_repo.append_event(
            account_id, "obligation_updated", Obligation.update(obligation.id, obligation.version, applied)
        )
        self.db.commit()

        run_obligation_projectors(self.db, account_id)
        return obligation.version


class DeactivateObligationUseCase:
    """
    Use case: soft-delete an obligation (projections are kept)
    """

    def __init__(self, db: Session):
        self.db = db
        self.event_repo = EventLogRepository(db)

    def execute(self, account_id: int, obligation_id: int) -> None:
        obligation = _get_owned(self.db, account_id, obligation_id)
        if not obligation.is_active:
            return

        obligation.is_active = False
        obligation.version += 1
        self.event_repo.append_event(account_id, "obligation_deactivated", Obligation.deactivate(obligation.id))
        self.db.commit()

        run_obligation_projectors(self.db, account_id)


def _get_owned(db: Session, account_id: int, obligation_id: int) -> ObligationModel:
    obligation = db.get(ObligationModel, obligation_id)
    if obligation is None or obligation.account_id != account_id:
        raise ObligationValidationError("obligation_not_found", f"Obligation {obligation_id} not found")
    return obligation
