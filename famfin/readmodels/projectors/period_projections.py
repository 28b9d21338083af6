"""
PeriodProjectionsProjector - materializes period projections from obligation events

Handles:
- obligation_created:     materialize the full horizon
- obligation_updated:     re-derive future projections, extend the horizon
- obligation_deactivated: future projections marked inactive

Failures are logged and swallowed: the obligation write that produced the
event has already succeeded. fill_gap / materialize can repair later.
"""
import logging
from datetime import date

from sqlalchemy.orm import Session

from famfin.application.materializer import MaterializeProjectionsUseCase, RefreshFutureProjectionsUseCase
from famfin.infrastructure.db.models import EventLog, PeriodProjection
from famfin.readmodels.projectors.base import BaseProjector

logger = logging.getLogger(__name__)


class PeriodProjectionsProjector(BaseProjector):

    def __init__(self, db: Session):
        super().__init__(db, projector_name="period_projections")

    def handle_event(self, event: EventLog) -> None:
        obligation_id = event.payload_json.get("obligation_id")
        try:
            if event.event_type == "obligation_created":
                self._handle_created(obligation_id)
            elif event.event_type == "obligation_updated":
                self._handle_updated(obligation_id)
            elif event.event_type == "obligation_deactivated":
                self._handle_deactivated(obligation_id)
        except Exception:
            self.db.rollback()
            logger.exception(
                "Projection materialization failed: event=%s type=%s obligation=%s",
                event.id, event.event_type, obligation_id,
            )

    def _handle_created(self, obligation_id: int) -> None:
        result = MaterializeProjectionsUseCase(self.db).execute(obligation_id)
        for error in result.errors:
            logger.warning("Materialization of obligation %s incomplete: %s", obligation_id, error)

    def _handle_updated(self, obligation_id: int) -> None:
        RefreshFutureProjectionsUseCase(self.db).execute(obligation_id)

    def _handle_deactivated(self, obligation_id: int) -> None:
        today = date.today()
        (
            self.db.query(PeriodProjection)
            .filter(
                PeriodProjection.obligation_id == obligation_id,
                PeriodProjection.period_start > today,
            )
            .update({PeriodProjection.is_active: False}, synchronize_session="fetch")
        )
        self.db.commit()
