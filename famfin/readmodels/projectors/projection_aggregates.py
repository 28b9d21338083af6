"""
ProjectionAggregatesProjector - keeps projection totals in line with transactions

Handles transaction_created / transaction_updated / transaction_deleted.
Every projection linked before or after the change is recomputed in full,
so an update that moves a payment is a removal from the old projections
plus an addition to the new ones.
"""
import logging

from sqlalchemy.orm import Session

from famfin.application.aggregator import RecomputeProjectionUseCase
from famfin.infrastructure.db.models import EventLog
from famfin.readmodels.projectors.base import BaseProjector

logger = logging.getLogger(__name__)

TRANSACTION_EVENTS = ["transaction_created", "transaction_updated", "transaction_deleted"]


class ProjectionAggregatesProjector(BaseProjector):

    def __init__(self, db: Session):
        super().__init__(db, projector_name="projection_aggregates")

    def handle_event(self, event: EventLog) -> None:
        if event.event_type not in TRANSACTION_EVENTS:
            return

        payload = event.payload_json
        affected = set(payload.get("old_projection_ids") or []) | set(payload.get("new_projection_ids") or [])
        if not affected:
            return

        summary = RecomputeProjectionUseCase(self.db).execute_many(affected)
        if summary.failed:
            logger.warning(
                "Transaction %s: %d of %d projections not recomputed: %s",
                payload.get("transaction_id"), len(summary.failed), len(affected), sorted(summary.failed),
            )
