"""
Rolling extension of recurring budgets.

Runs monthly: every active ongoing budget gets projections up to one year
ahead. Amounts come from the fixed multiplier table; existing period ids
are skipped.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, List

from sqlalchemy.orm import Session

from famfin.domain.obligation import KIND_BUDGET
from famfin.domain.periods import add_months
from famfin.domain.projection import BudgetMultiplierProration
from famfin.application.materializer import MaterializeProjectionsUseCase, resolve_start_anchor
from famfin.infrastructure.db.models import ObligationModel

logger = logging.getLogger(__name__)

EXTENSION_MONTHS = 12


@dataclass
class ExtensionSummary:
    budgets: int = 0
    created: int = 0
    failed: int = 0
    errors: List[Dict[str, object]] = field(default_factory=list)


class ExtendRecurringBudgetsUseCase:

    def __init__(self, db: Session):
        self.db = db

    def execute(self, today: date | None = None) -> ExtensionSummary:
        today = today or date.today()
        horizon_end = add_months(today, EXTENSION_MONTHS) - timedelta(days=1)
        summary = ExtensionSummary()

        budget_ids = [
            row[0]
            for row in self.db.query(ObligationModel.id)
            .filter(
                ObligationModel.kind == KIND_BUDGET,
                ObligationModel.is_active.is_(True),
                ObligationModel.is_ongoing.is_(True),
                ObligationModel.end_date.is_(None),
            )
            .order_by(ObligationModel.id.asc())
            .all()
        ]

        materializer = MaterializeProjectionsUseCase(self.db, strategy=BudgetMultiplierProration())
        for budget_id in budget_ids:
            summary.budgets += 1
            try:
                budget = self.db.get(ObligationModel, budget_id)
                active_start = resolve_start_anchor(self.db, budget, today)
                # Start where the last run stopped
                range_start = max(active_start, (budget.periods_generated_until or today) + timedelta(days=1))
                if range_start > horizon_end:
                    continue
                result = materializer.materialize_range(budget, active_start, range_start, horizon_end, today)
                summary.created += result.created
            except Exception as exc:
                self.db.rollback()
                logger.exception("Extending budget %s failed", budget_id)
                summary.failed += 1
                summary.errors.append({"obligation_id": budget_id, "message": str(exc)})

        logger.info(
            "Recurring budget extension: budgets=%d created=%d failed=%d",
            summary.budgets, summary.created, summary.failed,
        )
        return summary
