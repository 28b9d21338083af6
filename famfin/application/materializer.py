"""
Period materializer: create period projections for an obligation.

- materialize(): every projection over the obligation's horizon, bulk,
  idempotent by id
- fill_gap(): exactly one projection for a given period, with skip reasons
- refresh_future(): re-derive not-yet-started projections after an edit

Budgets get all three period types straight from the lattice generator;
outflows and inflows project onto existing source_periods rows.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Set

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from famfin.config import get_settings
from famfin.domain.errors import CoreError
from famfin.domain.obligation import KIND_BUDGET
from famfin.domain.periods import PERIOD_TYPES, add_months, generate_periods, period_from_id
from famfin.domain.projection import ProjectionPlan, ProrationStrategy, projection_id_for, strategy_for
from famfin.application.aggregator import RecomputeProjectionUseCase
from famfin.application.attribution import relink_split
from famfin.application.source_periods import list_overlapping
from famfin.infrastructure.db.batch import BatchWriter
from famfin.infrastructure.db.models import (
    ObligationModel, PeriodProjection, SourcePeriod, TransactionModel, TransactionSplit,
)

logger = logging.getLogger(__name__)

FILL_CREATED = "created"
FILL_SKIPPED = "skipped"

SKIP_ALREADY_EXISTS = "already_exists"
SKIP_BEFORE_START = "before_start"
SKIP_AFTER_END = "after_end"


class MaterializationError(CoreError):
    pass


@dataclass
class MaterializeResult:
    obligation_id: int
    created: int = 0
    skipped: int = 0
    errors: List[Dict[str, object]] = field(default_factory=list)


@dataclass
class BulkMaterializeResult:
    created: int = 0
    succeeded: int = 0
    failed: int = 0
    errors: List[Dict[str, object]] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return self.failed > 0 and self.succeeded > 0


@dataclass
class FillGapResult:
    status: str
    projection_id: str
    reason: Optional[str] = None


def attach_existing_transactions(db: Session, obligation_id: int, today: date) -> None:
    """Link transactions recorded before these projections existed, then recompute."""
    splits = (
        db.query(TransactionSplit, TransactionModel.transaction_date)
        .join(TransactionModel, TransactionModel.id == TransactionSplit.transaction_id)
        .filter(
            TransactionSplit.obligation_id == obligation_id,
            TransactionModel.is_deleted.is_(False),
        )
        .all()
    )
    if not splits:
        return

    touched: Set[str] = set()
    for split, tx_date in splits:
        old, new = relink_split(db, split, tx_date)
        touched |= old | new
    db.commit()

    RecomputeProjectionUseCase(db).execute_many(touched, today=today)


def get_obligation(db: Session, obligation_id: int) -> ObligationModel:
    obligation = db.get(ObligationModel, obligation_id)
    if obligation is None:
        raise MaterializationError("obligation_not_found", f"Obligation {obligation_id} not found")
    return obligation


def resolve_start_anchor(db: Session, obligation: ObligationModel, today: date) -> date:
    """Explicit start date, else the chosen start period, else today."""
    if obligation.start_date:
        return obligation.start_date
    if obligation.start_period_id:
        period = db.get(SourcePeriod, obligation.start_period_id)
        if period is not None:
            return period.start_date
        try:
            return period_from_id(obligation.start_period_id).start_date
        except ValueError:
            raise MaterializationError(
                "period_not_found", f"Start period {obligation.start_period_id} not found"
            ) from None
    return today


def resolve_horizon_end(
    obligation: ObligationModel,
    anchor: date,
    today: date,
    horizon_months: int | None = None,
) -> date:
    """
    Bounded obligations stop at their end date; ongoing ones get the
    ongoing horizon (or an explicit one), counted from the later of today
    and the anchor. The cap is counted from the same day.
    """
    settings = get_settings()
    base = max(anchor, today)
    cap = add_months(base, settings.MAX_HORIZON_MONTHS) - timedelta(days=1)
    if obligation.end_date:
        end = obligation.end_date
    else:
        months = horizon_months or settings.ONGOING_HORIZON_MONTHS
        end = add_months(base, months) - timedelta(days=1)
    return min(end, cap)


def projection_from_plan(obligation: ObligationModel, plan: ProjectionPlan) -> PeriodProjection:
    n = len(plan.occurrence_due_dates)
    total_due = plan.total_amount_due
    return PeriodProjection(
        id=projection_id_for(obligation.id, plan.period_id),
        obligation_id=obligation.id,
        source_period_id=plan.period_id,
        kind=obligation.kind,
        period_type=plan.period_type,
        period_start=plan.period_start,
        period_end=plan.period_end,
        account_id=obligation.account_id,
        group_id=obligation.group_id,
        obligation_name=obligation.name,
        obligation_version=obligation.version,
        allocated_amount=plan.allocated_amount,
        daily_rate=plan.daily_rate,
        is_due_period=plan.is_due_period,
        amount_due=plan.amount_due,
        due_date=plan.due_date,
        amount_per_occurrence=plan.amount_per_occurrence,
        occurrence_due_dates=[d.isoformat() for d in plan.occurrence_due_dates],
        occurrence_paid_flags=[False] * n,
        occurrence_transaction_ids=[None] * n,
        number_of_occurrences=n,
        first_due_date=plan.occurrence_due_dates[0] if n else None,
        last_due_date=plan.occurrence_due_dates[-1] if n else None,
        next_unpaid_due_date=plan.occurrence_due_dates[0] if n else None,
        total_amount_due=total_due,
        total_amount_paid=0,
        total_amount_unpaid=total_due,
        spent=0,
        remaining=total_due,
        transaction_ids=[],
        status="pending",
        is_active=True,
    )


def apply_plan(projection: PeriodProjection, obligation: ObligationModel, plan: ProjectionPlan) -> None:
    """Overwrite the prorated fields of an existing projection (slots reset)."""
    n = len(plan.occurrence_due_dates)
    projection.obligation_name = obligation.name
    projection.obligation_version = obligation.version
    projection.group_id = obligation.group_id
    projection.allocated_amount = plan.allocated_amount
    projection.daily_rate = plan.daily_rate
    projection.is_due_period = plan.is_due_period
    projection.amount_due = plan.amount_due
    projection.due_date = plan.due_date
    projection.amount_per_occurrence = plan.amount_per_occurrence
    projection.occurrence_due_dates = [d.isoformat() for d in plan.occurrence_due_dates]
    projection.occurrence_paid_flags = [False] * n
    projection.occurrence_transaction_ids = [None] * n


class MaterializeProjectionsUseCase:
    """
    Use case: create every missing projection of an obligation

    Safe to call repeatedly; a second call creates nothing.
    """

    def __init__(self, db: Session, strategy: ProrationStrategy | None = None):
        self.db = db
        self.strategy = strategy

    def execute(
        self,
        obligation_id: int,
        horizon_months: int | None = None,
        today: date | None = None,
    ) -> MaterializeResult:
        """
        Raises:
            MaterializationError: obligation missing or inactive, bad start period
        """
        today = today or date.today()
        obligation = get_obligation(self.db, obligation_id)
        if not obligation.is_active:
            raise MaterializationError("obligation_inactive", f"Obligation {obligation_id} is inactive")

        anchor = resolve_start_anchor(self.db, obligation, today)
        horizon_end = resolve_horizon_end(obligation, anchor, today, horizon_months)
        return self.materialize_range(obligation, anchor, anchor, horizon_end, today)

    def materialize_range(
        self,
        obligation: ObligationModel,
        active_start: date,
        range_start: date,
        range_end: date,
        today: date,
    ) -> MaterializeResult:
        result = MaterializeResult(obligation_id=obligation.id)
        strategy = self.strategy or strategy_for(obligation.kind)

        windows = self._windows(obligation, range_start, range_end)
        if not windows:
            logger.warning(
                "No source periods for obligation %s in %s..%s", obligation.id, range_start, range_end
            )
            result.errors.append({
                "obligation_id": obligation.id,
                "code": "no_source_periods",
                "message": f"No source periods between {range_start} and {range_end}",
            })
            return result

        existing = self._existing_ids(obligation.id)
        rows: List[PeriodProjection] = []
        for window in windows:
            if projection_id_for(obligation.id, window.id) in existing:
                result.skipped += 1
                continue
            plan = strategy.plan(obligation, window, active_start)
            rows.append(projection_from_plan(obligation, plan))

        result.created = BatchWriter(self.db).add_all(rows)

        if obligation.periods_generated_until is None or obligation.periods_generated_until < range_end:
            obligation.periods_generated_until = range_end
        self.db.commit()

        logger.info(
            "Materialized obligation %s (%s): created=%d skipped=%d until %s",
            obligation.id, obligation.kind, result.created, result.skipped, range_end,
        )

        if rows:
            attach_existing_transactions(self.db, obligation.id, today)
        return result

    def execute_many(self, obligation_ids: Iterable[int], today: date | None = None) -> BulkMaterializeResult:
        """Per-obligation failures are logged and counted, the rest go on."""
        summary = BulkMaterializeResult()
        for obligation_id in obligation_ids:
            try:
                result = self.execute(obligation_id, today=today)
            except Exception as exc:
                self.db.rollback()
                logger.exception("Materialization failed for obligation %s", obligation_id)
                summary.failed += 1
                summary.errors.append({
                    "obligation_id": obligation_id,
                    "code": getattr(exc, "code", "materialization_failed"),
                    "message": str(exc),
                })
                continue
            summary.created += result.created
            if result.errors:
                summary.failed += 1
                summary.errors.extend(result.errors)
            else:
                summary.succeeded += 1

        logger.info(
            "Bulk materialization: created=%d succeeded=%d failed=%d",
            summary.created, summary.succeeded, summary.failed,
        )
        return summary

    def _windows(self, obligation: ObligationModel, start: date, end: date) -> list:
        if obligation.kind == KIND_BUDGET:
            windows = []
            for period_type in PERIOD_TYPES:
                windows.extend(generate_periods(period_type, start, end))
            return windows

        windows = []
        for period_type in PERIOD_TYPES:
            windows.extend(list_overlapping(self.db, period_type, start, end))
        return windows

    def _existing_ids(self, obligation_id: int) -> Set[str]:
        rows = self.db.query(PeriodProjection.id).filter(PeriodProjection.obligation_id == obligation_id).all()
        return {r[0] for r in rows}


class FillGapUseCase:
    """
    Use case: backfill exactly one projection

    Unlike creation-triggered materialization, errors reach the caller.
    """

    def __init__(self, db: Session):
        self.db = db

    def execute(self, obligation_id: int, target_period_id: str, today: date | None = None) -> FillGapResult:
        """
        Raises:
            MaterializationError: obligation_not_found, obligation_inactive, period_not_found
        """
        today = today or date.today()
        obligation = get_obligation(self.db, obligation_id)
        if not obligation.is_active:
            raise MaterializationError("obligation_inactive", f"Obligation {obligation_id} is inactive")

        projection_id = projection_id_for(obligation.id, target_period_id)
        if self.db.get(PeriodProjection, projection_id) is not None:
            return FillGapResult(FILL_SKIPPED, projection_id, SKIP_ALREADY_EXISTS)

        window = self._resolve_window(obligation, target_period_id)

        active_start = resolve_start_anchor(self.db, obligation, today)
        if window.start_date < active_start:
            return FillGapResult(FILL_SKIPPED, projection_id, SKIP_BEFORE_START)
        if obligation.end_date and window.start_date > obligation.end_date:
            return FillGapResult(FILL_SKIPPED, projection_id, SKIP_AFTER_END)

        plan = strategy_for(obligation.kind).plan(obligation, window, active_start)
        self.db.add(projection_from_plan(obligation, plan))
        try:
            self.db.commit()
        except IntegrityError:
            # Created concurrently by another writer
            self.db.rollback()
            return FillGapResult(FILL_SKIPPED, projection_id, SKIP_ALREADY_EXISTS)

        logger.info("Filled gap %s for obligation %s", target_period_id, obligation.id)
        attach_existing_transactions(self.db, obligation.id, today)
        return FillGapResult(FILL_CREATED, projection_id)

    def _resolve_window(self, obligation: ObligationModel, period_id: str):
        period = self.db.get(SourcePeriod, period_id)
        if period is not None:
            return period
        if obligation.kind == KIND_BUDGET:
            try:
                return period_from_id(period_id)
            except ValueError:
                pass
        raise MaterializationError("period_not_found", f"Period {period_id} not found")


class RefreshFutureProjectionsUseCase:
    """
    Use case: re-derive projections that have not started yet after an edit

    Started and past projections keep their copied values; their
    obligation_version shows they are stale. New horizon periods (e.g. an
    extended end date) are materialized.
    """

    def __init__(self, db: Session):
        self.db = db

    def execute(self, obligation_id: int, today: date | None = None) -> int:
        today = today or date.today()
        obligation = get_obligation(self.db, obligation_id)
        if not obligation.is_active:
            return 0

        active_start = resolve_start_anchor(self.db, obligation, today)
        strategy = strategy_for(obligation.kind)
        future = (
            self.db.query(PeriodProjection)
            .filter(
                PeriodProjection.obligation_id == obligation.id,
                PeriodProjection.period_start > today,
            )
            .all()
        )

        refreshed = []
        for projection in future:
            if obligation.end_date and projection.period_start > obligation.end_date:
                projection.is_active = False
                continue
            plan = strategy.plan(obligation, _ProjectionWindow(projection), active_start)
            apply_plan(projection, obligation, plan)
            projection.is_active = True
            refreshed.append(projection.id)
        self.db.commit()

        horizon_end = resolve_horizon_end(obligation, active_start, today)
        MaterializeProjectionsUseCase(self.db).materialize_range(
            obligation, active_start, active_start, horizon_end, today
        )
        RecomputeProjectionUseCase(self.db).execute_many(refreshed, today=today)

        logger.info("Refreshed %d future projections of obligation %s", len(refreshed), obligation.id)
        return len(refreshed)


class _ProjectionWindow:
    """Period view of an existing projection row."""

    def __init__(self, projection: PeriodProjection):
        self.id = projection.source_period_id
        self.period_type = projection.period_type
        self.start_date = projection.period_start
        self.end_date = projection.period_end


def find_stale_projections(db: Session, obligation_id: int) -> List[PeriodProjection]:
    """Projections whose copied fields predate the obligation's current version."""
    obligation = get_obligation(db, obligation_id)
    return (
        db.query(PeriodProjection)
        .filter(
            PeriodProjection.obligation_id == obligation.id,
            PeriodProjection.obligation_version != obligation.version,
        )
        .order_by(PeriodProjection.period_start.asc(), PeriodProjection.period_type.asc())
        .all()
    )
