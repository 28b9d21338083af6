"""
Source period use cases: bulk generation and the current-period sweep.
"""
import logging
from datetime import date
from typing import Dict, Iterable, List

from sqlalchemy.orm import Session

from famfin.config import get_settings
from famfin.domain.errors import CoreError
from famfin.domain.periods import PERIOD_TYPES, PeriodSpec, add_months, find_gaps, generate_periods
from famfin.infrastructure.db.batch import BatchWriter, chunked
from famfin.infrastructure.db.models import SourcePeriod

logger = logging.getLogger(__name__)


class SourcePeriodValidationError(CoreError):
    pass


def source_period_from_spec(spec: PeriodSpec, today: date) -> SourcePeriod:
    return SourcePeriod(
        id=spec.id,
        period_type=spec.period_type,
        start_date=spec.start_date,
        end_date=spec.end_date,
        year=spec.year,
        index=spec.index,
        is_current=spec.contains(today),
        metadata_json=spec.metadata(),
    )


def list_overlapping(db: Session, period_type: str, start: date, end: date) -> List[SourcePeriod]:
    """Periods of a type whose window overlaps [start, end], ordered by start."""
    return (
        db.query(SourcePeriod)
        .filter(
            SourcePeriod.period_type == period_type,
            SourcePeriod.end_date >= start,
            SourcePeriod.start_date <= end,
        )
        .order_by(SourcePeriod.start_date.asc())
        .all()
    )


def get_current_period(db: Session, period_type: str, today: date | None = None) -> SourcePeriod | None:
    """
    Period of the type containing today.

    The is_current flag is only a hint refreshed by the daily sweep: a
    flagged row is used if its window still contains today, otherwise the
    row whose window contains today is returned even when unflagged.
    """
    today = today or date.today()
    flagged = (
        db.query(SourcePeriod)
        .filter(SourcePeriod.period_type == period_type, SourcePeriod.is_current.is_(True))
        .order_by(SourcePeriod.index.desc())
        .first()
    )
    if flagged is not None and flagged.start_date <= today <= flagged.end_date:
        return flagged

    containing = (
        db.query(SourcePeriod)
        .filter(
            SourcePeriod.period_type == period_type,
            SourcePeriod.start_date <= today,
            SourcePeriod.end_date >= today,
        )
        .order_by(SourcePeriod.index.desc())
        .first()
    )
    if containing is not None and flagged is not None:
        logger.info("Stale current %s period %s, using %s", period_type, flagged.id, containing.id)
    return containing


class GenerateSourcePeriodsUseCase:
    """
    Use case: generate the period lattice for a date range

    Idempotent: ids that already exist are left untouched.
    """

    def __init__(self, db: Session):
        self.db = db

    def execute(
        self,
        start: date,
        end: date,
        period_types: Iterable[str] = PERIOD_TYPES,
        today: date | None = None,
    ) -> Dict[str, Dict[str, int]]:
        """
        Returns:
            {period_type: {"created": n, "existing": m}}

        Raises:
            SourcePeriodValidationError: bad range or period type
        """
        if end < start:
            raise SourcePeriodValidationError("invalid_date_range", "End date must not be before start date")
        settings = get_settings()
        if end > add_months(start, settings.MAX_HORIZON_MONTHS):
            raise SourcePeriodValidationError(
                "horizon_too_long",
                f"Range exceeds {settings.MAX_HORIZON_MONTHS} months",
            )

        today = today or date.today()
        summary: Dict[str, Dict[str, int]] = {}

        for period_type in period_types:
            if period_type not in PERIOD_TYPES:
                raise SourcePeriodValidationError("invalid_period_type", f"Unknown period type: {period_type}")

            specs = generate_periods(period_type, start, end)
            if find_gaps(specs):
                logger.warning("Generated %s lattice has gaps between %s and %s", period_type, start, end)

            existing_ids = {
                row[0]
                for row in self.db.query(SourcePeriod.id).filter(SourcePeriod.id.in_([s.id for s in specs])).all()
            } if specs else set()

            new_rows = [source_period_from_spec(s, today) for s in specs if s.id not in existing_ids]
            BatchWriter(self.db).add_all(new_rows)

            summary[period_type] = {"created": len(new_rows), "existing": len(existing_ids)}
            logger.info(
                "Source periods %s %s..%s: created=%d existing=%d",
                period_type, start, end, len(new_rows), len(existing_ids),
            )

        return summary


class EnsureSourcePeriodsUseCase:
    """
    Use case: keep the lattice generated a fixed number of months ahead
    """

    def __init__(self, db: Session):
        self.db = db

    def execute(self, today: date | None = None) -> Dict[str, Dict[str, int]]:
        today = today or date.today()
        horizon = add_months(today, get_settings().SOURCE_PERIOD_HORIZON_MONTHS)
        return GenerateSourcePeriodsUseCase(self.db).execute(today, horizon, today=today)


class UpdateCurrentPeriodsUseCase:
    """
    Use case: daily sweep of the is_current flags

    Recomputed from scratch by window, so a missed run heals itself on the
    next one. Only rows whose flag changes are written.
    """

    def __init__(self, db: Session):
        self.db = db

    def execute(self, today: date | None = None) -> Dict[str, object]:
        today = today or date.today()
        batch_size = get_settings().BATCH_SIZE
        current: Dict[str, str | None] = {}
        to_set: List[SourcePeriod] = []
        to_clear: List[SourcePeriod] = []

        for period_type in PERIOD_TYPES:
            containing = (
                self.db.query(SourcePeriod)
                .filter(
                    SourcePeriod.period_type == period_type,
                    SourcePeriod.start_date <= today,
                    SourcePeriod.end_date >= today,
                )
                .order_by(SourcePeriod.index.desc())
                .all()
            )
            if not containing:
                logger.warning("No current %s period found for %s", period_type, today)
                chosen = None
            else:
                if len(containing) > 1:
                    logger.warning(
                        "%d %s periods contain %s: %s, keeping %s",
                        len(containing), period_type, today,
                        [p.id for p in containing], containing[0].id,
                    )
                chosen = containing[0]
            current[period_type] = chosen.id if chosen else None

            flagged = (
                self.db.query(SourcePeriod)
                .filter(SourcePeriod.period_type == period_type, SourcePeriod.is_current.is_(True))
                .all()
            )
            to_clear.extend(p for p in flagged if chosen is None or p.id != chosen.id)
            if chosen is not None and not chosen.is_current:
                to_set.append(chosen)

        changes = [(p, False) for p in to_clear] + [(p, True) for p in to_set]
        for chunk in chunked(changes, batch_size):
            for period, flag in chunk:
                period.is_current = flag
            self.db.commit()

        logger.info("Current period sweep: %d flags changed, current=%s", len(changes), current)
        return {"updated": len(changes), "current": current}
