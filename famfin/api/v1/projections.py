"""
Period projection API endpoints
"""
from datetime import date, datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from famfin.api.deps import get_db, get_account_id, to_http_error
from famfin.application.aggregator import RecomputeProjectionUseCase
from famfin.domain.errors import CoreError
from famfin.infrastructure.db.models import PeriodProjection


router = APIRouter(prefix="/api/v1/projections", tags=["projections"])


class ProjectionResponse(BaseModel):
    id: str
    obligation_id: int
    kind: str
    source_period_id: str
    period_type: str
    period_start: date
    period_end: date
    allocated_amount: str
    is_due_period: bool
    amount_due: str
    due_date: date | None
    occurrence_due_dates: List[str]
    occurrence_paid_flags: List[bool]
    occurrence_transaction_ids: List[int | None]
    total_amount_due: str
    total_amount_paid: str
    total_amount_unpaid: str
    spent: str
    remaining: str
    payment_progress_pct: str
    dollar_progress_pct: str
    is_fully_paid: bool
    next_unpaid_due_date: date | None
    status: str
    obligation_version: int
    version: int
    last_calculated: datetime | None


def projection_response(p: PeriodProjection) -> ProjectionResponse:
    return ProjectionResponse(
        id=p.id,
        obligation_id=p.obligation_id,
        kind=p.kind,
        source_period_id=p.source_period_id,
        period_type=p.period_type,
        period_start=p.period_start,
        period_end=p.period_end,
        allocated_amount=str(p.allocated_amount),
        is_due_period=p.is_due_period,
        amount_due=str(p.amount_due),
        due_date=p.due_date,
        occurrence_due_dates=list(p.occurrence_due_dates or []),
        occurrence_paid_flags=list(p.occurrence_paid_flags or []),
        occurrence_transaction_ids=list(p.occurrence_transaction_ids or []),
        total_amount_due=str(p.total_amount_due),
        total_amount_paid=str(p.total_amount_paid),
        total_amount_unpaid=str(p.total_amount_unpaid),
        spent=str(p.spent),
        remaining=str(p.remaining),
        payment_progress_pct=str(p.payment_progress_pct),
        dollar_progress_pct=str(p.dollar_progress_pct),
        is_fully_paid=p.is_fully_paid,
        next_unpaid_due_date=p.next_unpaid_due_date,
        status=p.status,
        obligation_version=p.obligation_version,
        version=p.version,
        last_calculated=p.last_calculated,
    )


def _get_owned(db: Session, account_id: int, projection_id: str) -> PeriodProjection:
    projection = db.get(PeriodProjection, projection_id)
    if projection is None or projection.account_id != account_id:
        raise HTTPException(
            status_code=404,
            detail={"code": "projection_not_found", "message": f"Projection {projection_id} not found"},
        )
    return projection


@router.get("/{projection_id}", response_model=ProjectionResponse)
def get_projection(
    projection_id: str,
    account_id: int = Depends(get_account_id),
    db: Session = Depends(get_db)
):
    return projection_response(_get_owned(db, account_id, projection_id))


@router.post("/{projection_id}/recompute", response_model=ProjectionResponse)
def recompute(
    projection_id: str,
    account_id: int = Depends(get_account_id),
    db: Session = Depends(get_db)
):
    """Rebuild aggregates from the currently attributed transactions."""
    _get_owned(db, account_id, projection_id)
    try:
        projection = RecomputeProjectionUseCase(db).execute(projection_id)
    except CoreError as e:
        raise to_http_error(e)
    return projection_response(projection)
