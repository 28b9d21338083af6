"""
Obligation API endpoints (budgets, bills, income streams)
"""
from datetime import date
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from famfin.api.deps import get_db, get_account_id, to_http_error
from famfin.api.v1.projections import ProjectionResponse, projection_response
from famfin.application.materializer import FillGapUseCase, MaterializeProjectionsUseCase, find_stale_projections
from famfin.application.obligations import (
    CreateObligationUseCase, DeactivateObligationUseCase, UpdateObligationUseCase,
)
from famfin.domain.errors import CoreError
from famfin.infrastructure.db.models import ObligationModel, PeriodProjection


router = APIRouter(prefix="/api/v1/obligations", tags=["obligations"])


# === Request / response models ===

class CreateObligationRequest(BaseModel):
    kind: str
    name: str
    amount: str  # Decimal as string
    frequency: str
    start_date: date | None = None
    end_date: date | None = None
    is_ongoing: bool = True
    group_id: str | None = None
    start_period_id: str | None = None
    last_date: date | None = None
    predicted_next_date: date | None = None


class UpdateObligationRequest(BaseModel):
    name: str | None = None
    amount: str | None = None
    frequency: str | None = None
    end_date: date | None = None
    last_date: date | None = None
    predicted_next_date: date | None = None
    group_id: str | None = None


class ObligationResponse(BaseModel):
    id: int
    kind: str
    name: str
    amount: str
    frequency: str
    start_date: date | None
    end_date: date | None
    is_ongoing: bool
    is_active: bool
    version: int
    periods_generated_until: date | None


class MaterializeRequest(BaseModel):
    horizon_months: int | None = None


class MaterializeResponse(BaseModel):
    obligation_id: int
    created: int
    skipped: int
    errors: List[dict]


class FillGapRequest(BaseModel):
    period_id: str


class FillGapResponse(BaseModel):
    status: str
    projection_id: str
    reason: str | None = None


def _obligation_response(o: ObligationModel) -> ObligationResponse:
    return ObligationResponse(
        id=o.id,
        kind=o.kind,
        name=o.name,
        amount=str(o.amount),
        frequency=o.frequency,
        start_date=o.start_date,
        end_date=o.end_date,
        is_ongoing=o.is_ongoing,
        is_active=o.is_active,
        version=o.version,
        periods_generated_until=o.periods_generated_until,
    )


def _get_owned(db: Session, account_id: int, obligation_id: int) -> ObligationModel:
    obligation = db.get(ObligationModel, obligation_id)
    if obligation is None or obligation.account_id != account_id:
        raise HTTPException(
            status_code=404,
            detail={"code": "obligation_not_found", "message": f"Obligation {obligation_id} not found"},
        )
    return obligation


# === Endpoints ===

@router.post("/", response_model=ObligationResponse, status_code=201)
def create_obligation(
    req: CreateObligationRequest,
    account_id: int = Depends(get_account_id),
    db: Session = Depends(get_db)
):
    """Create an obligation; its periods are materialized right after."""
    try:
        obligation_id = CreateObligationUseCase(db).execute(
            account_id=account_id,
            kind=req.kind,
            name=req.name,
            amount=req.amount,
            frequency=req.frequency,
            start_date=req.start_date,
            end_date=req.end_date,
            is_ongoing=req.is_ongoing,
            group_id=req.group_id,
            start_period_id=req.start_period_id,
            last_date=req.last_date,
            predicted_next_date=req.predicted_next_date,
        )
    except CoreError as e:
        raise to_http_error(e)

    return _obligation_response(db.get(ObligationModel, obligation_id))


@router.get("/{obligation_id}", response_model=ObligationResponse)
def get_obligation(
    obligation_id: int,
    account_id: int = Depends(get_account_id),
    db: Session = Depends(get_db)
):
    return _obligation_response(_get_owned(db, account_id, obligation_id))


@router.patch("/{obligation_id}", response_model=ObligationResponse)
def update_obligation(
    obligation_id: int,
    req: UpdateObligationRequest,
    account_id: int = Depends(get_account_id),
    db: Session = Depends(get_db)
):
    changes = req.model_dump(exclude_unset=True)
    try:
        UpdateObligationUseCase(db).execute(account_id, obligation_id, changes)
    except CoreError as e:
        raise to_http_error(e)
    return _obligation_response(_get_owned(db, account_id, obligation_id))


@router.delete("/{obligation_id}", status_code=204)
def deactivate_obligation(
    obligation_id: int,
    account_id: int = Depends(get_account_id),
    db: Session = Depends(get_db)
):
    """Soft delete: projections stay for history."""
    try:
        DeactivateObligationUseCase(db).execute(account_id, obligation_id)
    except CoreError as e:
        raise to_http_error(e)


@router.post("/{obligation_id}/materialize", response_model=MaterializeResponse)
def materialize(
    obligation_id: int,
    req: MaterializeRequest | None = None,
    account_id: int = Depends(get_account_id),
    db: Session = Depends(get_db)
):
    """Create missing projections (idempotent repair)."""
    _get_owned(db, account_id, obligation_id)
    try:
        result = MaterializeProjectionsUseCase(db).execute(
            obligation_id, horizon_months=req.horizon_months if req else None
        )
    except CoreError as e:
        raise to_http_error(e)
    return MaterializeResponse(
        obligation_id=result.obligation_id,
        created=result.created,
        skipped=result.skipped,
        errors=result.errors,
    )


@router.post("/{obligation_id}/fill-gap", response_model=FillGapResponse)
def fill_gap(
    obligation_id: int,
    req: FillGapRequest,
    account_id: int = Depends(get_account_id),
    db: Session = Depends(get_db)
):
    """Backfill one period."""
    _get_owned(db, account_id, obligation_id)
    try:
        result = FillGapUseCase(db).execute(obligation_id, req.period_id)
    except CoreError as e:
        raise to_http_error(e)
    return FillGapResponse(status=result.status, projection_id=result.projection_id, reason=result.reason)


@router.get("/{obligation_id}/projections", response_model=List[ProjectionResponse])
def list_projections(
    obligation_id: int,
    period_type: str | None = None,
    account_id: int = Depends(get_account_id),
    db: Session = Depends(get_db)
):
    _get_owned(db, account_id, obligation_id)
    query = db.query(PeriodProjection).filter(PeriodProjection.obligation_id == obligation_id)
    if period_type:
        query = query.filter(PeriodProjection.period_type == period_type)
    rows = query.order_by(PeriodProjection.period_start.asc(), PeriodProjection.period_type.asc()).all()
    return [projection_response(p) for p in rows]


@router.get("/{obligation_id}/stale-projections", response_model=List[ProjectionResponse])
def list_stale_projections(
    obligation_id: int,
    account_id: int = Depends(get_account_id),
    db: Session = Depends(get_db)
):
    """Projections copied from an older version of the obligation."""
    _get_owned(db, account_id, obligation_id)
    return [projection_response(p) for p in find_stale_projections(db, obligation_id)]
