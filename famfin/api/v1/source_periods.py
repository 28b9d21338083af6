"""
Source period admin endpoints
"""
from datetime import date
from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from famfin.api.deps import get_db, get_account_id, to_http_error
from famfin.application.source_periods import (
    GenerateSourcePeriodsUseCase, UpdateCurrentPeriodsUseCase, get_current_period,
)
from famfin.domain.errors import CoreError
from famfin.domain.periods import PERIOD_TYPES


router = APIRouter(prefix="/api/v1/source-periods", tags=["source-periods"])


class GenerateRequest(BaseModel):
    start_date: date
    end_date: date
    period_types: List[str] = list(PERIOD_TYPES)


class SourcePeriodResponse(BaseModel):
    id: str
    period_type: str
    start_date: date
    end_date: date
    year: int
    index: int
    is_current: bool


@router.post("/generate")
def generate(
    req: GenerateRequest,
    account_id: int = Depends(get_account_id),
    db: Session = Depends(get_db)
) -> Dict[str, Dict[str, int]]:
    """Generate the lattice for a range (existing ids are kept)."""
    try:
        return GenerateSourcePeriodsUseCase(db).execute(req.start_date, req.end_date, req.period_types)
    except CoreError as e:
        raise to_http_error(e)


@router.post("/sweep")
def sweep(
    account_id: int = Depends(get_account_id),
    db: Session = Depends(get_db)
):
    """Recompute is_current flags now."""
    return UpdateCurrentPeriodsUseCase(db).execute()


@router.get("/current/{period_type}", response_model=SourcePeriodResponse)
def current(
    period_type: str,
    account_id: int = Depends(get_account_id),
    db: Session = Depends(get_db)
):
    period = get_current_period(db, period_type)
    if period is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "period_not_found", "message": f"No current {period_type} period"},
        )
    return SourcePeriodResponse(
        id=period.id,
        period_type=period.period_type,
        start_date=period.start_date,
        end_date=period.end_date,
        year=period.year,
        index=period.index,
        is_current=period.is_current,
    )
