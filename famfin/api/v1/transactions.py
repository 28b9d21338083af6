"""
Transaction API endpoints
"""
from datetime import date
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from famfin.api.deps import get_db, get_account_id, to_http_error
from famfin.application.transactions import (
    CreateTransactionUseCase, DeleteTransactionUseCase, UpdateTransactionUseCase,
)
from famfin.domain.errors import CoreError
from famfin.domain.transaction import TX_STATUS_APPROVED, SplitSpec
from famfin.infrastructure.db.models import TransactionModel, TransactionSplit


router = APIRouter(prefix="/api/v1/transactions", tags=["transactions"])


# === Request models ===

class SplitRequest(BaseModel):
    amount: str  # Decimal as string
    obligation_id: int | None = None
    projection_id: str | None = None


class CreateTransactionRequest(BaseModel):
    amount: str
    transaction_type: str
    transaction_date: date
    splits: List[SplitRequest] = []
    status: str = TX_STATUS_APPROVED
    description: str = ""
    stream_id: str | None = None
    group_id: str | None = None


class UpdateTransactionRequest(BaseModel):
    amount: str | None = None
    transaction_date: date | None = None
    splits: List[SplitRequest] | None = None
    status: str | None = None
    description: str | None = None


class SplitResponse(BaseModel):
    id: int
    amount: str
    obligation_id: int | None
    projection_id: str | None


class TransactionResponse(BaseModel):
    id: int
    amount: str
    transaction_type: str
    status: str
    transaction_date: date
    description: str
    splits: List[SplitResponse]


# === Helpers ===

def _split_specs(splits: List[SplitRequest] | None) -> List[SplitSpec] | None:
    if splits is None:
        return None
    return [SplitSpec(amount=s.amount, obligation_id=s.obligation_id, projection_id=s.projection_id) for s in splits]


def _response(db: Session, account_id: int, transaction_id: int) -> TransactionResponse:
    tx = db.get(TransactionModel, transaction_id)
    if tx is None or tx.account_id != account_id or tx.is_deleted:
        raise HTTPException(
            status_code=404,
            detail={"code": "transaction_not_found", "message": f"Transaction {transaction_id} not found"},
        )
    splits = (
        db.query(TransactionSplit)
        .filter(TransactionSplit.transaction_id == tx.id)
        .order_by(TransactionSplit.id.asc())
        .all()
    )
    return TransactionResponse(
        id=tx.id,
        amount=str(tx.amount),
        transaction_type=tx.transaction_type,
        status=tx.status,
        transaction_date=tx.transaction_date,
        description=tx.description,
        splits=[
            SplitResponse(id=s.id, amount=str(s.amount), obligation_id=s.obligation_id, projection_id=s.projection_id)
            for s in splits
        ],
    )


# === Endpoints ===

@router.post("/", response_model=TransactionResponse, status_code=201)
def create_transaction(
    req: CreateTransactionRequest,
    account_id: int = Depends(get_account_id),
    db: Session = Depends(get_db)
):
    try:
        transaction_id = CreateTransactionUseCase(db).execute(
            account_id=account_id,
            amount=req.amount,
            transaction_type=req.transaction_type,
            transaction_date=req.transaction_date,
            splits=_split_specs(req.splits),
            status=req.status,
            description=req.description,
            stream_id=req.stream_id,
            group_id=req.group_id,
        )
    except CoreError as e:
        raise to_http_error(e)
    return _response(db, account_id, transaction_id)


@router.get("/{transaction_id}", response_model=TransactionResponse)
def get_transaction(
    transaction_id: int,
    account_id: int = Depends(get_account_id),
    db: Session = Depends(get_db)
):
    return _response(db, account_id, transaction_id)


@router.patch("/{transaction_id}", response_model=TransactionResponse)
def update_transaction(
    transaction_id: int,
    req: UpdateTransactionRequest,
    account_id: int = Depends(get_account_id),
    db: Session = Depends(get_db)
):
    try:
        UpdateTransactionUseCase(db).execute(
            account_id=account_id,
            transaction_id=transaction_id,
            amount=req.amount,
            transaction_date=req.transaction_date,
            splits=_split_specs(req.splits),
            status=req.status,
            description=req.description,
        )
    except CoreError as e:
        raise to_http_error(e)
    return _response(db, account_id, transaction_id)


@router.delete("/{transaction_id}", status_code=204)
def delete_transaction(
    transaction_id: int,
    account_id: int = Depends(get_account_id),
    db: Session = Depends(get_db)
):
    try:
        DeleteTransactionUseCase(db).execute(account_id, transaction_id)
    except CoreError as e:
        raise to_http_error(e)
