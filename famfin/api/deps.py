"""
FastAPI dependencies (DB session, principal) and error mapping
"""
from fastapi import Header, HTTPException, status

from famfin.domain.errors import CoreError
from famfin.infrastructure.db.session import get_db as _get_db


# Re-export get_db
get_db = _get_db

_NOT_FOUND_CODES = {
    "obligation_not_found",
    "projection_not_found",
    "period_not_found",
    "transaction_not_found",
}


def get_account_id(x_account_id: int | None = Header(default=None)) -> int:
    """
    Principal id supplied by the identity layer in front of the API

    Raises:
        HTTPException(401): header missing
    """
    if x_account_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated"
        )
    return x_account_id


def to_http_error(exc: CoreError) -> HTTPException:
    """Structured error with a stable code for synchronous callers."""
    if exc.code in _NOT_FOUND_CODES:
        code = status.HTTP_404_NOT_FOUND
    elif exc.code == "concurrent_update":
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=exc.to_dict())
