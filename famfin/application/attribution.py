"""
Split attribution: which projections a transaction split counts towards.

A split for obligation O on date D is linked to every active projection of O
whose window contains D (at most one per period type). An explicit projection_id
replaces the date match for its own period type.
"""
from datetime import date
from typing import Dict, List, Set, Tuple

from sqlalchemy.orm import Session

from famfin.infrastructure.db.models import PeriodProjection, SplitProjectionLink, TransactionSplit


def resolve_projection_ids(db: Session, split: TransactionSplit, transaction_date: date) -> List[str]:
    if split.obligation_id is None:
        return []

    rows = (
        db.query(PeriodProjection.id, PeriodProjection.period_type)
        .filter(
            PeriodProjection.obligation_id == split.obligation_id,
            PeriodProjection.period_start <= transaction_date,
            PeriodProjection.period_end >= transaction_date,
            PeriodProjection.is_active.is_(True),
        )
        .all()
    )
    by_type: Dict[str, str] = {period_type: pid for pid, period_type in rows}

    if split.projection_id:
        pinned = db.get(PeriodProjection, split.projection_id)
        if pinned is not None and pinned.obligation_id == split.obligation_id:
            by_type[pinned.period_type] = pinned.id

    return sorted(by_type.values())


def linked_projection_ids(db: Session, transaction_id: int) -> Set[str]:
    rows = (
        db.query(SplitProjectionLink.projection_id)
        .filter(SplitProjectionLink.transaction_id == transaction_id)
        .all()
    )
    return {r[0] for r in rows}


def relink_split(db: Session, split: TransactionSplit, transaction_date: date) -> Tuple[Set[str], Set[str]]:
    """
    Bring the split's links in line with its current attribution.

    Returns:
        (old projection ids, new projection ids)
    """
    links = db.query(SplitProjectionLink).filter(SplitProjectionLink.split_id == split.id).all()
    old = {link.projection_id for link in links}
    new = set(resolve_projection_ids(db, split, transaction_date))

    for link in links:
        if link.projection_id not in new:
            db.delete(link)
    for pid in sorted(new - old):
        db.add(SplitProjectionLink(split_id=split.id, transaction_id=split.transaction_id, projection_id=pid))

    db.flush()
    return old, new


def unlink_transaction(db: Session, transaction_id: int) -> Set[str]:
    """Drop all links of a transaction, return the projections they pointed at."""
    links = db.query(SplitProjectionLink).filter(SplitProjectionLink.transaction_id == transaction_id).all()
    old = {link.projection_id for link in links}
    for link in links:
        db.delete(link)
    db.flush()
    return old
