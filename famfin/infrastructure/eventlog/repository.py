"""
Event log repository

Obligation and transaction changes are appended here; projectors consume
them after their checkpoint.
"""
from datetime import datetime
from typing import Optional, Dict, Any, List
from sqlalchemy.orm import Session

from famfin.infrastructure.db.models import EventLog


class EventLogRepository:

    def __init__(self, db: Session):
        self.db = db

    def append_event(
        self,
        account_id: int,
        event_type: str,
        payload: Dict[str, Any],
        occurred_at: Optional[datetime] = None,
        idempotency_key: Optional[str] = None,
    ) -> int:
        """
        Append an event (flush only, the caller commits)

        Args:
            account_id: owner account
            event_type: e.g. "obligation_created", "transaction_updated"
            payload: event data (stored as JSONB)
            occurred_at: default now
            idempotency_key: optional unique key

        Returns:
            event id

        Raises:
            IntegrityError: idempotency_key already used

        Example:
            >>> repo = EventLogRepository(db)
            >>> repo.append_event(1, "obligation_created", {"obligation_id": 7})
        """
        if occurred_at is None:
            occurred_at = datetime.utcnow()

        event = EventLog(
            account_id=account_id,
            event_type=event_type,
            payload_json=payload,
            occurred_at=occurred_at,
            idempotency_key=idempotency_key,
        )
        self.db.add(event)
        self.db.flush()
        return event.id

    def list_events_since(
        self,
        account_id: int,
        after_id: int = 0,
        limit: int = 200,
        event_types: Optional[List[str]] = None,
    ) -> List[EventLog]:
        """Events with id > after_id, ascending (for projectors)."""
        query = self.db.query(EventLog).filter(
            EventLog.account_id == account_id,
            EventLog.id > after_id,
        )
        if event_types:
            query = query.filter(EventLog.event_type.in_(event_types))
        return query.order_by(EventLog.id.asc()).limit(limit).all()
