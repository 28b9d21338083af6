"""
Base projector: builds read models from event_log after a checkpoint.
"""
from abc import ABC, abstractmethod
from typing import List, Optional
from sqlalchemy.orm import Session

from famfin.infrastructure.db.models import EventLog, ProjectorCheckpoint
from famfin.infrastructure.eventlog.repository import EventLogRepository


class BaseProjector(ABC):
    """
    Each projector:
    1. reads events after its checkpoint
    2. handles them one by one (handle_event)
    3. saves the new checkpoint and commits per batch
    """

    def __init__(self, db: Session, projector_name: str):
        self.db = db
        self.projector_name = projector_name
        self.event_repo = EventLogRepository(db)

    @abstractmethod
    def handle_event(self, event: EventLog) -> None:
        """
        Process one event. Must be idempotent: replaying an event must not
        corrupt the read model.
        """
        pass

    def get_checkpoint(self, account_id: int) -> int:
        checkpoint = self.db.query(ProjectorCheckpoint).filter(
            ProjectorCheckpoint.projector_name == self.projector_name,
            ProjectorCheckpoint.account_id == account_id
        ).first()
        return checkpoint.last_event_id if checkpoint else 0

    def save_checkpoint(self, account_id: int, event_id: int) -> None:
        self.db.flush()

        checkpoint = self.db.query(ProjectorCheckpoint).filter(
            ProjectorCheckpoint.projector_name == self.projector_name,
            ProjectorCheckpoint.account_id == account_id
        ).first()

        if checkpoint:
            checkpoint.last_event_id = event_id
        else:
            self.db.add(ProjectorCheckpoint(
                projector_name=self.projector_name,
                account_id=account_id,
                last_event_id=event_id,
            ))

    def run(
        self,
        account_id: int,
        event_types: Optional[List[str]] = None,
        batch_size: int = 200
    ) -> int:
        """
        Process all new events of the account.

        Returns:
            number of processed events
        """
        checkpoint = self.get_checkpoint(account_id)
        processed_count = 0

        while True:
            events = self.event_repo.list_events_since(
                account_id=account_id,
                after_id=checkpoint,
                limit=batch_size,
                event_types=event_types
            )
            if not events:
                break

            for event in events:
                self.handle_event(event)
                checkpoint = event.id
                processed_count += 1

            self.save_checkpoint(account_id, checkpoint)
            self.db.commit()

            if len(events) < batch_size:
                break

        return processed_count

    def reset(self, account_id: int) -> None:
        """Rewind the checkpoint so the next run replays every event."""
        self.save_checkpoint(account_id, 0)
        self.db.commit()
