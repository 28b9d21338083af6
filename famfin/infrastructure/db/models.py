"""
SQLAlchemy ORM models (domain tables + readmodels)
"""
from decimal import Decimal
from datetime import date as date_type, datetime
from sqlalchemy import (
    String, Integer, BigInteger, TIMESTAMP, Date, func, false, true, Boolean, Numeric,
    UniqueConstraint, Index,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import JSONB

from famfin.infrastructure.db.session import Base


class EventLog(Base):
    """
    Event log: append-only record of obligation and transaction changes.

    Projectors read it after a checkpoint to materialize and aggregate.
    """
    __tablename__ = "event_log"

    id: Mapped[int] = mapped_column(primary_key=True)
    account_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    event_type: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    payload_json: Mapped[dict] = mapped_column(JSONB, nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, index=True)
    idempotency_key: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False
    )


class ProjectorCheckpoint(Base):
    """
    Last processed event per (projector, account)
    """
    __tablename__ = "projector_checkpoints"

    id: Mapped[int] = mapped_column(primary_key=True)
    projector_name: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    account_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    last_event_id: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )

    __table_args__ = (
        UniqueConstraint('projector_name', 'account_id', name='uq_projector_account'),
    )


# ============================================================================
# Calendar
# ============================================================================


class SourcePeriod(Base):
    """
    Canonical calendar period shared by all obligations.

    Pre-generated ahead of need, never deleted; only is_current changes.
    """
    __tablename__ = "source_periods"

    id: Mapped[str] = mapped_column(String(16), primary_key=True)  # 2025M01 / 2025BM01A / 2025W05
    period_type: Mapped[str] = mapped_column(String(16), nullable=False)
    start_date: Mapped[date_type] = mapped_column(Date, nullable=False)
    end_date: Mapped[date_type] = mapped_column(Date, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    index: Mapped[int] = mapped_column(BigInteger, nullable=False)
    is_current: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    metadata_json: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint('period_type', 'index', name='uq_source_period_type_index'),
        Index('ix_source_period_type_window', 'period_type', 'start_date', 'end_date'),
        Index('ix_source_period_current', 'period_type', 'is_current'),
    )


# ============================================================================
# Obligations (budget / outflow / inflow)
# ============================================================================


class ObligationModel(Base):
    """
    Recurring monetary commitment, tagged by kind.

    amount is a non-negative magnitude; direction follows from kind.
    version is bumped on every edit and copied onto projections.
    """
    __tablename__ = "obligations"

    id: Mapped[int] = mapped_column(primary_key=True)
    account_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    group_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)  # BUDGET / OUTFLOW / INFLOW
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False)
    # Budgets: WEEKLY / BI_MONTHLY / MONTHLY; bills and income: cadence
    frequency: Mapped[str] = mapped_column(String(16), nullable=False)

    start_date: Mapped[date_type | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date_type | None] = mapped_column(Date, nullable=True)
    last_date: Mapped[date_type | None] = mapped_column(Date, nullable=True)
    predicted_next_date: Mapped[date_type | None] = mapped_column(Date, nullable=True)
    start_period_id: Mapped[str | None] = mapped_column(String(16), nullable=True)

    is_ongoing: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    periods_generated_until: Mapped[date_type | None] = mapped_column(Date, nullable=True)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        Index('ix_obligation_account_kind', 'account_id', 'kind', 'is_active'),
    )


class PeriodProjection(Base):
    """
    Read model: one obligation projected onto one calendar period.

    id = "{obligation_id}_{source_period_id}". Ownership fields are copies
    taken at creation; obligation_version records which edit they came from.
    version is the optimistic lock for aggregate writes.
    """
    __tablename__ = "period_projections"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    obligation_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    source_period_id: Mapped[str] = mapped_column(String(16), nullable=False)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    period_type: Mapped[str] = mapped_column(String(16), nullable=False)
    period_start: Mapped[date_type] = mapped_column(Date, nullable=False)
    period_end: Mapped[date_type] = mapped_column(Date, nullable=False)

    # Denormalized from the obligation
    account_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    group_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    obligation_name: Mapped[str] = mapped_column(String(255), nullable=False)
    obligation_version: Mapped[int] = mapped_column(Integer, nullable=False)

    # Prorated amount: budget allocation / amount withheld / amount earned
    allocated_amount: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False, server_default="0")
    daily_rate: Mapped[Decimal] = mapped_column(Numeric(20, 6), nullable=False, server_default="0")

    # Cycle
    is_due_period: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    amount_due: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False, server_default="0")
    due_date: Mapped[date_type | None] = mapped_column(Date, nullable=True)
    amount_per_occurrence: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False, server_default="0")

    # Occurrence slots, chronological, equal length
    occurrence_due_dates: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    occurrence_paid_flags: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    occurrence_transaction_ids: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    number_of_occurrences: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    paid_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    first_due_date: Mapped[date_type | None] = mapped_column(Date, nullable=True)
    last_due_date: Mapped[date_type | None] = mapped_column(Date, nullable=True)
    next_unpaid_due_date: Mapped[date_type | None] = mapped_column(Date, nullable=True)

    # Aggregates
    total_amount_due: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False, server_default="0")
    total_amount_paid: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False, server_default="0")
    total_amount_unpaid: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False, server_default="0")
    spent: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False, server_default="0")
    remaining: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False, server_default="0")
    payment_progress_pct: Mapped[Decimal] = mapped_column(Numeric(7, 2), nullable=False, server_default="0")
    dollar_progress_pct: Mapped[Decimal] = mapped_column(Numeric(7, 2), nullable=False, server_default="0")
    is_fully_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    is_partially_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    transaction_ids: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending", server_default="pending")

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    last_calculated: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint('obligation_id', 'source_period_id', name='uq_projection_obligation_period'),
        Index('ix_projection_obligation_window', 'obligation_id', 'period_start', 'period_end'),
        Index('ix_projection_account_type', 'account_id', 'period_type', 'period_start'),
    )


# ============================================================================
# Transactions
# ============================================================================


class TransactionModel(Base):
    """
    Dated money movement (from the feed or entered by the user)
    """
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(primary_key=True)
    account_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    group_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False)
    transaction_type: Mapped[str] = mapped_column(String(16), nullable=False)  # EXPENSE / INCOME
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="APPROVED", server_default="APPROVED")
    transaction_date: Mapped[date_type] = mapped_column(Date, nullable=False)
    description: Mapped[str] = mapped_column(String(512), nullable=False, default="", server_default="")
    stream_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        Index('ix_transaction_account_date', 'account_id', 'transaction_date'),
    )


class TransactionSplit(Base):
    """
    Part of a transaction attributed to one obligation (None = unassigned).

    projection_id optionally pins the split to one projection; other period
    types still resolve by transaction date.
    """
    __tablename__ = "transaction_splits"

    id: Mapped[int] = mapped_column(primary_key=True)
    transaction_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False)
    obligation_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    projection_id: Mapped[str | None] = mapped_column(String(64), nullable=True)


class SplitProjectionLink(Base):
    """
    Resolved attribution: split -> every projection it counts towards
    """
    __tablename__ = "split_projection_links"

    id: Mapped[int] = mapped_column(primary_key=True)
    split_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    transaction_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    projection_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    __table_args__ = (
        UniqueConstraint('split_id', 'projection_id', name='uq_split_projection'),
    )
