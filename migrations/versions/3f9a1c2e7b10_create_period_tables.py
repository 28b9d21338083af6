"""create period tables

Revision ID: 3f9a1c2e7b10
Revises:
Create Date: 2026-10-19 10:12:41.204518

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3f9a1c2e7b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    # 1. event_log
    op.create_table(
        'event_log',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('account_id', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.String(length=128), nullable=False),
        sa.Column('payload_json', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('occurred_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('idempotency_key', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('idempotency_key')
    )
    op.create_index('ix_event_log_account_id', 'event_log', ['account_id'])
    op.create_index('ix_event_log_event_type', 'event_log', ['event_type'])
    op.create_index('ix_event_log_occurred_at', 'event_log', ['occurred_at'])

    # 2. projector_checkpoints
    op.create_table(
        'projector_checkpoints',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('projector_name', sa.String(length=128), nullable=False),
        sa.Column('account_id', sa.Integer(), nullable=False),
        sa.Column('last_event_id', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('projector_name', 'account_id', name='uq_projector_account')
    )
    op.create_index('ix_projector_checkpoints_projector_name', 'projector_checkpoints', ['projector_name'])
    op.create_index('ix_projector_checkpoints_account_id', 'projector_checkpoints', ['account_id'])

    # 3. source_periods
    op.create_table(
        'source_periods',
        sa.Column('id', sa.String(length=16), nullable=False),
        sa.Column('period_type', sa.String(length=16), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('index', sa.BigInteger(), nullable=False),
        sa.Column('is_current', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('metadata_json', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('period_type', 'index', name='uq_source_period_type_index')
    )
    op.create_index('ix_source_period_type_window', 'source_periods', ['period_type', 'start_date', 'end_date'])
    op.create_index('ix_source_period_current', 'source_periods', ['period_type', 'is_current'])

    # 4. obligations
    op.create_table(
        'obligations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('account_id', sa.Integer(), nullable=False),
        sa.Column('group_id', sa.String(length=64), nullable=True),
        sa.Column('kind', sa.String(length=16), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('amount', sa.Numeric(precision=20, scale=2), nullable=False),
        sa.Column('frequency', sa.String(length=16), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('last_date', sa.Date(), nullable=True),
        sa.Column('predicted_next_date', sa.Date(), nullable=True),
        sa.Column('start_period_id', sa.String(length=16), nullable=True),
        sa.Column('is_ongoing', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('periods_generated_until', sa.Date(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_obligations_account_id', 'obligations', ['account_id'])
    op.create_index('ix_obligation_account_kind', 'obligations', ['account_id', 'kind', 'is_active'])

    # 5. period_projections
    op.create_table(
        'period_projections',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('obligation_id', sa.Integer(), nullable=False),
        sa.Column('source_period_id', sa.String(length=16), nullable=False),
        sa.Column('kind', sa.String(length=16), nullable=False),
        sa.Column('period_type', sa.String(length=16), nullable=False),
        sa.Column('period_start', sa.Date(), nullable=False),
        sa.Column('period_end', sa.Date(), nullable=False),
        sa.Column('account_id', sa.Integer(), nullable=False),
        sa.Column('group_id', sa.String(length=64), nullable=True),
        sa.Column('obligation_name', sa.String(length=255), nullable=False),
        sa.Column('obligation_version', sa.Integer(), nullable=False),
        sa.Column('allocated_amount', sa.Numeric(precision=20, scale=2), nullable=False, server_default='0'),
        sa.Column('daily_rate', sa.Numeric(precision=20, scale=6), nullable=False, server_default='0'),
        sa.Column('is_due_period', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('amount_due', sa.Numeric(precision=20, scale=2), nullable=False, server_default='0'),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('amount_per_occurrence', sa.Numeric(precision=20, scale=2), nullable=False, server_default='0'),
        sa.Column('occurrence_due_dates', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('occurrence_paid_flags', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('occurrence_transaction_ids', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('number_of_occurrences', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('paid_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('first_due_date', sa.Date(), nullable=True),
        sa.Column('last_due_date', sa.Date(), nullable=True),
        sa.Column('next_unpaid_due_date', sa.Date(), nullable=True),
        sa.Column('total_amount_due', sa.Numeric(precision=20, scale=2), nullable=False, server_default='0'),
        sa.Column('total_amount_paid', sa.Numeric(precision=20, scale=2), nullable=False, server_default='0'),
        sa.Column('total_amount_unpaid', sa.Numeric(precision=20, scale=2), nullable=False, server_default='0'),
        sa.Column('spent', sa.Numeric(precision=20, scale=2), nullable=False, server_default='0'),
        sa.Column('remaining', sa.Numeric(precision=20, scale=2), nullable=False, server_default='0'),
        sa.Column('payment_progress_pct', sa.Numeric(precision=7, scale=2), nullable=False, server_default='0'),
        sa.Column('dollar_progress_pct', sa.Numeric(precision=7, scale=2), nullable=False, server_default='0'),
        sa.Column('is_fully_paid', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('is_partially_paid', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('transaction_ids', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('last_calculated', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('obligation_id', 'source_period_id', name='uq_projection_obligation_period')
    )
    op.create_index('ix_period_projections_obligation_id', 'period_projections', ['obligation_id'])
    op.create_index('ix_period_projections_account_id', 'period_projections', ['account_id'])
    op.create_index(
        'ix_projection_obligation_window', 'period_projections', ['obligation_id', 'period_start', 'period_end']
    )
    op.create_index(
        'ix_projection_account_type', 'period_projections', ['account_id', 'period_type', 'period_start']
    )

    # 6. transactions
    op.create_table(
        'transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('account_id', sa.Integer(), nullable=False),
        sa.Column('group_id', sa.String(length=64), nullable=True),
        sa.Column('amount', sa.Numeric(precision=20, scale=2), nullable=False),
        sa.Column('transaction_type', sa.String(length=16), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='APPROVED'),
        sa.Column('transaction_date', sa.Date(), nullable=False),
        sa.Column('description', sa.String(length=512), nullable=False, server_default=''),
        sa.Column('stream_id', sa.String(length=128), nullable=True),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_transactions_account_id', 'transactions', ['account_id'])
    op.create_index('ix_transaction_account_date', 'transactions', ['account_id', 'transaction_date'])

    # 7. transaction_splits
    op.create_table(
        'transaction_splits',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=20, scale=2), nullable=False),
        sa.Column('obligation_id', sa.Integer(), nullable=True),
        sa.Column('projection_id', sa.String(length=64), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_transaction_splits_transaction_id', 'transaction_splits', ['transaction_id'])
    op.create_index('ix_transaction_splits_obligation_id', 'transaction_splits', ['obligation_id'])

    # 8. split_projection_links
    op.create_table(
        'split_projection_links',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('split_id', sa.Integer(), nullable=False),
        sa.Column('transaction_id', sa.Integer(), nullable=False),
        sa.Column('projection_id', sa.String(length=64), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('split_id', 'projection_id', name='uq_split_projection')
    )
    op.create_index('ix_split_projection_links_split_id', 'split_projection_links', ['split_id'])
    op.create_index('ix_split_projection_links_transaction_id', 'split_projection_links', ['transaction_id'])
    op.create_index('ix_split_projection_links_projection_id', 'split_projection_links', ['projection_id'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('split_projection_links')
    op.drop_table('transaction_splits')
    op.drop_table('transactions')
    op.drop_table('period_projections')
    op.drop_table('obligations')
    op.drop_table('source_periods')
    op.drop_table('projector_checkpoints')
    op.drop_table('event_log')
