"""create_withdrawal_tables

Revision ID: 7c1e9a4d2b60
Revises:
Create Date: 2026-10-19 09:12:03.418527

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '7c1e9a4d2b60'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create users, dg_token_withdrawals, system_config and config_audit_log."""
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True, nullable=False),
        sa.Column('name', sa.String(100), unique=True, nullable=False, index=True),
        sa.Column('api_key_hash', sa.String(256), nullable=False, index=True),
        sa.Column('is_admin', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('wallet_addresses', sa.JSON, nullable=False),
        sa.Column('experience_points', sa.Integer, nullable=False, server_default='0'),
        sa.Column('created_at', sa.TIMESTAMP, nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.TIMESTAMP, nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('experience_points >= 0', name='non_negative_experience_points'),
    )

    op.create_table(
        'dg_token_withdrawals',
        sa.Column('id', sa.String(36), primary_key=True, nullable=False),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('retry_of_id', sa.String(36), sa.ForeignKey('dg_token_withdrawals.id'), nullable=True),
        sa.Column('wallet_address', sa.String(42), nullable=False, index=True),
        sa.Column('amount_dg', sa.Integer, nullable=False),
        sa.Column('xp_balance_before', sa.Integer, nullable=False),
        sa.Column('signature', sa.String(132), nullable=False, index=True),
        sa.Column('deadline', sa.BigInteger, nullable=False),
        sa.Column('chain_id', sa.Integer, nullable=False),
        sa.Column('attempt', sa.Integer, nullable=False, server_default='1'),
        sa.Column('transaction_hash', sa.String(66), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending', index=True),
        sa.Column('error_message', sa.Text, nullable=True),
        sa.Column('created_at', sa.TIMESTAMP, nullable=False, server_default=sa.text('CURRENT_TIMESTAMP'), index=True),
        sa.Column('completed_at', sa.TIMESTAMP, nullable=True),
        sa.UniqueConstraint('signature', 'attempt', name='uq_dg_withdrawals_signature_attempt'),
        sa.CheckConstraint('amount_dg > 0', name='positive_amount'),
        sa.CheckConstraint("status IN ('pending', 'completed', 'failed')", name='valid_status'),
    )

    # Daily limit sums scan completed and pending rows per user
    op.create_index(
        'idx_dg_withdrawals_user_status_created',
        'dg_token_withdrawals',
        ['user_id', 'status', 'created_at'],
    )

    op.create_table(
        'system_config',
        sa.Column('key', sa.String(100), primary_key=True, nullable=False),
        sa.Column('value', sa.Text, nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('updated_at', sa.TIMESTAMP, nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_by', sa.String(36), sa.ForeignKey('users.id'), nullable=True),
    )

    op.create_table(
        'config_audit_log',
        sa.Column('id', sa.String(36), primary_key=True, nullable=False),
        sa.Column('config_key', sa.String(100), nullable=False, index=True),
        sa.Column('old_value', sa.Text, nullable=True),
        sa.Column('new_value', sa.Text, nullable=False),
        sa.Column('changed_by', sa.String(36), sa.ForeignKey('users.id'), nullable=False, index=True),
        sa.Column('changed_at', sa.TIMESTAMP, nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )

    op.bulk_insert(
        sa.table(
            'system_config',
            sa.column('key', sa.String),
            sa.column('value', sa.Text),
            sa.column('description', sa.Text),
        ),
        [
            {
                'key': 'dg_withdrawal_min_amount',
                'value': '3000',
                'description': 'Minimum DG amount that can be withdrawn',
            },
            {
                'key': 'dg_withdrawal_max_daily_amount',
                'value': '100000',
                'description': 'Maximum DG amount that can be withdrawn in 24 hours',
            },
        ],
    )


def downgrade() -> None:
    """Drop withdrawal and configuration tables."""
    op.drop_table('config_audit_log')
    op.drop_table('system_config')
    op.drop_index('idx_dg_withdrawals_user_status_created', table_name='dg_token_withdrawals')
    op.drop_table('dg_token_withdrawals')
    op.drop_table('users')
