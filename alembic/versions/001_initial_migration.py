"""Initial migration - faucet ledger

Revision ID: 001
Revises:
Create Date: 2026-10-16 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

claim_status = postgresql.ENUM('pending', 'success', 'failed', name='claimstatus', create_type=False)
worker_health_status = postgresql.ENUM('starting', 'healthy', 'error', name='workerhealthstatus', create_type=False)


def upgrade() -> None:
    # Create enum types
    op.execute("CREATE TYPE claimstatus AS ENUM ('pending', 'success', 'failed')")
    op.execute("CREATE TYPE workerhealthstatus AS ENUM ('starting', 'healthy', 'error')")

    # Recipients (written by the intake API)
    op.create_table('users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('wallet_address', sa.String(length=128), nullable=False, comment='Destination address, validated by intake'),
        sa.Column('ip_hash', sa.String(length=64), nullable=True, comment='Hashed client IP used for claim limits'),
        sa.Column('device_hash', sa.String(length=64), nullable=True, comment='Hashed device fingerprint used for claim limits'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_users_wallet_address', 'users', ['wallet_address'])

    # Claims (the job ledger)
    op.create_table('claims',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False, comment='Recipient record'),
        sa.Column('qr_code_id', sa.Integer(), nullable=True, comment='Redeemed code that created this claim'),
        sa.Column('blockchain', sa.String(length=32), nullable=False, comment='Target chain identifier as submitted by intake'),
        sa.Column('status', claim_status, server_default='pending', nullable=False, comment='pending, success or failed'),
        sa.Column('tx_hash', sa.String(length=128), nullable=True, comment='Transaction hash (final on success, provisional after an ambiguous attempt)'),
        sa.Column('error_message', sa.String(length=255), nullable=True, comment='Error from the last failed attempt'),
        sa.Column('retry_count', sa.Integer(), server_default='0', nullable=False, comment='Number of failed attempts'),
        sa.Column('last_attempt_at', sa.DateTime(), nullable=True, comment='When the worker last attempted this claim'),
        sa.Column('next_retry_at', sa.DateTime(), nullable=True, comment='Earliest time a failed claim may be retried'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('retry_count >= 0', name='ck_claims_retry_count_non_negative')
    )
    op.create_index('ix_claims_user_id', 'claims', ['user_id'])
    op.create_index('idx_claims_status_created', 'claims', ['status', 'created_at'])
    op.create_index('idx_claims_next_retry', 'claims', ['status', 'next_retry_at'])

    # Worker heartbeats
    op.create_table('worker_health',
        sa.Column('worker_type', sa.String(length=64), nullable=False),
        sa.Column('last_heartbeat', sa.DateTime(), nullable=False, comment='Time of the last heartbeat (UTC)'),
        sa.Column('status', worker_health_status, nullable=False, comment='starting, healthy or error'),
        sa.Column('error_message', sa.String(length=255), nullable=True),
        sa.PrimaryKeyConstraint('worker_type')
    )

    # Faucet wallet balances
    op.create_table('faucet_balances',
        sa.Column('blockchain', sa.String(length=32), nullable=False),
        sa.Column('wallet_address', sa.String(length=128), nullable=True),
        sa.Column('native_balance', sa.DECIMAL(precision=36, scale=18), nullable=False, comment='Native currency balance in whole units'),
        sa.Column('token_balance', sa.DECIMAL(precision=36, scale=18), nullable=False, comment='Faucet token balance in whole units'),
        sa.Column('is_low', sa.Boolean(), nullable=False, comment='Either balance is below its threshold'),
        sa.Column('last_checked', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('blockchain')
    )


def downgrade() -> None:
    op.drop_table('faucet_balances')
    op.drop_table('worker_health')
    op.drop_index('idx_claims_next_retry', table_name='claims')
    op.drop_index('idx_claims_status_created', table_name='claims')
    op.drop_index('ix_claims_user_id', table_name='claims')
    op.drop_table('claims')
    op.drop_index('ix_users_wallet_address', table_name='users')
    op.drop_table('users')
    op.execute('DROP TYPE workerhealthstatus')
    op.execute('DROP TYPE claimstatus')
