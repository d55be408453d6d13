"""initial_schema

Revision ID: 001_initial
Revises:
Create Date: 2026-03-01

Creates users, auctions, bids, auto_bids and notifications with their check
constraints and indexes.

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('user_id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('username', sa.String(100), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('is_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.UniqueConstraint('email', name='uq_users_email'),
    )
    op.create_index('idx_users_email', 'users', ['email'])
    op.create_index('idx_users_status', 'users', ['status'])

    op.create_table(
        'auctions',
        sa.Column('auction_id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('seller_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.user_id'), nullable=True),
        sa.Column('listing_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('title', sa.String(255), nullable=True),
        sa.Column('starting_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('bid_increment', sa.Numeric(12, 2), nullable=False, server_default='1.00'),
        sa.Column('current_bid', sa.Numeric(12, 2), nullable=True),
        sa.Column('highest_bidder_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.user_id'), nullable=True),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='scheduled'),
        sa.Column('ended_reason', sa.String(20), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('starting_price > 0', name='chk_auction_starting_price_positive'),
        sa.CheckConstraint('bid_increment > 0', name='chk_auction_bid_increment_positive'),
        sa.CheckConstraint(
            'current_bid IS NULL OR current_bid >= starting_price',
            name='chk_auction_current_bid_floor',
        ),
        sa.CheckConstraint('end_time > start_time', name='chk_auction_time'),
        sa.CheckConstraint("status IN ('scheduled', 'active', 'ended')", name='chk_auction_status'),
    )
    op.create_index('idx_auctions_status_end', 'auctions', ['status', 'end_time'])
    op.create_index('idx_auctions_status_start', 'auctions', ['status', 'start_time'])

    op.create_table(
        'bids',
        sa.Column('bid_id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('auction_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('auctions.auction_id'), nullable=False),
        sa.Column('bidder_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.user_id'), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('is_autobid', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('amount > 0', name='chk_bid_amount_positive'),
    )
    op.create_index('idx_bids_auction_created', 'bids', ['auction_id', 'created_at'])
    op.create_index('idx_bids_bidder', 'bids', ['bidder_id'])

    op.create_table(
        'auto_bids',
        sa.Column('auto_bid_id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('auction_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('auctions.auction_id'), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.user_id'), nullable=False),
        sa.Column('max_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint('max_amount > 0', name='chk_auto_bid_max_positive'),
        sa.UniqueConstraint('auction_id', 'user_id', name='uq_auto_bid_auction_user'),
    )

    op.create_table(
        'notifications',
        sa.Column('notification_id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.user_id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('listing_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('auction_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('auctions.auction_id', ondelete='SET NULL'), nullable=True),
        sa.Column('related_user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.user_id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('idx_notifications_user_created', 'notifications', ['user_id', 'created_at'])
    op.create_index('idx_notifications_user_unread', 'notifications', ['user_id', 'is_read'])


def downgrade() -> None:
    op.drop_table('notifications')
    op.drop_table('auto_bids')
    op.drop_table('bids')
    op.drop_table('auctions')
    op.drop_table('users')
