"""Add claim tracking and channel pacing columns

Revision ID: e5b1d7c3a902
Revises: c4f8a2d1e9b3
Create Date: 2026-10-18

This migration adds:
- smart_push_queue.claimed_at: when a run moved the item to processing
- telegram_channels.last_sent_at / send_window_start / sends_in_window:
  per-channel pacing (minimum gap and per-hour cap)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'e5b1d7c3a902'
down_revision = 'c4f8a2d1e9b3'
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column('smart_push_queue', sa.Column('claimed_at', sa.DateTime(timezone=True), nullable=True))

    op.add_column('telegram_channels', sa.Column('last_sent_at', sa.DateTime(timezone=True), nullable=True))
    op.add_column('telegram_channels', sa.Column('send_window_start', sa.DateTime(timezone=True), nullable=True))
    op.add_column(
        'telegram_channels',
        sa.Column('sends_in_window', sa.Integer(), server_default='0', nullable=False)
    )


def downgrade() -> None:
    op.drop_column('telegram_channels', 'sends_in_window')
    op.drop_column('telegram_channels', 'send_window_start')
    op.drop_column('telegram_channels', 'last_sent_at')

    op.drop_column('smart_push_queue', 'claimed_at')
