"""Create content automation tables

Revision ID: c4f8a2d1e9b3
Revises:
Create Date: 2026-10-18

This migration adds:
- daily_important_matches: scored matches per discovery date
- dynamic_content_schedule: per-match timed content items
- content_timing_templates: offset schedules per importance bracket
- automation_rules / automation_runs: rule configuration and run log
- telegram_channels / smart_push_settings: delivery targets and push config
- smart_push_queue: pending coupon pushes
- spam_counters: daily per-type and aggregate send counters
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB


# revision identifiers, used by Alembic.
revision = 'c4f8a2d1e9b3'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    # Matches and their schedules
    op.create_table(
        'daily_important_matches',
        sa.Column('id', sa.BigInteger(), primary_key=True),
        sa.Column('external_match_id', sa.Text(), nullable=False),
        sa.Column('home_team', sa.Text(), nullable=False),
        sa.Column('away_team', sa.Text(), nullable=False),
        sa.Column('home_team_id', sa.Text(), nullable=True),
        sa.Column('away_team_id', sa.Text(), nullable=True),
        sa.Column('competition', sa.Text(), nullable=False),
        sa.Column('kickoff_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('venue', sa.Text(), nullable=True),
        sa.Column('match_status', sa.Text(), nullable=False, server_default='scheduled'),
        sa.Column('importance_score', sa.Integer(), nullable=False),
        sa.Column('score_breakdown', JSONB(), nullable=True),
        sa.Column('content_opportunities', JSONB(), nullable=True),
        sa.Column('discovery_date', sa.Date(), nullable=False),
        sa.Column('api_source', sa.Text(), nullable=True),
        sa.Column('raw_match_data', JSONB(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('external_match_id', 'discovery_date', name='uq_daily_matches_external_date'),
    )
    op.create_index('idx_daily_matches_discovery_date', 'daily_important_matches', ['discovery_date'])
    op.create_index('idx_daily_matches_kickoff', 'daily_important_matches', ['kickoff_time'])
    op.create_index('idx_daily_matches_importance', 'daily_important_matches', ['importance_score'])

    op.create_table(
        'dynamic_content_schedule',
        sa.Column('id', sa.BigInteger(), primary_key=True),
        sa.Column(
            'match_id', sa.BigInteger(),
            sa.ForeignKey('daily_important_matches.id', ondelete='CASCADE'),
            nullable=False
        ),
        sa.Column('content_type', sa.Text(), nullable=False),
        sa.Column('content_subtype', sa.Text(), nullable=True),
        sa.Column('language', sa.Text(), nullable=False, server_default='en'),
        sa.Column('target_channels', JSONB(), nullable=False, server_default='[]'),
        sa.Column('scheduled_for', sa.DateTime(timezone=True), nullable=False),
        sa.Column('priority', sa.Integer(), nullable=False, server_default='5'),
        sa.Column('engagement_score', sa.Integer(), nullable=True),
        sa.Column('timing_reason', sa.Text(), nullable=True),
        sa.Column('status', sa.Text(), nullable=False, server_default='pending'),
        sa.Column('executed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('execution_result', JSONB(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index('idx_content_schedule_match', 'dynamic_content_schedule', ['match_id'])
    op.create_index('idx_content_schedule_due', 'dynamic_content_schedule', ['status', 'scheduled_for'])

    op.create_table(
        'content_timing_templates',
        sa.Column('id', sa.BigInteger(), primary_key=True),
        sa.Column('name', sa.Text(), nullable=False, unique=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('min_importance_score', sa.Integer(), nullable=False),
        sa.Column('max_importance_score', sa.Integer(), nullable=True),
        sa.Column('content_schedule', JSONB(), nullable=False, server_default='[]'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index(
        'idx_templates_importance', 'content_timing_templates',
        ['min_importance_score', 'max_importance_score']
    )

    # Rules and run log
    op.create_table(
        'automation_rules',
        sa.Column('id', sa.BigInteger(), primary_key=True),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('content_type', sa.Text(), nullable=False),
        sa.Column('automation_type', sa.Text(), nullable=False),
        sa.Column('enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('priority', sa.Integer(), nullable=False, server_default='5'),
        sa.Column('languages', JSONB(), nullable=False, server_default='["all"]'),
        sa.Column('schedule', JSONB(), nullable=False, server_default='{}'),
        sa.Column('conditions', JSONB(), nullable=False, server_default='{}'),
        *_timestamps(),
    )
    op.create_index('idx_automation_rules_enabled', 'automation_rules', ['enabled', 'priority'])

    op.create_table(
        'automation_runs',
        sa.Column('id', sa.BigInteger(), primary_key=True),
        sa.Column('run_type', sa.Text(), nullable=False),
        sa.Column('correlation_id', sa.Text(), nullable=True),
        sa.Column('rule_id', sa.BigInteger(), nullable=True),
        sa.Column('content_type', sa.Text(), nullable=True),
        sa.Column('status', sa.Text(), nullable=False),
        sa.Column('summary', JSONB(), nullable=False, server_default='{}'),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('finished_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('idx_automation_runs_started', 'automation_runs', ['started_at'])
    op.create_index('idx_automation_runs_rule', 'automation_runs', ['rule_id', 'started_at'])

    # Channels and push
    op.create_table(
        'telegram_channels',
        sa.Column('id', sa.BigInteger(), primary_key=True),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('telegram_chat_id', sa.Text(), nullable=False, unique=True),
        sa.Column('language', sa.Text(), nullable=False, server_default='en'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index('idx_telegram_channels_active_lang', 'telegram_channels', ['is_active', 'language'])

    op.create_table(
        'smart_push_settings',
        sa.Column('id', sa.BigInteger(), primary_key=True),
        sa.Column(
            'channel_id', sa.BigInteger(),
            sa.ForeignKey('telegram_channels.id', ondelete='CASCADE'),
            nullable=False, unique=True
        ),
        sa.Column('is_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('min_delay_minutes', sa.Integer(), nullable=False, server_default='2'),
        sa.Column('max_delay_minutes', sa.Integer(), nullable=False, server_default='5'),
        sa.Column('max_coupons_per_day', sa.Integer(), nullable=False, server_default='3'),
        sa.Column('min_gap_hours', sa.Integer(), nullable=False, server_default='2'),
        sa.Column('blackout_hours', JSONB(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'smart_push_queue',
        sa.Column('id', sa.BigInteger(), primary_key=True),
        sa.Column('primary_content_id', sa.Text(), nullable=False),
        sa.Column('primary_content_type', sa.Text(), nullable=False),
        sa.Column('channel_ids', JSONB(), nullable=False, server_default='[]'),
        sa.Column('language', sa.Text(), nullable=False, server_default='en'),
        sa.Column('scheduled_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('delay_minutes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.Text(), nullable=False, server_default='pending'),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('success_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('failure_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('context_data', JSONB(), nullable=False, server_default='{}'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('idx_smart_push_scheduled', 'smart_push_queue', ['scheduled_at', 'status'])
    op.create_index('idx_smart_push_status', 'smart_push_queue', ['status', 'created_at'])

    # Spam guard
    op.create_table(
        'spam_counters',
        sa.Column('id', sa.BigInteger(), primary_key=True),
        sa.Column('counter_date', sa.Date(), nullable=False),
        sa.Column('content_type', sa.Text(), nullable=False),
        sa.Column('count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_count', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('counter_date', 'content_type', name='uq_spam_counters_date_type'),
    )


def downgrade() -> None:
    op.drop_table('spam_counters')

    op.drop_index('idx_smart_push_status', table_name='smart_push_queue')
    op.drop_index('idx_smart_push_scheduled', table_name='smart_push_queue')
    op.drop_table('smart_push_queue')

    op.drop_table('smart_push_settings')
    op.drop_index('idx_telegram_channels_active_lang', table_name='telegram_channels')
    op.drop_table('telegram_channels')

    op.drop_index('idx_automation_runs_rule', table_name='automation_runs')
    op.drop_index('idx_automation_runs_started', table_name='automation_runs')
    op.drop_table('automation_runs')
    op.drop_index('idx_automation_rules_enabled', table_name='automation_rules')
    op.drop_table('automation_rules')

    op.drop_index('idx_templates_importance', table_name='content_timing_templates')
    op.drop_table('content_timing_templates')
    op.drop_index('idx_content_schedule_due', table_name='dynamic_content_schedule')
    op.drop_index('idx_content_schedule_match', table_name='dynamic_content_schedule')
    op.drop_table('dynamic_content_schedule')
    op.drop_index('idx_daily_matches_importance', table_name='daily_important_matches')
    op.drop_index('idx_daily_matches_kickoff', table_name='daily_important_matches')
    op.drop_index('idx_daily_matches_discovery_date', table_name='daily_important_matches')
    op.drop_table('daily_important_matches')
