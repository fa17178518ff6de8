"""Foresight initial schema (identities, workspaces, sources, jobs, signals, trends, megatrends)

Revision ID: a1f4c2e8d7b3
Revises:
Create Date: 2026-10-12T09:14:37.518204
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision: str = 'a1f4c2e8d7b3'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

CERTAINTY_VALUES = ('certain', 'uncertain', 'wildcard')


def upgrade() -> None:
    # --- users ---
    op.create_table(
        'users',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('password_hash', sa.String(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=True, server_default='true'),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_is_active', 'users', ['is_active'])

    # --- revoked_tokens ---
    op.create_table(
        'revoked_tokens',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('jti', sa.String(), nullable=False),
        sa.Column('user_id', sa.String(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_revoked_tokens_jti', 'revoked_tokens', ['jti'], unique=True)

    # --- profiles ---
    op.create_table(
        'profiles',
        sa.Column('id', sa.String(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('full_name', sa.String(), nullable=True),
        sa.Column('avatar_url', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )

    # --- workspaces / members ---
    op.create_table(
        'workspaces',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('plan', sa.String(), nullable=True, server_default='free'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table(
        'members',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('workspace_id', sa.String(), sa.ForeignKey('workspaces.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role', sa.Enum('owner', 'admin', 'member', 'viewer', name='app_role'), nullable=False, server_default='member'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('workspace_id', 'user_id', name='uq_member_workspace_user'),
    )
    op.create_index('ix_members_workspace_id', 'members', ['workspace_id'])
    op.create_index('ix_members_user_id', 'members', ['user_id'])

    # --- sources / jobs ---
    op.create_table(
        'sources',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('workspace_id', sa.String(), sa.ForeignKey('workspaces.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.Enum('domain', 'rss', 'alert', 'manual', name='source_type'), nullable=False, server_default='manual'),
        sa.Column('url_or_term', sa.Text(), nullable=False),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=True, server_default='true'),
        sa.Column('crawl_interval_minutes', sa.Integer(), nullable=True, server_default='180'),
        sa.Column('last_crawled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_sources_workspace_id', 'sources', ['workspace_id'])

    op.create_table(
        'jobs',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('workspace_id', sa.String(), sa.ForeignKey('workspaces.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.Enum('scan', 'reindex', name='job_type'), nullable=False),
        sa.Column('status', sa.Enum('pending', 'running', 'done', 'error', name='job_status'), nullable=False, server_default='pending'),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('finished_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('log', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_jobs_workspace_id', 'jobs', ['workspace_id'])
    op.create_index('ix_jobs_status', 'jobs', ['status'])

    # --- signals ---
    op.create_table(
        'signals',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('workspace_id', sa.String(), sa.ForeignKey('workspaces.id', ondelete='CASCADE'), nullable=False),
        sa.Column('source_id', sa.String(), sa.ForeignKey('sources.id', ondelete='SET NULL'), nullable=True),
        sa.Column('title', sa.String(180), nullable=False),
        sa.Column('url', sa.Text(), nullable=True),
        sa.Column('content', sa.Text(), nullable=True),
        sa.Column('summary', sa.Text(), nullable=True),
        sa.Column('lang', sa.String(), nullable=True, server_default='en'),
        sa.Column('ai_tags', sa.JSON(), nullable=False, server_default='[]'),
        sa.Column('relevance', sa.Integer(), nullable=False, server_default='50'),
        sa.Column('horizon', sa.Enum('0_5', '5_10', '10_plus', name='horizon_type'), nullable=False, server_default='5_10'),
        sa.Column('certainty', sa.Enum(*CERTAINTY_VALUES, name='certainty_type'), nullable=False, server_default='uncertain'),
        sa.Column('created_by', sa.String(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('fetched_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('length(title) <= 180', name='ck_signal_title_len'),
        sa.CheckConstraint('summary IS NULL OR length(summary) <= 1200', name='ck_signal_summary_len'),
        sa.CheckConstraint('relevance >= 0 AND relevance <= 100', name='ck_signal_relevance_range'),
    )
    op.create_index('ix_signals_workspace_id', 'signals', ['workspace_id'])
    op.create_index('ix_signals_created_at', 'signals', ['created_at'])
    op.create_index('idx_signals_workspace_created', 'signals', ['workspace_id', 'created_at'])

    # --- trends / megatrends ---
    op.create_table(
        'trends',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('workspace_id', sa.String(), sa.ForeignKey('workspaces.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(120), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('owner_id', sa.String(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('impact', sa.Enum('low', 'medium', 'high', name='impact_type'), nullable=False, server_default='medium'),
        # type already created with signals
        sa.Column('certainty', postgresql.ENUM(*CERTAINTY_VALUES, name='certainty_type', create_type=False), nullable=False, server_default='uncertain'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('length(title) <= 120', name='ck_trend_title_len'),
        sa.CheckConstraint('description IS NULL OR length(description) <= 1800', name='ck_trend_description_len'),
    )
    op.create_index('ix_trends_workspace_id', 'trends', ['workspace_id'])
    op.create_index('ix_trends_created_at', 'trends', ['created_at'])

    op.create_table(
        'megatrends',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('workspace_id', sa.String(), sa.ForeignKey('workspaces.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(120), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('length(title) <= 120', name='ck_megatrend_title_len'),
        sa.CheckConstraint('description IS NULL OR length(description) <= 1200', name='ck_megatrend_description_len'),
    )
    op.create_index('ix_megatrends_workspace_id', 'megatrends', ['workspace_id'])
    op.create_index('ix_megatrends_created_at', 'megatrends', ['created_at'])

    # --- link tables ---
    op.create_table(
        'signal_trend',
        sa.Column('signal_id', sa.String(), sa.ForeignKey('signals.id', ondelete='CASCADE'), nullable=False),
        sa.Column('trend_id', sa.String(), sa.ForeignKey('trends.id', ondelete='CASCADE'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('signal_id', 'trend_id'),
    )
    op.create_index('ix_signal_trend_trend_id', 'signal_trend', ['trend_id'])

    op.create_table(
        'trend_megatrend',
        sa.Column('trend_id', sa.String(), sa.ForeignKey('trends.id', ondelete='CASCADE'), nullable=False),
        sa.Column('megatrend_id', sa.String(), sa.ForeignKey('megatrends.id', ondelete='CASCADE'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('trend_id', 'megatrend_id'),
    )
    op.create_index('ix_trend_megatrend_megatrend_id', 'trend_megatrend', ['megatrend_id'])


def downgrade() -> None:
    op.drop_table('trend_megatrend')
    op.drop_table('signal_trend')
    op.drop_table('megatrends')
    op.drop_table('trends')
    op.drop_table('signals')
    op.drop_table('jobs')
    op.drop_table('sources')
    op.drop_table('members')
    op.drop_table('workspaces')
    op.drop_table('profiles')
    op.drop_table('revoked_tokens')
    op.drop_table('users')
    for enum_name in ('impact_type', 'certainty_type', 'horizon_type', 'job_status', 'job_type', 'source_type', 'app_role'):
        op.execute(f"DROP TYPE IF EXISTS {enum_name}")
