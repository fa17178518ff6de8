# models.py — Database models for the Foresight Radar API
# - UUID string primary keys everywhere
# - Workspace is the tenant root; every domain row carries workspace_id
# - 4-tier workspace roles (owner, admin, member, viewer)
# - Signals / trends / megatrends with composite-key join tables
# - Job + source schema for recurring scans (no executor)

import uuid
from datetime import datetime, timezone
from enum import Enum as PyEnum
from sqlalchemy import (
    Column, String, DateTime, JSON, Boolean, Integer,
    Enum as SQLEnum, ForeignKey, Text, Index, UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow():
    return datetime.now(timezone.utc)


def new_uuid():
    return str(uuid.uuid4())


def _values(enum_cls):
    return [member.value for member in enum_cls]


# ============================================================
# ENUMS
# ============================================================

class WorkspaceRole(str, PyEnum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"
    VIEWER = "viewer"


class Horizon(str, PyEnum):
    NEAR = "0_5"
    MID = "5_10"
    FAR = "10_plus"


class Certainty(str, PyEnum):
    CERTAIN = "certain"
    UNCERTAIN = "uncertain"
    WILDCARD = "wildcard"


class Impact(str, PyEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SourceType(str, PyEnum):
    DOMAIN = "domain"
    RSS = "rss"
    ALERT = "alert"
    MANUAL = "manual"


class JobType(str, PyEnum):
    SCAN = "scan"
    REINDEX = "reindex"


class JobStatus(str, PyEnum):
    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    ERROR = "error"


# Stored by value so the database carries the literal enum sets ("0_5", "owner", ...)
def _enum_column(enum_cls, name, **kwargs):
    return Column(
        SQLEnum(enum_cls, name=name, values_callable=_values, validate_strings=True),
        **kwargs,
    )


# ============================================================
# IDENTITIES
# ============================================================

class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=new_uuid)
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    is_active = Column(Boolean, default=True, index=True)
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class RevokedToken(Base):
    __tablename__ = "revoked_tokens"

    id = Column(String, primary_key=True, default=new_uuid)
    jti = Column(String, unique=True, nullable=False, index=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    revoked_at = Column(DateTime(timezone=True), default=utcnow)
    expires_at = Column(DateTime(timezone=True), nullable=False)


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    email = Column(String, nullable=True)
    full_name = Column(String, nullable=True)
    avatar_url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


# ============================================================
# TENANCY
# ============================================================

class Workspace(Base):
    __tablename__ = "workspaces"

    id = Column(String, primary_key=True, default=new_uuid)
    name = Column(String, nullable=False)
    plan = Column(String, default="free")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Member(Base):
    __tablename__ = "members"

    id = Column(String, primary_key=True, default=new_uuid)
    workspace_id = Column(String, ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = _enum_column(WorkspaceRole, "app_role", nullable=False, default=WorkspaceRole.MEMBER)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("workspace_id", "user_id", name="uq_member_workspace_user"),
    )


# ============================================================
# INGESTION SCHEMA
# ============================================================

class Source(Base):
    __tablename__ = "sources"

    id = Column(String, primary_key=True, default=new_uuid)
    workspace_id = Column(String, ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False, index=True)
    type = _enum_column(SourceType, "source_type", nullable=False, default=SourceType.MANUAL)
    url_or_term = Column(Text, nullable=False)
    name = Column(String, nullable=True)
    active = Column(Boolean, default=True)
    crawl_interval_minutes = Column(Integer, default=180)
    last_crawled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Job(Base):
    __tablename__ = "jobs"

    id = Column(String, primary_key=True, default=new_uuid)
    workspace_id = Column(String, ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False, index=True)
    type = _enum_column(JobType, "job_type", nullable=False)
    status = _enum_column(JobStatus, "job_status", nullable=False, default=JobStatus.PENDING, index=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    finished_at = Column(DateTime(timezone=True), nullable=True)
    log = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


# ============================================================
# FORESIGHT GRAPH
# ============================================================

class Signal(Base):
    __tablename__ = "signals"

    id = Column(String, primary_key=True, default=new_uuid)
    workspace_id = Column(String, ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False, index=True)
    source_id = Column(String, ForeignKey("sources.id", ondelete="SET NULL"), nullable=True)
    title = Column(String(180), nullable=False)
    url = Column(Text, nullable=True)
    content = Column(Text, nullable=True)
    summary = Column(Text, nullable=True)
    lang = Column(String, default="en")
    ai_tags = Column(JSON, nullable=False, default=list)
    relevance = Column(Integer, default=50, nullable=False)
    horizon = _enum_column(Horizon, "horizon_type", default=Horizon.MID, nullable=False)
    certainty = _enum_column(Certainty, "certainty_type", default=Certainty.UNCERTAIN, nullable=False)
    created_by = Column(String, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    fetched_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("length(title) <= 180", name="ck_signal_title_len"),
        CheckConstraint("summary IS NULL OR length(summary) <= 1200", name="ck_signal_summary_len"),
        CheckConstraint("relevance >= 0 AND relevance <= 100", name="ck_signal_relevance_range"),
        Index("idx_signals_workspace_created", "workspace_id", "created_at"),
    )


class Trend(Base):
    __tablename__ = "trends"

    id = Column(String, primary_key=True, default=new_uuid)
    workspace_id = Column(String, ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(120), nullable=False)
    description = Column(Text, nullable=True)
    owner_id = Column(String, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    impact = _enum_column(Impact, "impact_type", default=Impact.MEDIUM, nullable=False)
    certainty = _enum_column(Certainty, "certainty_type", default=Certainty.UNCERTAIN, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("length(title) <= 120", name="ck_trend_title_len"),
        CheckConstraint("description IS NULL OR length(description) <= 1800", name="ck_trend_description_len"),
    )


class Megatrend(Base):
    __tablename__ = "megatrends"

    id = Column(String, primary_key=True, default=new_uuid)
    workspace_id = Column(String, ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(120), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("length(title) <= 120", name="ck_megatrend_title_len"),
        CheckConstraint("description IS NULL OR length(description) <= 1200", name="ck_megatrend_description_len"),
    )


class SignalTrend(Base):
    __tablename__ = "signal_trend"

    signal_id = Column(String, ForeignKey("signals.id", ondelete="CASCADE"), primary_key=True)
    trend_id = Column(String, ForeignKey("trends.id", ondelete="CASCADE"), primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class TrendMegatrend(Base):
    __tablename__ = "trend_megatrend"

    trend_id = Column(String, ForeignKey("trends.id", ondelete="CASCADE"), primary_key=True)
    megatrend_id = Column(String, ForeignKey("megatrends.id", ondelete="CASCADE"), primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
