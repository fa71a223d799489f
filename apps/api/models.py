from sqlalchemy import Column, Integer, Float, DateTime, ForeignKey, Text, String, Index, JSON, Uuid, CheckConstraint, text
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from core.database import Base
import uuid
from datetime import datetime, timezone


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# JSONB on Postgres, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")

# Partial-index predicate for "active" plans (pending/approved)
ACTIVE_PLAN_PREDICATE = text("approval_status IN ('pending', 'approved')")


class Member(Base):
    """
    A studio member (or instructor) within a tenant.

    Carries the member-side progress ledger that session completions
    update alongside the plan's own usage counters.
    """
    __tablename__ = "member"

    id = Column(String(64), primary_key=True)  # Identifier issued upstream
    tenant_id = Column(String(64), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    name = Column(Text, nullable=False)
    email = Column(Text, nullable=False)
    role = Column(Text, default="member", nullable=False)  # 'member', 'instructor', 'admin', 'super_admin'
    fitness_level = Column(Text, nullable=True)  # Last assessed experience level

    # --- PROFILE ---
    # {"age", "height", "weight", "medical_conditions": [...], "emergency_contact": {...}}
    profile = Column(JSONType, default=dict, nullable=False)
    # {"notifications": {"email", "push", "reminder_time"}, "privacy": {"share_progress", "public_profile"}}
    preferences = Column(JSONType, default=dict, nullable=False)

    # --- PROGRESS LEDGER ---
    sessions_completed = Column(Integer, default=0, nullable=False)
    total_minutes = Column(Integer, default=0, nullable=False)
    current_streak = Column(Integer, default=0, nullable=False)  # Consecutive calendar days
    longest_streak = Column(Integer, default=0, nullable=False)
    last_session_date = Column(DateTime(timezone=True), nullable=True)
    # [{"name", "earned_date", "description"}]; reassign, never mutate in place
    achievements = Column(JSONType, default=list, nullable=False)

    __table_args__ = (
        Index("ix_member_tenant_email", "tenant_id", "email", unique=True),
        Index("ix_member_tenant_role", "tenant_id", "role"),
    )


class YogaPlan(Base):
    """
    A generated yoga program for one member.

    Lifecycle: created pending -> reviewed by an instructor. Records are
    never deleted; a rejected plan stays for history.

    At most one pending/approved plan per (tenant, user): enforced by the
    partial unique index below as well as by a pre-check in the service.
    """
    __tablename__ = "yoga_plan"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(String(64), nullable=False)
    user_id = Column(String(64), nullable=False)
    # Python-side defaults keep sub-second ordering of the review queue
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), onupdate=_utcnow, nullable=False)

    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)

    # Plan structure summary (full weeks[] live in plan_structure)
    duration_weeks = Column(Integer, nullable=False)
    sessions_per_week = Column(Integer, nullable=False)
    difficulty_level = Column(Text, nullable=False)  # 'beginner', 'intermediate', 'advanced'
    total_sessions = Column(Integer, nullable=False)
    plan_structure = Column(JSONType, nullable=False)

    # Frozen copy of the originating assessment
    user_assessment = Column(JSONType, nullable=False)

    # Generation metadata (model_used, confidence_score, generation_time_ms, ...)
    ai_metadata = Column(JSONType, nullable=False)

    # --- APPROVAL WORKFLOW ---
    approval_status = Column(Text, default="pending", nullable=False)
    reviewed_by = Column(Text, nullable=True)
    review_notes = Column(Text, nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)  # Set only on approval
    revision_requests = relationship(
        "PlanRevisionRequest",
        back_populates="plan",
        order_by="PlanRevisionRequest.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    # --- USAGE ---
    sessions_completed = Column(Integer, default=0, nullable=False)
    total_practice_time = Column(Integer, default=0, nullable=False)  # Minutes
    last_session_date = Column(DateTime(timezone=True), nullable=True)
    completion_rate = Column(Float, default=0.0, nullable=False)  # 0..1

    __table_args__ = (
        CheckConstraint(
            "approval_status IN ('pending', 'approved', 'rejected', 'revision_requested')",
            name="ck_yoga_plan_approval_status",
        ),
        Index("ix_yoga_plan_tenant_user", "tenant_id", "user_id"),
        Index("ix_yoga_plan_tenant_status", "tenant_id", "approval_status"),
        Index("ix_yoga_plan_tenant_created", "tenant_id", "created_at"),
        Index(
            "uq_yoga_plan_active_per_user",
            "tenant_id",
            "user_id",
            unique=True,
            postgresql_where=ACTIVE_PLAN_PREDICATE,
            sqlite_where=ACTIVE_PLAN_PREDICATE,
        ),
    )


class PlanRevisionRequest(Base):
    """Append-only reviewer request for changes to a plan."""
    __tablename__ = "plan_revision_request"

    id = Column(Integer, primary_key=True, autoincrement=True)
    plan_id = Column(Uuid(as_uuid=True), ForeignKey("yoga_plan.id"), nullable=False)
    requested_by = Column(Text, nullable=False)
    requested_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    reason = Column(Text, nullable=True)
    changes_requested = Column(Text, nullable=True)

    plan = relationship("YogaPlan", back_populates="revision_requests")

    __table_args__ = (
        Index("ix_plan_revision_request_plan_id", "plan_id"),
    )
