"""ORM models for users, goals, steps, check-ins, stats and subscriptions.

The schema is created by Alembic (``001_initial_schema``) in deployed
environments and by ``Base.metadata.create_all`` in tests.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from goalplanner.db.base import Base, JSONType, UTCDateTime


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _uuid_str() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    """Identity projected from the external auth provider."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, index=True)
    username: Mapped[str | None] = mapped_column(String(30), nullable=True, unique=True)
    first_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)

    # --- Relationships (database-level ON DELETE CASCADE does the work) ---
    goals: Mapped[list[Goal]] = relationship(
        "Goal", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    check_ins: Mapped[list[CheckIn]] = relationship(
        "CheckIn", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    stats: Mapped[UserStats | None] = relationship(
        "UserStats", back_populates="user", uselist=False, cascade="all, delete-orphan", passive_deletes=True
    )
    subscriptions: Mapped[list[Subscription]] = relationship(
        "Subscription", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )


# ---------------------------------------------------------------------------
# Goals & steps
# ---------------------------------------------------------------------------


class Goal(Base):
    """A user's objective with its AI-generated plan."""

    __tablename__ = "goals"
    __table_args__ = (
        UniqueConstraint("user_id", "slug", name="uq_goals_user_id_slug"),
        Index("ix_goals_status", "status"),
        Index("ix_goals_visibility", "visibility"),
        CheckConstraint("status IN ('active', 'paused', 'completed', 'abandoned')", name="status"),
        CheckConstraint("visibility IN ('private', 'public', 'unlisted')", name="visibility"),
    )

    id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=_uuid_str)
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(String(128), nullable=False)
    why: Mapped[str | None] = mapped_column(Text, nullable=True)
    deadline: Mapped[date | None] = mapped_column(Date, nullable=True)
    time_commitment: Mapped[str | None] = mapped_column(Text, nullable=True)
    biggest_concern: Mapped[str | None] = mapped_column(Text, nullable=True)
    ai_plan: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active")
    visibility: Mapped[str] = mapped_column(String(16), nullable=False, default="private")

    started_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    user: Mapped[User] = relationship("User", back_populates="goals")
    steps: Mapped[list[Step]] = relationship(
        "Step",
        back_populates="goal",
        order_by="Step.order_num",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    check_ins: Mapped[list[CheckIn]] = relationship(
        "CheckIn", back_populates="goal", cascade="all, delete-orphan", passive_deletes=True
    )

    __mapper_args__ = {"version_id_col": version}  # noqa: RUF012


class Step(Base):
    """An ordered unit of work under a goal."""

    __tablename__ = "steps"
    __table_args__ = (
        Index("ix_steps_status", "status"),
        CheckConstraint("status IN ('pending', 'in_progress', 'completed', 'skipped')", name="status"),
    )

    id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=_uuid_str)
    goal_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("goals.id", ondelete="CASCADE"), nullable=False, index=True
    )
    order_num: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)

    goal: Mapped[Goal] = relationship("Goal", back_populates="steps")


# ---------------------------------------------------------------------------
# Check-ins
# ---------------------------------------------------------------------------


class CheckIn(Base):
    """Immutable progress journal entry."""

    __tablename__ = "check_ins"
    __table_args__ = (
        Index("ix_check_ins_is_public", "is_public"),
        CheckConstraint("type IN ('daily', 'weekly', 'step_completion', 'milestone')", name="type"),
        CheckConstraint("mood IS NULL OR mood IN ('great', 'good', 'struggling', 'stuck')", name="mood"),
    )

    id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=_uuid_str)
    goal_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("goals.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    mood: Mapped[str | None] = mapped_column(String(16), nullable=True)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)

    goal: Mapped[Goal] = relationship("Goal", back_populates="check_ins")
    user: Mapped[User] = relationship("User", back_populates="check_ins")


# ---------------------------------------------------------------------------
# Gamification
# ---------------------------------------------------------------------------


class UserStats(Base):
    """Per-user streak and cumulative counters."""

    __tablename__ = "user_stats"
    __table_args__ = (
        CheckConstraint("current_streak >= 0 AND longest_streak >= current_streak", name="streaks"),
    )

    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_steps_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_goals_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_activity_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    user: Mapped[User] = relationship("User", back_populates="stats")

    __mapper_args__ = {"version_id_col": version}  # noqa: RUF012


# ---------------------------------------------------------------------------
# Billing
# ---------------------------------------------------------------------------


class Subscription(Base):
    """Billing state mirrored from the payments provider webhooks."""

    __tablename__ = "subscriptions"
    __table_args__ = (
        Index("ix_subscriptions_status", "status"),
    )

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    tier: Mapped[str] = mapped_column(String(16), nullable=False)
    provider_customer_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    provider_subscription_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    provider_product_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    current_period_start: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    current_period_end: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    cancel_at_period_end: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)

    user: Mapped[User] = relationship("User", back_populates="subscriptions")
