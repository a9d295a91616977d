"""SQLAlchemy ORM models.

Typed record schemas for the persistence boundary. Role, plan and resource
columns are stored as strings and validated against the enums in
``coachcrm.db.enums`` by the services that read them.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    BigInteger,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from coachcrm.db.base import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")
Money = Numeric(12, 2)
# Cost-of-goods totals accumulate sub-cent events (per-token AI pricing)
CostAmount = Numeric(16, 6)


class Organization(Base):
    """
    A coaching business (tenant).

    Every usage counter, alert and assignment is scoped by organization_id.
    """

    __tablename__ = "organizations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    subscription_plan: Mapped[str] = mapped_column(
        String(20), default="standard", server_default="standard", nullable=False
    )
    subscription_status: Mapped[str] = mapped_column(
        String(20), default="trial", server_default="trial", nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    users: Mapped[list["User"]] = relationship(back_populates="organization")


class User(Base):
    """Team member with exactly one role plus optional modifiers."""

    __tablename__ = "users"
    __table_args__ = (Index("ix_users_org", "organization_id"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    is_biller: Mapped[bool] = mapped_column(default=False, server_default="0", nullable=False)
    is_supervisor: Mapped[bool] = mapped_column(default=False, server_default="0", nullable=False)
    is_active: Mapped[bool] = mapped_column(default=True, server_default="1", nullable=False)
    token_version: Mapped[int] = mapped_column(Integer, default=1, server_default="1", nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    organization: Mapped["Organization"] = relationship(back_populates="users")


class Client(Base):
    """A coaching client belonging to one organization."""

    __tablename__ = "clients"
    __table_args__ = (Index("ix_clients_org", "organization_id"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)


class CoachClientAssignment(Base):
    """Explicit coach-to-client link; a coach only sees assigned clients."""

    __tablename__ = "coach_client_assignments"
    __table_args__ = (
        UniqueConstraint("client_id", "coach_id", name="uq_coach_client_assignment"),
        Index("ix_coach_client_assignments_coach", "coach_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False
    )
    coach_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    assignment_type: Mapped[str] = mapped_column(
        String(20), default="primary", server_default="primary", nullable=False
    )
    assigned_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    assigned_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)


class OrganizationUsage(Base):
    """
    Monthly usage roll-up, one row per organization per billing period.

    billing_period is the first day of the month. Rows are created lazily on
    first increment and never reset; a new month starts a new row.
    """

    __tablename__ = "organization_usage"
    __table_args__ = (
        UniqueConstraint("organization_id", "billing_period", name="uq_organization_usage_period"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    billing_period: Mapped[date] = mapped_column(Date, nullable=False)

    active_clients_count: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    emails_sent: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    sms_sent: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    whatsapp_sent: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    video_participants_minutes: Mapped[int] = mapped_column(
        Integer, default=0, server_default="0", nullable=False
    )
    ai_summaries_generated: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    ai_insights_generated: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    transcription_minutes_used: Mapped[int] = mapped_column(
        Integer, default=0, server_default="0", nullable=False
    )
    team_members_count: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    storage_used_bytes: Mapped[int] = mapped_column(BigInteger, default=0, server_default="0", nullable=False)

    estimated_monthly_cost: Mapped[Decimal] = mapped_column(
        Money, default=Decimal("0"), server_default="0", nullable=False
    )
    actual_cost_to_date: Mapped[Decimal] = mapped_column(
        CostAmount, default=Decimal("0"), server_default="0", nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )


class UsageAlert(Base):
    """
    Threshold-crossing alert for a metered resource.

    At most one row per (organization, resource, period, threshold); repeats
    bump occurrence_count and last_seen_at.
    """

    __tablename__ = "usage_alerts"
    __table_args__ = (
        UniqueConstraint(
            "organization_id",
            "resource_type",
            "billing_period",
            "threshold",
            name="uq_usage_alerts_threshold",
        ),
        Index("ix_usage_alerts_org_period", "organization_id", "billing_period"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    alert_type: Mapped[str] = mapped_column(
        String(30), default="usage_warning", server_default="usage_warning", nullable=False
    )
    resource_type: Mapped[str] = mapped_column(String(30), nullable=False)
    billing_period: Mapped[date] = mapped_column(Date, nullable=False)
    threshold: Mapped[int] = mapped_column(Integer, nullable=False)
    current_usage: Mapped[int] = mapped_column(Integer, nullable=False)
    limit_value: Mapped[int] = mapped_column(Integer, nullable=False)
    usage_percentage: Mapped[float] = mapped_column(nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    occurrence_count: Mapped[int] = mapped_column(Integer, default=1, server_default="1", nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    last_seen_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)


class CostEvent(Base):
    """Internal cost-of-goods event (video minutes billed to us, AI tokens, etc.)."""

    __tablename__ = "cost_events"
    __table_args__ = (Index("ix_cost_events_org_period", "organization_id", "billing_period"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    billing_period: Mapped[date] = mapped_column(Date, nullable=False)
    cost_type: Mapped[str] = mapped_column(String(50), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    total_cost: Mapped[Decimal] = mapped_column(CostAmount, nullable=False)
    details: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
