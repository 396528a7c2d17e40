"""Subscription model."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from totaldash.models._base import Base


class Subscription(Base):
    """The single subscription record of a tenant."""

    __tablename__ = "subscriptions"
    __table_args__ = (Index("ix_subscriptions_status_trial_ends_at", "status", "trial_ends_at"),)

    # Conflict key for every upsert
    tenant_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, unique=True)
    plan_id: Mapped[Optional[UUID]] = mapped_column(
        ForeignKey("plans.id", ondelete="SET NULL"), nullable=True
    )

    # Provider IDs
    provider_customer_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    provider_subscription_id: Mapped[Optional[str]] = mapped_column(
        String, nullable=True, unique=True
    )

    status: Mapped[str] = mapped_column(String(50), nullable=False, default="no_subscription")
    provider_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    current_period_start: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=False), nullable=True
    )
    current_period_end: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=False), nullable=True
    )
    trial_ends_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=False), nullable=True
    )
    canceled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=False), nullable=True
    )
    grace_period_ends_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=False), nullable=True
    )

    # Billing contact
    billing_email: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    custom_pricing: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Plan terms frozen at creation or link time
    snapshot_plan_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    snapshot_price_monthly_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    snapshot_max_clients: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    snapshot_max_agents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    snapshot_max_team_members: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    snapshot_extras: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    snapshot_created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=False), nullable=True
    )

    # Narrowest trial reminder window already sent (72, 24, 0)
    last_reminder_window_hours: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    last_reminder_sent_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=False), nullable=True
    )
