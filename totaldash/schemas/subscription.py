"""Subscription schemas."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class SubscriptionStatus(str, Enum):
    """Closed set of subscription states."""

    NO_SUBSCRIPTION = "no_subscription"
    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"


SUBSCRIBED_STATUSES = frozenset({SubscriptionStatus.TRIALING, SubscriptionStatus.ACTIVE})


class PlanSnapshot(BaseModel):
    """Plan terms frozen onto a subscription.

    Built once at trial start, checkout completion or manual link, and never
    re-derived from the plans table afterwards.
    """

    model_config = ConfigDict(frozen=True)

    plan_name: str
    price_monthly_cents: int
    max_clients: int
    max_agents: int
    max_team_members: int
    extras: tuple[str, ...] = ()
    created_at: datetime

    def to_columns(self) -> dict[str, Any]:
        """Flatten into the snapshot_* columns of the subscriptions table."""
        return {
            "snapshot_plan_name": self.plan_name,
            "snapshot_price_monthly_cents": self.price_monthly_cents,
            "snapshot_max_clients": self.max_clients,
            "snapshot_max_agents": self.max_agents,
            "snapshot_max_team_members": self.max_team_members,
            "snapshot_extras": list(self.extras),
            "snapshot_created_at": self.created_at,
        }

    @classmethod
    def from_columns(cls, record: Any) -> Optional["PlanSnapshot"]:
        """Rebuild the snapshot from a subscription row, if one was taken."""
        if record.snapshot_plan_name is None or record.snapshot_created_at is None:
            return None
        return cls(
            plan_name=record.snapshot_plan_name,
            price_monthly_cents=record.snapshot_price_monthly_cents or 0,
            max_clients=record.snapshot_max_clients,
            max_agents=record.snapshot_max_agents,
            max_team_members=record.snapshot_max_team_members,
            extras=tuple(record.snapshot_extras or ()),
            created_at=record.snapshot_created_at,
        )


class Subscription(BaseModel):
    """Subscription schema."""

    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    id: UUID
    tenant_id: UUID
    plan_id: Optional[UUID] = None
    provider_customer_id: Optional[str] = None
    provider_subscription_id: Optional[str] = None
    status: SubscriptionStatus
    provider_status: Optional[str] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    trial_ends_at: Optional[datetime] = None
    canceled_at: Optional[datetime] = None
    grace_period_ends_at: Optional[datetime] = None
    billing_email: Optional[str] = None
    custom_pricing: bool = False
    snapshot_plan_name: Optional[str] = None
    snapshot_price_monthly_cents: Optional[int] = None
    snapshot_max_clients: Optional[int] = None
    snapshot_max_agents: Optional[int] = None
    snapshot_max_team_members: Optional[int] = None
    snapshot_extras: Optional[list[str]] = None
    created_at: datetime
    modified_at: datetime


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TrialStartRequest(_CamelModel):
    """Request body for starting a trial."""

    tenant_id: UUID
    owner_email: str = Field(..., min_length=3)


class TrialStartResult(_CamelModel):
    """Outcome of starting a trial."""

    success: bool = True
    subscription_id: Optional[str] = None
    trial_ends_at: Optional[datetime] = None
    client_secret: Optional[str] = None
    skipped_provider: bool = False


class TrialCancelRequest(_CamelModel):
    """Request body for canceling a trial; tenant defaults to the caller's."""

    tenant_id: Optional[UUID] = None


class TrialCancelResult(_CamelModel):
    """Outcome of canceling a trial."""

    success: bool = True


class SubscriptionStatusResponse(_CamelModel):
    """Answer of the status oracle."""

    subscribed: bool
    status: SubscriptionStatus
    plan_id: Optional[UUID] = None
    trial_ends_at: Optional[datetime] = None
    current_period_end: Optional[datetime] = None


class CheckoutRequest(_CamelModel):
    """Request body for a plan checkout."""

    plan_id: UUID
    success_url: str
    cancel_url: str
    tenant_id: Optional[UUID] = None


class CheckoutResult(_CamelModel):
    """Hosted checkout page for the caller to visit."""

    url: str


class LinkSubscriptionRequest(_CamelModel):
    """Request body for adopting an out-of-band provider subscription."""

    tenant_id: UUID
    provider_subscription_id: str = Field(..., min_length=1)


class ReminderRunResult(_CamelModel):
    """Counts of one reminder scheduler run."""

    emails_sent: int = 0
    three_day: int = 0
    one_day: int = 0
    ended: int = 0
    skipped: int = 0
