"""Plan schemas."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class PlanBase(BaseModel):
    """Plan base schema."""

    name: str = Field(..., description="Display name of the plan")
    description: Optional[str] = Field(None, description="Plan description")
    price_monthly_cents: int = Field(0, ge=0, description="Monthly price in cents")
    provider_price_id: Optional[str] = Field(None, description="Stripe price ID, if mirrored")
    max_clients: int = Field(-1, ge=-1, description="Maximum clients, -1 for unlimited")
    max_agents: int = Field(-1, ge=-1, description="Maximum agents, -1 for unlimited")
    max_team_members: int = Field(-1, ge=-1, description="Maximum seats, -1 for unlimited")
    extras: list[str] = Field(default_factory=list, description="Additional plan features")
    trial_duration_days: int = Field(0, ge=0, description="Length of the trial in days")
    is_active: bool = Field(True, description="Whether the plan can be purchased")


class PlanCreate(PlanBase):
    """Plan creation schema."""


class PlanUpdate(BaseModel):
    """Plan update schema."""

    name: Optional[str] = None
    description: Optional[str] = None
    price_monthly_cents: Optional[int] = None
    max_clients: Optional[int] = None
    max_agents: Optional[int] = None
    max_team_members: Optional[int] = None
    extras: Optional[list[str]] = None
    trial_duration_days: Optional[int] = None
    is_active: Optional[bool] = None


class Plan(PlanBase):
    """Plan schema."""

    model_config = {"from_attributes": True}

    id: UUID
    created_at: datetime
    modified_at: datetime


class PlanSyncResult(BaseModel):
    """Outcome of a plan sync run."""

    synced: int = 0
    updated: int = 0
    new: int = 0


class MinPlanPrice(BaseModel):
    """Cheapest active plan, used in marketing and reminder copy."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    price_cents: int
    price_formatted: str
    plan_name: Optional[str] = None
