"""Repository pattern for billing database operations.

This module handles all database interactions for billing,
providing a clean interface between the service layer and CRUD operations.
"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from totaldash import crud, schemas
from totaldash.models import Plan, Subscription
from totaldash.schemas.subscription import PlanSnapshot


class BillingRepository:
    """Repository for all billing-related database operations."""

    # Plans

    async def get_plan(self, db: AsyncSession, plan_id: UUID) -> Optional[Plan]:
        """Get plan by ID."""
        return await crud.plan.get(db, id=plan_id)

    async def get_active_plan_by_name(self, db: AsyncSession, name: str) -> Optional[Plan]:
        """Get the active plan with the given name."""
        return await crud.plan.get_active_by_name(db, name=name)

    async def get_plan_by_price(self, db: AsyncSession, provider_price_id: str) -> Optional[Plan]:
        """Get the plan mirroring a Stripe price."""
        return await crud.plan.get_by_provider_price(db, provider_price_id=provider_price_id)

    async def get_cheapest_plan(self, db: AsyncSession) -> Optional[Plan]:
        """Get the cheapest active plan."""
        return await crud.plan.get_cheapest_active(db)

    async def create_plan(self, db: AsyncSession, plan_in: schemas.PlanCreate) -> Plan:
        """Insert a plan."""
        return await crud.plan.create(db, obj_in=plan_in)

    async def update_plan(
        self, db: AsyncSession, plan: Plan, plan_update: schemas.PlanUpdate
    ) -> Plan:
        """Update the given fields of a plan."""
        return await crud.plan.update(db, db_obj=plan, obj_in=plan_update)

    # Subscriptions

    async def get_subscription(self, db: AsyncSession, tenant_id: UUID) -> Optional[Subscription]:
        """Get the subscription of a tenant."""
        return await crud.subscription.get_by_tenant(db, tenant_id=tenant_id)

    async def get_subscription_by_provider_id(
        self, db: AsyncSession, provider_subscription_id: str
    ) -> Optional[Subscription]:
        """Get the subscription owning a Stripe subscription."""
        return await crud.subscription.get_by_provider_subscription(
            db, provider_subscription_id=provider_subscription_id
        )

    async def save_subscription(
        self,
        db: AsyncSession,
        tenant_id: UUID,
        values: dict[str, Any],
        snapshot: Optional[PlanSnapshot] = None,
    ) -> Subscription:
        """Upsert the subscription of a tenant, flattening the snapshot if given."""
        if snapshot is not None:
            values = {**values, **snapshot.to_columns()}
        return await crud.subscription.upsert_by_tenant(db, tenant_id=tenant_id, values=values)

    async def update_subscription(
        self, db: AsyncSession, tenant_id: UUID, values: dict[str, Any]
    ) -> Optional[Subscription]:
        """Set absolute values on a tenant's subscription."""
        return await crud.subscription.update_by_tenant(db, tenant_id=tenant_id, values=values)

    async def update_by_provider_subscription(
        self, db: AsyncSession, provider_subscription_id: str, values: dict[str, Any]
    ) -> Optional[Subscription]:
        """Set absolute values on the subscription owning a Stripe subscription."""
        return await crud.subscription.update_by_provider_subscription(
            db, provider_subscription_id=provider_subscription_id, values=values
        )

    async def get_trials_ending_before(
        self, db: AsyncSession, cutoff: datetime
    ) -> list[Subscription]:
        """Get trialing subscriptions whose trial ends at or before the cutoff."""
        return await crud.subscription.get_trials_ending_before(db, cutoff=cutoff)

    async def record_reminder(
        self, db: AsyncSession, tenant_id: UUID, window_hours: int, sent_at: datetime
    ) -> Optional[Subscription]:
        """Remember the narrowest reminder window sent to a tenant."""
        return await crud.subscription.update_by_tenant(
            db,
            tenant_id=tenant_id,
            values={"last_reminder_window_hours": window_hours, "last_reminder_sent_at": sent_at},
        )
