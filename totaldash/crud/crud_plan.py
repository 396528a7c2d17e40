"""CRUD operations for plans."""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from totaldash import schemas
from totaldash.crud._base_system import CRUDBaseSystem
from totaldash.models import Plan


class CRUDPlan(CRUDBaseSystem[Plan, schemas.PlanCreate, schemas.PlanUpdate]):
    """CRUD operations for plans."""

    async def get_active_by_name(self, db: AsyncSession, *, name: str) -> Optional[Plan]:
        """Get the active plan with the given display name.

        Args:
            db: Database session
            name: Plan display name

        Returns:
            Plan or None
        """
        query = (
            select(Plan)
            .where(Plan.name == name, Plan.is_active.is_(True))
            .order_by(Plan.created_at)
            .limit(1)
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def get_by_provider_price(
        self, db: AsyncSession, *, provider_price_id: str
    ) -> Optional[Plan]:
        """Get a plan by its Stripe price ID."""
        query = select(Plan).where(Plan.provider_price_id == provider_price_id)
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def get_cheapest_active(self, db: AsyncSession) -> Optional[Plan]:
        """Get the active plan with the lowest monthly price."""
        query = (
            select(Plan)
            .where(Plan.is_active.is_(True))
            .order_by(Plan.price_monthly_cents)
            .limit(1)
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()


plan = CRUDPlan(Plan)
