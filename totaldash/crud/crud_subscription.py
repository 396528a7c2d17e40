"""CRUD operations for subscriptions."""

import uuid
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from totaldash.core.datetime_utils import utc_now_naive
from totaldash.crud._base_system import CRUDBaseSystem
from totaldash.models import Subscription
from totaldash.schemas.subscription import SubscriptionStatus

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class CRUDSubscription(CRUDBaseSystem[Subscription, Any, Any]):
    """CRUD operations for subscriptions.

    Every write is either the tenant-keyed upsert or an unconditional update
    keyed on the provider subscription ID, so concurrent writers settle on the
    last value written and no row is ever duplicated.
    """

    async def get_by_tenant(self, db: AsyncSession, *, tenant_id: UUID) -> Optional[Subscription]:
        """Get the subscription of a tenant.

        Args:
            db: Database session
            tenant_id: Tenant ID

        Returns:
            Subscription or None
        """
        query = (
            select(Subscription)
            .where(Subscription.tenant_id == tenant_id)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def get_by_provider_subscription(
        self, db: AsyncSession, *, provider_subscription_id: str
    ) -> Optional[Subscription]:
        """Get a subscription by its Stripe subscription ID.

        Args:
            db: Database session
            provider_subscription_id: Stripe subscription ID

        Returns:
            Subscription or None
        """
        query = (
            select(Subscription)
            .where(Subscription.provider_subscription_id == provider_subscription_id)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def upsert_by_tenant(
        self, db: AsyncSession, *, tenant_id: UUID, values: dict[str, Any]
    ) -> Subscription:
        """Insert or overwrite the subscription of a tenant in one statement.

        Args:
            db: Database session
            tenant_id: Tenant ID, the conflict key
            values: Column values to set on insert and on conflict

        Returns:
            The stored subscription
        """
        now = utc_now_naive()
        dialect = db.get_bind().dialect.name
        insert = _INSERT_BY_DIALECT.get(dialect)
        if insert is None:
            raise NotImplementedError(f"Upsert is not supported on dialect {dialect}")

        stmt = insert(Subscription).values(
            id=uuid.uuid4(),
            tenant_id=tenant_id,
            created_at=now,
            modified_at=now,
            **values,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[Subscription.tenant_id],
            set_={**values, "modified_at": now},
        )
        await db.execute(stmt)
        await db.commit()

        return await self.get_by_tenant(db, tenant_id=tenant_id)

    async def update_by_provider_subscription(
        self, db: AsyncSession, *, provider_subscription_id: str, values: dict[str, Any]
    ) -> Optional[Subscription]:
        """Set absolute values on the row owning a Stripe subscription.

        Returns:
            The updated subscription, or None when no row matches.
        """
        stmt = (
            update(Subscription)
            .where(Subscription.provider_subscription_id == provider_subscription_id)
            .values(**values, modified_at=utc_now_naive())
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        await db.commit()

        if result.rowcount == 0:
            return None
        return await self.get_by_provider_subscription(
            db, provider_subscription_id=provider_subscription_id
        )

    async def update_by_tenant(
        self, db: AsyncSession, *, tenant_id: UUID, values: dict[str, Any]
    ) -> Optional[Subscription]:
        """Set absolute values on the row of a tenant."""
        stmt = (
            update(Subscription)
            .where(Subscription.tenant_id == tenant_id)
            .values(**values, modified_at=utc_now_naive())
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        await db.commit()

        if result.rowcount == 0:
            return None
        return await self.get_by_tenant(db, tenant_id=tenant_id)

    async def get_trials_ending_before(
        self, db: AsyncSession, *, cutoff: datetime
    ) -> list[Subscription]:
        """Get trialing subscriptions whose trial ends at or before the cutoff."""
        query = (
            select(Subscription)
            .where(
                Subscription.status == SubscriptionStatus.TRIALING.value,
                Subscription.trial_ends_at.is_not(None),
                Subscription.trial_ends_at <= cutoff,
            )
            .order_by(Subscription.trial_ends_at)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(query)
        return list(result.scalars().all())


subscription = CRUDSubscription(Subscription)
