"""Plan sync job: mirror Stripe monthly prices into the plan catalog."""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from totaldash import schemas
from totaldash.billing.billing_data_access import BillingRepository
from totaldash.billing.plan_logic import UNLIMITED
from totaldash.core.exceptions import AuthorizationError
from totaldash.core.logging import ContextualLogger, logger
from totaldash.integrations.stripe_client import StripeClient

MONTHLY_INTERVAL = "month"


class PlanSyncService:
    """Inserts or updates one plan per active monthly Stripe price.

    The match key is the Stripe price ID, so repeated runs only update.
    Capacity limits of new plans default to unlimited and are tuned by an
    operator afterwards; sync never touches them on existing plans.
    """

    def __init__(
        self,
        db: AsyncSession,
        stripe: StripeClient,
        log: Optional[ContextualLogger] = None,
    ):
        """Initialize the plan sync service."""
        self.db = db
        self.stripe = stripe
        self.repository = BillingRepository()
        self.log = (log or logger).with_context(job="plan_sync")

    async def sync_plans(self, caller: schemas.AuthContext) -> schemas.PlanSyncResult:
        """Run one sync.

        Raises:
            AuthorizationError: If the caller is not a super-admin. Checked
                before any Stripe call.
            ProviderError: If listing prices fails.
        """
        if not caller.is_super_admin:
            raise AuthorizationError("Only super admins can sync plans")

        prices = await self.stripe.list_active_recurring_prices()
        result = schemas.PlanSyncResult()

        for price in prices:
            if price.interval != MONTHLY_INTERVAL:
                continue

            name = price.product_name or price.id
            plan = await self.repository.get_plan_by_price(self.db, price.id)
            if plan is not None:
                await self.repository.update_plan(
                    self.db,
                    plan,
                    schemas.PlanUpdate(
                        name=name,
                        description=price.product_description,
                        price_monthly_cents=price.unit_amount,
                    ),
                )
                result.updated += 1
            else:
                await self.repository.create_plan(
                    self.db,
                    schemas.PlanCreate(
                        name=name,
                        description=price.product_description,
                        price_monthly_cents=price.unit_amount,
                        provider_price_id=price.id,
                        max_clients=UNLIMITED,
                        max_agents=UNLIMITED,
                        max_team_members=UNLIMITED,
                        extras=[],
                        trial_duration_days=0,
                        is_active=True,
                    ),
                )
                result.new += 1
            result.synced += 1

        self.log.info(
            f"Plan sync done: {result.synced} synced, {result.updated} updated, {result.new} new"
        )
        return result
