"""Hosted checkout for upgrading a tenant onto a paid plan."""

from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from totaldash import schemas
from totaldash.billing.billing_data_access import BillingRepository
from totaldash.billing.plan_logic import is_upgrade
from totaldash.core.exceptions import ConflictError, NotFoundException
from totaldash.core.logging import ContextualLogger, logger
from totaldash.integrations.stripe_client import StripeClient


class CheckoutService:
    """Creates Stripe checkout sessions; completion arrives as a webhook."""

    def __init__(
        self,
        db: AsyncSession,
        stripe: StripeClient,
        log: Optional[ContextualLogger] = None,
    ):
        """Initialize the checkout service."""
        self.db = db
        self.stripe = stripe
        self.repository = BillingRepository()
        self.log = log or logger

    async def create_checkout(
        self,
        tenant_id: UUID,
        plan_id: UUID,
        email: str,
        success_url: str,
        cancel_url: str,
    ) -> schemas.CheckoutResult:
        """Create a checkout session for a plan.

        Raises:
            NotFoundException: If the plan does not exist or is inactive.
            ConflictError: If the plan has no Stripe price, or is not priced
                above the tenant's current snapshot.
            ProviderError: If Stripe fails.
        """
        log = self.log.with_context(tenant_id=str(tenant_id), operation="create_checkout")

        plan = await self.repository.get_plan(self.db, plan_id)
        if plan is None or not plan.is_active:
            raise NotFoundException("Plan not found")
        if not plan.provider_price_id:
            raise ConflictError(f"Plan {plan.name} has no Stripe price configured")

        existing = await self.repository.get_subscription(self.db, tenant_id)
        previous_price = existing.snapshot_price_monthly_cents if existing else None
        if not is_upgrade(plan.price_monthly_cents, previous_price):
            raise ConflictError("You can only upgrade to a higher-priced plan")

        customer_id = await self.stripe.find_or_create_customer(
            email, metadata={"tenant_id": str(tenant_id)}
        )
        session = await self.stripe.create_checkout_session(
            customer_id,
            plan.provider_price_id,
            success_url,
            cancel_url,
            metadata={"tenant_id": str(tenant_id), "plan_id": str(plan.id)},
        )

        log.info(f"Created checkout session {session.id} for plan {plan.name}")
        return schemas.CheckoutResult(url=session.url)
