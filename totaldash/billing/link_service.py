"""Manual linking of out-of-catalog Stripe subscriptions."""

from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from totaldash import schemas
from totaldash.billing.billing_data_access import BillingRepository
from totaldash.billing.plan_logic import map_provider_status, snapshot_from_provider_price
from totaldash.core.datetime_utils import utc_now_naive
from totaldash.core.exceptions import AuthorizationError
from totaldash.core.logging import ContextualLogger, logger
from totaldash.integrations.stripe_client import StripeClient


class SubscriptionLinkService:
    """Adopts a Stripe subscription created outside the trial and checkout flows."""

    def __init__(
        self,
        db: AsyncSession,
        stripe: StripeClient,
        log: Optional[ContextualLogger] = None,
    ):
        """Initialize the link service."""
        self.db = db
        self.stripe = stripe
        self.repository = BillingRepository()
        self.log = log or logger

    async def link_subscription(
        self,
        caller: schemas.AuthContext,
        tenant_id: UUID,
        provider_subscription_id: str,
    ) -> schemas.Subscription:
        """Link a Stripe subscription to a tenant with custom pricing.

        The snapshot comes from the Stripe price and product, with unlimited
        capacity; no catalog plan is involved.

        Raises:
            AuthorizationError: If the caller is not a super-admin.
            ProviderError: If Stripe cannot return the subscription.
        """
        if not caller.is_super_admin:
            raise AuthorizationError("Only super admins can link subscriptions")

        log = self.log.with_context(tenant_id=str(tenant_id), operation="link_subscription")

        provider_subscription = await self.stripe.get_subscription(
            provider_subscription_id, expand_product=True
        )
        mapped = map_provider_status(provider_subscription.status)

        subscription = await self.repository.save_subscription(
            self.db,
            tenant_id,
            {
                "plan_id": None,
                "provider_customer_id": provider_subscription.customer_id,
                "provider_subscription_id": provider_subscription.id,
                "status": mapped.status.value,
                "provider_status": mapped.provider_status,
                "current_period_start": provider_subscription.current_period_start,
                "current_period_end": provider_subscription.current_period_end,
                "trial_ends_at": provider_subscription.trial_end,
                "canceled_at": provider_subscription.canceled_at,
                "grace_period_ends_at": None,
                "custom_pricing": True,
            },
            snapshot=snapshot_from_provider_price(provider_subscription.price, utc_now_naive()),
        )

        log.info(f"Linked Stripe subscription {provider_subscription.id} ({mapped.status.value})")
        return schemas.Subscription.model_validate(subscription)
