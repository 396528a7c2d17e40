"""Status oracle: answers "is this tenant subscribed?" with a fresh provider read."""

from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from totaldash.billing.billing_data_access import BillingRepository
from totaldash.billing.plan_logic import is_subscribed, map_provider_status
from totaldash.core.exceptions import ProviderError
from totaldash.core.logging import ContextualLogger, logger
from totaldash.integrations.stripe_client import StripeClient
from totaldash.models import Subscription
from totaldash.schemas.subscription import SubscriptionStatus, SubscriptionStatusResponse


def _to_response(subscription: Subscription) -> SubscriptionStatusResponse:
    status = SubscriptionStatus(subscription.status)
    return SubscriptionStatusResponse(
        subscribed=is_subscribed(status),
        status=status,
        plan_id=subscription.plan_id,
        trial_ends_at=subscription.trial_ends_at,
        current_period_end=subscription.current_period_end,
    )


class SubscriptionStatusService:
    """Reads a tenant's status, reconciling it against Stripe on the way."""

    def __init__(
        self,
        db: AsyncSession,
        stripe: Optional[StripeClient],
        log: Optional[ContextualLogger] = None,
    ):
        """Initialize the status service for one unit of work."""
        self.db = db
        self.stripe = stripe
        self.repository = BillingRepository()
        self.log = log or logger

    async def get_status(self, tenant_id: UUID) -> SubscriptionStatusResponse:
        """Return the tenant's status, writing through any drift Stripe reports.

        A Stripe failure never fails the read; the stored status is returned.
        """
        log = self.log.with_context(tenant_id=str(tenant_id), operation="get_status")

        subscription = await self.repository.get_subscription(self.db, tenant_id)
        if subscription is None:
            return SubscriptionStatusResponse(
                subscribed=False, status=SubscriptionStatus.NO_SUBSCRIPTION
            )

        if not subscription.provider_subscription_id or self.stripe is None:
            return _to_response(subscription)

        try:
            provider_subscription = await self.stripe.get_subscription(
                subscription.provider_subscription_id
            )
        except ProviderError as e:
            log.warning(f"Stripe refresh failed, returning stored status: {e}")
            return _to_response(subscription)

        mapped = map_provider_status(provider_subscription.status)
        if not mapped.known:
            log.warning(f"Unknown Stripe status {mapped.provider_status}, treating as past_due")

        values = {}
        if subscription.status != mapped.status.value:
            values["status"] = mapped.status.value
        if subscription.provider_status != mapped.provider_status:
            values["provider_status"] = mapped.provider_status
        for field in ("current_period_start", "current_period_end"):
            provider_value = getattr(provider_subscription, field)
            if provider_value is not None and getattr(subscription, field) != provider_value:
                values[field] = provider_value

        if not values:
            return _to_response(subscription)

        if "status" in values:
            log.info(f"Status drift corrected: {subscription.status} -> {mapped.status.value}")
        updated = await self.repository.update_subscription(self.db, tenant_id, values)
        return _to_response(updated or subscription)
