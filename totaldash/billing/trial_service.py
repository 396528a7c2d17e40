"""Trial lifecycle: starting and canceling trial subscriptions."""

from datetime import timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from totaldash.billing.billing_data_access import BillingRepository
from totaldash.billing.plan_logic import snapshot_from_plan
from totaldash.core.config import Settings, settings
from totaldash.core.datetime_utils import utc_now_naive
from totaldash.core.exceptions import ConflictError, NotFoundException, ProviderError
from totaldash.core.logging import ContextualLogger, logger
from totaldash.integrations.notification_client import NotificationClient, NotificationTemplate
from totaldash.integrations.stripe_client import StripeClient
from totaldash.schemas.subscription import SubscriptionStatus, TrialCancelResult, TrialStartResult

# Statuses that already hold a live provider subscription
_LIVE_STATUSES = frozenset(
    {
        SubscriptionStatus.TRIALING.value,
        SubscriptionStatus.ACTIVE.value,
        SubscriptionStatus.PAST_DUE.value,
    }
)


class TrialService:
    """Starts and cancels trials on the entry-level plan."""

    def __init__(
        self,
        db: AsyncSession,
        stripe: StripeClient,
        notifier: NotificationClient,
        config: Settings = settings,
        log: Optional[ContextualLogger] = None,
    ):
        """Initialize the trial service for one unit of work."""
        self.db = db
        self.stripe = stripe
        self.notifier = notifier
        self.config = config
        self.repository = BillingRepository()
        self.log = log or logger

    async def start_trial(self, tenant_id: UUID, owner_email: str) -> TrialStartResult:
        """Start a trial on the entry-level plan.

        The provider subscription is created first and then persisted; if
        persisting fails the provider subscription is canceled again before the
        error propagates. The welcome notification is best-effort.

        Raises:
            NotFoundException: If the entry-level plan does not exist.
            ConflictError: If the tenant already has a live subscription, or the
                plan has trial days but no Stripe price.
            ProviderError: If Stripe fails or times out.
        """
        log = self.log.with_context(tenant_id=str(tenant_id), operation="start_trial")

        plan = await self.repository.get_active_plan_by_name(self.db, self.config.TRIAL_PLAN_NAME)
        if plan is None:
            raise NotFoundException(f"Trial plan '{self.config.TRIAL_PLAN_NAME}' not found")

        if plan.trial_duration_days <= 0:
            log.info(f"Plan {plan.name} has no trial period, skipping Stripe setup")
            return TrialStartResult(success=True, skipped_provider=True)

        if not plan.provider_price_id:
            raise ConflictError(f"Plan {plan.name} has no Stripe price configured")

        existing = await self.repository.get_subscription(self.db, tenant_id)
        if existing is not None and existing.status in _LIVE_STATUSES:
            raise ConflictError(f"Tenant already has a {existing.status} subscription")

        customer_id = await self.stripe.find_or_create_customer(
            owner_email, metadata={"tenant_id": str(tenant_id)}
        )
        created = await self.stripe.create_trial_subscription(
            customer_id,
            plan.provider_price_id,
            plan.trial_duration_days,
            metadata={"tenant_id": str(tenant_id), "plan_id": str(plan.id)},
        )
        provider_subscription = created.subscription
        log.info(f"Created trial subscription {provider_subscription.id} for customer {customer_id}")

        now = utc_now_naive()
        trial_ends_at = provider_subscription.trial_end or now + timedelta(
            days=plan.trial_duration_days
        )

        try:
            await self.repository.save_subscription(
                self.db,
                tenant_id,
                {
                    "plan_id": plan.id,
                    "provider_customer_id": customer_id,
                    "provider_subscription_id": provider_subscription.id,
                    "status": SubscriptionStatus.TRIALING.value,
                    "provider_status": provider_subscription.status,
                    "current_period_start": provider_subscription.current_period_start,
                    "current_period_end": provider_subscription.current_period_end,
                    "trial_ends_at": trial_ends_at,
                    "canceled_at": None,
                    "grace_period_ends_at": None,
                    "billing_email": owner_email,
                    "custom_pricing": False,
                    "last_reminder_window_hours": None,
                    "last_reminder_sent_at": None,
                },
                snapshot=snapshot_from_plan(plan, now),
            )
        except Exception:
            log.error(
                f"Failed to persist trial subscription {provider_subscription.id}, "
                "canceling it at Stripe",
                exc_info=True,
            )
            await self.db.rollback()
            await self._cancel_quietly(provider_subscription.id, log)
            raise

        await self.notifier.send_best_effort(
            NotificationTemplate.TRIAL_WELCOME,
            owner_email,
            {
                "userName": owner_email.split("@")[0],
                "planName": plan.name,
                "trialEndDate": trial_ends_at.date().isoformat(),
                "dashboardUrl": self.config.APP_FULL_URL,
                "supportEmail": self.config.SUPPORT_EMAIL,
            },
            log=log,
        )

        return TrialStartResult(
            success=True,
            subscription_id=provider_subscription.id,
            trial_ends_at=trial_ends_at,
            client_secret=created.client_secret,
        )

    async def _cancel_quietly(self, provider_subscription_id: str, log: ContextualLogger) -> None:
        try:
            await self.stripe.cancel_subscription(provider_subscription_id)
        except ProviderError as e:
            log.error(f"Compensating cancel of {provider_subscription_id} failed: {e}")

    async def cancel_trial(
        self, tenant_id: UUID, recipient_email: Optional[str] = None
    ) -> TrialCancelResult:
        """Cancel a trial immediately, at Stripe and locally.

        Raises:
            ConflictError: If the tenant has no subscription, or it is not a
                trial backed by Stripe.
            ProviderError: If Stripe fails or times out; the row is untouched.
        """
        log = self.log.with_context(tenant_id=str(tenant_id), operation="cancel_trial")

        subscription = await self.repository.get_subscription(self.db, tenant_id)
        if subscription is None:
            raise ConflictError("Only trials can be canceled here; tenant has no subscription")

        if subscription.status != SubscriptionStatus.TRIALING.value:
            raise ConflictError(
                f"Only trials can be canceled here; subscription is {subscription.status}"
            )
        if not subscription.provider_subscription_id:
            raise ConflictError("Trial has no Stripe subscription to cancel")

        provider_subscription_id = subscription.provider_subscription_id
        await self.stripe.cancel_subscription(provider_subscription_id)

        await self.repository.update_subscription(
            self.db,
            tenant_id,
            {
                "status": SubscriptionStatus.CANCELED.value,
                "provider_status": "canceled",
                "canceled_at": utc_now_naive(),
            },
        )
        log.info(f"Canceled trial subscription {provider_subscription_id}")

        await self.notifier.send_best_effort(
            NotificationTemplate.SUBSCRIPTION_CANCELED,
            recipient_email or subscription.billing_email,
            {
                "planName": subscription.snapshot_plan_name,
                "dashboardUrl": self.config.APP_FULL_URL,
                "supportEmail": self.config.SUPPORT_EMAIL,
            },
            log=log,
        )

        return TrialCancelResult(success=True)
