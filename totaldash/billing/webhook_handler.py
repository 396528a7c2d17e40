"""Webhook processor for Stripe billing events.

Each handler sets absolute values carried by the event, keyed on the tenant
or on the Stripe subscription ID, so applying an event twice leaves the same
state as applying it once. Notifications fire only on the transition into a
state, which keeps them from repeating on redelivery. Trial-ending reminders
are gated by the reminder marker shared with the scheduled reminder job.
"""

from typing import Awaitable, Callable, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from totaldash.billing.billing_data_access import BillingRepository
from totaldash.billing.plan_logic import (
    PAYMENT_GRACE_PERIOD,
    days_remaining,
    format_price,
    map_provider_status,
    snapshot_from_plan,
    trial_will_end_window,
)
from totaldash.core.config import Settings, settings
from totaldash.core.datetime_utils import utc_now_naive
from totaldash.core.exceptions import DataValidationError
from totaldash.core.logging import ContextualLogger, logger
from totaldash.integrations.notification_client import NotificationClient, NotificationTemplate
from totaldash.integrations.stripe_client import StripeClient
from totaldash.schemas.billing_event import (
    BillingEvent,
    CheckoutSessionCompleted,
    InvoicePaymentFailed,
    SubscriptionDeleted,
    SubscriptionTrialWillEnd,
    SubscriptionUpdated,
    UnhandledEvent,
)
from totaldash.schemas.subscription import SubscriptionStatus


def _parse_uuid(value: Optional[str], field_name: str) -> UUID:
    if not value:
        raise DataValidationError(f"Missing {field_name} in checkout metadata", field_name)
    try:
        return UUID(value)
    except ValueError as e:
        raise DataValidationError(f"Invalid {field_name}: {value}", field_name) from e


class BillingWebhookProcessor:
    """Apply decoded Stripe events to subscription records."""

    def __init__(
        self,
        db: AsyncSession,
        stripe: StripeClient,
        notifier: NotificationClient,
        config: Settings = settings,
    ):
        """Initialize webhook processor."""
        self.db = db
        self.stripe = stripe
        self.notifier = notifier
        self.config = config
        self.repository = BillingRepository()

        # Event handler mapping
        self.handlers: dict[type, Callable[..., Awaitable[None]]] = {
            CheckoutSessionCompleted: self._handle_checkout_completed,
            SubscriptionUpdated: self._handle_subscription_updated,
            SubscriptionTrialWillEnd: self._handle_trial_will_end,
            SubscriptionDeleted: self._handle_subscription_deleted,
            InvoicePaymentFailed: self._handle_payment_failed,
        }

    def _create_context_logger(self, event: BillingEvent) -> ContextualLogger:
        """Create contextual logger with event and tenant context."""
        log = logger.with_context(
            auth_method="stripe_webhook",
            event_type=event.event_type,
            provider_event_id=event.event_id,
        )
        if isinstance(event, CheckoutSessionCompleted) and event.tenant_id:
            log = log.with_context(tenant_id=event.tenant_id)
        return log

    async def process_event(self, event: BillingEvent) -> None:
        """Process a decoded Stripe webhook event.

        Raises:
            ProviderError: If a Stripe lookup during handling fails, so the
                delivery is retried.
            SQLAlchemyError: If the write fails.
        """
        log = self._create_context_logger(event)

        handler = self.handlers.get(type(event))
        if handler is None:
            raw_type = event.raw_type if isinstance(event, UnhandledEvent) else event.event_type
            log.info(f"Unhandled webhook event type: {raw_type}")
            return

        try:
            log.info(f"Processing webhook event: {event.event_type}")
            await handler(event, log)
        except DataValidationError as e:
            # Redelivery cannot fix a malformed event
            log.error(f"Skipping {event.event_type}: {e.message}")
        except Exception as e:
            log.error(f"Error handling {event.event_type}: {e}", exc_info=True)
            raise

    # Event handlers

    async def _handle_checkout_completed(
        self, event: CheckoutSessionCompleted, log: ContextualLogger
    ) -> None:
        """Activate the tenant's subscription on the purchased plan."""
        tenant_id = _parse_uuid(event.tenant_id, "tenant_id")
        plan_id = _parse_uuid(event.plan_id, "plan_id")

        plan = await self.repository.get_plan(self.db, plan_id)
        if plan is None:
            log.error(f"Checkout {event.session_id} references unknown plan {plan_id}")
            return

        existing = await self.repository.get_subscription(self.db, tenant_id)
        keep_snapshot = (
            existing is not None
            and event.subscription_id is not None
            and existing.provider_subscription_id == event.subscription_id
            and existing.snapshot_plan_name is not None
        )

        values = {
            "plan_id": plan.id,
            "provider_customer_id": event.customer_id,
            "provider_subscription_id": event.subscription_id,
            "status": SubscriptionStatus.ACTIVE.value,
            "provider_status": "active",
            "trial_ends_at": None,
            "canceled_at": None,
            "grace_period_ends_at": None,
            "custom_pricing": False,
        }
        if event.customer_email:
            values["billing_email"] = event.customer_email

        if event.subscription_id:
            provider_subscription = await self.stripe.get_subscription(event.subscription_id)
            values["provider_status"] = provider_subscription.status
            values["current_period_start"] = provider_subscription.current_period_start
            values["current_period_end"] = provider_subscription.current_period_end

        snapshot = None if keep_snapshot else snapshot_from_plan(plan, event.created)
        await self.repository.save_subscription(self.db, tenant_id, values, snapshot=snapshot)

        log.info(f"Activated {plan.name} subscription {event.subscription_id}")

    async def _handle_subscription_updated(
        self, event: SubscriptionUpdated, log: ContextualLogger
    ) -> None:
        """Mirror the provider's status and period bounds."""
        provider_subscription = event.subscription
        existing = await self.repository.get_subscription_by_provider_id(
            self.db, provider_subscription.id
        )
        if existing is None:
            log.warning(f"No subscription found for {provider_subscription.id}")
            return

        log = log.with_context(tenant_id=str(existing.tenant_id))
        mapped = map_provider_status(provider_subscription.status)
        if not mapped.known:
            log.warning(f"Unknown Stripe status {mapped.provider_status}, treating as past_due")

        if event.previous_status is not None:
            left_trial = event.previous_status == "trialing"
        else:
            left_trial = existing.status == SubscriptionStatus.TRIALING.value
        # The first active write clears trial_ends_at, so redeliveries find nothing to convert
        converted = (
            mapped.status == SubscriptionStatus.ACTIVE
            and left_trial
            and existing.trial_ends_at is not None
        )

        values = {
            "status": mapped.status.value,
            "provider_status": mapped.provider_status,
        }
        if provider_subscription.current_period_start is not None:
            values["current_period_start"] = provider_subscription.current_period_start
        if provider_subscription.current_period_end is not None:
            values["current_period_end"] = provider_subscription.current_period_end
        if mapped.status == SubscriptionStatus.ACTIVE:
            values["grace_period_ends_at"] = None
            values["trial_ends_at"] = None
        if mapped.status == SubscriptionStatus.TRIALING and provider_subscription.trial_end:
            values["trial_ends_at"] = provider_subscription.trial_end

        await self.repository.update_by_provider_subscription(
            self.db, provider_subscription.id, values
        )
        log.info(f"Subscription {provider_subscription.id} is now {mapped.status.value}")

        if converted:
            await self.notifier.send_best_effort(
                NotificationTemplate.TRIAL_CONVERTED,
                existing.billing_email,
                {
                    "planName": existing.snapshot_plan_name,
                    "dashboardUrl": self.config.APP_FULL_URL,
                    "supportEmail": self.config.SUPPORT_EMAIL,
                },
                log=log,
            )

    async def _handle_trial_will_end(
        self, event: SubscriptionTrialWillEnd, log: ContextualLogger
    ) -> None:
        """Send the trial-ending reminder Stripe schedules ahead of trial end."""
        provider_subscription = event.subscription
        existing = await self.repository.get_subscription_by_provider_id(
            self.db, provider_subscription.id
        )
        if existing is None:
            log.warning(f"No subscription found for {provider_subscription.id}")
            return

        log = log.with_context(tenant_id=str(existing.tenant_id))
        if existing.status != SubscriptionStatus.TRIALING.value:
            log.info(f"Subscription is {existing.status}, no trial reminder needed")
            return

        trial_ends_at = provider_subscription.trial_end or existing.trial_ends_at
        if trial_ends_at is None:
            log.warning(f"Trial {provider_subscription.id} has no end date, skipping reminder")
            return

        now = utc_now_naive()
        window = trial_will_end_window(trial_ends_at, now, existing.last_reminder_window_hours)
        if window is None:
            log.info("Trial reminder for this window already sent")
            return

        variables = {
            "userName": (existing.billing_email or "").split("@")[0],
            "planName": existing.snapshot_plan_name,
            "daysRemaining": str(days_remaining(trial_ends_at, now)),
            "trialEndDate": trial_ends_at.date().isoformat(),
            "subscriptionUrl": f"{self.config.APP_FULL_URL}/agency/subscription",
            "supportEmail": self.config.SUPPORT_EMAIL,
        }
        if existing.snapshot_price_monthly_cents is not None:
            variables["monthlyPrice"] = format_price(existing.snapshot_price_monthly_cents)

        sent = await self.notifier.send_best_effort(
            window.template, existing.billing_email, variables, log=log
        )
        if sent:
            await self.repository.record_reminder(self.db, existing.tenant_id, window.hours, now)
            log.info(f"Sent {window.template.value} reminder")

    async def _handle_subscription_deleted(
        self, event: SubscriptionDeleted, log: ContextualLogger
    ) -> None:
        """Mark the subscription canceled."""
        provider_subscription = event.subscription
        existing = await self.repository.get_subscription_by_provider_id(
            self.db, provider_subscription.id
        )
        if existing is None:
            log.warning(f"No subscription found for {provider_subscription.id}")
            return

        log = log.with_context(tenant_id=str(existing.tenant_id))
        already_canceled = existing.status == SubscriptionStatus.CANCELED.value

        canceled_at = (
            provider_subscription.canceled_at or provider_subscription.ended_at or event.created
        )
        await self.repository.update_by_provider_subscription(
            self.db,
            provider_subscription.id,
            {
                "status": SubscriptionStatus.CANCELED.value,
                "provider_status": provider_subscription.status,
                "canceled_at": canceled_at,
            },
        )
        log.info(f"Subscription {provider_subscription.id} canceled")

        if not already_canceled:
            await self.notifier.send_best_effort(
                NotificationTemplate.SUBSCRIPTION_CANCELED,
                existing.billing_email,
                {
                    "planName": existing.snapshot_plan_name,
                    "dashboardUrl": self.config.APP_FULL_URL,
                    "supportEmail": self.config.SUPPORT_EMAIL,
                },
                log=log,
            )

    async def _handle_payment_failed(
        self, event: InvoicePaymentFailed, log: ContextualLogger
    ) -> None:
        """Move the subscription into past_due with a grace period."""
        if not event.subscription_id:
            log.info(f"Invoice {event.invoice_id} has no subscription, ignoring")
            return

        existing = await self.repository.get_subscription_by_provider_id(
            self.db, event.subscription_id
        )
        if existing is None:
            log.warning(f"No subscription found for {event.subscription_id}")
            return

        log = log.with_context(tenant_id=str(existing.tenant_id))
        already_past_due = existing.status == SubscriptionStatus.PAST_DUE.value

        grace_period_ends_at = event.created + PAYMENT_GRACE_PERIOD
        await self.repository.update_by_provider_subscription(
            self.db,
            event.subscription_id,
            {
                "status": SubscriptionStatus.PAST_DUE.value,
                "provider_status": "past_due",
                "grace_period_ends_at": grace_period_ends_at,
            },
        )
        log.warning(f"Payment failed for {event.subscription_id}, grace until {grace_period_ends_at}")

        if not already_past_due:
            await self.notifier.send_best_effort(
                NotificationTemplate.PAYMENT_FAILED,
                existing.billing_email,
                {
                    "planName": existing.snapshot_plan_name,
                    "gracePeriodEndDate": grace_period_ends_at.date().isoformat(),
                    "dashboardUrl": self.config.APP_FULL_URL,
                    "supportEmail": self.config.SUPPORT_EMAIL,
                },
                log=log,
            )
