"""Reminder scheduler: trial-ending notifications.

Triggered externally on a fixed cadence. The narrowest window already sent is
kept on the subscription row, so a run that fires more often than the window
width sends nothing new.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from totaldash.billing.billing_data_access import BillingRepository
from totaldash.billing.plan_logic import (
    DEFAULT_MIN_PLAN_PRICE,
    LONGEST_REMINDER_WINDOW,
    TRIAL_DATA_RETENTION,
    format_price,
    select_reminder_window,
)
from totaldash.core.config import Settings, settings
from totaldash.core.datetime_utils import utc_now_naive
from totaldash.core.logging import ContextualLogger, logger
from totaldash.integrations.notification_client import NotificationClient, NotificationTemplate
from totaldash.schemas.subscription import ReminderRunResult


class TrialReminderService:
    """Sends at most one reminder per trial per window."""

    def __init__(
        self,
        db: AsyncSession,
        notifier: NotificationClient,
        config: Settings = settings,
        log: Optional[ContextualLogger] = None,
    ):
        """Initialize the reminder service for one run."""
        self.db = db
        self.notifier = notifier
        self.config = config
        self.repository = BillingRepository()
        self.log = (log or logger).with_context(job="trial_reminders")

    async def run(self) -> ReminderRunResult:
        """Scan trials ending within the longest window and send due reminders."""
        now = utc_now_naive()
        result = ReminderRunResult()

        cheapest = await self.repository.get_cheapest_plan(self.db)
        min_plan_price = (
            format_price(cheapest.price_monthly_cents) if cheapest else DEFAULT_MIN_PLAN_PRICE
        )

        trials = await self.repository.get_trials_ending_before(
            self.db, now + LONGEST_REMINDER_WINDOW
        )
        self.log.info(f"Checking {len(trials)} trials for reminders")

        for subscription in trials:
            window = select_reminder_window(
                subscription.trial_ends_at, now, subscription.last_reminder_window_hours
            )
            if window is None:
                continue

            log = self.log.with_context(
                tenant_id=str(subscription.tenant_id), reminder_window_hours=window.hours
            )
            if not subscription.billing_email:
                log.warning("Trial has no billing email, skipping reminder")
                result.skipped += 1
                continue

            variables = {
                "userName": subscription.billing_email.split("@")[0],
                "planName": subscription.snapshot_plan_name,
                "trialEndDate": subscription.trial_ends_at.date().isoformat(),
                "minPlanPrice": min_plan_price,
                "subscriptionUrl": f"{self.config.APP_FULL_URL}/agency/subscription",
                "supportEmail": self.config.SUPPORT_EMAIL,
            }
            if window.template == NotificationTemplate.TRIAL_ENDED:
                data_delete_date = subscription.trial_ends_at + TRIAL_DATA_RETENTION
                variables["dataDeleteDate"] = data_delete_date.date().isoformat()

            sent = await self.notifier.send_best_effort(
                window.template, subscription.billing_email, variables, log=log
            )
            if not sent:
                result.skipped += 1
                continue

            # Only after a successful send, so failures are retried next run
            await self.repository.record_reminder(
                self.db, subscription.tenant_id, window.hours, now
            )
            result.emails_sent += 1
            setattr(result, window.counter, getattr(result, window.counter) + 1)
            log.info(f"Sent {window.template.value} reminder")

        self.log.info(
            f"Trial reminders done: {result.emails_sent} sent, {result.skipped} skipped"
        )
        return result
