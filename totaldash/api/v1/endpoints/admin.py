"""Super-admin endpoints: catalog sync, manual linking and scheduled jobs."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from totaldash import schemas
from totaldash.api import deps
from totaldash.api.context import ApiContext
from totaldash.api.router import TrailingSlashRouter
from totaldash.billing.link_service import SubscriptionLinkService
from totaldash.billing.plan_sync_service import PlanSyncService
from totaldash.billing.reminder_service import TrialReminderService
from totaldash.integrations.notification_client import NotificationClient
from totaldash.integrations.stripe_client import StripeClient

router = TrailingSlashRouter()


@router.post("/plans/sync", response_model=schemas.PlanSyncResult)
async def sync_plans(
    db: AsyncSession = Depends(deps.get_db),
    ctx: ApiContext = Depends(deps.require_super_admin),
    stripe: StripeClient = Depends(deps.get_stripe_client),
) -> schemas.PlanSyncResult:
    """Mirror active monthly Stripe prices into the plan catalog."""
    return await PlanSyncService(db, stripe, log=ctx.logger).sync_plans(ctx.caller)


@router.post("/subscriptions/link", response_model=schemas.Subscription)
async def link_subscription(
    request: schemas.LinkSubscriptionRequest,
    db: AsyncSession = Depends(deps.get_db),
    ctx: ApiContext = Depends(deps.require_super_admin),
    stripe: StripeClient = Depends(deps.get_stripe_client),
) -> schemas.Subscription:
    """Adopt an existing Stripe subscription for a tenant with custom pricing."""
    service = SubscriptionLinkService(db, stripe, log=ctx.logger)
    return await service.link_subscription(
        ctx.caller, request.tenant_id, request.provider_subscription_id
    )


@router.post("/jobs/trial-reminders", response_model=schemas.ReminderRunResult)
async def run_trial_reminders(
    db: AsyncSession = Depends(deps.get_db),
    ctx: ApiContext = Depends(deps.require_super_admin),
    notifier: NotificationClient = Depends(deps.get_notification_client),
) -> schemas.ReminderRunResult:
    """Send due trial reminders. Called by the external scheduler."""
    return await TrialReminderService(db, notifier, log=ctx.logger).run()
