"""Tenant-facing subscription endpoints."""

from typing import Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from totaldash import schemas
from totaldash.api import deps
from totaldash.api.context import ApiContext
from totaldash.api.router import TrailingSlashRouter
from totaldash.billing.checkout_service import CheckoutService
from totaldash.billing.status_service import SubscriptionStatusService
from totaldash.billing.trial_service import TrialService
from totaldash.core.exceptions import DataValidationError
from totaldash.integrations.notification_client import NotificationClient
from totaldash.integrations.stripe_client import StripeClient

router = TrailingSlashRouter()


@router.post("/trial", response_model=schemas.TrialStartResult)
async def start_trial(
    request: schemas.TrialStartRequest,
    db: AsyncSession = Depends(deps.get_db),
    ctx: ApiContext = Depends(deps.get_context),
    stripe: StripeClient = Depends(deps.get_stripe_client),
    notifier: NotificationClient = Depends(deps.get_notification_client),
) -> schemas.TrialStartResult:
    """Start a trial on the entry-level plan for a tenant.

    Args:
        request: Tenant and owner email
        db: Database session
        ctx: API context
        stripe: Stripe client
        notifier: Notification client

    Returns:
        The trial's Stripe subscription ID, end date and card-collection secret
    """
    tenant_id = ctx.resolve_tenant(request.tenant_id)
    service = TrialService(db, stripe, notifier, log=ctx.logger)
    return await service.start_trial(tenant_id, request.owner_email)


@router.post("/trial/cancel", response_model=schemas.TrialCancelResult)
async def cancel_trial(
    request: Optional[schemas.TrialCancelRequest] = None,
    db: AsyncSession = Depends(deps.get_db),
    ctx: ApiContext = Depends(deps.get_context),
    stripe: StripeClient = Depends(deps.get_stripe_client),
    notifier: NotificationClient = Depends(deps.get_notification_client),
) -> schemas.TrialCancelResult:
    """Cancel the tenant's trial immediately.

    Only trials can be canceled here; anything else is a 409.
    """
    tenant_id = ctx.resolve_tenant(request.tenant_id if request else None)
    service = TrialService(db, stripe, notifier, log=ctx.logger)
    return await service.cancel_trial(tenant_id, recipient_email=ctx.caller.email)


@router.get("/status", response_model=schemas.SubscriptionStatusResponse)
async def get_subscription_status(
    db: AsyncSession = Depends(deps.get_db),
    ctx: ApiContext = Depends(deps.get_context),
    stripe: StripeClient = Depends(deps.get_stripe_client),
) -> schemas.SubscriptionStatusResponse:
    """Get the tenant's subscription status, refreshed from Stripe."""
    service = SubscriptionStatusService(db, stripe, log=ctx.logger)
    return await service.get_status(ctx.resolve_tenant())


@router.post("/checkout", response_model=schemas.CheckoutResult)
async def create_checkout(
    request: schemas.CheckoutRequest,
    db: AsyncSession = Depends(deps.get_db),
    ctx: ApiContext = Depends(deps.get_context),
    stripe: StripeClient = Depends(deps.get_stripe_client),
) -> schemas.CheckoutResult:
    """Create a Stripe checkout session to upgrade the tenant's plan.

    Returns:
        The checkout URL to redirect the user to
    """
    if not ctx.caller.email:
        raise DataValidationError("Caller has no email for the billing customer", "email")

    tenant_id = ctx.resolve_tenant(request.tenant_id)
    service = CheckoutService(db, stripe, log=ctx.logger)
    return await service.create_checkout(
        tenant_id,
        request.plan_id,
        ctx.caller.email,
        request.success_url,
        request.cancel_url,
    )
