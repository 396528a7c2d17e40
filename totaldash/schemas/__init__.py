# flake8: noqa: F401
"""Schemas for the application."""

from .auth import AuthContext
from .billing_event import (
    BillingEvent,
    CheckoutSessionCompleted,
    InvoicePaymentFailed,
    SubscriptionDeleted,
    SubscriptionTrialWillEnd,
    SubscriptionUpdated,
    UnhandledEvent,
    decode_event,
)
from .billing_provider import (
    ProviderCheckoutSession,
    ProviderPrice,
    ProviderSubscription,
    ProviderTrialSubscription,
)
from .plan import MinPlanPrice, Plan, PlanCreate, PlanSyncResult, PlanUpdate
from .subscription import (
    SUBSCRIBED_STATUSES,
    CheckoutRequest,
    CheckoutResult,
    LinkSubscriptionRequest,
    PlanSnapshot,
    ReminderRunResult,
    Subscription,
    SubscriptionStatus,
    SubscriptionStatusResponse,
    TrialCancelRequest,
    TrialCancelResult,
    TrialStartRequest,
    TrialStartResult,
)
