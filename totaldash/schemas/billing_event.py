"""Billing webhook event schemas.

Verified Stripe payloads are decoded exactly once, at the webhook boundary,
into one of a closed set of variants. Event types the engine does not act on
become ``UnhandledEvent`` so new provider event types are acknowledged rather
than rejected.
"""

from datetime import datetime
from typing import Any, Callable, Optional, Union

from pydantic import BaseModel, ConfigDict

from totaldash.core.datetime_utils import from_unix_naive, utc_now_naive
from totaldash.schemas.billing_provider import ProviderSubscription, _get, _id_of


class BillingEventBase(BaseModel):
    """Fields shared by every decoded event."""

    model_config = ConfigDict(frozen=True)

    event_id: str
    event_type: str
    created: datetime


class CheckoutSessionCompleted(BillingEventBase):
    """A hosted checkout finished; metadata names the tenant and plan."""

    session_id: str
    tenant_id: Optional[str] = None
    plan_id: Optional[str] = None
    customer_id: Optional[str] = None
    subscription_id: Optional[str] = None
    customer_email: Optional[str] = None


class SubscriptionUpdated(BillingEventBase):
    """The provider changed a subscription's status or period.

    ``previous_status`` is set only when the status itself changed in this event.
    """

    subscription: ProviderSubscription
    previous_status: Optional[str] = None


class SubscriptionTrialWillEnd(BillingEventBase):
    """Stripe's advance notice that a trial ends soon."""

    subscription: ProviderSubscription


class SubscriptionDeleted(BillingEventBase):
    """The provider ended a subscription."""

    subscription: ProviderSubscription


class InvoicePaymentFailed(BillingEventBase):
    """A renewal or first invoice could not be charged."""

    invoice_id: str
    subscription_id: Optional[str] = None
    customer_id: Optional[str] = None


class UnhandledEvent(BillingEventBase):
    """Any event type the engine does not act on."""

    raw_type: str


BillingEvent = Union[
    CheckoutSessionCompleted,
    SubscriptionUpdated,
    SubscriptionTrialWillEnd,
    SubscriptionDeleted,
    InvoicePaymentFailed,
    UnhandledEvent,
]


def _invoice_subscription_id(invoice: Any) -> Optional[str]:
    # Moved under parent.subscription_details in newer API versions
    subscription = _get(invoice, "subscription")
    if subscription:
        return _id_of(subscription)
    details = _get(_get(invoice, "parent"), "subscription_details")
    return _id_of(_get(details, "subscription"))


def _decode_checkout(base: dict, data: Any) -> CheckoutSessionCompleted:
    obj = _get(data, "object")
    metadata = _get(obj, "metadata") or {}
    details = _get(obj, "customer_details")
    return CheckoutSessionCompleted(
        **base,
        session_id=_get(obj, "id"),
        tenant_id=metadata.get("tenant_id") or None,
        plan_id=metadata.get("plan_id") or None,
        customer_id=_id_of(_get(obj, "customer")),
        subscription_id=_id_of(_get(obj, "subscription")),
        customer_email=_get(details, "email") or _get(obj, "customer_email"),
    )


def _decode_updated(base: dict, data: Any) -> SubscriptionUpdated:
    previous = _get(data, "previous_attributes")
    return SubscriptionUpdated(
        **base,
        subscription=ProviderSubscription.from_stripe(_get(data, "object")),
        previous_status=_get(previous, "status"),
    )


def _decode_trial_will_end(base: dict, data: Any) -> SubscriptionTrialWillEnd:
    return SubscriptionTrialWillEnd(
        **base, subscription=ProviderSubscription.from_stripe(_get(data, "object"))
    )


def _decode_deleted(base: dict, data: Any) -> SubscriptionDeleted:
    return SubscriptionDeleted(
        **base, subscription=ProviderSubscription.from_stripe(_get(data, "object"))
    )


def _decode_payment_failed(base: dict, data: Any) -> InvoicePaymentFailed:
    obj = _get(data, "object")
    return InvoicePaymentFailed(
        **base,
        invoice_id=_get(obj, "id"),
        subscription_id=_invoice_subscription_id(obj),
        customer_id=_id_of(_get(obj, "customer")),
    )


_DECODERS: dict[str, Callable[[dict, Any], BillingEvent]] = {
    "checkout.session.completed": _decode_checkout,
    "customer.subscription.updated": _decode_updated,
    "customer.subscription.trial_will_end": _decode_trial_will_end,
    "customer.subscription.deleted": _decode_deleted,
    "invoice.payment_failed": _decode_payment_failed,
}


def decode_event(payload: Any) -> BillingEvent:
    """Decode a verified Stripe event payload into a typed event.

    Args:
        payload: The parsed event JSON (dict) or a ``stripe.Event``.

    Returns:
        One of the BillingEvent variants.

    Raises:
        pydantic.ValidationError: If a handled event type lacks a required field.
        ValueError, TypeError, AttributeError: If a field has the wrong shape,
            such as a non-numeric timestamp or non-object metadata.
    """
    event_type = _get(payload, "type") or ""
    created = from_unix_naive(_get(payload, "created")) or utc_now_naive()
    base = {"event_id": _get(payload, "id") or "", "event_type": event_type, "created": created}

    decoder = _DECODERS.get(event_type)
    if decoder is None:
        return UnhandledEvent(**base, raw_type=event_type)

    return decoder(base, _get(payload, "data"))
