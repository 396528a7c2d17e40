"""Unit tests for decoding Stripe webhook payloads."""

from datetime import datetime

import pytest
from pydantic import ValidationError

from totaldash import schemas
from totaldash.schemas import decode_event

CREATED = 1767225600  # 2026-01-01T00:00:00Z
PERIOD_START = 1767225600
PERIOD_END = 1769904000  # 2026-02-01T00:00:00Z


def _event(event_type: str, obj: dict) -> dict:
    return {
        "id": "evt_123",
        "object": "event",
        "type": event_type,
        "created": CREATED,
        "data": {"object": obj},
    }


def test_checkout_session_completed():
    event = decode_event(
        _event(
            "checkout.session.completed",
            {
                "id": "cs_123",
                "object": "checkout.session",
                "customer": "cus_123",
                "subscription": "sub_123",
                "customer_details": {"email": "billing@agency.com"},
                "metadata": {"tenant_id": "0b7c3f0e-2f51-4d4e-9a53-0f6f1b0d7c11", "plan_id": ""},
            },
        )
    )

    assert isinstance(event, schemas.CheckoutSessionCompleted)
    assert event.event_id == "evt_123"
    assert event.created == datetime(2026, 1, 1)
    assert event.session_id == "cs_123"
    assert event.tenant_id == "0b7c3f0e-2f51-4d4e-9a53-0f6f1b0d7c11"
    assert event.plan_id is None
    assert event.customer_id == "cus_123"
    assert event.subscription_id == "sub_123"
    assert event.customer_email == "billing@agency.com"


def test_subscription_updated_reads_period_from_items():
    event = decode_event(
        _event(
            "customer.subscription.updated",
            {
                "id": "sub_123",
                "object": "subscription",
                "customer": {"id": "cus_123", "object": "customer"},
                "status": "active",
                "trial_end": None,
                "items": {
                    "data": [
                        {
                            "current_period_start": PERIOD_START,
                            "current_period_end": PERIOD_END,
                            "price": {
                                "id": "price_pro",
                                "unit_amount": 9900,
                                "recurring": {"interval": "month"},
                                "product": "prod_pro",
                            },
                        }
                    ]
                },
                "metadata": {"tenant_id": "abc"},
            },
        )
    )

    assert isinstance(event, schemas.SubscriptionUpdated)
    subscription = event.subscription
    assert subscription.id == "sub_123"
    assert subscription.customer_id == "cus_123"
    assert subscription.status == "active"
    assert subscription.current_period_start == datetime(2026, 1, 1)
    assert subscription.current_period_end == datetime(2026, 2, 1)
    assert subscription.trial_end is None
    assert subscription.price.id == "price_pro"
    assert subscription.price.interval == "month"
    assert subscription.price.product_id == "prod_pro"
    assert subscription.price.product_name is None
    assert subscription.metadata == {"tenant_id": "abc"}


def test_subscription_deleted():
    event = decode_event(
        _event(
            "customer.subscription.deleted",
            {
                "id": "sub_123",
                "status": "canceled",
                "current_period_start": PERIOD_START,
                "current_period_end": PERIOD_END,
                "canceled_at": PERIOD_END,
            },
        )
    )

    assert isinstance(event, schemas.SubscriptionDeleted)
    assert event.subscription.canceled_at == datetime(2026, 2, 1)


def test_invoice_payment_failed_with_parent_details():
    event = decode_event(
        _event(
            "invoice.payment_failed",
            {
                "id": "in_123",
                "customer": "cus_123",
                "parent": {"subscription_details": {"subscription": "sub_123"}},
            },
        )
    )

    assert isinstance(event, schemas.InvoicePaymentFailed)
    assert event.invoice_id == "in_123"
    assert event.subscription_id == "sub_123"


def test_invoice_payment_failed_with_top_level_subscription():
    event = decode_event(
        _event("invoice.payment_failed", {"id": "in_123", "subscription": "sub_legacy"})
    )

    assert event.subscription_id == "sub_legacy"


def test_unknown_event_type_is_unhandled():
    event = decode_event(_event("customer.created", {"id": "cus_123"}))

    assert isinstance(event, schemas.UnhandledEvent)
    assert event.raw_type == "customer.created"


def test_handled_event_missing_required_field():
    with pytest.raises(ValidationError):
        decode_event(_event("customer.subscription.updated", {"id": "sub_123"}))


def test_subscription_updated_reads_previous_status():
    payload = _event("customer.subscription.updated", {"id": "sub_123", "status": "active"})
    payload["data"]["previous_attributes"] = {"status": "trialing"}

    event = decode_event(payload)

    assert event.previous_status == "trialing"


def test_subscription_updated_without_status_change():
    payload = _event("customer.subscription.updated", {"id": "sub_123", "status": "active"})
    payload["data"]["previous_attributes"] = {"cancel_at_period_end": True}

    event = decode_event(payload)

    assert event.previous_status is None


def test_trial_will_end():
    event = decode_event(
        _event(
            "customer.subscription.trial_will_end",
            {"id": "sub_123", "status": "trialing", "trial_end": PERIOD_END},
        )
    )

    assert isinstance(event, schemas.SubscriptionTrialWillEnd)
    assert event.subscription.trial_end == datetime(2026, 2, 1)


def test_non_numeric_timestamp_is_rejected():
    payload = _event("customer.subscription.deleted", {"id": "sub_123", "status": "canceled"})
    payload["created"] = "yesterday"

    with pytest.raises(ValueError):
        decode_event(payload)
