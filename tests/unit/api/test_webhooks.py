"""Unit tests for the billing webhook endpoint."""

import json
import time

import pytest

from totaldash import crud
from totaldash.api import deps
from totaldash.core.config import Settings
from totaldash.integrations.stripe_client import StripeClient
from totaldash.main import app
from tests.fixtures.common import WEBHOOK_SECRET, create_trialing_subscription, sign_payload


@pytest.fixture
def webhook_client(api_client):
    """API client whose Stripe client verifies signatures for real and has no API key."""
    stripe = StripeClient(Settings(STRIPE_WEBHOOK_SECRET=WEBHOOK_SECRET, _env_file=None))
    app.dependency_overrides[deps.get_stripe_client] = lambda: stripe
    return api_client


def _payload(event_type: str, obj: dict) -> str:
    return json.dumps(
        {
            "id": "evt_123",
            "object": "event",
            "type": event_type,
            "created": int(time.time()),
            "data": {"object": obj},
        }
    )


async def _post(client, payload: str, signature: str = None):
    headers = {"Content-Type": "application/json"}
    if signature:
        headers["Stripe-Signature"] = signature
    return await client.post("/webhooks/billing", content=payload, headers=headers)


async def test_unhandled_event_is_acknowledged(webhook_client):
    payload = _payload("customer.created", {"id": "cus_123"})

    response = await _post(webhook_client, payload, sign_payload(payload))

    assert response.status_code == 200
    assert response.json() == {"received": True}


async def test_trailing_slash_is_accepted(webhook_client):
    payload = _payload("customer.created", {"id": "cus_123"})

    response = await webhook_client.post(
        "/webhooks/billing/",
        content=payload,
        headers={"Stripe-Signature": sign_payload(payload)},
    )

    assert response.status_code == 200


async def test_missing_signature_is_400(webhook_client):
    response = await _post(webhook_client, _payload("customer.created", {"id": "cus_123"}))

    assert response.status_code == 400


async def test_wrong_secret_is_400(webhook_client):
    payload = _payload("customer.created", {"id": "cus_123"})

    response = await _post(webhook_client, payload, sign_payload(payload, secret="whsec_other"))

    assert response.status_code == 400


async def test_stale_signature_is_400(webhook_client):
    payload = _payload("customer.created", {"id": "cus_123"})
    stale = sign_payload(payload, timestamp=int(time.time()) - 3600)

    response = await _post(webhook_client, payload, stale)

    assert response.status_code == 400


async def test_subscription_deleted_cancels_row(
    webhook_client, db_session, tenant_id, starter_plan, mock_notifier
):
    await create_trialing_subscription(db_session, tenant_id, starter_plan, status="active")
    payload = _payload(
        "customer.subscription.deleted",
        {"id": "sub_123", "object": "subscription", "status": "canceled"},
    )

    first = await _post(webhook_client, payload, sign_payload(payload))
    second = await _post(webhook_client, payload, sign_payload(payload))

    assert first.status_code == 200
    assert second.status_code == 200
    stored = await crud.subscription.get_by_tenant(db_session, tenant_id=tenant_id)
    assert stored.status == "canceled"
    assert mock_notifier.send_best_effort.await_count == 1


async def test_malformed_handled_event_is_acknowledged(webhook_client):
    payload = _payload("customer.subscription.updated", {"id": "sub_123"})

    response = await _post(webhook_client, payload, sign_payload(payload))

    assert response.status_code == 200


async def test_non_numeric_timestamp_is_acknowledged(webhook_client):
    payload = json.dumps(
        {
            "id": "evt_123",
            "type": "customer.subscription.deleted",
            "created": "yesterday",
            "data": {"object": {"id": "sub_123", "status": "canceled"}},
        }
    )

    response = await _post(webhook_client, payload, sign_payload(payload))

    assert response.status_code == 200


async def test_non_object_metadata_is_acknowledged(webhook_client):
    payload = _payload(
        "checkout.session.completed",
        {"id": "cs_123", "customer": "cus_123", "metadata": "tenant=abc"},
    )

    response = await _post(webhook_client, payload, sign_payload(payload))

    assert response.status_code == 200


async def test_handling_failure_is_500_for_redelivery(
    webhook_client, db_session, tenant_id, starter_plan
):
    # Checkout completion reads the subscription from Stripe, which has no API key here
    payload = _payload(
        "checkout.session.completed",
        {
            "id": "cs_123",
            "customer": "cus_123",
            "subscription": "sub_paid",
            "metadata": {"tenant_id": str(tenant_id), "plan_id": str(starter_plan.id)},
        },
    )

    response = await _post(webhook_client, payload, sign_payload(payload))

    assert response.status_code == 500
    assert await crud.subscription.get_by_tenant(db_session, tenant_id=tenant_id) is None
