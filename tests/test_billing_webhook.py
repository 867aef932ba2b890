"""
Tests for the Stripe webhook and checkout session endpoints
"""
import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import stripe

from crud.usage_record import UsageRepository
from services import billing_service

EMAIL = "user@example.com"


def _event(event_type, customer="cus_123", **fields):
    return json.dumps({
        "id": "evt_test",
        "type": event_type,
        "data": {"object": {"customer": customer, **fields}},
    })


async def _seed_customer(session_factory, customer_id="cus_123", usage_count=0):
    async with session_factory() as session:
        repository = UsageRepository(session)
        record = await repository.get_or_create(EMAIL)
        record.usage_count = usage_count
        await repository.set_billing_customer_id(record, customer_id)


async def _record(session_factory, email=EMAIL):
    async with session_factory() as session:
        return await UsageRepository(session).get_by_email(email)


async def _post_webhook(async_client, payload, signature):
    headers = {"content-type": "application/json"}
    if signature is not None:
        headers["stripe-signature"] = signature
    return await async_client.post("/webhook", content=payload, headers=headers)


# ============================================================================
# /webhook
# ============================================================================

@pytest.mark.asyncio
async def test_subscription_active_grants_entitlement(async_client, session_factory, sign_webhook):
    await _seed_customer(session_factory, usage_count=7)
    payload = _event("customer.subscription.created", status="active")

    response = await _post_webhook(async_client, payload, sign_webhook(payload))

    assert response.status_code == 200
    body = response.json()
    assert body["received"] is True
    assert body["event_type"] == "customer.subscription.created"
    assert body["handled"] is True

    record = await _record(session_factory)
    assert record.has_paid is True
    assert record.subscription_status == "active"
    assert record.usage_count == 7


@pytest.mark.asyncio
async def test_subscription_canceled_revokes_entitlement(async_client, session_factory, sign_webhook):
    await _seed_customer(session_factory)
    active = _event("customer.subscription.updated", status="active")
    await _post_webhook(async_client, active, sign_webhook(active))

    payload = _event("customer.subscription.deleted", status="canceled")
    response = await _post_webhook(async_client, payload, sign_webhook(payload))

    assert response.status_code == 200
    record = await _record(session_factory)
    assert record.has_paid is False
    assert record.subscription_status == "canceled"


@pytest.mark.asyncio
async def test_payment_failed_marks_past_due(async_client, session_factory, sign_webhook):
    await _seed_customer(session_factory)
    payload = _event("invoice.payment_failed")

    response = await _post_webhook(async_client, payload, sign_webhook(payload))

    assert response.status_code == 200
    record = await _record(session_factory)
    assert record.subscription_status == "past_due"
    assert record.has_paid is False


@pytest.mark.asyncio
async def test_invalid_signature_is_rejected_without_changes(async_client, session_factory, sign_webhook):
    await _seed_customer(session_factory)
    payload = _event("customer.subscription.created", status="active")

    response = await _post_webhook(async_client, payload, sign_webhook(payload, secret="whsec_wrong"))

    assert response.status_code == 400
    assert response.json()["code"] == "invalid_webhook_signature"
    record = await _record(session_factory)
    assert record.has_paid is False
    assert record.subscription_status is None


@pytest.mark.asyncio
async def test_missing_signature_header_is_rejected(async_client):
    payload = _event("customer.subscription.created", status="active")

    response = await _post_webhook(async_client, payload, None)

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_tampered_payload_is_rejected(async_client, session_factory, sign_webhook):
    await _seed_customer(session_factory)
    signed = _event("customer.subscription.created", status="incomplete")
    tampered = _event("customer.subscription.created", status="active")

    response = await _post_webhook(async_client, tampered, sign_webhook(signed))

    assert response.status_code == 400
    assert (await _record(session_factory)).has_paid is False


@pytest.mark.asyncio
async def test_unknown_customer_is_acknowledged(async_client, session_factory, sign_webhook):
    await _seed_customer(session_factory)
    payload = _event("customer.subscription.created", customer="cus_unknown", status="active")

    response = await _post_webhook(async_client, payload, sign_webhook(payload))

    assert response.status_code == 200
    assert response.json()["handled"] is False
    assert (await _record(session_factory)).has_paid is False


@pytest.mark.asyncio
async def test_unhandled_event_type_is_acknowledged(async_client, sign_webhook):
    payload = _event("charge.refunded")

    response = await _post_webhook(async_client, payload, sign_webhook(payload))

    assert response.status_code == 200
    body = response.json()
    assert body["event_type"] == "charge.refunded"
    assert body["handled"] is False


# ============================================================================
# /create-checkout-session
# ============================================================================

@pytest.fixture
def stripe_api(monkeypatch):
    """Replace the Stripe resources used by BillingService."""
    api = SimpleNamespace(
        customer_create=MagicMock(return_value=SimpleNamespace(id="cus_new")),
        customer_retrieve=MagicMock(return_value=SimpleNamespace(id="cus_123")),
        session_create=MagicMock(return_value=SimpleNamespace(id="cs_test_1")),
    )
    monkeypatch.setattr(billing_service.stripe.Customer, "create", api.customer_create)
    monkeypatch.setattr(billing_service.stripe.Customer, "retrieve", api.customer_retrieve)
    monkeypatch.setattr(billing_service.stripe.checkout.Session, "create", api.session_create)
    return api


@pytest.mark.asyncio
async def test_checkout_creates_customer_once(async_client, auth_headers, session_factory, stripe_api):
    response = await async_client.post("/create-checkout-session", headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {"sessionId": "cs_test_1"}
    stripe_api.customer_create.assert_called_once()
    assert stripe_api.customer_create.call_args.kwargs["email"] == EMAIL

    session_kwargs = stripe_api.session_create.call_args.kwargs
    assert session_kwargs["customer"] == "cus_new"
    assert session_kwargs["mode"] == "subscription"
    assert session_kwargs["line_items"] == [{"price": "price_test_123", "quantity": 1}]
    assert session_kwargs["api_key"] == "sk_test_123"

    assert (await _record(session_factory)).billing_customer_id == "cus_new"


@pytest.mark.asyncio
async def test_checkout_reuses_stored_customer(async_client, auth_headers, session_factory, stripe_api):
    await _seed_customer(session_factory, customer_id="cus_123")

    response = await async_client.post("/create-checkout-session", headers=auth_headers)

    assert response.status_code == 200
    stripe_api.customer_create.assert_not_called()
    assert stripe_api.customer_retrieve.call_args.args[0] == "cus_123"
    assert stripe_api.session_create.call_args.kwargs["customer"] == "cus_123"


@pytest.mark.asyncio
async def test_checkout_stripe_failure_is_500(async_client, auth_headers, stripe_api):
    stripe_api.session_create.side_effect = stripe.APIConnectionError("network down")

    response = await async_client.post("/create-checkout-session", headers=auth_headers)

    assert response.status_code == 500
    assert response.json()["code"] == "billing_unavailable"


@pytest.mark.asyncio
async def test_checkout_requires_authorization(async_client, stripe_api):
    response = await async_client.post("/create-checkout-session")

    assert response.status_code == 401
    stripe_api.session_create.assert_not_called()
