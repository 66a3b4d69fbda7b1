"""Unit tests for the Stripe client: form encoding, signatures, API calls."""

import json
import time
from urllib.parse import parse_qs

import pytest

from libs.common.errors import AuthenticationError, FieldValidationError, ProviderError
from services.functions_service.stripe_client import (
    CheckoutSession,
    encode_form,
    sign_payload,
    verify_signature,
)

SECRET = "whsec_test_123"

# ---------------------------------------------------------------------------
# Form encoding
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_encode_form_flattens_nested_values():
    pairs = encode_form(
        {
            "mode": "subscription",
            "line_items": [{"price": "price_1", "quantity": 1}],
            "payment_method_types": ["card"],
            "metadata": {"plan_name": "elite"},
            "allow_promotion_codes": True,
            "customer": None,
        }
    )

    assert pairs == [
        ("mode", "subscription"),
        ("line_items[0][price]", "price_1"),
        ("line_items[0][quantity]", "1"),
        ("payment_method_types[0]", "card"),
        ("metadata[plan_name]", "elite"),
        ("allow_promotion_codes", "true"),
    ]


@pytest.mark.unit
def test_checkout_session_from_expanded_payload():
    session = CheckoutSession.from_api(
        {
            "id": "cs_test_1",
            "payment_status": "paid",
            "customer": {"id": "cus_1", "email": "paul@test.com"},
            "subscription": "sub_1",
            "customer_details": {"email": "paul@test.com", "name": "Paul Coach"},
            "line_items": {"data": [{"price": {"id": "price_elite"}}]},
            "metadata": {"plan_name": "elite"},
        }
    )

    assert session.customer_id == "cus_1"
    assert session.subscription_id == "sub_1"
    assert session.customer_email == "paul@test.com"
    assert session.customer_name == "Paul Coach"
    assert session.price_id == "price_elite"


# ---------------------------------------------------------------------------
# Signatures
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_signed_payload_verifies():
    payload = b'{"id": "evt_1"}'
    verify_signature(payload, sign_payload(payload, SECRET), SECRET)


@pytest.mark.unit
def test_tampered_payload_is_rejected():
    header = sign_payload(b'{"id": "evt_1"}', SECRET)
    with pytest.raises(AuthenticationError, match="Invalid Stripe signature"):
        verify_signature(b'{"id": "evt_2"}', header, SECRET)


@pytest.mark.unit
def test_old_signature_is_rejected():
    payload = b"{}"
    header = sign_payload(payload, SECRET, timestamp=int(time.time()) - 3600)
    with pytest.raises(AuthenticationError, match="tolerance"):
        verify_signature(payload, header, SECRET)


@pytest.mark.unit
@pytest.mark.parametrize("header", [None, "", "v1=abc", "t=soon,v1=abc", "t=123"])
def test_malformed_headers_are_rejected(header):
    with pytest.raises(AuthenticationError):
        verify_signature(b"{}", header, SECRET, now=123)


@pytest.mark.unit
def test_construct_event(stripe_client):
    payload = json.dumps(
        {
            "id": "evt_1",
            "type": "invoice.paid",
            "created": 1700000000,
            "data": {"object": {"id": "in_1"}},
        }
    ).encode()

    event = stripe_client.construct_event(payload, sign_payload(payload, SECRET))

    assert event.type == "invoice.paid"
    assert event.object == {"id": "in_1"}


@pytest.mark.unit
def test_construct_event_rejects_malformed_body(stripe_client):
    payload = b'{"id": "evt_1"}'
    with pytest.raises(FieldValidationError):
        stripe_client.construct_event(payload, sign_payload(payload, SECRET))


# ---------------------------------------------------------------------------
# API calls
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_create_checkout_session_posts_form(stripe_client, stripe_api):
    stripe_api.route(
        "POST",
        "/v1/checkout/sessions",
        json={"id": "cs_test_1", "url": "https://checkout.stripe.test/cs_test_1"},
    )

    session = await stripe_client.create_checkout_session(
        "price_elite",
        "elite",
        "https://app.byw.test/success?session_id={CHECKOUT_SESSION_ID}",
        "https://app.byw.test/pricing",
    )

    assert session.url == "https://checkout.stripe.test/cs_test_1"
    request = stripe_api.last
    assert request.headers["Authorization"] == "Bearer sk_test_123"
    form = parse_qs(request.content.decode())
    assert form["mode"] == ["subscription"]
    assert form["line_items[0][price]"] == ["price_elite"]
    assert form["metadata[plan_name]"] == ["elite"]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_retrieve_checkout_session_expands_objects(stripe_client, stripe_api):
    stripe_api.route("GET", "/v1/checkout/sessions/cs_test_1", json={"id": "cs_test_1"})

    await stripe_client.retrieve_checkout_session("cs_test_1")

    expanded = stripe_api.last.url.params.get_list("expand[]")
    assert expanded == ["line_items", "customer", "subscription"]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_api_error_raises_provider_error(stripe_client, stripe_api):
    stripe_api.route(
        "GET",
        "/v1/checkout/sessions/cs_missing",
        status_code=404,
        json={"error": {"message": "No such checkout.session: cs_missing"}},
    )

    with pytest.raises(ProviderError) as exc_info:
        await stripe_client.retrieve_checkout_session("cs_missing")

    assert exc_info.value.provider == "stripe"
    assert exc_info.value.provider_status == 404
    assert "No such checkout.session" in exc_info.value.message
