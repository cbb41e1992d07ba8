import asyncio
import json
import time
from types import SimpleNamespace

import httpx
import pytest

from errors import InvalidInput, SignatureInvalid, UpstreamFailure
from utils.payment_client import StripeClient, _flatten_form, compute_signature, verify_signature

SECRET = "whsec_unit"
PAYLOAD = b'{"type": "checkout.session.completed"}'
NOW = 1_700_000_000


def header_for(payload=PAYLOAD, secret=SECRET, timestamp=NOW):
    return f"t={timestamp},v1={compute_signature(secret, timestamp, payload)}"


def fake_order():
    return SimpleNamespace(
        id="order-1",
        user_id="user-1",
        shipping_cents=0,
        items=[SimpleNamespace(name="Set pahare petrecere", price_cents=1200, quantity=2)],
    )


def test_valid_signature_passes():
    verify_signature(PAYLOAD, header_for(), SECRET, tolerance=300, now=NOW + 10)


def test_any_matching_v1_signature_is_accepted():
    good = compute_signature(SECRET, NOW, PAYLOAD)
    verify_signature(PAYLOAD, f"t={NOW},v1=deadbeef,v1={good}", SECRET, tolerance=300, now=NOW)


@pytest.mark.parametrize(
    "header, message",
    [
        (None, "Missing signature"),
        ("", "Missing signature"),
        ("v1=abc", "Malformed signature header"),
        (f"t={NOW}", "Malformed signature header"),
        ("t=soon,v1=abc", "Malformed signature header"),
    ],
)
def test_unusable_headers(header, message):
    with pytest.raises(SignatureInvalid) as exc:
        verify_signature(PAYLOAD, header, SECRET, tolerance=300, now=NOW)
    assert exc.value.message == message


def test_tampered_payload_is_rejected():
    with pytest.raises(SignatureInvalid):
        verify_signature(PAYLOAD + b" ", header_for(), SECRET, tolerance=300, now=NOW)


def test_old_timestamp_is_rejected():
    with pytest.raises(SignatureInvalid) as exc:
        verify_signature(PAYLOAD, header_for(), SECRET, tolerance=300, now=NOW + 301)
    assert exc.value.message == "Signature timestamp outside tolerance"


def test_flatten_form_nests_like_stripe():
    pairs = _flatten_form({"a": {"b": [{"c": 1}, {"c": True}]}, "skip": None, "d": "x"})
    assert pairs == [("a[b][0][c]", "1"), ("a[b][1][c]", "true"), ("d", "x")]


def test_construct_event(settings):
    client = StripeClient(settings)
    payload = json.dumps({"id": "evt_1", "type": "checkout.session.expired"}).encode()
    now = int(time.time())
    header = header_for(payload, secret=settings.STRIPE_WEBHOOK_SECRET, timestamp=now)

    assert client.construct_event(payload, header)["type"] == "checkout.session.expired"

    no_type = json.dumps({"id": "evt_2"}).encode()
    with pytest.raises(InvalidInput):
        client.construct_event(no_type, header_for(no_type, settings.STRIPE_WEBHOOK_SECRET, now))


def test_construct_event_needs_a_webhook_secret(settings):
    client = StripeClient(settings.model_copy(update={"STRIPE_WEBHOOK_SECRET": ""}))
    with pytest.raises(UpstreamFailure):
        client.construct_event(PAYLOAD, header_for())


@pytest.mark.parametrize("key, message", [("", "STRIPE_SECRET_KEY missing"), ("pk_live_1", "Invalid STRIPE_SECRET_KEY format")])
def test_ensure_configured(settings, key, message):
    client = StripeClient(settings.model_copy(update={"STRIPE_SECRET_KEY": key}))
    with pytest.raises(UpstreamFailure) as exc:
        client.ensure_configured()
    assert exc.value.message == message


def test_create_checkout_session_without_shipping_line(settings):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"id": "cs_1", "url": "https://pay.test/cs_1"})

    client = StripeClient(settings, transport=httpx.MockTransport(handler))
    session = asyncio.run(client.create_checkout_session(fake_order(), customer_email="a@b.ro"))

    assert (session.id, session.url) == ("cs_1", "https://pay.test/cs_1")
    body = seen[0].content.decode()
    assert "line_items%5B0%5D%5Bquantity%5D=2" in body
    assert "line_items%5B1%5D" not in body


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, json={"id": "cs_1"}),
        httpx.Response(200, text="<html>oops</html>"),
        httpx.Response(400, json={"error": {"message": "bad"}}),
    ],
)
def test_create_checkout_session_failures(settings, response):
    client = StripeClient(settings, transport=httpx.MockTransport(lambda request: response))
    with pytest.raises(UpstreamFailure) as exc:
        asyncio.run(client.create_checkout_session(fake_order(), customer_email="a@b.ro"))
    assert exc.value.message == "Failed to create Stripe session"


def test_network_errors_become_upstream_failures(settings):
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    client = StripeClient(settings, transport=httpx.MockTransport(handler))
    with pytest.raises(UpstreamFailure):
        asyncio.run(client.create_checkout_session(fake_order(), customer_email="a@b.ro"))
