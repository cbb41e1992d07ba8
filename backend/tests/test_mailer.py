import asyncio

import pytest

import utils.mailer as mailer_module
from errors import UpstreamFailure
from utils.mailer import Mailer, dispatch

ORDER = {
    "id": "order-1",
    "status": "pending",
    "total_cents": 2899,
    "payment": {"method": "cod", "status": "unpaid", "shipping_cents": 1999},
    "items": [{"name": "Balon <rosu>", "price_cents": 300, "quantity": 3}],
}


@pytest.fixture
def sent(monkeypatch):
    messages = []

    async def fake_send(message, **kwargs):
        messages.append((message, kwargs))

    monkeypatch.setattr(mailer_module.aiosmtplib, "send", fake_send)
    return messages


def smtp_settings(settings, **overrides):
    values = {"SMTP_USER": "shop@example.com", "SMTP_PASSWORD": "abcd efgh", "SMTP_PORT": 465}
    values.update(overrides)
    return settings.model_copy(update=values)


def test_order_confirmation_email(settings, sent):
    mailer = Mailer(smtp_settings(settings))

    asyncio.run(mailer.send_order_confirmation(to="ana@example.com", order=ORDER))

    [(message, kwargs)] = sent
    assert message["To"] == "ana@example.com"
    assert message["Subject"] == "Order confirmation #order-1"
    html = message.get_body(preferencelist=("html",)).get_content()
    assert "3 &times; Balon &lt;rosu&gt;" in html
    assert "9.00 RON" in html
    assert "19.99 RON" in html
    assert "28.99 RON" in html
    assert kwargs["use_tls"] is True and kwargs["start_tls"] is False
    # App passwords are pasted with spaces
    assert kwargs["password"] == "abcdefgh"


def test_confirmation_email_links_to_backend(settings, sent):
    mailer = Mailer(smtp_settings(settings, SMTP_PORT=587))

    asyncio.run(mailer.send_confirmation_email(to="ana@example.com", token="tok123"))

    [(message, kwargs)] = sent
    html = message.get_body(preferencelist=("html",)).get_content()
    assert "http://api.test/auth/confirm-email?token=tok123" in html
    assert kwargs["start_tls"] is True and kwargs["use_tls"] is False


def test_disabled_mailer_raises(settings, sent):
    mailer = Mailer(settings)
    assert mailer.enabled is False
    with pytest.raises(UpstreamFailure):
        asyncio.run(mailer.send(to="a@b.ro", subject="x", html="<p>x</p>"))
    assert sent == []


def test_dispatch_swallows_failures(settings, caplog):
    mailer = Mailer(settings)

    asyncio.run(dispatch(mailer.send_order_confirmation, to="ana@example.com", order=ORDER))

    assert "Notification send_order_confirmation to ana@example.com failed" in caplog.text
