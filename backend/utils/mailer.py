# backend/utils/mailer.py
import logging
from email.message import EmailMessage
from email.utils import formataddr
from html import escape
from typing import Any, Awaitable, Callable, Dict
from urllib.parse import urlencode, urljoin

import aiosmtplib
from fastapi import Request

from config import Settings
from errors import UpstreamFailure
from services.pricing import format_cents

logger = logging.getLogger(__name__)


class Mailer:
    def __init__(self, settings: Settings):
        self.host = settings.SMTP_HOST
        self.port = settings.SMTP_PORT
        self.user = settings.SMTP_USER.strip()
        # Gmail app passwords are shown with spaces
        self.password = settings.SMTP_PASSWORD.replace(" ", "").strip()
        self.sender_name = settings.MAIL_FROM
        self.timeout = settings.SMTP_TIMEOUT_SECONDS
        self.frontend_url = settings.FRONTEND_URL
        self.backend_url = settings.BACKEND_URL
        self.currency = settings.CURRENCY.upper()

        if not self.enabled:
            logger.warning("Email disabled - missing config (SMTP_USER / SMTP_PASSWORD)")

    @property
    def enabled(self) -> bool:
        return bool(self.user and self.password)

    async def send(self, *, to: str, subject: str, html: str):
        if not self.enabled:
            raise UpstreamFailure("Email disabled (missing config)")

        message = EmailMessage()
        message["From"] = formataddr((self.sender_name, self.user))
        message["To"] = to
        message["Subject"] = subject
        message.set_content("This message requires an HTML capable mail client.")
        message.add_alternative(html, subtype="html")

        await aiosmtplib.send(
            message,
            hostname=self.host,
            port=self.port,
            username=self.user,
            password=self.password,
            use_tls=self.port == 465,
            start_tls=self.port == 587,
            timeout=self.timeout,
        )

    async def send_confirmation_email(self, *, to: str, token: str):
        confirm_url = urljoin(self.backend_url, "/auth/confirm-email") + "?" + urlencode({"token": token})
        await self.send(
            to=to,
            subject="Confirm your email address",
            html=(
                "<h2>Welcome!</h2>"
                "<p>Please confirm your email address:</p>"
                f'<p><a href="{escape(confirm_url)}">Confirm email</a></p>'
            ),
        )

    async def send_order_confirmation(self, *, to: str, order: Dict[str, Any]):
        orders_url = urljoin(self.frontend_url, "/orders")
        rows = "".join(
            "<tr>"
            f'<td style="padding:6px 0;">{int(it["quantity"])} &times; {escape(str(it["name"]))}</td>'
            f'<td style="padding:6px 0; text-align:right;">'
            f'{format_cents(it["price_cents"] * it["quantity"])} {self.currency}</td>'
            "</tr>"
            for it in order.get("items", [])
        )
        shipping = order.get("payment", {}).get("shipping_cents", 0)

        await self.send(
            to=to,
            subject=f"Order confirmation #{order['id']}",
            html=(
                '<div style="font-family: Arial, sans-serif; max-width: 640px; margin: 0 auto;">'
                "<h2>Your order has been received</h2>"
                f"<p>Order number: <strong>#{escape(str(order['id']))}</strong></p>"
                f"<p>Status: <strong>{escape(str(order.get('status') or 'pending'))}</strong></p>"
                "<h3>Products</h3>"
                '<table style="width:100%; border-collapse:collapse;">'
                f"{rows}"
                f'<tr><td style="padding:6px 0;">Shipping</td>'
                f'<td style="padding:6px 0; text-align:right;">{format_cents(shipping)} {self.currency}</td></tr>'
                '<tr><td style="padding-top:10px; border-top:1px solid #eee;"><strong>Total</strong></td>'
                '<td style="padding-top:10px; border-top:1px solid #eee; text-align:right;">'
                f"<strong>{format_cents(order['total_cents'])} {self.currency}</strong></td></tr>"
                "</table>"
                f'<p style="margin-top:16px;">Your orders: <a href="{escape(orders_url)}">{escape(orders_url)}</a></p>'
                "</div>"
            ),
        )


# Fire-and-forget wrapper for BackgroundTasks: a failed email is logged, never raised
async def dispatch(send: Callable[..., Awaitable[None]], **kwargs):
    try:
        await send(**kwargs)
    except Exception:
        logger.exception("Notification %s to %s failed", getattr(send, "__name__", send), kwargs.get("to"))


def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer
