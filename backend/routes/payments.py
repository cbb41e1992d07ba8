# backend/routes/payments.py
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Header, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from config import Settings, get_settings_dep
from database import get_db
from models.order import Order
from models.users import User
from schemas.order import CheckoutPayload, CheckoutSessionResponse
from services import orders as order_service
from services import payments as payment_service
from utils.audit import client_ip, write_log
from utils.mailer import Mailer, dispatch, get_mailer
from utils.payment_client import StripeClient, get_payment_client
from utils.tokenJWT import get_current_user

router = APIRouter(prefix="/payments/stripe", tags=["Payments"])
logger = logging.getLogger(__name__)


# Create a pending card order and a hosted Stripe Checkout session for it
@router.post("/create-session", response_model=CheckoutSessionResponse)
async def create_session(
    payload: CheckoutPayload,
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings_dep),
    provider: StripeClient = Depends(get_payment_client),
    current_user: User = Depends(get_current_user),
):
    order, url = await order_service.start_card_checkout(
        db, user=current_user, customer=payload.customer.to_customer(), items=payload.items,
        settings=settings, provider=provider,
    )

    response = CheckoutSessionResponse(url=url, order_id=order.id)
    await run_in_threadpool(
        write_log, db, user_id=order.user_id, action="PAYMENT_SESSION_CREATE", resource="payments",
        status="SUCCESS", ip=client_ip(request), meta={"order_id": order.id, "session_id": order.payment_session_id},
    )
    return response


def _audit_webhook(db: Session, result, event_type, ip):
    order = db.get(Order, result.order_id)
    write_log(
        db, user_id=order.user_id if order else None, action="PAYMENT_WEBHOOK", resource="payments",
        status="SUCCESS" if result.outcome == payment_service.CONFIRMED else "FAIL",
        ip=ip, meta={"order_id": result.order_id, "event": event_type},
    )


# Stripe webhook: the signature is checked against the raw body before anything is parsed
@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    provider: StripeClient = Depends(get_payment_client),
    mailer: Mailer = Depends(get_mailer),
    stripe_signature: str = Header(None, alias="Stripe-Signature"),
):
    body = await request.body()
    event = provider.construct_event(body, stripe_signature)
    logger.info("Stripe webhook received: type=%s id=%s", event.get("type"), event.get("id"))

    # Sync database work stays off the event loop
    result = await run_in_threadpool(payment_service.handle_event, db, event)

    if result.outcome in (payment_service.CONFIRMED, payment_service.FAILED):
        await run_in_threadpool(_audit_webhook, db, result, event.get("type"), client_ip(request))

    if result.notification:
        background_tasks.add_task(
            dispatch, mailer.send_order_confirmation,
            to=result.notification["customer"]["email"], order=result.notification,
        )

    return {"received": True}
