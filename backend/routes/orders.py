# backend/routes/orders.py
import logging
from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from config import Settings, get_settings_dep
from database import get_db
from models.order import PaymentMethod
from models.users import User
from schemas.order import OrderCreatePayload, OrderEnvelope, OrderOut
from services import orders as order_service
from utils.audit import client_ip, write_log
from utils.mailer import Mailer, dispatch, get_mailer
from utils.payment_client import StripeClient, get_payment_client
from utils.tokenJWT import get_current_user

router = APIRouter(prefix="/orders", tags=["Orders"])
logger = logging.getLogger(__name__)


# Place an order. Cash on delivery takes stock right away; card orders only check it,
# open a hosted payment session and take the stock when the payment webhook confirms them
@router.post("", response_model=OrderOut, status_code=status.HTTP_201_CREATED)
async def create_order(
    payload: OrderCreatePayload,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings_dep),
    mailer: Mailer = Depends(get_mailer),
    provider: StripeClient = Depends(get_payment_client),
    current_user: User = Depends(get_current_user),
):
    user_id = current_user.id
    customer = payload.customer.to_customer()
    checkout_url = None
    if payload.payment_method == PaymentMethod.CARD:
        order, checkout_url = await order_service.start_card_checkout(
            db, user=current_user, customer=customer, items=payload.items,
            settings=settings, provider=provider,
        )
    else:
        order = await run_in_threadpool(
            order_service.place_order, db, user=current_user, customer=customer, items=payload.items,
            payment_method=payload.payment_method, settings=settings,
        )
        # Card orders are announced once the payment is confirmed
        background_tasks.add_task(
            dispatch, mailer.send_order_confirmation, to=order.customer_email,
            order=order_service.order_snapshot(order),
        )

    response = OrderOut.from_order(order, checkout_url=checkout_url)
    await run_in_threadpool(
        write_log, db, user_id=user_id, action="ORDER_CREATE", resource="orders", status="SUCCESS",
        ip=client_ip(request), meta={"order_id": response.id, "payment_method": response.payment_method},
    )
    return response


# Orders of the logged-in user, newest first
@router.get("/my", response_model=List[OrderOut])
def list_my_orders(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return [OrderOut.from_order(o) for o in order_service.list_user_orders(db, current_user)]


@router.get("/{order_id}", response_model=OrderOut)
def get_order_detail(
    order_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return OrderOut.from_order(order_service.get_user_order(db, order_id, current_user))


# Customer cancellation: pending orders only, reserved stock is given back
@router.patch("/{order_id}/cancel", response_model=OrderEnvelope)
def cancel_order(
    order_id: str,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    order = order_service.cancel_order(db, order_id, current_user)
    write_log(
        db, user_id=current_user.id, action="ORDER_CANCEL", resource="orders", status="SUCCESS",
        ip=client_ip(request), meta={"order_id": order.id},
    )
    return OrderEnvelope(order=OrderOut.from_order(order))
