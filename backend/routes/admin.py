# backend/routes/admin.py
import hmac
import logging
from datetime import timedelta
from typing import List

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from config import Settings, get_settings_dep
from database import get_db
from errors import Unauthorized, UpstreamFailure
from schemas.order import OrderEnvelope, OrderOut, OrderStatusPatch
from schemas.user import AdminLogin, AdminToken
from services import orders as order_service
from utils.audit import client_ip, write_log
from utils.tokenJWT import admin_required, create_access_token

router = APIRouter(prefix="/admin", tags=["Admin"])
logger = logging.getLogger(__name__)


# Shared-password login for the admin panel; issues a short-lived role=admin token
@router.post("/login", response_model=AdminToken)
def admin_login(
    payload: AdminLogin,
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings_dep),
):
    expected = settings.ADMIN_PASSWORD.strip()
    if not expected:
        raise UpstreamFailure("ADMIN_PASSWORD missing")

    if not hmac.compare_digest(payload.password.strip().encode(), expected.encode()):
        write_log(db, user_id=None, action="ADMIN_LOGIN", resource="admin", status="FAIL", ip=client_ip(request))
        raise Unauthorized("Invalid password")

    token = create_access_token(
        settings, {"role": "admin"}, expires_delta=timedelta(minutes=settings.ADMIN_TOKEN_EXPIRE_MINUTES)
    )
    write_log(db, user_id=None, action="ADMIN_LOGIN", resource="admin", status="SUCCESS", ip=client_ip(request))
    return AdminToken(token=token)


# All orders, newest first
@router.get("/orders", response_model=List[OrderOut])
def list_orders(
    db: Session = Depends(get_db),
    _admin: dict = Depends(admin_required),
):
    return [OrderOut.from_order(o) for o in order_service.list_all_orders(db)]


@router.patch("/orders/{order_id}", response_model=OrderEnvelope)
def update_order_status(
    order_id: str,
    payload: OrderStatusPatch,
    request: Request,
    db: Session = Depends(get_db),
    _admin: dict = Depends(admin_required),
):
    order, old_status = order_service.set_order_status(db, order_id, payload.status)
    logger.info("Order %s status changed by admin: %s -> %s", order.id, old_status, order.status)

    write_log(
        db, user_id=None, action="ORDER_STATUS_UPDATE", resource="orders", status="SUCCESS",
        ip=client_ip(request), meta={"order_id": order.id, "from": old_status, "to": order.status},
    )
    return OrderEnvelope(order=OrderOut.from_order(order))
