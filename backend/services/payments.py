# backend/services/payments.py
"""
Reconciliation of payment-provider webhook events with orders.

Events may arrive late, twice, or concurrently. Every state change is a
guarded UPDATE on the order row, so a redelivered "completed" event finds the
order already paid and does nothing: stock is taken once and one email is
sent at most.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from errors import NotFound, OutOfStock
from models.order import Order, OrderStatus, PaymentMethod, PaymentStatus
from services import inventory
from services.orders import order_snapshot

logger = logging.getLogger(__name__)

SESSION_COMPLETED = "checkout.session.completed"
SESSION_EXPIRED = "checkout.session.expired"

# Outcomes reported back to the webhook route
CONFIRMED = "confirmed"
FAILED = "failed"
EXPIRED = "expired"
DUPLICATE = "duplicate"
UNKNOWN_ORDER = "unknown_order"
IGNORED = "ignored"


@dataclass
class WebhookResult:
    outcome: str
    order_id: Optional[str] = None
    # Set only when a confirmation email should go out
    notification: Optional[Dict[str, Any]] = None


def _session_object(event: Dict[str, Any]) -> Dict[str, Any]:
    data = event.get("data")
    obj = data.get("object") if isinstance(data, dict) else None
    return obj if isinstance(obj, dict) else {}


def _find_order(db: Session, session: Dict[str, Any]) -> Optional[Order]:
    # Prefer the order id tagged on the session, then the stored session id
    metadata = session.get("metadata") if isinstance(session.get("metadata"), dict) else {}
    order_id = metadata.get("orderId") or session.get("client_reference_id")
    if order_id:
        order = db.query(Order).filter(Order.id == str(order_id)).first()
        if order:
            return order

    session_id = session.get("id")
    if session_id:
        return db.query(Order).filter(Order.payment_session_id == str(session_id)).first()
    return None


def _mark_failed(db: Session, order_id: str) -> bool:
    result = db.execute(
        update(Order)
        .where(
            Order.id == order_id,
            Order.payment_method == PaymentMethod.CARD.value,
            Order.payment_status == PaymentStatus.UNPAID.value,
        )
        .values(payment_status=PaymentStatus.FAILED.value)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount == 1


def confirm_payment(db: Session, session: Dict[str, Any]) -> WebhookResult:
    order = _find_order(db, session)
    if order is None:
        logger.warning("Payment completed for unknown order (session=%s)", session.get("id"))
        return WebhookResult(UNKNOWN_ORDER)
    if order.payment_status == PaymentStatus.PAID.value:
        return WebhookResult(DUPLICATE, order.id)

    session_id = str(session["id"]) if session.get("id") else order.payment_session_id
    reference = str(session["payment_intent"]) if session.get("payment_intent") else None

    try:
        # Claim the order first; a second delivery racing with this one matches no row
        claimed = db.execute(
            update(Order)
            .where(
                Order.id == order.id,
                Order.payment_method == PaymentMethod.CARD.value,
                Order.payment_status != PaymentStatus.PAID.value,
                Order.status != OrderStatus.CANCELLED.value,
            )
            .values(
                payment_status=PaymentStatus.PAID.value,
                status=OrderStatus.CONFIRMED.value,
                stock_reserved=True,
                payment_session_id=session_id,
                payment_reference=reference,
            )
            .execution_options(synchronize_session=False)
        ).rowcount
        if claimed != 1:
            db.rollback()
            logger.info("Payment event for order %s skipped (not a card order, already paid or cancelled)", order.id)
            return WebhookResult(DUPLICATE, order.id)

        for item in order.items:
            inventory.decrement(db, item.product_id, item.quantity)
        db.commit()
    except (OutOfStock, NotFound) as e:
        # Sold out during the payment window: take nothing, flag the payment
        db.rollback()
        _mark_failed(db, order.id)
        logger.warning("Order %s paid but stock is gone (%s); payment marked failed", order.id, e.to_dict())
        return WebhookResult(FAILED, order.id)
    except Exception:
        db.rollback()
        raise

    db.refresh(order)
    logger.info("Order %s paid and confirmed (session=%s)", order.id, session_id)
    return WebhookResult(CONFIRMED, order.id, notification=order_snapshot(order))


def expire_payment(db: Session, session: Dict[str, Any]) -> WebhookResult:
    order = _find_order(db, session)
    if order is None:
        return WebhookResult(UNKNOWN_ORDER)
    if _mark_failed(db, order.id):
        logger.info("Payment session for order %s expired", order.id)
        return WebhookResult(EXPIRED, order.id)
    return WebhookResult(DUPLICATE, order.id)


def handle_event(db: Session, event: Dict[str, Any]) -> WebhookResult:
    event_type = event.get("type")
    if event_type == SESSION_COMPLETED:
        return confirm_payment(db, _session_object(event))
    if event_type == SESSION_EXPIRED:
        return expire_payment(db, _session_object(event))

    logger.debug("Ignoring webhook event %s", event_type)
    return WebhookResult(IGNORED)
