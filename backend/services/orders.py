# backend/services/orders.py
"""
Order lifecycle: checkout (cash on delivery or card), cancellation with
restock, admin status changes and the read side used by the order routes.

Stock rules:
- cod orders take their stock inside the order-creation transaction;
- card orders only check stock here. The payment webhook takes it once the
  provider confirms the payment, so abandoned sessions never hold stock;
- ``Order.stock_reserved`` records whether an order currently holds stock, and
  cancellation gives back exactly that, nothing more.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import update
from sqlalchemy.orm import Session, selectinload

from config import Settings
from errors import InvalidInput, InvalidState, NotFound
from models.order import Order, OrderItem, OrderStatus, PaymentMethod, PaymentStatus
from models.users import User
from services import inventory
from services.cart import aggregate_quantities
from services.pricing import compute_totals

logger = logging.getLogger(__name__)

REQUIRED_CUSTOMER_FIELDS = ("name", "address", "phone", "city", "region")


@dataclass
class CustomerData:
    name: str = ""
    address: str = ""
    phone: str = ""
    city: str = ""
    region: str = ""
    postal_code: Optional[str] = None


def require_customer(customer: CustomerData) -> CustomerData:
    cleaned = CustomerData(
        **{name: str(getattr(customer, name) or "").strip() for name in REQUIRED_CUSTOMER_FIELDS},
        postal_code=(str(customer.postal_code).strip() or None) if customer.postal_code is not None else None,
    )
    missing = [name for name in REQUIRED_CUSTOMER_FIELDS if not getattr(cleaned, name)]
    if missing:
        raise InvalidInput("Missing customer data", missing=missing)
    return cleaned


def _requested_quantities(items: Iterable[Any]) -> Dict[str, int]:
    items = list(items or [])
    if not items:
        raise InvalidInput("Empty cart")
    requested = aggregate_quantities(items)
    if not requested:
        raise InvalidInput("Invalid items")
    return requested


def _build_order(db: Session, *, user: User, customer: CustomerData, requested: Mapping[str, int],
                 payment_method: PaymentMethod, settings: Settings) -> Order:
    if payment_method == PaymentMethod.COD:
        products = inventory.check_and_reserve(db, requested)
    else:
        # Card: validate only, the webhook reserves stock after payment
        products = inventory.load_products(db, requested.keys(), lock=True)
        inventory.check_available(products, requested)

    totals = compute_totals(
        ((products[pid].price_cents, qty) for pid, qty in requested.items()),
        settings.FREE_SHIPPING_THRESHOLD_CENTS,
        settings.SHIPPING_FLAT_CENTS,
    )

    order = Order(
        user_id=user.id,
        status=OrderStatus.PENDING.value,
        payment_method=payment_method.value,
        payment_status=PaymentStatus.UNPAID.value,
        shipping_cents=totals.shipping,
        total_cents=totals.grand_total,
        stock_reserved=payment_method == PaymentMethod.COD,
        customer_name=customer.name,
        customer_email=user.email,
        customer_address=customer.address,
        customer_phone=customer.phone,
        customer_city=customer.city,
        customer_region=customer.region,
        postal_code=customer.postal_code,
        items=[
            OrderItem(
                position=position,
                product_id=pid,
                name=products[pid].name,
                price_cents=products[pid].price_cents,
                quantity=qty,
            )
            for position, (pid, qty) in enumerate(requested.items())
        ],
    )
    db.add(order)
    db.flush()
    return order


def place_order(db: Session, *, user: User, customer: CustomerData, items: Iterable[Any],
                payment_method: PaymentMethod, settings: Settings) -> Order:
    """Create an order atomically; raises NotFound/OutOfStock (409) for the first bad line."""
    customer = require_customer(customer)
    requested = _requested_quantities(items)

    try:
        order = _build_order(
            db, user=user, customer=customer, requested=requested,
            payment_method=payment_method, settings=settings,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(order)
    logger.info(
        "Order %s created for user %s (%s, total=%s, items=%s)",
        order.id, user.id, order.payment_method, order.total_cents, len(order.items),
    )
    return order


def _discard_order(db: Session, order_id: str):
    db.rollback()
    order = db.get(Order, order_id)
    if order is not None:
        db.delete(order)
    db.commit()


def _attach_session(db: Session, order: Order, session_id: str) -> Order:
    order.payment_session_id = session_id
    db.commit()
    db.refresh(order)
    return order


async def start_card_checkout(db: Session, *, user: User, customer: CustomerData, items: Iterable[Any],
                              settings: Settings, provider) -> Tuple[Order, str]:
    """Create a pending card order and open a hosted payment session for it."""
    provider.ensure_configured()
    # Database work runs in the threadpool so a busy database never blocks the event loop
    order = await run_in_threadpool(
        place_order, db, user=user, customer=customer, items=items,
        payment_method=PaymentMethod.CARD, settings=settings,
    )

    try:
        session = await provider.create_checkout_session(order, customer_email=user.email)
    except Exception:
        # No session means nobody can pay this order: drop it instead of leaving it behind
        logger.warning("Payment session for order %s failed, discarding the order", order.id)
        await run_in_threadpool(_discard_order, db, order.id)
        raise

    order = await run_in_threadpool(_attach_session, db, order, session.id)
    return order, session.url


def cancel_order(db: Session, order_id: str, user: User) -> Order:
    order = db.query(Order).filter(Order.id == order_id, Order.user_id == user.id).first()
    if not order:
        raise NotFound("Order not found")
    if order.status != OrderStatus.PENDING.value:
        raise InvalidState("Only pending orders can be cancelled")

    had_stock = bool(order.stock_reserved)
    try:
        # Guarded transition: a concurrent cancel or payment confirmation wins at most once
        claimed = db.execute(
            update(Order)
            .where(Order.id == order.id, Order.status == OrderStatus.PENDING.value)
            .values(status=OrderStatus.CANCELLED.value, stock_reserved=False)
            .execution_options(synchronize_session=False)
        ).rowcount
        if claimed != 1:
            raise InvalidState("Only pending orders can be cancelled")

        if had_stock:
            for item in order.items:
                inventory.restock(db, item.product_id, item.quantity)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(order)
    logger.info("Order %s cancelled by user %s (restocked=%s)", order.id, user.id, had_stock)
    return order


# Admin edits are free-form between the known statuses and never touch stock
def set_order_status(db: Session, order_id: str, status: OrderStatus) -> Tuple[Order, str]:
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise NotFound("Order not found")

    old_status = order.status
    order.status = status.value
    db.commit()
    db.refresh(order)
    return order, old_status


def _with_items(db: Session):
    return db.query(Order).options(selectinload(Order.items))


def list_user_orders(db: Session, user: User) -> List[Order]:
    return _with_items(db).filter(Order.user_id == user.id).order_by(Order.created_at.desc()).all()


def get_user_order(db: Session, order_id: str, user: User) -> Order:
    order = _with_items(db).filter(Order.id == order_id, Order.user_id == user.id).first()
    if not order:
        raise NotFound("Order not found")
    return order


def list_all_orders(db: Session) -> List[Order]:
    return _with_items(db).order_by(Order.created_at.desc()).all()


# Plain data handed to the notification side once the transaction is committed
def order_snapshot(order: Order) -> Dict[str, Any]:
    return {
        "id": order.id,
        "status": order.status,
        "total_cents": order.total_cents,
        "customer": {
            "name": order.customer_name,
            "email": order.customer_email,
            "address": order.customer_address,
            "phone": order.customer_phone,
            "city": order.customer_city,
            "region": order.customer_region,
            "postal_code": order.postal_code or "",
        },
        "payment": {
            "method": order.payment_method,
            "status": order.payment_status,
            "shipping_cents": order.shipping_cents,
        },
        "items": [
            {"name": it.name, "price_cents": it.price_cents, "quantity": it.quantity}
            for it in order.items
        ],
    }
