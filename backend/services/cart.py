# backend/services/cart.py
"""
Server-side cart validation.

The cart lives on the client; every call rebuilds it from the submitted
``{id, quantity}`` pairs against current prices and stock. Validation only
reads and reports: it never writes and never refuses. Whether errors block a
checkout is up to the caller, and the order flow re-checks everything inside
its own transaction anyway.
"""
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from config import Settings
from services import inventory
from services.pricing import compute_totals

NOT_FOUND = "NOT_FOUND"
OUT_OF_STOCK = "OUT_OF_STOCK"
MAX_QUANTITY = 2 ** 63 - 1


@dataclass
class ValidatedLine:
    id: str
    name: str
    price_cents: int
    stock: int
    image: str
    quantity: int
    line_total_cents: int


@dataclass
class CartError:
    code: str
    product_id: str
    message: str
    available: Optional[int] = None
    requested: Optional[int] = None


@dataclass
class CartSummary:
    lines: List[ValidatedLine] = field(default_factory=list)
    subtotal: int = 0
    shipping: int = 0
    grand_total: int = 0
    errors: List[CartError] = field(default_factory=list)


def coerce_quantity(value: Any) -> int:
    # Anything unusable counts as 1; fractions are truncated
    if isinstance(value, bool):
        return 1
    if isinstance(value, int):
        return min(max(1, value), MAX_QUANTITY)
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 1
    if math.isnan(number) or number < 1:
        return 1
    # Larger than any stock level; the line stays an out-of-stock error
    if math.isinf(number):
        return MAX_QUANTITY
    return min(int(number), MAX_QUANTITY)


def _item_field(item: Any, name: str) -> Any:
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def aggregate_quantities(items: Iterable[Any]) -> Dict[str, int]:
    """Merge duplicate product ids by summing their quantities (first-seen order)."""
    qty_by_id: Dict[str, int] = {}
    for item in items or []:
        raw_id = _item_field(item, "id")
        product_id = str(raw_id).strip() if raw_id is not None else ""
        if not product_id:
            continue
        total = qty_by_id.get(product_id, 0) + coerce_quantity(_item_field(item, "quantity"))
        qty_by_id[product_id] = min(total, MAX_QUANTITY)
    return qty_by_id


def _stock_message(available: int) -> str:
    if available <= 0:
        return "Product is currently unavailable."
    return f"Insufficient stock. Available: {available}."


def validate_cart(db: Session, items: Iterable[Any], settings: Settings) -> CartSummary:
    requested = aggregate_quantities(items)
    if not requested:
        return CartSummary()

    products = inventory.load_products(db, requested.keys())

    lines: List[ValidatedLine] = []
    errors: List[CartError] = []

    # Every requested id is reported on, even the ones that no longer exist
    for product_id, quantity in requested.items():
        product = products.get(product_id)
        if product is None:
            errors.append(CartError(code=NOT_FOUND, product_id=product_id, message="Product is no longer available."))
            continue

        available = max(0, int(product.stock or 0))
        if quantity > available:
            errors.append(
                CartError(
                    code=OUT_OF_STOCK,
                    product_id=product_id,
                    message=_stock_message(available),
                    available=available,
                    requested=quantity,
                )
            )

        # Keep the line but clamp it, so totals show what can actually be bought
        clamped = min(quantity, available)
        if clamped == 0:
            continue

        price = int(product.price_cents or 0)
        lines.append(
            ValidatedLine(
                id=product.id,
                name=product.name,
                price_cents=price,
                stock=available,
                image=product.image or "",
                quantity=clamped,
                line_total_cents=price * clamped,
            )
        )

    totals = compute_totals(
        ((line.price_cents, line.quantity) for line in lines),
        settings.FREE_SHIPPING_THRESHOLD_CENTS,
        settings.SHIPPING_FLAT_CENTS,
    )
    return CartSummary(
        lines=lines,
        subtotal=totals.subtotal,
        shipping=totals.shipping,
        grand_total=totals.grand_total,
        errors=errors,
    )
