# backend/services/pricing.py
"""
Order pricing in integer minor units.

Nothing in here touches the database; callers pass the prices and quantities
they already resolved against live product data.
"""
from dataclasses import dataclass
from typing import Iterable, Tuple


@dataclass(frozen=True)
class Totals:
    subtotal: int
    shipping: int
    grand_total: int


def compute_totals(lines: Iterable[Tuple[int, int]], free_shipping_threshold: int, flat_shipping_fee: int) -> Totals:
    """Compute subtotal, shipping and grand total.

    ``lines`` holds ``(unit_price_cents, quantity)`` pairs. Lines with a zero
    quantity do not count as purchasable, so an order made only of them pays no
    shipping either.
    """
    subtotal = 0
    has_lines = False
    for unit_price, quantity in lines:
        if quantity <= 0:
            continue
        has_lines = True
        subtotal += int(unit_price) * int(quantity)

    if not has_lines:
        shipping = 0
    elif subtotal >= free_shipping_threshold:
        shipping = 0
    else:
        shipping = flat_shipping_fee

    return Totals(subtotal=subtotal, shipping=shipping, grand_total=subtotal + shipping)


# Display helper for emails and other presentation code, e.g. 2899 -> "28.99"
def format_cents(cents: int) -> str:
    cents = int(cents or 0)
    sign = "-" if cents < 0 else ""
    whole, rest = divmod(abs(cents), 100)
    return f"{sign}{whole}.{rest:02d}"
