# backend/services/inventory.py
"""
Stock bookkeeping for products.

All functions run inside the caller's transaction and never commit. The
decrement is a single guarded UPDATE, so the availability check and the write
happen atomically in the database, even when several checkouts race for the
same product.
"""
import logging
from typing import Dict, Iterable, Mapping

from sqlalchemy import update
from sqlalchemy.orm import Session

from errors import NotFound, OutOfStock
from models.product import Product

logger = logging.getLogger(__name__)


# Batch-fetch live (not soft-deleted) products, keyed by id
def load_products(db: Session, ids: Iterable[str], lock: bool = False) -> Dict[str, Product]:
    ids = list(ids)
    if not ids:
        return {}
    query = db.query(Product).filter(Product.id.in_(ids), Product.deleted_at.is_(None))
    if lock:
        query = query.with_for_update()
    return {p.id: p for p in query.all()}


def check_available(products: Mapping[str, Product], requested: Mapping[str, int], *, status_code: int = 409):
    """Raise for the first requested product that is missing or short on stock."""
    for product_id, quantity in requested.items():
        product = products.get(product_id)
        if product is None:
            raise NotFound("Product not found", status_code=status_code, product_id=product_id)

        available = int(product.stock or 0)
        if available < quantity:
            raise OutOfStock(product_id=product_id, available=available, requested=quantity)


def decrement(db: Session, product_id: str, quantity: int):
    result = db.execute(
        update(Product)
        .where(
            Product.id == product_id,
            Product.deleted_at.is_(None),
            Product.stock >= quantity,
        )
        .values(stock=Product.stock - quantity)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        current = db.query(Product.stock).filter(Product.id == product_id, Product.deleted_at.is_(None)).scalar()
        logger.info("Stock decrement refused for product %s (requested=%s, available=%s)", product_id, quantity, current)
        if current is None:
            raise NotFound("Product not found", status_code=409, product_id=product_id)
        raise OutOfStock(product_id=product_id, available=int(current), requested=quantity)


def restock(db: Session, product_id: str, quantity: int):
    result = db.execute(
        update(Product)
        .where(Product.id == product_id)
        .values(stock=Product.stock + quantity)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        # Hard-deleted product rows cannot take stock back; the order still gets cancelled
        logger.warning("Restock skipped: product %s no longer exists (qty=%s)", product_id, quantity)


# Check every line first, then decrement them all; any failure aborts the whole batch
def check_and_reserve(db: Session, requested: Mapping[str, int]) -> Dict[str, Product]:
    products = load_products(db, requested.keys(), lock=True)
    check_available(products, requested)
    for product_id, quantity in requested.items():
        decrement(db, product_id, quantity)
    return products
