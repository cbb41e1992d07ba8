# backend/routes/products.py
import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from database import get_db
from errors import Conflict, NotFound
from models.product import Product
from services.catalog import ensure_unique_slug, live_products, slug_taken, slugify
import schemas.product as product_schemas
from utils.audit import client_ip, write_log
from utils.tokenJWT import admin_required

router = APIRouter(tags=["Products"])
logger = logging.getLogger(__name__)


def _to_out(product: Product) -> product_schemas.ProductOut:
    return product_schemas.ProductOut.model_validate(product)


# =========================
# PUBLIC CATALOG
# =========================
@router.get("/products", response_model=product_schemas.ProductList)
def list_products(
    featured: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    query = live_products(db)

    if featured in ("1", "true"):
        query = query.filter(Product.featured.is_(True))
    if category and category.strip():
        query = query.filter(Product.category == category.strip())
    if search and search.strip():
        query = query.filter(Product.name.ilike(f"%{search.strip()}%"))

    items = query.order_by(Product.created_at.desc()).all()
    return product_schemas.ProductList(items=[_to_out(p) for p in items])


@router.get("/products/categories", response_model=List[str])
def list_categories(db: Session = Depends(get_db)):
    rows = (
        db.query(Product.category)
        .filter(Product.deleted_at.is_(None), Product.category != "")
        .distinct()
        .order_by(Product.category)
        .all()
    )
    return [r[0] for r in rows]


@router.get("/products/slug/{slug}", response_model=product_schemas.ProductItem)
def get_product_by_slug(slug: str, db: Session = Depends(get_db)):
    product = live_products(db).filter(Product.slug == slug.strip()).first()
    if not product:
        raise NotFound("Product not found")
    return product_schemas.ProductItem(item=_to_out(product))


# =========================
# ADMIN
# =========================
@router.post("/products", response_model=product_schemas.ProductEnvelope)
def create_product(
    payload: product_schemas.ProductCreate,
    request: Request,
    db: Session = Depends(get_db),
    _admin: dict = Depends(admin_required),
):
    if payload.slug:
        slug = slugify(payload.slug)
        if not slug or slug_taken(db, slug):
            raise Conflict("Slug already in use", status_code=400, slug=payload.slug)
    else:
        slug = ensure_unique_slug(db, payload.name)

    product = Product(**payload.model_dump(exclude={"slug"}), slug=slug)
    db.add(product)
    db.commit()
    db.refresh(product)

    write_log(db, user_id=None, action="PRODUCT_CREATE", resource="products", status="SUCCESS",
              ip=client_ip(request), meta={"id": product.id, "slug": product.slug})
    return product_schemas.ProductEnvelope(product=_to_out(product))


# Partial update: only the fields present in the body are touched
@router.put("/products/{product_id}", response_model=product_schemas.ProductEnvelope)
def update_product(
    product_id: str,
    payload: product_schemas.ProductUpdate,
    request: Request,
    db: Session = Depends(get_db),
    _admin: dict = Depends(admin_required),
):
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise NotFound("Product not found")

    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "slug" in changes:
        changes["slug"] = slugify(changes["slug"])
        if not changes["slug"] or slug_taken(db, changes["slug"], exclude_id=product.id):
            raise Conflict("Slug already in use", status_code=400, slug=payload.slug)

    for key, value in changes.items():
        setattr(product, key, value)
    db.commit()
    db.refresh(product)

    write_log(db, user_id=None, action="PRODUCT_UPDATE", resource="products", status="SUCCESS",
              ip=client_ip(request), meta={"id": product.id, "fields": sorted(changes)})
    return product_schemas.ProductEnvelope(product=_to_out(product))


# Soft delete: the product disappears from the shop, past orders keep their snapshot
@router.delete("/products/{product_id}", response_model=product_schemas.ProductEnvelope)
def delete_product(
    product_id: str,
    request: Request,
    db: Session = Depends(get_db),
    _admin: dict = Depends(admin_required),
):
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise NotFound("Product not found")

    if product.deleted_at is None:
        product.deleted_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(product)

    write_log(db, user_id=None, action="PRODUCT_DELETE", resource="products", status="SUCCESS",
              ip=client_ip(request), meta={"id": product.id})
    return product_schemas.ProductEnvelope(product=_to_out(product))
