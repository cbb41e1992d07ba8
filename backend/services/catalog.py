# backend/services/catalog.py
import re
import unicodedata
from typing import Optional

from sqlalchemy.orm import Session

from models.product import Product


def slugify(value: str) -> str:
    """ASCII, lower-case, dash separated: "Baloane Roșii!" -> "baloane-rosii"."""
    text = unicodedata.normalize("NFKD", str(value or ""))
    text = "".join(ch for ch in text if not unicodedata.combining(ch)).lower()
    return re.sub(r"[^a-z0-9]+", "-", text).strip("-")


def slug_taken(db: Session, slug: str, exclude_id: Optional[str] = None) -> bool:
    # Soft-deleted rows still own their slug (unique column)
    query = db.query(Product.id).filter(Product.slug == slug)
    if exclude_id:
        query = query.filter(Product.id != exclude_id)
    return query.first() is not None


def ensure_unique_slug(db: Session, base: str, exclude_id: Optional[str] = None) -> str:
    clean = slugify(base) or "product"
    slug, suffix = clean, 2
    while slug_taken(db, slug, exclude_id):
        slug = f"{clean}-{suffix}"
        suffix += 1
    return slug


def live_products(db: Session):
    return db.query(Product).filter(Product.deleted_at.is_(None))
