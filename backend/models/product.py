# backend/models/product.py
from sqlalchemy import Column, Integer, String, Boolean, DateTime, CheckConstraint, func
from database import Base, new_id


# Model Product
# A single catalog entry. Prices are integer minor units, stock is a plain counter.
# Soft-deleted products (deleted_at set) are hidden from the shop and from every
# purchase path, but old order items keep their own name/price snapshot.
class Product(Base):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String, nullable=False, index=True)
    slug = Column(String, unique=True, nullable=False, index=True)

    price_cents = Column(Integer, CheckConstraint("price_cents >= 0"), nullable=False)
    stock = Column(Integer, CheckConstraint("stock >= 0"), nullable=False, default=0)

    image = Column(String, nullable=False, default="")
    category = Column(String, nullable=False, default="uncategorized", index=True)
    featured = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)
