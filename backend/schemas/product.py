# backend/schemas/product.py
from typing import List, Optional

from pydantic import Field

from schemas.base import APIModel


# Schema for creating a new product (admin)
class ProductCreate(APIModel):
    name: str = Field(min_length=2, max_length=120)
    slug: Optional[str] = Field(default=None, min_length=2, max_length=160)
    price_cents: int = Field(ge=0)
    stock: int = Field(default=0, ge=0)
    image: str = ""
    category: str = Field(default="uncategorized", min_length=1)
    featured: bool = False


# Schema for partial product updates - all fields optional
class ProductUpdate(APIModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=120)
    slug: Optional[str] = Field(default=None, min_length=2, max_length=160)
    price_cents: Optional[int] = Field(default=None, ge=0)
    stock: Optional[int] = Field(default=None, ge=0)
    image: Optional[str] = None
    category: Optional[str] = Field(default=None, min_length=1)
    featured: Optional[bool] = None


# Public product representation
class ProductOut(APIModel):
    id: str
    name: str
    slug: str
    price_cents: int
    stock: int
    image: str
    category: str
    featured: bool


class ProductList(APIModel):
    items: List[ProductOut]


class ProductItem(APIModel):
    item: ProductOut


# Response of admin create/update/delete
class ProductEnvelope(APIModel):
    ok: bool = True
    product: ProductOut
