from typing import Any, List, Optional

from pydantic import field_validator

from schemas.base import APIModel
from services.cart import coerce_quantity


# Request line as sent by the client cart; malformed quantities are coerced, not rejected
class CartLineIn(APIModel):
    id: Optional[str] = None
    quantity: int = 1

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        return str(value).strip()

    @field_validator("quantity", mode="before")
    @classmethod
    def _coerce_quantity(cls, value: Any) -> int:
        return coerce_quantity(value)


# Request schema for cart validation
class CartValidateRequest(APIModel):
    items: List[CartLineIn] = []


# Response schema for a validated (possibly clamped) cart line
class CartLineOut(APIModel):
    id: str
    name: str
    price_cents: int
    stock: int
    image: str
    quantity: int
    line_total_cents: int


class CartErrorOut(APIModel):
    code: str
    product_id: str
    message: str
    available: Optional[int] = None
    requested: Optional[int] = None


# Response schema for the whole cart summary
class CartValidateResponse(APIModel):
    items: List[CartLineOut]
    subtotal_cents: int
    shipping_cents: int
    grand_total_cents: int
    errors: List[CartErrorOut]
