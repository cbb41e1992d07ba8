from datetime import datetime
from typing import Any, List, Optional

from pydantic import Field, field_validator

from models.order import Order, OrderStatus, PaymentMethod
from schemas.base import APIModel
from schemas.cart import CartLineIn
from services.orders import CustomerData


# Shipping details typed in at checkout; required fields are checked by the order service
class CustomerIn(APIModel):
    name: str = ""
    address: str = ""
    phone: str = ""
    city: str = ""
    county: str = ""
    postal_code: Optional[str] = None

    @field_validator("*", mode="before")
    @classmethod
    def _to_str(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)

    def to_customer(self) -> CustomerData:
        return CustomerData(
            name=self.name,
            address=self.address,
            phone=self.phone,
            city=self.city,
            region=self.county,
            postal_code=self.postal_code,
        )


# Card checkout body: same as an order, the payment method is implied
class CheckoutPayload(APIModel):
    customer: CustomerIn = Field(default_factory=CustomerIn)
    items: List[CartLineIn] = []


# Input schema for POST /orders
class OrderCreatePayload(CheckoutPayload):
    payment_method: PaymentMethod = PaymentMethod.COD

    @field_validator("payment_method", mode="before")
    @classmethod
    def _normalize_method(cls, value: Any) -> PaymentMethod:
        # Anything that is not explicitly "card" is cash on delivery
        if str(value or "").strip().lower() == PaymentMethod.CARD.value:
            return PaymentMethod.CARD
        return PaymentMethod.COD


# Output schema for an individual order line item
class OrderItemOut(APIModel):
    id: str
    product_id: str
    name: str
    price_cents: int
    quantity: int
    line_total_cents: int


class CustomerOut(APIModel):
    name: str
    email: str
    phone: str
    address: str
    city: str
    county: str
    postal_code: str = ""


# Output schema representing the full order details
class OrderOut(APIModel):
    id: str
    created_at: Optional[datetime] = None
    status: str
    total_cents: int
    shipping_cents: int
    payment_method: str
    payment_status: str
    customer: CustomerOut
    items: List[OrderItemOut]
    # Hosted payment page, only for card orders placed through POST /orders
    checkout_url: Optional[str] = None

    @classmethod
    def from_order(cls, order: Order, checkout_url: Optional[str] = None) -> "OrderOut":
        return cls(
            id=order.id,
            created_at=order.created_at,
            status=order.status,
            total_cents=order.total_cents,
            shipping_cents=order.shipping_cents,
            payment_method=order.payment_method,
            payment_status=order.payment_status,
            customer=CustomerOut(
                name=order.customer_name,
                email=order.customer_email,
                phone=order.customer_phone,
                address=order.customer_address,
                city=order.customer_city,
                county=order.customer_region,
                postal_code=order.postal_code or "",
            ),
            items=[OrderItemOut.model_validate(it) for it in order.items],
            checkout_url=checkout_url,
        )


# Schema for admin status updates; unknown statuses are rejected with 400
class OrderStatusPatch(APIModel):
    status: OrderStatus


# Response schema for payment session creation
class CheckoutSessionResponse(APIModel):
    ok: bool = True
    url: str
    order_id: str


# Response of state-changing order endpoints (cancel, admin status update)
class OrderEnvelope(APIModel):
    ok: bool = True
    order: OrderOut
