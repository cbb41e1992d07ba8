import enum
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, DateTime, CheckConstraint, func
from sqlalchemy.orm import relationship
from database import Base, new_id


# Order lifecycle: pending -> confirmed -> shipped -> delivered, or pending -> cancelled
class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentMethod(str, enum.Enum):
    COD = "cod"
    CARD = "card"


class PaymentStatus(str, enum.Enum):
    UNPAID = "unpaid"
    PAID = "paid"
    FAILED = "failed"


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String, nullable=False, default=OrderStatus.PENDING.value, index=True)

    payment_method = Column(String, nullable=False, default=PaymentMethod.COD.value)
    payment_status = Column(String, nullable=False, default=PaymentStatus.UNPAID.value)

    # Frozen at creation: sum(items) + shipping_cents, never recomputed
    shipping_cents = Column(Integer, CheckConstraint("shipping_cents >= 0"), nullable=False, default=0)
    total_cents = Column(Integer, CheckConstraint("total_cents >= 0"), nullable=False)

    # True while this order holds decremented stock (cod at creation, card after payment)
    stock_reserved = Column(Boolean, nullable=False, default=False)

    # Customer snapshot
    customer_name = Column(String, nullable=False)
    customer_email = Column(String, nullable=False)
    customer_address = Column(String, nullable=False)
    customer_phone = Column(String, nullable=False)
    customer_city = Column(String, nullable=False)
    customer_region = Column(String, nullable=False)
    postal_code = Column(String, nullable=True)

    # Payment provider linkage (card orders only)
    payment_session_id = Column(String, nullable=True, index=True)
    payment_reference = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    items = relationship(
        "OrderItem", back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.position"
    )


# Price/name snapshot of a product at ordering time; no live dependency on Product
class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True, default=new_id)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(36), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    name = Column(String, nullable=False)
    price_cents = Column(Integer, nullable=False)
    quantity = Column(Integer, CheckConstraint("quantity > 0"), nullable=False)

    order = relationship("Order", back_populates="items")

    @property
    def line_total_cents(self) -> int:
        return self.price_cents * self.quantity
