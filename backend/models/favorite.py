from sqlalchemy import Column, String, ForeignKey, DateTime, UniqueConstraint, func
from sqlalchemy.orm import relationship
from database import Base, new_id


# A product bookmarked by a user
class Favorite(Base):
    __tablename__ = "favorites"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    product = relationship("Product")

    __table_args__ = (
        # One row per (user, product) pair
        UniqueConstraint("user_id", "product_id", name="uq_favorite_user_product"),
    )
