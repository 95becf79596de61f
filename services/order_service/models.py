import enum
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship
from shared.config.database import Base
from services.product_service.models import Product  # noqa: F401 (relationship target)


def _utcnow():
    return datetime.now(timezone.utc)


class OrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELED = "CANCELED"


# Statuses a gateway notification is still allowed to move
RECONCILABLE_STATUSES = (OrderStatus.PENDING, OrderStatus.PROCESSING)


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    total_price = Column(Numeric(12, 2), nullable=False) # calculated once at creation
    status = Column(Enum(OrderStatus, name="order_status"), nullable=False, default=OrderStatus.PENDING, index=True)
    payment_session_token = Column(String, nullable=True)
    payment_redirect_url = Column(String, nullable=True)
    gateway_order_id = Column(String, nullable=True, unique=True) # order-{id}-{epochMillis}
    payment_type = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    items = relationship("OrderItem", back_populates="order", lazy="selectin", cascade="all, delete-orphan")


class OrderItem(Base):
    """Purchase-time snapshot; `price` is copied from the product and never re-read."""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(12, 2), nullable=False)

    order = relationship("Order", back_populates="items")
    product = relationship("Product", lazy="selectin")

    @property
    def product_name(self) -> str | None:
        return self.product.name if self.product is not None else None

    @property
    def seller_id(self) -> str | None:
        return self.product.seller_id if self.product is not None else None
