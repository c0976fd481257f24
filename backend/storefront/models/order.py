"""
Order Models — Orders, their line items and status history.
Line items copy price and product attributes at creation time.
"""
import enum

from sqlalchemy import Column, String, Integer, Numeric, DateTime, JSON, ForeignKey, Text
from sqlalchemy.orm import relationship

from storefront.database import Base
from storefront.utils.clock import utcnow


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PAYMENT_REVIEW = "payment_review"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"
    PENDING_VERIFICATION = "pending_verification"
    PARTIALLY_PAID = "partially_paid"


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)

    total_amount = Column(Numeric(12, 2), nullable=False)
    status = Column(String(24), nullable=False, default=OrderStatus.PENDING.value, index=True)
    payment_status = Column(String(24), nullable=False, default=PaymentStatus.PENDING.value)
    payment_method = Column(String(16))     # cod | upi

    # Idempotency key: at most one order per checkout session
    payment_session_id = Column(String(64), unique=True, nullable=True, index=True)

    shipping_address = Column(JSON, default=dict)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
    history = relationship(
        "OrderStatusHistory", back_populates="order",
        cascade="all, delete-orphan", order_by="OrderStatusHistory.id",
    )


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)

    product_id = Column(String(64), nullable=False)
    product_name = Column(String(256))
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    size = Column(String(32))
    color = Column(String(32))

    order = relationship("Order", back_populates="items")


class OrderStatusHistory(Base):
    __tablename__ = "order_status_history"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)

    status = Column(String(24), nullable=False)
    note = Column(Text)
    created_at = Column(DateTime, default=utcnow)

    order = relationship("Order", back_populates="history")
