"""
Pending Payment Model — Durable record of an unconfirmed UPI checkout attempt.
Keyed by the checkout session id; consumed by the recovery resolver.
"""
import enum
from datetime import datetime

from sqlalchemy import Column, String, Integer, Numeric, DateTime, JSON

from storefront.database import Base
from storefront.utils.clock import utcnow


class PendingStatus(str, enum.Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    EXPIRED = "expired"


class PendingPayment(Base):
    __tablename__ = "pending_payments"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    session_id = Column(String(64), unique=True, nullable=False, index=True)
    user_id = Column(String(64), nullable=False, index=True)

    amount = Column(Numeric(12, 2), nullable=False)
    order_data = Column(JSON, default=dict)    # {"shipping_address": {...}, "items": [...]}

    status = Column(String(16), nullable=False, default=PendingStatus.PENDING.value, index=True)
    gateway_reference = Column(String(128))    # Set by a gateway webhook, if any

    created_at = Column(DateTime, default=utcnow)
    expires_at = Column(DateTime, nullable=False, index=True)
    verified_at = Column(DateTime, nullable=True)

    def effective_status(self, now: datetime = None) -> str:
        """Stored status, except a pending record past its expiry reads as expired."""
        now = now or utcnow()
        if self.status == PendingStatus.PENDING.value and self.expires_at <= now:
            return PendingStatus.EXPIRED.value
        return self.status
