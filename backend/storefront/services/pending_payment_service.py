"""
Pending Payment Service — Durable store of unconfirmed UPI checkout attempts.
"""
import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.config import get_settings
from storefront.errors import WriteFailure
from storefront.models.pending_payment import PendingPayment, PendingStatus
from storefront.utils.clock import utcnow

logger = logging.getLogger(__name__)
settings = get_settings()


class PendingPaymentService:
    """Create, look up and expire pending payment records."""

    @staticmethod
    def build_order_data(shipping, items) -> Dict:
        """Denormalize the shipping form and cart lines into JSON-safe order data."""
        return {
            "shipping_address": shipping.model_dump(mode="json"),
            "items": [item.model_dump(mode="json") for item in items],
        }

    @staticmethod
    def create_pending_payment(
        db: Session,
        session_id: str,
        user_id: str,
        amount: Decimal,
        order_data: Dict,
        now: datetime = None,
    ) -> PendingPayment:
        """Insert a pending record that stays recoverable for PENDING_PAYMENT_TTL_HOURS.

        Raises:
            WriteFailure: the insert was rejected. Callers treat this as non-fatal.
        """
        now = now or utcnow()
        record = PendingPayment(
            session_id=session_id,
            user_id=user_id,
            amount=amount,
            order_data=order_data,
            status=PendingStatus.PENDING.value,
            created_at=now,
            expires_at=now + timedelta(hours=settings.PENDING_PAYMENT_TTL_HOURS),
        )
        db.add(record)
        try:
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Pending payment insert failed", extra={"session_id": session_id}, exc_info=True)
            raise WriteFailure("Failed to store payment session", {"session_id": session_id}) from exc
        db.refresh(record)
        return record

    @staticmethod
    def get_pending_payment(db: Session, session_id: str, now: datetime = None) -> Optional[PendingPayment]:
        """Return the record only while it is pending and unexpired."""
        now = now or utcnow()
        return (
            db.query(PendingPayment)
            .filter(
                PendingPayment.session_id == session_id,
                PendingPayment.status == PendingStatus.PENDING.value,
                PendingPayment.expires_at > now,
            )
            .first()
        )

    @staticmethod
    def get_user_pending_payments(db: Session, user_id: str, now: datetime = None) -> List[PendingPayment]:
        now = now or utcnow()
        return (
            db.query(PendingPayment)
            .filter(
                PendingPayment.user_id == user_id,
                PendingPayment.status == PendingStatus.PENDING.value,
                PendingPayment.expires_at > now,
            )
            .order_by(PendingPayment.created_at.desc())
            .all()
        )

    @staticmethod
    def expire_stale(db: Session, now: datetime = None) -> int:
        """Transition every pending record past its expiry to expired. Returns the count."""
        now = now or utcnow()
        try:
            count = (
                db.query(PendingPayment)
                .filter(
                    PendingPayment.status == PendingStatus.PENDING.value,
                    PendingPayment.expires_at <= now,
                )
                .update({PendingPayment.status: PendingStatus.EXPIRED.value}, synchronize_session=False)
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Pending payment expiry sweep failed", exc_info=True)
            raise WriteFailure("Failed to expire pending payments") from exc

        if count:
            logger.info("Expired %d pending payments", count)
        return count
