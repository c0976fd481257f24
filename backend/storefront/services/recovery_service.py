"""
Recovery Service — Promotes a pending UPI payment into a confirmed, paid order.

Payment truth comes from a pluggable verification strategy. The default,
ManualAssertion, accepts the customer's word that the payment went through.
"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime

import httpx
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.config import get_settings
from storefront.errors import (
    DuplicateOrderError, InvalidStatusTransition, PaymentNotVerifiedError, SessionNotFoundError, WriteFailure,
)
from storefront.models.order import Order, OrderStatusHistory, OrderStatus, PaymentStatus
from storefront.models.pending_payment import PendingPayment, PendingStatus
from storefront.services.order_service import OrderService
from storefront.services.pending_payment_service import PendingPaymentService
from storefront.utils.clock import utcnow

logger = logging.getLogger(__name__)
settings = get_settings()


# ─── Verification strategies ────────────────────────────────────────

class PaymentVerificationStrategy(ABC):
    name = "base"

    @abstractmethod
    def verify(self, record: PendingPayment) -> bool:
        """Return True if the payment behind this record is considered received."""


class ManualAssertion(PaymentVerificationStrategy):
    """Trusts the caller. Reconciliation happens by a human afterwards."""

    name = "manual"

    def verify(self, record: PendingPayment) -> bool:
        return True


class GatewayWebhook(PaymentVerificationStrategy):
    """Confirmed only once a gateway webhook has attached a reference to the record."""

    name = "webhook"

    def verify(self, record: PendingPayment) -> bool:
        return bool(record.gateway_reference)


class ThirdPartyPolling(PaymentVerificationStrategy):
    """Asks a payment status endpoint about the session id."""

    name = "polling"
    SUCCESS_STATES = {"SUCCESS", "PAID", "CAPTURED"}

    def __init__(self, status_url: str = None, timeout: float = None):
        self.status_url = (status_url or settings.GATEWAY_STATUS_URL).rstrip("/")
        self.timeout = timeout or settings.GATEWAY_TIMEOUT_SECONDS

    def verify(self, record: PendingPayment) -> bool:
        if not self.status_url:
            logger.warning("Polling verification requested but GATEWAY_STATUS_URL is empty")
            return False
        try:
            response = httpx.get(f"{self.status_url}/{record.session_id}", timeout=self.timeout)
            response.raise_for_status()
            status = str(response.json().get("status", "")).upper()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(
                "Gateway status check failed: %s", exc, extra={"session_id": record.session_id},
            )
            return False
        return status in self.SUCCESS_STATES


STRATEGIES = {
    ManualAssertion.name: ManualAssertion,
    GatewayWebhook.name: GatewayWebhook,
    ThirdPartyPolling.name: ThirdPartyPolling,
}


def get_strategy(name: str = None) -> PaymentVerificationStrategy:
    """Instantiate the strategy named in settings (or the given name)."""
    name = (name or settings.PAYMENT_VERIFICATION).lower()
    if name not in STRATEGIES:
        raise ValueError(f"Unknown payment verification strategy: {name}")
    return STRATEGIES[name]()


# ─── Resolver ───────────────────────────────────────────────────────

class RecoveryService:
    """Turns a pending payment into a confirmed order."""

    @staticmethod
    def verify_payment_and_create_order(
        db: Session,
        session_id: str,
        strategy: PaymentVerificationStrategy = None,
        now: datetime = None,
    ) -> Order:
        """Resolve a payment session.

        Steps, all in one transaction:
            1. Load the pending, unexpired record for the session id.
            2. Ask the verification strategy whether payment arrived.
            3. Promote the payment-review order already written for the
               session, or create a new confirmed order from the record.
            4. Mark the record verified.

        Raises:
            SessionNotFoundError: no pending unexpired record (also on a second call).
            PaymentNotVerifiedError: the strategy refused the payment.
            InvalidStatusTransition: the session's order left payment review (e.g. cancelled).
            DuplicateOrderError / WriteFailure: the writes were rejected.
        """
        now = now or utcnow()
        strategy = strategy or get_strategy()

        record = PendingPaymentService.get_pending_payment(db, session_id, now=now)
        if not record:
            raise SessionNotFoundError(session_id, settings.SUPPORT_EMAIL, settings.SUPPORT_PHONE)

        if not strategy.verify(record):
            raise PaymentNotVerifiedError(
                "Payment could not be verified yet. Please try again shortly or contact support.",
                {"session_id": session_id, "strategy": strategy.name},
            )

        try:
            # Claim the record first; a concurrent resolver loses here.
            claimed = (
                db.query(PendingPayment)
                .filter(
                    PendingPayment.id == record.id,
                    PendingPayment.status == PendingStatus.PENDING.value,
                )
                .update(
                    {PendingPayment.status: PendingStatus.VERIFIED.value, PendingPayment.verified_at: now},
                    synchronize_session=False,
                )
            )
            if claimed != 1:
                db.rollback()
                raise SessionNotFoundError(session_id, settings.SUPPORT_EMAIL, settings.SUPPORT_PHONE)

            order = OrderService.find_by_session(db, session_id)
            if order is not None and order.status != OrderStatus.PAYMENT_REVIEW.value:
                # Cancelled or already handled; the record stays pending for support.
                details = {"session_id": session_id, "order_id": order.id, "status": order.status}
                db.rollback()
                raise InvalidStatusTransition(
                    "The order for this payment session can no longer be confirmed. Please contact support.",
                    details,
                )
            if order is not None:
                order.status = OrderStatus.CONFIRMED.value
                order.payment_status = PaymentStatus.PAID.value
                order.history.append(OrderStatusHistory(
                    status=OrderStatus.CONFIRMED.value,
                    note=f"Payment verified ({strategy.name})",
                ))
            else:
                order_data = record.order_data or {}
                order = OrderService.build_order(
                    user_id=record.user_id,
                    total_amount=record.amount,
                    status=OrderStatus.CONFIRMED.value,
                    payment_status=PaymentStatus.PAID.value,
                    payment_session_id=session_id,
                    shipping_address=order_data.get("shipping_address") or {},
                    items=order_data.get("items") or [],
                    payment_method="upi",
                    note=f"Order recovered from payment session ({strategy.name})",
                )
                db.add(order)
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise DuplicateOrderError(session_id) from exc
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Payment recovery write failed", extra={"session_id": session_id}, exc_info=True)
            raise WriteFailure(
                "Failed to verify payment. Please contact support with your payment proof.",
                {"session_id": session_id},
            ) from exc

        db.refresh(order)
        logger.info(
            "Payment session resolved",
            extra={"session_id": session_id, "order_id": order.id, "user_id": order.user_id},
        )
        return order

    @staticmethod
    def record_gateway_confirmation(db: Session, session_id: str, reference: str, now: datetime = None) -> PendingPayment:
        """Attach a gateway reference to a pending record (webhook intake)."""
        record = PendingPaymentService.get_pending_payment(db, session_id, now=now)
        if not record:
            raise SessionNotFoundError(session_id, settings.SUPPORT_EMAIL, settings.SUPPORT_PHONE)

        record.gateway_reference = reference
        try:
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Gateway confirmation write failed", extra={"session_id": session_id}, exc_info=True)
            raise WriteFailure() from exc
        db.refresh(record)
        return record
