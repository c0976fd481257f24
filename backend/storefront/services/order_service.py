"""
Order Service — Writes orders with their line items and status history,
and serves order lookups, status updates and statistics.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.config import get_settings
from storefront.errors import (
    DuplicateOrderError, InvalidStatusTransition, NotFoundError, ValidationError, WriteFailure,
)
from storefront.models.order import Order, OrderItem, OrderStatusHistory, OrderStatus, PaymentStatus
from storefront.schemas.schemas import CartLine

logger = logging.getLogger(__name__)
settings = get_settings()

NON_CANCELLABLE = {
    OrderStatus.SHIPPED.value,
    OrderStatus.DELIVERED.value,
    OrderStatus.COMPLETED.value,
    OrderStatus.CANCELLED.value,
    OrderStatus.REFUNDED.value,
}


@dataclass
class Totals:
    subtotal: Decimal
    shipping: Decimal
    total: Decimal


def _as_line(item) -> CartLine:
    return item if isinstance(item, CartLine) else CartLine.model_validate(item)


class OrderService:
    """Order writer and order queries."""

    @staticmethod
    def calculate_totals(items) -> Totals:
        """Subtotal of price x quantity, plus shipping unless the subtotal clears the free threshold."""
        lines = [_as_line(i) for i in items]
        subtotal = sum((line.price * line.quantity for line in lines), Decimal("0"))
        if subtotal > settings.FREE_SHIPPING_THRESHOLD:
            shipping = Decimal("0")
        else:
            shipping = Decimal(settings.SHIPPING_FEE)
        return Totals(subtotal=subtotal, shipping=shipping, total=subtotal + shipping)

    @staticmethod
    def build_order(
        user_id: str,
        total_amount: Decimal,
        status: str,
        payment_status: str,
        payment_session_id: Optional[str],
        shipping_address: Dict,
        items,
        payment_method: Optional[str] = None,
        note: str = "Order created",
    ) -> Order:
        """Assemble an unsaved order with its items and first history entry."""
        order = Order(
            user_id=user_id,
            total_amount=total_amount,
            status=status,
            payment_status=payment_status,
            payment_method=payment_method,
            payment_session_id=payment_session_id or None,
            shipping_address=shipping_address,
        )
        for item in items:
            line = _as_line(item)
            order.items.append(OrderItem(
                product_id=line.product_id,
                product_name=line.name,
                quantity=line.quantity,
                price=line.price,
                size=line.size or None,
                color=line.color or None,
            ))
        order.history.append(OrderStatusHistory(status=status, note=note))
        return order

    @staticmethod
    def create_order(
        db: Session,
        user_id: str,
        total_amount: Decimal,
        status: str,
        payment_status: str,
        payment_session_id: Optional[str],
        shipping_address: Dict,
        items,
        payment_method: Optional[str] = None,
    ) -> Order:
        """Insert the order, its items and its history row in one transaction.

        Raises:
            DuplicateOrderError: an order already uses this payment session id.
            WriteFailure: any other rejected write; nothing is left behind.
        """
        if payment_session_id and OrderService.find_by_session(db, payment_session_id):
            raise DuplicateOrderError(payment_session_id)

        order = OrderService.build_order(
            user_id, total_amount, status, payment_status,
            payment_session_id, shipping_address, items, payment_method,
        )
        db.add(order)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            if payment_session_id and OrderService.find_by_session(db, payment_session_id):
                raise DuplicateOrderError(payment_session_id) from exc
            logger.error("Order insert rejected", extra={"user_id": user_id}, exc_info=True)
            raise WriteFailure() from exc
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Order insert failed", extra={"user_id": user_id}, exc_info=True)
            raise WriteFailure() from exc

        db.refresh(order)
        logger.info(
            "Order created",
            extra={"order_id": order.id, "user_id": user_id, "session_id": payment_session_id},
        )
        return order

    @staticmethod
    def place_cod_order(db: Session, user_id: str, shipping, items: List[CartLine]) -> Order:
        """Cash on delivery: confirmed immediately, payment collected later."""
        totals = OrderService.calculate_totals(items)
        return OrderService.create_order(
            db, user_id, totals.total,
            OrderStatus.CONFIRMED.value, PaymentStatus.PENDING.value,
            None, shipping.model_dump(mode="json"), items, payment_method="cod",
        )

    @staticmethod
    def place_upi_review_order(db: Session, user_id: str, session_id: str, shipping, items: List[CartLine]) -> Order:
        """UPI claim: held in payment review until the payment is verified."""
        totals = OrderService.calculate_totals(items)
        return OrderService.create_order(
            db, user_id, totals.total,
            OrderStatus.PAYMENT_REVIEW.value, PaymentStatus.PENDING_VERIFICATION.value,
            session_id, shipping.model_dump(mode="json"), items, payment_method="upi",
        )

    # ─── Queries ─────────────────────────────────────────────────────
    @staticmethod
    def find_by_session(db: Session, payment_session_id: str) -> Optional[Order]:
        return db.query(Order).filter(Order.payment_session_id == payment_session_id).first()

    @staticmethod
    def get_order(db: Session, order_id: int, user_id: str = None) -> Order:
        query = db.query(Order).filter(Order.id == order_id)
        if user_id is not None:
            query = query.filter(Order.user_id == user_id)
        order = query.first()
        if not order:
            raise NotFoundError("Order not found", {"order_id": order_id})
        return order

    @staticmethod
    def get_user_orders(
        db: Session, user_id: str, page: int = 1, limit: int = 10, status: str = None,
    ) -> Tuple[int, List[Order]]:
        query = db.query(Order).filter(Order.user_id == user_id)
        if status:
            query = query.filter(Order.status == status)
        total = query.count()
        orders = (
            query.order_by(Order.created_at.desc(), Order.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return total, orders

    @staticmethod
    def get_status_history(db: Session, order_id: int, user_id: str = None) -> List[OrderStatusHistory]:
        return OrderService.get_order(db, order_id, user_id).history

    # ─── Status changes ──────────────────────────────────────────────
    @staticmethod
    def update_order_status(db: Session, order_id: int, status: str, note: str = None) -> Order:
        if status not in {s.value for s in OrderStatus}:
            raise ValidationError([f"Unknown order status: {status}"])

        order = OrderService.get_order(db, order_id)
        order.status = status
        order.history.append(OrderStatusHistory(status=status, note=note))
        OrderService._commit(db, order)
        return order

    @staticmethod
    def update_payment_status(db: Session, order_id: int, payment_status: str) -> Order:
        if payment_status not in {s.value for s in PaymentStatus}:
            raise ValidationError([f"Unknown payment status: {payment_status}"])

        order = OrderService.get_order(db, order_id)
        order.payment_status = payment_status
        OrderService._commit(db, order)
        return order

    @staticmethod
    def cancel_order(db: Session, order_id: int, user_id: str = None, reason: str = None) -> Order:
        order = OrderService.get_order(db, order_id, user_id)
        if order.status in NON_CANCELLABLE:
            raise InvalidStatusTransition(
                "This order cannot be cancelled as it has already been shipped or delivered",
                {"order_id": order_id, "status": order.status},
            )
        order.status = OrderStatus.CANCELLED.value
        order.history.append(OrderStatusHistory(
            status=OrderStatus.CANCELLED.value, note=reason or "Order cancelled by user",
        ))
        OrderService._commit(db, order)
        return order

    @staticmethod
    def get_order_statistics(db: Session, user_id: str = None) -> Dict:
        def count(*criteria):
            query = db.query(func.count(Order.id)).filter(*criteria)
            if user_id:
                query = query.filter(Order.user_id == user_id)
            return query.scalar() or 0

        revenue_query = db.query(func.coalesce(func.sum(Order.total_amount), 0)).filter(
            Order.payment_status == PaymentStatus.PAID.value
        )
        if user_id:
            revenue_query = revenue_query.filter(Order.user_id == user_id)

        return {
            "total_orders": count(),
            "pending_orders": count(Order.status == OrderStatus.PENDING.value),
            "payment_review_orders": count(Order.status == OrderStatus.PAYMENT_REVIEW.value),
            "completed_orders": count(
                Order.status.in_([OrderStatus.DELIVERED.value, OrderStatus.COMPLETED.value])
            ),
            "total_revenue": Decimal(str(revenue_query.scalar() or 0)),
        }

    @staticmethod
    def _commit(db: Session, order: Order):
        order_id = order.id
        try:
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Order update failed", extra={"order_id": order_id}, exc_info=True)
            raise WriteFailure() from exc
        db.refresh(order)
